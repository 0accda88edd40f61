from __future__ import annotations

from fastapi import APIRouter, Depends

from ...service import TaskService
from ..deps import get_service
from ..schemas import DailyLogOut, NotesUpdate, log_out

router = APIRouter(prefix="/api/v1", tags=["logs"])


@router.get("/logs/range/{start}/{end}", response_model=list[DailyLogOut])
async def logs_in_range(start: str, end: str, service: TaskService = Depends(get_service)) -> list[DailyLogOut]:
    return [log_out(log) for log in await service.get_daily_logs(start, end)]


@router.get("/logs/{day}", response_model=DailyLogOut)
async def get_log(day: str, service: TaskService = Depends(get_service)) -> DailyLogOut:
    return log_out(await service.get_daily_log(day))


@router.put("/logs/{day}/notes", response_model=DailyLogOut)
async def update_notes(day: str, payload: NotesUpdate, service: TaskService = Depends(get_service)) -> DailyLogOut:
    return log_out(await service.update_daily_notes(day, payload.notes))
