from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from ...reporting import build_productivity_stats, build_summary, build_time_trends
from ...users import Workspace
from ..deps import get_workspace
from ..schemas import (
    ActiveOut,
    DayPointOut,
    DeadlinesOut,
    ProductivityOut,
    TaskOut,
    interval_out,
    task_out,
)

router = APIRouter(prefix="/api/v1", tags=["analytics"])


@router.get("/analytics/active", response_model=ActiveOut)
async def active(workspace: Workspace = Depends(get_workspace)) -> ActiveOut:
    now = workspace.service.clock.now()
    return ActiveOut(
        active_task_id=workspace.service.get_active_task_id(),
        entries=[interval_out(item, now) for item in workspace.service.get_active_time_entries()],
    )


@router.get("/analytics/productivity/{start}/{end}", response_model=ProductivityOut)
async def productivity(start: str, end: str, workspace: Workspace = Depends(get_workspace)) -> ProductivityOut:
    stats = await build_productivity_stats(workspace.db, start, end)
    return ProductivityOut(
        start=stats.start,
        end=stats.end,
        total_time=stats.total_time,
        tasks_completed=stats.tasks_completed,
        average_productivity=stats.average_productivity,
        days=[DayPointOut(date=p.date, time=p.time, tasks=p.tasks, score=p.score) for p in stats.days],
        category_breakdown=stats.category_breakdown,
    )


@router.get("/analytics/hierarchy", response_model=list[TaskOut])
async def hierarchy(workspace: Workspace = Depends(get_workspace)) -> list[TaskOut]:
    today = workspace.service.today()
    return [task_out(task, today) for task in await workspace.service.get_hierarchy()]


@router.get("/analytics/summary")
async def summary(workspace: Workspace = Depends(get_workspace)) -> dict[str, object]:
    service = workspace.service
    today = service.today()
    return await build_summary(
        db=workspace.db,
        today_log=await service.get_daily_log(today.isoformat()),
        all_tasks=await service.get_all_tasks(),
        active_count=len(service.get_active_time_entries()),
        today=today,
    )


@router.get("/analytics/time-trends/{days}")
async def time_trends(
    days: int = Path(ge=1, le=366),
    workspace: Workspace = Depends(get_workspace),
) -> dict[str, object]:
    return await build_time_trends(workspace.db, days, workspace.service.today())


@router.get("/analytics/deadlines", response_model=DeadlinesOut)
async def deadlines(workspace: Workspace = Depends(get_workspace)) -> DeadlinesOut:
    service = workspace.service
    today = service.today()
    return DeadlinesOut(
        overdue=[task_out(task, today) for task in await service.get_overdue_tasks()],
        due_tomorrow=[task_out(task, today) for task in await service.get_tasks_due_tomorrow()],
        due_this_week=[task_out(task, today) for task in await service.get_tasks_due_this_week()],
    )
