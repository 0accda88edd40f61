from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...reporting import generate_weekly_report
from ...users import Workspace
from ..deps import get_workspace
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["report"])


class WeeklyReportRequest(BaseModel):
    year: int | None = None
    week: int | None = None
    out_dir: str | None = None


@router.post("/report/weekly", response_model=FileResult)
async def generate_report(payload: WeeklyReportRequest, workspace: Workspace = Depends(get_workspace)) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(workspace.db.db_path).parent / "out"
    report_path = await generate_weekly_report(
        db=workspace.db,
        out_dir=out_dir,
        year=payload.year,
        week=payload.week,
        now=workspace.service.clock.now(),
    )
    return FileResult(path=str(report_path))
