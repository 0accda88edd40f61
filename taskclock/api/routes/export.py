from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...exporting import export_tasks_csv, export_time_entries_csv
from ...users import Workspace
from ..deps import get_workspace
from ..schemas import ExportResult

router = APIRouter(prefix="/api/v1", tags=["export"])


class ExportCsvRequest(BaseModel):
    out_dir: str | None = None
    include_tasks: bool = False


@router.post("/export/csv", response_model=ExportResult)
async def export_csv(payload: ExportCsvRequest, workspace: Workspace = Depends(get_workspace)) -> ExportResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else Path(workspace.db.db_path).parent / "out"
    csv_path = await export_time_entries_csv(workspace.db, out_dir)
    tasks_path = None
    if payload.include_tasks:
        tasks_path = await export_tasks_csv(workspace.db, out_dir, workspace.service.today())
    return ExportResult(path=str(csv_path), tasks_path=str(tasks_path) if tasks_path else None)
