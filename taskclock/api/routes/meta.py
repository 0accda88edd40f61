from __future__ import annotations

import platform

from fastapi import APIRouter, Depends, Request

from ... import __version__
from ...users import Workspace
from ..deps import get_workspace
from ..schemas import MetaOut

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/meta", response_model=MetaOut)
def meta(request: Request, workspace: Workspace = Depends(get_workspace)) -> MetaOut:
    return MetaOut(
        app="TaskClock",
        version=__version__,
        user_id=workspace.user_id,
        data_dir=str(request.app.state.registry.data_dir),
        db_path=str(workspace.db.db_path),
        platform=platform.platform(),
    )
