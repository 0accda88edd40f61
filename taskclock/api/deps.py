from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request

from ..service import TaskService
from ..users import Workspace, WorkspaceRegistry


async def get_workspace(request: Request, x_user_id: str | None = Header(default=None)) -> Workspace:
    registry: WorkspaceRegistry = request.app.state.registry
    user_id = (x_user_id or "").strip() or request.app.state.default_user
    try:
        return await registry.get(user_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def get_service(workspace: Workspace = Depends(get_workspace)) -> TaskService:
    return workspace.service
