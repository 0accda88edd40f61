from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...models import TASK_STATUSES
from ...service import TaskService
from ..deps import get_service
from ..schemas import IntervalOut, StartTrackingRequest, TaskCreate, TaskOut, TaskUpdate, interval_out, task_out

router = APIRouter(prefix="/api/v1", tags=["tasks"])


@router.get("/tasks", response_model=list[TaskOut])
async def list_tasks(parent_id: str | None = None, service: TaskService = Depends(get_service)) -> list[TaskOut]:
    today = service.today()
    return [task_out(task, today) for task in await service.get_tasks(parent_id)]


@router.post("/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate, service: TaskService = Depends(get_service)) -> TaskOut:
    task = await service.create_task(**payload.model_dump())
    return task_out(task, service.today())


# Declared before /tasks/{task_id} so the literal segments win.
@router.get("/tasks/category/{category}", response_model=list[TaskOut])
async def tasks_by_category(category: str, service: TaskService = Depends(get_service)) -> list[TaskOut]:
    today = service.today()
    return [task_out(task, today) for task in await service.get_tasks_by_category(category)]


@router.get("/tasks/status/{task_status}", response_model=list[TaskOut])
async def tasks_by_status(task_status: str, service: TaskService = Depends(get_service)) -> list[TaskOut]:
    if task_status not in TASK_STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(TASK_STATUSES)}")
    today = service.today()
    return [task_out(task, today) for task in await service.get_tasks_by_status(task_status)]


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, service: TaskService = Depends(get_service)) -> TaskOut:
    task = await service.get_task(task_id)
    if task is not None:
        return task_out(task, service.today())
    raise HTTPException(status_code=404, detail="task not found")


@router.put("/tasks/{task_id}", response_model=TaskOut)
async def update_task(task_id: str, payload: TaskUpdate, service: TaskService = Depends(get_service)) -> TaskOut:
    task = await service.update_task(task_id, payload.model_dump(exclude_unset=True))
    return task_out(task, service.today())


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, service: TaskService = Depends(get_service)) -> dict[str, object]:
    if not await service.delete_task(task_id):
        raise HTTPException(status_code=404, detail="task not found")
    return {"deleted": task_id}


@router.post("/tasks/{task_id}/start", response_model=IntervalOut)
async def start_tracking(
    task_id: str,
    payload: StartTrackingRequest | None = None,
    service: TaskService = Depends(get_service),
) -> IntervalOut:
    description = payload.description if payload is not None else ""
    interval = await service.start_tracking(task_id, description)
    return interval_out(interval, service.clock.now())


@router.post("/tasks/{task_id}/pause", response_model=IntervalOut)
async def pause_tracking(task_id: str, service: TaskService = Depends(get_service)) -> IntervalOut:
    interval = await service.pause_tracking(task_id)
    if interval is None:
        raise HTTPException(status_code=404, detail="no active interval for task")
    return interval_out(interval, service.clock.now())


@router.post("/tasks/{task_id}/resume", response_model=IntervalOut)
async def resume_tracking(task_id: str, service: TaskService = Depends(get_service)) -> IntervalOut:
    interval = await service.resume_tracking(task_id)
    if interval is None:
        raise HTTPException(status_code=404, detail="no paused interval for task")
    return interval_out(interval, service.clock.now())


@router.post("/tasks/{task_id}/stop", response_model=IntervalOut)
async def stop_tracking(task_id: str, service: TaskService = Depends(get_service)) -> IntervalOut:
    interval = await service.stop_tracking(task_id)
    if interval is None:
        raise HTTPException(status_code=404, detail="no open interval for task")
    return interval_out(interval)


@router.get("/tasks/{task_id}/time-entries", response_model=list[IntervalOut])
async def time_entries(task_id: str, service: TaskService = Depends(get_service)) -> list[IntervalOut]:
    now = service.clock.now()
    return [interval_out(item, now) for item in await service.get_time_entries_by_task(task_id)]
