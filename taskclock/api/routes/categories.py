from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ...service import TaskService
from ..deps import get_service
from ..schemas import CategoryCreate, CategoryOut, CategoryUpdate, category_out

router = APIRouter(prefix="/api/v1", tags=["categories"])


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories(service: TaskService = Depends(get_service)) -> list[CategoryOut]:
    return [category_out(item) for item in await service.get_categories()]


@router.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryCreate, service: TaskService = Depends(get_service)) -> CategoryOut:
    category = await service.create_category(payload.name, payload.color, payload.description)
    return category_out(category)


@router.get("/categories/{category_id}", response_model=CategoryOut)
async def get_category(category_id: str, service: TaskService = Depends(get_service)) -> CategoryOut:
    category = await service.get_category(category_id)
    if category is not None:
        return category_out(category)
    raise HTTPException(status_code=404, detail="category not found")


@router.put("/categories/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    service: TaskService = Depends(get_service),
) -> CategoryOut:
    category = await service.update_category(category_id, payload.model_dump(exclude_unset=True))
    return category_out(category)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, service: TaskService = Depends(get_service)) -> dict[str, object]:
    await service.delete_category(category_id)
    return {"deleted": category_id}
