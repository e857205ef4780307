from fastapi import APIRouter, Depends, Query
from typing import List, Optional
import logging

from saleready.core.auth import get_current_user_id
from saleready.schemas.task import CompletionStatus, Task, TaskCategory, TaskCreate, TaskUpdate
from saleready.services.task_service import task_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[Task])
def get_tasks(
    company_id: str = Query(..., description="Company whose tasks to list"),
    category: Optional[TaskCategory] = None,
    completion_status: Optional[CompletionStatus] = None,
    user_id: str = Depends(get_current_user_id),
):
    return task_service.list_tasks(
        company_id,
        user_id,
        category=category.value if category else None,
        completion_status=completion_status.value if completion_status else None,
    )


@router.get("/{task_id}", response_model=Task)
def get_task(task_id: str, user_id: str = Depends(get_current_user_id)):
    return task_service.get_task(task_id, user_id)


@router.post("/", response_model=Task, status_code=201)
def create_task(task: TaskCreate, user_id: str = Depends(get_current_user_id)):
    return task_service.create_task(task.model_dump(exclude_none=True), user_id)


@router.patch("/{task_id}", response_model=Task)
def update_task(task_id: str, task_update: TaskUpdate, user_id: str = Depends(get_current_user_id)):
    return task_service.update_task(task_id, task_update.model_dump(exclude_unset=True), user_id)


@router.delete("/{task_id}")
def delete_task(task_id: str, user_id: str = Depends(get_current_user_id)):
    task_service.delete_task(task_id, user_id)
    return {"success": True, "message": "Task deleted successfully"}
