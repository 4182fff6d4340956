from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_current_user
from app.models.user import User as UserModel
from app.schemas.task import TaskCreate, Task as TaskSchema, TaskUpdate, TaskMessage
from app.services import tasks as task_service

router = APIRouter(prefix="/task", tags=["tasks"])

@router.get("/", response_model=list[TaskSchema])
async def list_active_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await task_service.list_active(db, current_user.user_id)

@router.get("/all", response_model=list[TaskSchema])
async def list_all_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    return await task_service.list_all(db, current_user.user_id)

@router.post("/create", response_model=TaskMessage, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    task = await task_service.create_task(db, task_data, current_user.user_id)
    return {"message": "Task created successfully", "task": task}

@router.patch("/update/{task_id}", response_model=TaskMessage)
async def update_task(
    task_id: int,
    update_data: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    task = await task_service.update_task(db, task_id, update_data, current_user.user_id)
    return {"message": "Task updated", "task": task}

@router.delete("/delete/{task_id}", response_model=TaskMessage)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    task = await task_service.delete_task(db, task_id, current_user.user_id)
    return {"message": "Task soft-deleted", "task": task}
