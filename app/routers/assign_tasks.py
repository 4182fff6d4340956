from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dependencies import get_db, get_current_user
from app.models.user import User as UserModel
from app.schemas.task import (
    AssignedTaskCreate,
    AssignedTaskUpdate,
    AssignedTaskMessage,
    AssignmentCreated,
    AssignmentList,
)
from app.services import assignments as assignment_service
from app.services.notifications import ChannelRegistry, get_channels

router = APIRouter(prefix="/assignTask", tags=["assignments"])

@router.get("/", response_model=AssignmentList)
async def list_assignments(
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user)
):
    sent, received = await assignment_service.list_assignments(db, current_user.user_id)
    return {"sent": sent, "received": received}

@router.post("/", response_model=AssignmentCreated, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    task_data: AssignedTaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    channels: ChannelRegistry = Depends(get_channels),
):
    task = await assignment_service.create_assignment(db, current_user, task_data, channels)
    return {
        "message": f"Task {task.assign_status} to {task.receiver.username}",
        "status": task.assign_status,
        "task": task,
    }

@router.put("/edit/{task_id}", response_model=AssignedTaskMessage)
async def edit_assignment(
    task_id: int,
    patch: AssignedTaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    channels: ChannelRegistry = Depends(get_channels),
):
    task = await assignment_service.edit_assignment(db, task_id, current_user, patch, channels)
    return {"message": "Assigned task updated", "task": task}

@router.delete("/delete/{task_id}", response_model=AssignedTaskMessage)
async def delete_assignment(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserModel = Depends(get_current_user),
    channels: ChannelRegistry = Depends(get_channels),
):
    task = await assignment_service.delete_assignment(db, task_id, current_user, channels)
    return {"message": "Assigned task soft-deleted", "task": task}
