import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.exceptions import NotFoundError, InvalidOperationError
from app.models.tasks import Task, TaskLog, TaskStatus, LogAction
from app.schemas.task import TaskCreate, TaskUpdate
from app.services.locks import entity_locks, run_transaction

logger = logging.getLogger(__name__)

LOCK_KIND = "task"

REQUIRED_FIELDS = {"title", "priority", "status", "frequency"}


def _log(action: LogAction, user_id: int) -> TaskLog:
    return TaskLog(action=action.value, by_id=user_id)


def _not_deleted():
    deleted_log = (
        select(TaskLog.log_id)
        .where(TaskLog.task_id == Task.task_id, TaskLog.action == LogAction.DELETED.value)
        .exists()
    )
    return ~deleted_log


async def list_active(db: AsyncSession, user_id: int):
    """Personal tasks of the user that carry no `deleted` log entry."""
    result = await db.execute(
        select(Task).filter(Task.owner_id == user_id, _not_deleted()).order_by(Task.task_id)
    )
    return result.scalars().all()


async def list_all(db: AsyncSession, user_id: int):
    """Personal tasks of the user, soft-deleted ones included."""
    result = await db.execute(
        select(Task).filter(Task.owner_id == user_id).order_by(Task.task_id)
    )
    return result.scalars().all()


async def get_task_by_id(db: AsyncSession, task_id: int, owner_id: int) -> Task:
    result = await db.execute(
        select(Task)
        .filter(Task.task_id == task_id, Task.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    task = result.scalars().first()
    if not task:
        raise NotFoundError("Task not found")
    return task


async def create_task(db: AsyncSession, task_data: TaskCreate, current_user_id: int) -> Task:
    async def work():
        new_task = Task(
            **task_data.model_dump(),
            owner_id=current_user_id,
            logs=[_log(LogAction.CREATED, current_user_id)],
        )
        db.add(new_task)
        return new_task

    staged = await run_transaction(db, work)
    task = await get_task_by_id(db, staged.task_id, current_user_id)
    logger.info("[TASKS] task %s created by user %s", task.task_id, current_user_id)
    return task


async def update_task(db: AsyncSession, task_id: int, update_data: TaskUpdate, current_user_id: int) -> Task:
    updates = update_data.model_dump(exclude_unset=True)
    cleared = sorted(k for k, v in updates.items() if v is None and k in REQUIRED_FIELDS)
    if cleared:
        raise InvalidOperationError(f"Fields cannot be cleared: {', '.join(cleared)}")

    async def work():
        task = await get_task_by_id(db, task_id, current_user_id)
        for key, value in updates.items():
            setattr(task, key, value)
        task.logs.append(_log(LogAction.UPDATED, current_user_id))

    async with entity_locks.hold(LOCK_KIND, task_id):
        await run_transaction(db, work)
        task = await get_task_by_id(db, task_id, current_user_id)
    logger.info("[TASKS] task %s updated (%s)", task_id, ", ".join(updates) or "no fields")
    return task


async def delete_task(db: AsyncSession, task_id: int, current_user_id: int) -> Task:
    """Soft delete: append a `deleted` log and mark the task completed for the UI."""
    async def work():
        task = await get_task_by_id(db, task_id, current_user_id)
        task.status = TaskStatus.COMPLETED.value
        task.logs.append(_log(LogAction.DELETED, current_user_id))

    async with entity_locks.hold(LOCK_KIND, task_id):
        await run_transaction(db, work)
        task = await get_task_by_id(db, task_id, current_user_id)
    logger.info("[TASKS] task %s soft-deleted", task_id)
    return task
