import asyncio
import gc

import pytest

from app.exceptions import StoreTimeoutError
from app.models.tasks import AssignedTaskLog, LogAction
from app.schemas.task import AssignedTaskCreate
from app.services import assignments as svc
from app.services.locks import EntityLocks, run_transaction
from app.services.notifications import ChannelRegistry


async def test_same_key_shares_a_lock_and_serializes():
    locks = EntityLocks()
    order = []

    async def worker(name):
        async with locks.hold("task", 1):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
    assert locks.get("task", 1) is not locks.get("task", 2)


async def test_unused_locks_are_released():
    locks = EntityLocks()
    async with locks.hold("task", 1):
        assert len(locks) == 1
    gc.collect()
    assert len(locks) == 0


async def test_timed_out_transaction_writes_no_log(db, session_factory, make_user):
    alice, bob = await make_user("alice"), await make_user("bob")
    task = await svc.create_assignment(db, alice, AssignedTaskCreate(title="t", send_to="bob"), ChannelRegistry())
    task_id = task.task_id

    async def slow_work():
        loaded = await svc.get_assigned_task(db, task_id)
        loaded.logs.append(AssignedTaskLog(action=LogAction.EDITED.value, by_id=bob.user_id))
        await db.flush()
        await asyncio.sleep(1)

    with pytest.raises(StoreTimeoutError) as exc_info:
        await run_transaction(db, slow_work, timeout=0.05)
    assert exc_info.value.kind == "Timeout"

    async with session_factory() as fresh:
        stored = await svc.get_assigned_task(fresh, task_id)
    assert [l.action for l in stored.logs] == [LogAction.REQUEST_SENT.value]


async def test_transaction_commits_staged_work(db, session_factory, make_user):
    alice, bob = await make_user("alice"), await make_user("bob")
    task_id = (await svc.create_assignment(db, alice, AssignedTaskCreate(title="t", send_to="bob"), ChannelRegistry())).task_id

    async def stage():
        loaded = await svc.get_assigned_task(db, task_id)
        loaded.logs.append(AssignedTaskLog(action=LogAction.EDITED.value, by_id=bob.user_id))
        return "staged"

    assert await run_transaction(db, stage) == "staged"

    async with session_factory() as fresh:
        stored = await svc.get_assigned_task(fresh, task_id)
    assert [l.action for l in stored.logs] == [LogAction.REQUEST_SENT.value, LogAction.EDITED.value]
