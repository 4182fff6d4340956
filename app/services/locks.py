import asyncio
import weakref
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.exceptions import ConflictError, StoreTimeoutError


class EntityLocks:
    """
    Per-entity asyncio locks keyed by (kind, id).

    Locks live only while somebody holds or waits on them, so the registry
    does not grow with the number of entities ever touched.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def get(self, kind: str, entity_id) -> asyncio.Lock:
        key = (kind, entity_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, kind: str, entity_id):
        lock = self.get(kind, entity_id)
        async with lock:
            yield

    def __len__(self):
        return len(self._locks)


entity_locks = EntityLocks()


async def run_transaction(db: AsyncSession, work, timeout: float | None = None):
    """
    Run `work()` (a coroutine function doing read-validate-stage, no commit)
    and commit it, both bounded by the store timeout. Any failure up to and
    including the commit rolls the session back, so a rejected or timed out
    transition never leaves a partial log behind.

    Reloading the committed rows is left to the caller, outside the bound:
    once the commit returns the change is durable and is never reported as a
    store failure.
    """
    if timeout is None:
        timeout = settings.STORE_TIMEOUT_SECONDS

    async def stage_and_commit():
        result = await work()
        await db.commit()
        return result

    try:
        return await asyncio.wait_for(stage_and_commit(), timeout=timeout)
    except asyncio.TimeoutError:
        await db.rollback()
        raise StoreTimeoutError(f"Store operation exceeded {timeout}s")
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Record was modified concurrently, retry the operation")
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Write conflicts with an existing record")
    except BaseException:
        await db.rollback()
        raise
