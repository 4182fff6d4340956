import asyncio
import logging
from typing import Any, Protocol

from fastapi import status

from app.config import settings

logger = logging.getLogger(__name__)

# Event names are the wire contract with the frontend
NEW_USER_JOINED = "new_user_joined"
TASK_REQUEST_SUCCESS = "taskRequestSuccess"
TASK_REQUEST_REJECT = "taskRequestReject"
UPDATE_TASK = "Update-task"
DELETE_TASK = "Delete-task"
TASK_ASSIGN = "task-assign"
ERROR = "error"

# "Try again later": the client is expected to reconnect and re-join
DROPPED_CLOSE_CODE = status.WS_1013_TRY_AGAIN_LATER


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


def make_frame(event: str, payload: Any) -> dict:
    return {"event": event, "data": payload}


class ChannelRegistry:
    """
    Owns which live connections belong to which username room.

    Delivery is best effort: one send attempt per connection, bounded by
    NOTIFY_TIMEOUT_SECONDS, nothing is queued for rooms with no members.
    A connection that fails a send is torn down and closed, so its client
    sees a disconnect and can reconnect and re-join.
    """

    def __init__(self, send_timeout: float | None = None):
        self._connections: set = set()
        self._rooms: dict[str, set] = {}
        self._memberships: dict[Any, set[str]] = {}
        self._send_timeout = send_timeout

    @property
    def send_timeout(self) -> float:
        if self._send_timeout is None:
            return settings.NOTIFY_TIMEOUT_SECONDS
        return self._send_timeout

    def connect(self, connection: Connection):
        self._connections.add(connection)
        self._memberships.setdefault(connection, set())

    def join(self, connection: Connection, username: str):
        self.connect(connection)
        self._rooms.setdefault(username, set()).add(connection)
        self._memberships[connection].add(username)
        logger.info("[NOTIFY] connection joined room '%s' (%d member(s))", username, len(self._rooms[username]))

    def disconnect(self, connection: Connection):
        self._connections.discard(connection)
        for username in self._memberships.pop(connection, set()):
            members = self._rooms.get(username)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._rooms[username]

    def members(self, username: str) -> set:
        return set(self._rooms.get(username, ()))

    def rooms_of(self, connection: Connection) -> set[str]:
        return set(self._memberships.get(connection, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def _send(self, connection: Connection, frame: dict) -> bool:
        try:
            await asyncio.wait_for(connection.send_json(frame), timeout=self.send_timeout)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("[NOTIFY] dropping connection after failed '%s' send: %r", frame["event"], e)
            self.disconnect(connection)
            await self._close(connection)
            return False

    async def _close(self, connection: Connection):
        try:
            await asyncio.wait_for(connection.close(code=DROPPED_CLOSE_CODE), timeout=self.send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("[NOTIFY] could not close dropped connection: %r", e)

    async def _deliver(self, targets, event: str, payload: Any) -> int:
        frame = make_frame(event, payload)
        results = await asyncio.gather(*(self._send(c, frame) for c in targets))
        return sum(1 for ok in results if ok)

    async def emit(self, to_username: str, event: str, payload: Any) -> int:
        targets = self.members(to_username)
        if not targets:
            logger.info("[NOTIFY] no listener for '%s' in room '%s', dropped", event, to_username)
            return 0
        delivered = await self._deliver(targets, event, payload)
        logger.info("[NOTIFY] '%s' -> room '%s': %d/%d delivered", event, to_username, delivered, len(targets))
        return delivered

    async def broadcast_all(self, event: str, payload: Any) -> int:
        return await self._deliver(set(self._connections), event, payload)


# Process-wide registry used by the HTTP and socket routers
channels = ChannelRegistry()


def get_channels() -> ChannelRegistry:
    return channels


async def notify(registry: ChannelRegistry, to_username: str, event: str, payload: Any) -> int:
    """
    Fire a notification for an already committed change. Shielded from
    cancellation of the caller, and never raises: the committed write stays
    the source of truth.
    """
    try:
        return await asyncio.shield(registry.emit(to_username, event, payload))
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("[NOTIFY] failed to emit '%s' to '%s'", event, to_username)
        return 0
