from app.services.notifications import (
    ChannelRegistry,
    DROPPED_CLOSE_CODE,
    notify,
    NEW_USER_JOINED,
    TASK_REQUEST_SUCCESS,
)
from tests.fakes import FakeConnection


async def test_emit_reaches_every_device_in_the_room_only():
    registry = ChannelRegistry(send_timeout=0.5)
    phone, laptop, other = FakeConnection("phone"), FakeConnection("laptop"), FakeConnection("other")
    registry.join(phone, "alice")
    registry.join(laptop, "alice")
    registry.join(other, "carol")

    delivered = await registry.emit("alice", TASK_REQUEST_SUCCESS, {"accepted": True})

    assert delivered == 2
    assert phone.frames == [{"event": TASK_REQUEST_SUCCESS, "data": {"accepted": True}}]
    assert laptop.frames == phone.frames
    assert other.frames == []


async def test_join_is_idempotent():
    registry = ChannelRegistry()
    conn = FakeConnection()
    registry.join(conn, "alice")
    registry.join(conn, "alice")

    assert registry.members("alice") == {conn}
    assert await registry.emit("alice", "ping", {}) == 1
    assert len(conn.frames) == 1


async def test_emit_to_empty_room_is_dropped():
    registry = ChannelRegistry()
    listener = FakeConnection()
    registry.connect(listener)

    assert await registry.emit("nobody", TASK_REQUEST_SUCCESS, {}) == 0
    assert listener.frames == []


async def test_broadcast_all_includes_connections_without_rooms():
    registry = ChannelRegistry()
    joined, anonymous = FakeConnection("joined"), FakeConnection("anon")
    registry.join(joined, "alice")
    registry.connect(anonymous)

    assert await registry.broadcast_all(NEW_USER_JOINED, {"username": "alice"}) == 2
    assert anonymous.events(NEW_USER_JOINED)[0]["data"] == {"username": "alice"}


async def test_disconnect_tears_down_all_memberships():
    registry = ChannelRegistry()
    conn = FakeConnection()
    registry.join(conn, "alice")
    registry.join(conn, "team")

    registry.disconnect(conn)

    assert registry.members("alice") == set()
    assert registry.rooms_of(conn) == set()
    assert registry.connection_count == 0
    assert await registry.emit("alice", "ping", {}) == 0


async def test_failed_send_drops_connection_without_raising():
    registry = ChannelRegistry(send_timeout=0.5)
    broken, healthy = FakeConnection("broken", fail=True), FakeConnection("healthy")
    registry.join(broken, "alice")
    registry.join(healthy, "alice")

    assert await registry.emit("alice", "ping", {}) == 1
    assert registry.members("alice") == {healthy}
    assert len(healthy.frames) == 1
    assert broken.close_code == DROPPED_CLOSE_CODE
    assert not healthy.closed


async def test_slow_connection_is_bounded_by_timeout():
    registry = ChannelRegistry(send_timeout=0.05)
    slow = FakeConnection("slow", delay=1.0)
    registry.join(slow, "alice")

    assert await registry.emit("alice", "ping", {}) == 0
    assert slow.frames == []
    assert registry.members("alice") == set()
    assert slow.closed


async def test_connection_that_was_slow_once_is_closed_not_left_deaf():
    registry = ChannelRegistry(send_timeout=0.05)
    conn = FakeConnection("flaky", delay=0.1)
    registry.join(conn, "alice")

    assert await registry.emit("alice", "ping", {}) == 0

    # the client is told to reconnect instead of silently missing later events
    conn.delay = 0
    assert conn.close_code == DROPPED_CLOSE_CODE
    assert registry.connection_count == 0
    assert await registry.emit("alice", "ping", {}) == 0


async def test_close_failure_on_dropped_connection_is_contained():
    class Unclosable(FakeConnection):
        async def close(self, code=1000, reason=None):
            raise RuntimeError("already gone")

    registry = ChannelRegistry(send_timeout=0.05)
    registry.join(Unclosable("gone", fail=True), "alice")

    assert await registry.emit("alice", "ping", {}) == 0
    assert registry.members("alice") == set()


async def test_notify_never_raises():
    class ExplodingRegistry(ChannelRegistry):
        async def emit(self, to_username, event, payload):
            raise RuntimeError("transport down")

    assert await notify(ExplodingRegistry(), "alice", "ping", {}) == 0
