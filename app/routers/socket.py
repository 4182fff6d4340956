import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from app.database import AsyncSessionLocal
from app.dependencies import resolve_user_id
from app.exceptions import AppException, InvalidOperationError, InternalError
from app.schemas.task import TaskDecision
from app.services import assignments as assignment_service
from app.services.notifications import ChannelRegistry, get_channels, make_frame, ERROR, NEW_USER_JOINED
from app.services.users import get_user_by_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["socket"])


def get_session_factory():
    return AsyncSessionLocal


class SocketSession:
    """
    One authenticated socket connection. Handles the client events
    (`join`, `accept-task`, `reject-task`) and reports failures back to this
    connection only, as an `error` event.
    """

    def __init__(self, connection, user_id: int, username: str, channels: ChannelRegistry, session_factory):
        self.connection = connection
        self.user_id = user_id
        self.username = username
        self.channels = channels
        self.session_factory = session_factory

    async def handle(self, message):
        event = message.get("event") if isinstance(message, dict) else None
        data = message.get("data") if isinstance(message, dict) else None
        try:
            if event == "join":
                await self.join(data)
            elif event == "accept-task":
                await self.respond(data, accept=True)
            elif event == "reject-task":
                await self.respond(data, accept=False)
            else:
                raise InvalidOperationError(f"Unknown event '{event}'")
        except AppException as exc:
            await self.send_error(exc)
        except ValidationError:
            await self.send_error(InvalidOperationError(f"Malformed payload for '{event}'"))
        except Exception:
            logger.exception("[SOCKET] '%s' failed for '%s'", event, self.username)
            await self.send_error(InternalError())

    async def join(self, data):
        username = data.get("username") if isinstance(data, dict) else data
        if not isinstance(username, str) or not username:
            raise InvalidOperationError("join expects a username")
        if username != self.username:
            raise InvalidOperationError("Cannot join another user's channel")
        self.channels.join(self.connection, username)
        await self.channels.broadcast_all(NEW_USER_JOINED, {"username": username})

    async def respond(self, data, accept: bool):
        decision = TaskDecision.model_validate(data)
        handler = assignment_service.accept_assignment if accept else assignment_service.reject_assignment
        async with self.session_factory() as db:
            await handler(db, decision.id, decision.from_, decision.to, self.channels, actor_id=self.user_id)

    async def send_error(self, exc: AppException):
        try:
            await self.connection.send_json(make_frame(ERROR, exc.to_dict()))
        except Exception as e:
            logger.warning("[SOCKET] could not report error to '%s': %r", self.username, e)


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = None,
    channels: ChannelRegistry = Depends(get_channels),
    session_factory=Depends(get_session_factory),
):
    user_id = resolve_user_id(websocket, token)
    user = None
    if user_id is not None:
        async with session_factory() as db:
            user = await get_user_by_id(db, user_id)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channels.connect(websocket)
    session = SocketSession(websocket, user.user_id, user.username, channels, session_factory)
    logger.info("[SOCKET] '%s' connected", user.username)

    try:
        # The registry closes connections it gives up on
        while websocket.application_state == WebSocketState.CONNECTED:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await session.send_error(InvalidOperationError("Messages must be JSON objects"))
                continue
            await session.handle(message)
    except WebSocketDisconnect:
        logger.info("[SOCKET] '%s' disconnected", user.username)
    finally:
        channels.disconnect(websocket)
