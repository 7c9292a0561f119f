"""WebSocket endpoint of the game rooms.

One connection is one member of one room. The room code comes from the URL;
the first message must be a ``join``. After that every message is validated
and handed to the room's :class:`~sketchparty.game.session.Session`.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from litestar.exceptions import WebSocketDisconnect

from sketchparty.core.logging import bind_connection_context, clear_connection_context
from sketchparty.exceptions import InvalidMessageError
from sketchparty.game.exceptions import JoinRejectedError
from sketchparty.realtime.messages import JoinRoom, LeaveRoom, ServerEvent, envelope, parse_client_message

if TYPE_CHECKING:
    from litestar import Router, WebSocket

    from sketchparty.game.registry import RoomRegistry
    from sketchparty.game.session import Session
    from sketchparty.realtime.manager import ConnectionManager

logger = structlog.get_logger(__name__)

MAX_ROOM_CODE_LENGTH = 32
JOIN_REJECTED_CLOSE_CODE = 4003


class GameWebSocketHandler:
    """Drives the connections of the game rooms.

    Attributes:
        registry: Registry owning the rooms.
        manager: Connection tracker used to deliver room events.
    """

    def __init__(self, registry: RoomRegistry, manager: ConnectionManager) -> None:
        """Initialize the handler.

        Args:
            registry: Registry owning the rooms.
            manager: Connection tracker shared with the broadcaster.
        """
        self.registry = registry
        self.manager = manager

    async def handle_connection(self, socket: WebSocket, room_code: str) -> None:
        """Serve one connection until it closes, then remove its member.

        Args:
            socket: The WebSocket connection.
            room_code: Room code from the URL.
        """
        room_code = room_code.strip()
        if not room_code or len(room_code) > MAX_ROOM_CODE_LENGTH:
            await socket.close(code=4004, reason="Invalid room code")
            return

        await socket.accept()
        user_id = uuid4().hex
        logger.debug("WebSocket connection accepted", room_code=room_code, user_id=user_id)

        session: Session | None = None
        try:
            session = await self._receive_loop(socket, room_code, user_id)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket error", room_code=room_code, user_id=user_id)
        finally:
            await self.manager.disconnect(room_code, user_id)
            await self.registry.leave(room_code, user_id)
            clear_connection_context()
            logger.debug("WebSocket connection finished", room_code=room_code, user_id=user_id, joined=session is not None)

    async def _receive_loop(self, socket: WebSocket, room_code: str, user_id: str) -> Session | None:
        session: Session | None = None
        async for raw in socket.iter_data():
            try:
                message = parse_client_message(_decode(raw))
            except InvalidMessageError as e:
                await _send_error(socket, e.code, str(e))
                continue

            if isinstance(message, LeaveRoom):
                break

            if isinstance(message, JoinRoom):
                if session is not None:
                    await _send_error(socket, "already_joined", "You already joined this room")
                    continue
                session = await self._join(socket, room_code, user_id, message)
                if session is None:
                    break
                continue

            if session is None:
                await _send_error(socket, "not_joined", "Join the room first")
                continue

            try:
                await session.handle(user_id, message)
            except Exception:
                logger.exception("Error handling message", message_type=str(message.type))
                await _send_error(socket, "internal_error", "Internal server error")
        return session

    async def _join(self, socket: WebSocket, room_code: str, user_id: str, request: JoinRoom) -> Session | None:
        # Registered before joining so the room's welcome events reach the socket.
        await self.manager.connect(socket, room_code, user_id)
        try:
            session, _ = await self.registry.join(room_code, user_id, request)
        except JoinRejectedError as e:
            await self.manager.disconnect(room_code, user_id)
            logger.info("Join rejected", room_code=room_code, reason=str(e))
            await _send_error(socket, e.code, str(e))
            await socket.close(code=JOIN_REJECTED_CLOSE_CODE, reason=str(e))
            return None
        bind_connection_context(room_code=room_code, user_id=user_id)
        return session


def _decode(raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = "Invalid JSON message"
        raise InvalidMessageError(msg, code="invalid_json") from e


async def _send_error(socket: WebSocket, code: str, message: str) -> None:
    await socket.send_json(envelope(ServerEvent.ERROR, {"code": code, "message": message}))


def create_game_websocket_handler(
    path: str,
    registry: RoomRegistry,
    manager: ConnectionManager,
) -> tuple[Router, GameWebSocketHandler]:
    """Create the WebSocket router of the game rooms.

    Args:
        path: Base path for WebSocket routes.
        registry: Registry owning the rooms.
        manager: Connection tracker shared with the broadcaster.

    Returns:
        A tuple of (Litestar Router, GameWebSocketHandler instance).
    """
    from litestar import Router, websocket

    handler = GameWebSocketHandler(registry, manager)

    @websocket(path="/room/{room_code:str}")
    async def room_websocket(socket: WebSocket, room_code: str) -> None:
        """WebSocket endpoint of a game room.

        Args:
            socket: The WebSocket connection.
            room_code: The room code from the URL.
        """
        await handler.handle_connection(socket, room_code)

    router = Router(path=path, route_handlers=[room_websocket], tags=["Game WebSocket"])
    return router, handler
