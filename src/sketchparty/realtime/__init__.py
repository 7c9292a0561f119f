"""Real-time transport: message schemas, connection tracking, and broadcasting."""

from sketchparty.realtime.broadcast import Broadcaster, ConnectionBroadcaster, RoomChannel
from sketchparty.realtime.manager import ConnectedUser, ConnectionManager
from sketchparty.realtime.messages import ClientEvent, ServerEvent, envelope, parse_client_message

__all__ = [
    "Broadcaster",
    "ClientEvent",
    "ConnectedUser",
    "ConnectionBroadcaster",
    "ConnectionManager",
    "RoomChannel",
    "ServerEvent",
    "envelope",
    "parse_client_message",
]
