"""WebSocket message types and schemas for real-time communication.

Inbound messages are JSON objects tagged by ``type``. They are validated into
one dataclass per message kind by :func:`parse_client_message` before they
reach a room; anything malformed raises
:class:`~sketchparty.exceptions.InvalidMessageError`.

Outbound messages use the envelope ``{"type": <ServerEvent>, "data": ...}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, ClassVar

from sketchparty.exceptions import InvalidMessageError


class ClientEvent(StrEnum):
    """Types of messages sent by clients."""

    JOIN = "join"
    LEAVE = "leave"
    DRAW = "draw"
    UNDO = "undo"
    REDO = "redo"
    CLEAR_CANVAS = "clearCanvas"
    CLEAR_LAYER = "clearLayer"
    ADD_LAYER = "addLayer"
    DELETE_LAYER = "deleteLayer"
    RENAME_LAYER = "renameLayer"
    REORDER_LAYERS = "reorderLayers"
    ACTIVE_LAYER_CHANGED = "activeLayerChanged"
    CHAT = "chatMessage"
    REQUEST_HINT = "requestHint"
    WORD_CHOSEN = "wordChosen"
    CUSTOM_WORD_CHOSEN = "customWordChosen"
    CREATIVE_VOTE = "creativeVote"
    CREATIVE_SUBMIT = "creativeSubmit"
    TELEPHONE_SUBMIT = "telephoneSubmit"
    SPECTATE = "spectate"
    START_GAME = "startGame"
    PLAYER_READY = "playerReady"
    PLAYER_REFUSED = "playerRefused"
    UPDATE_SETTINGS = "updateSettings"
    KICK_PLAYER = "kickPlayer"
    SWITCH_ROLE = "switchRole"


class ServerEvent(StrEnum):
    """Types of messages sent by the server."""

    # Room membership
    ROOM_JOINED = "roomJoined"
    USER_JOINED = "userJoined"
    USER_LEFT = "userLeft"
    ROLE_CHANGED = "roleChanged"
    KICKED = "kicked"
    ROOM_SETTINGS_UPDATED = "roomSettingsUpdated"
    CHAT_MESSAGE = "chatMessage"
    ERROR = "error"

    # Room lifecycle
    GAME_STATE_CHANGED = "gameStateChanged"
    READY_CHECK_STARTED = "readyCheckStarted"
    UPDATE_READY_STATUS = "updateReadyStatus"
    GAME_STARTING = "gameStarting"
    GAME_CANCELLED = "gameCancelled"
    GAME_STARTED = "gameStarted"
    GAME_ENDED = "gameEnded"

    # Canvas
    DRAW = "draw"
    CANVAS_STATE = "canvasState"
    CLEAR_CANVAS = "clearCanvas"
    CLEAR_LAYER = "clearLayer"
    UNDO_REDO_STATE = "undoRedoState"
    LAYER_ADDED = "layerAdded"
    LAYER_DELETED = "layerDeleted"
    LAYER_RENAMED = "layerRenamed"
    LAYERS_REORDERED = "layersReordered"
    RESET_LAYERS = "resetLayers"
    PLAYER_LAYER_CHANGED = "playerLayerChanged"

    # Guessing modes
    TURN_START = "turnStart"
    CHOOSE_WORD = "chooseWord"
    TYPE_WORD = "typeWord"
    ROUND_START = "roundStart"
    YOUR_WORD = "yourWord"
    UPDATE_HINT = "updateHint"
    HINT_REVEALED = "hintRevealed"
    SCORE_UPDATE = "scoreUpdate"
    PLAYER_GUESSED = "playerGuessed"
    ROUND_END = "roundEnd"

    # Creative mode
    CREATIVE_ROUND_START = "creativeRoundStart"
    CREATIVE_INTERMISSION = "creativeIntermission"
    CREATIVE_PRESENTATION = "creativePresentation"
    CREATIVE_VOTING_START = "creativeVotingStart"
    CREATIVE_VOTE_UPDATE = "creativeVoteUpdate"
    CREATIVE_ROUND_END = "creativeRoundEnd"
    CREATIVE_SPECTATE = "creativeSpectate"

    # Telephone mode
    TELEPHONE_ROUND_START = "telephoneRoundStart"
    TELEPHONE_SUBMITTED = "telephoneSubmitted"
    TELEPHONE_SPECTATE = "telephoneSpectate"
    TELEPHONE_GAME_ENDED = "telephoneGameEnded"


def envelope(event: str, data: Any = None) -> dict[str, Any]:
    """Wrap an outbound payload."""
    return {"type": str(event), "data": data}


def _get_str(data: dict[str, Any], key: str, *, required: bool = True, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        if required:
            msg = f"Field {key!r} is required"
            raise InvalidMessageError(msg, code="missing_field")
        return default
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        msg = f"Field {key!r} must be a string"
        raise InvalidMessageError(msg, code="invalid_field")
    return value


def _get_bool(data: dict[str, Any], key: str, default: bool = False) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        msg = f"Field {key!r} must be a boolean"
        raise InvalidMessageError(msg, code="invalid_field")
    return value


@dataclass
class ClientMessage:
    """Base class for all inbound messages."""

    type: ClassVar[ClientEvent]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientMessage:
        """Build the message from its JSON object (no fields by default)."""
        return cls()


@dataclass
class JoinRoom(ClientMessage):
    """Enter the room named in the connection URL."""

    type: ClassVar[ClientEvent] = ClientEvent.JOIN

    username: str
    avatar: Any = None
    is_spectator: bool = False
    is_private: bool = False
    allow_spectators: bool = True
    max_players: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JoinRoom:
        """Build from ``{username, avatar, isSpectator, isPrivate, allowSpectators, maxPlayers}``."""
        max_players = data.get("maxPlayers")
        if max_players is not None and (isinstance(max_players, bool) or not isinstance(max_players, int)):
            msg = "Field 'maxPlayers' must be an integer"
            raise InvalidMessageError(msg, code="invalid_field")
        return cls(
            username=_get_str(data, "username"),
            avatar=data.get("avatar"),
            is_spectator=_get_bool(data, "isSpectator"),
            is_private=_get_bool(data, "isPrivate"),
            allow_spectators=_get_bool(data, "allowSpectators", default=True),
            max_players=max_players,
        )


@dataclass
class LeaveRoom(ClientMessage):
    """Leave the room (the connection is closed afterwards)."""

    type: ClassVar[ClientEvent] = ClientEvent.LEAVE


@dataclass
class Draw(ClientMessage):
    """One drawing action. ``payload`` is kept verbatim apart from validation."""

    type: ClassVar[ClientEvent] = ClientEvent.DRAW

    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Draw:
        """Build from a draw action carrying at least ``strokeId`` and ``layerId``."""
        payload = data.get("data", data)
        if not isinstance(payload, dict):
            msg = "Draw payload must be an object"
            raise InvalidMessageError(msg, code="invalid_field")
        _get_str(payload, "strokeId")
        _get_str(payload, "layerId")
        return cls(payload={k: v for k, v in payload.items() if k != "type"})


@dataclass
class Undo(ClientMessage):
    """Undo the sender's last stroke."""

    type: ClassVar[ClientEvent] = ClientEvent.UNDO


@dataclass
class Redo(ClientMessage):
    """Redo the sender's last undone stroke."""

    type: ClassVar[ClientEvent] = ClientEvent.REDO


@dataclass
class ClearCanvas(ClientMessage):
    """Wipe the shared canvas."""

    type: ClassVar[ClientEvent] = ClientEvent.CLEAR_CANVAS


@dataclass
class ClearLayer(ClientMessage):
    """Remove every action drawn on one layer."""

    type: ClassVar[ClientEvent] = ClientEvent.CLEAR_LAYER

    layer_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClearLayer:
        """Build from ``{layerId}``."""
        return cls(layer_id=_get_str(data, "layerId"))


@dataclass
class AddLayer(ClientMessage):
    """Add a layer on top of the stack."""

    type: ClassVar[ClientEvent] = ClientEvent.ADD_LAYER

    name: str = ""
    layer_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddLayer:
        """Build from ``{name?, layerId?}``."""
        return cls(
            name=_get_str(data, "name", required=False),
            layer_id=_get_str(data, "layerId", required=False) or None,
        )


@dataclass
class DeleteLayer(ClientMessage):
    """Delete a layer and everything drawn on it."""

    type: ClassVar[ClientEvent] = ClientEvent.DELETE_LAYER

    layer_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeleteLayer:
        """Build from ``{layerId}``."""
        return cls(layer_id=_get_str(data, "layerId"))


@dataclass
class RenameLayer(ClientMessage):
    """Rename a layer."""

    type: ClassVar[ClientEvent] = ClientEvent.RENAME_LAYER

    layer_id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RenameLayer:
        """Build from ``{layerId, name}``."""
        return cls(layer_id=_get_str(data, "layerId"), name=_get_str(data, "name"))


@dataclass
class ReorderLayers(ClientMessage):
    """Apply a new bottom-to-top layer order."""

    type: ClassVar[ClientEvent] = ClientEvent.REORDER_LAYERS

    layer_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReorderLayers:
        """Build from ``{layerIds: [...]}``."""
        layer_ids = data.get("layerIds")
        if not isinstance(layer_ids, list) or not all(isinstance(i, str) for i in layer_ids):
            msg = "Field 'layerIds' must be a list of strings"
            raise InvalidMessageError(msg, code="invalid_field")
        return cls(layer_ids=layer_ids)


@dataclass
class ActiveLayerChanged(ClientMessage):
    """The sender switched to another layer."""

    type: ClassVar[ClientEvent] = ClientEvent.ACTIVE_LAYER_CHANGED

    layer_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActiveLayerChanged:
        """Build from ``{layerId}``."""
        return cls(layer_id=_get_str(data, "layerId"))


@dataclass
class Chat(ClientMessage):
    """A chat line, which doubles as a guess in guessing modes."""

    type: ClassVar[ClientEvent] = ClientEvent.CHAT

    message: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Chat:
        """Build from ``{message}``."""
        return cls(message=_get_str(data, "message"))


@dataclass
class RequestHint(ClientMessage):
    """Spend a personal hint credit."""

    type: ClassVar[ClientEvent] = ClientEvent.REQUEST_HINT


@dataclass
class WordChosen(ClientMessage):
    """The drawer picked one of the offered words."""

    type: ClassVar[ClientEvent] = ClientEvent.WORD_CHOSEN

    word: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WordChosen:
        """Build from ``{word}``."""
        return cls(word=_get_str(data, "word"))


@dataclass
class CustomWordChosen(ClientMessage):
    """The drawer typed their own word."""

    type: ClassVar[ClientEvent] = ClientEvent.CUSTOM_WORD_CHOSEN

    word: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomWordChosen:
        """Build from ``{word}``."""
        return cls(word=_get_str(data, "word"))


@dataclass
class CreativeVote(ClientMessage):
    """Star rating for another player's drawing."""

    type: ClassVar[ClientEvent] = ClientEvent.CREATIVE_VOTE

    target_id: str
    stars: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreativeVote:
        """Build from ``{targetId, stars}``."""
        stars = data.get("stars")
        if isinstance(stars, bool) or not isinstance(stars, int):
            msg = "Field 'stars' must be an integer"
            raise InvalidMessageError(msg, code="invalid_field")
        return cls(target_id=_get_str(data, "targetId"), stars=stars)


@dataclass
class CreativeSubmit(ClientMessage):
    """Rendered image of the sender's creative drawing."""

    type: ClassVar[ClientEvent] = ClientEvent.CREATIVE_SUBMIT

    image: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CreativeSubmit:
        """Build from ``{image}``."""
        return cls(image=_get_str(data, "image"))


@dataclass
class TelephoneSubmit(ClientMessage):
    """Telephone step: a sentence when writing, an image or actions when drawing."""

    type: ClassVar[ClientEvent] = ClientEvent.TELEPHONE_SUBMIT

    content: str | list[dict[str, Any]] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TelephoneSubmit:
        """Build from ``{content}``."""
        content = data.get("content")
        if content is not None and not isinstance(content, str | list):
            msg = "Field 'content' must be a string or a list of actions"
            raise InvalidMessageError(msg, code="invalid_field")
        return cls(content=content)


@dataclass
class Spectate(ClientMessage):
    """A spectator starts following one player."""

    type: ClassVar[ClientEvent] = ClientEvent.SPECTATE

    target_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Spectate:
        """Build from ``{targetId}``."""
        return cls(target_id=_get_str(data, "targetId"))


@dataclass
class StartGame(ClientMessage):
    """The leader asks everyone to get ready."""

    type: ClassVar[ClientEvent] = ClientEvent.START_GAME


@dataclass
class PlayerReady(ClientMessage):
    """Accept the ready check."""

    type: ClassVar[ClientEvent] = ClientEvent.PLAYER_READY


@dataclass
class PlayerRefused(ClientMessage):
    """Decline the ready check."""

    type: ClassVar[ClientEvent] = ClientEvent.PLAYER_REFUSED


@dataclass
class UpdateSettings(ClientMessage):
    """The leader changes room settings."""

    type: ClassVar[ClientEvent] = ClientEvent.UPDATE_SETTINGS

    settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UpdateSettings:
        """Build from ``{settings: {...}}``."""
        settings = data.get("settings")
        if not isinstance(settings, dict):
            msg = "Field 'settings' must be an object"
            raise InvalidMessageError(msg, code="invalid_field")
        return cls(settings=settings)


@dataclass
class KickPlayer(ClientMessage):
    """The leader removes someone from the room."""

    type: ClassVar[ClientEvent] = ClientEvent.KICK_PLAYER

    target_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KickPlayer:
        """Build from ``{targetId}``."""
        return cls(target_id=_get_str(data, "targetId"))


@dataclass
class SwitchRole(ClientMessage):
    """Toggle between player and spectator."""

    type: ClassVar[ClientEvent] = ClientEvent.SWITCH_ROLE


MESSAGE_TYPES: dict[ClientEvent, type[ClientMessage]] = {
    cls.type: cls
    for cls in (
        JoinRoom,
        LeaveRoom,
        Draw,
        Undo,
        Redo,
        ClearCanvas,
        ClearLayer,
        AddLayer,
        DeleteLayer,
        RenameLayer,
        ReorderLayers,
        ActiveLayerChanged,
        Chat,
        RequestHint,
        WordChosen,
        CustomWordChosen,
        CreativeVote,
        CreativeSubmit,
        TelephoneSubmit,
        Spectate,
        StartGame,
        PlayerReady,
        PlayerRefused,
        UpdateSettings,
        KickPlayer,
        SwitchRole,
    )
}


def parse_client_message(data: Any) -> ClientMessage:
    """Validate a decoded JSON object into a typed client message.

    Args:
        data: The decoded JSON value.

    Returns:
        The typed message.

    Raises:
        InvalidMessageError: If the object is not a known, well-formed message.
    """
    if not isinstance(data, dict):
        msg = "Message must be a JSON object"
        raise InvalidMessageError(msg, code="invalid_json")

    msg_type = data.get("type")
    if not msg_type:
        msg = "Message type required"
        raise InvalidMessageError(msg, code="missing_type")

    try:
        event = ClientEvent(msg_type)
    except ValueError as e:
        msg = f"Unknown message type: {msg_type}"
        raise InvalidMessageError(msg, code="unknown_type") from e

    return MESSAGE_TYPES[event].from_dict(data)
