"""Room aggregate.

A :class:`Session` owns everything about one room: its members and leader,
settings, lifecycle state (lobby, ready check, playing), the shared canvas
and its layers, the active mode engine, and the room's timers.

Every inbound message goes through :meth:`Session.handle`, which holds the
room lock while it runs; timer callbacks take the same lock. A
:class:`~sketchparty.game.exceptions.GameError` raised while handling a
message is reported to the sender as an ``error`` event and leaves the room
untouched.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from sketchparty.canvas.history import CanvasAction, CanvasHistory
from sketchparty.canvas.layers import LayerStack
from sketchparty.core.scheduler import Timers
from sketchparty.game.engines import build_engine
from sketchparty.game.exceptions import (
    GameError,
    GameStateError,
    HintUnavailableError,
    InvalidActionError,
    JoinRejectedError,
    PermissionDeniedError,
)
from sketchparty.game.models import MAX_CHAT_LENGTH, ChatMessage, GameSettings, User, sanitize_username
from sketchparty.game.types import GameMode, RoomState
from sketchparty.realtime import messages as msgs
from sketchparty.realtime.broadcast import RoomChannel
from sketchparty.realtime.messages import ServerEvent

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sketchparty.core.scheduler import Scheduler
    from sketchparty.game.engines.base import ModeEngine
    from sketchparty.game.providers import ThemeWordProvider
    from sketchparty.game.wordbank import WordBank
    from sketchparty.realtime.broadcast import Broadcaster

logger = structlog.get_logger(__name__)

READY_CHECK_TIMEOUT = 60
START_COUNTDOWN = 5
MIN_PLAYERS_TO_START = 2


class Session:
    """A room and everything happening in it.

    Attributes:
        code: Room code shared by its members.
        settings: Room settings, editable by the leader in the lobby.
        users: Members in join order.
        leader_id: Id of the leader (always a non-spectator), None when the
            room has no player.
        state: Lifecycle state.
        layers: Layers of the shared canvas.
        canvas: History of the shared canvas.
        engine: Engine of the running game, None outside PLAYING.
        timers: Named timers of the room, fired under ``lock``.
    """

    def __init__(
        self,
        code: str,
        broadcaster: Broadcaster,
        *,
        scheduler: Scheduler,
        word_bank: WordBank,
        theme_provider: ThemeWordProvider | None = None,
        settings: GameSettings | None = None,
    ) -> None:
        """Initialize an empty room.

        Args:
            code: Room code.
            broadcaster: Transport for outbound events.
            scheduler: Clock used by the room's timers.
            word_bank: Dictionary for word selection.
            theme_provider: AI provider for themed words, optional.
            settings: Initial settings. Defaults are used when None.
        """
        self.code = code
        self.settings = settings or GameSettings()
        self.users: list[User] = []
        self.leader_id: str | None = None
        self.state = RoomState.LOBBY
        self.layers = LayerStack()
        self.canvas = CanvasHistory()
        self.engine: ModeEngine | None = None
        self.word_bank = word_bank
        self.theme_provider = theme_provider
        self.lock = asyncio.Lock()
        self.timers = Timers(scheduler, self.lock)
        self.channel = RoomChannel(broadcaster, code)
        self.ready_players: list[str] = []
        self.countdown = 0
        self.closed = False

        self._handlers: dict[type[msgs.ClientMessage], Callable[[User, Any], Awaitable[None]]] = {
            msgs.Draw: lambda user, m: self.draw(user, m.payload),
            msgs.Undo: lambda user, m: self.undo(user),
            msgs.Redo: lambda user, m: self.redo(user),
            msgs.ClearCanvas: lambda user, m: self.clear_canvas(user),
            msgs.ClearLayer: lambda user, m: self.clear_layer(user, m.layer_id),
            msgs.AddLayer: lambda user, m: self.add_layer(user, m.name, m.layer_id),
            msgs.DeleteLayer: lambda user, m: self.delete_layer(user, m.layer_id),
            msgs.RenameLayer: lambda user, m: self.rename_layer(user, m.layer_id, m.name),
            msgs.ReorderLayers: lambda user, m: self.reorder_layers(user, m.layer_ids),
            msgs.ActiveLayerChanged: lambda user, m: self.set_active_layer(user, m.layer_id),
            msgs.Chat: lambda user, m: self.chat(user, m.message),
            msgs.RequestHint: lambda user, m: self._require_engine().request_hint(user),
            msgs.WordChosen: lambda user, m: self._require_engine().choose_word(user, m.word),
            msgs.CustomWordChosen: lambda user, m: self._require_engine().choose_word(user, m.word, custom=True),
            msgs.CreativeVote: lambda user, m: self._require_engine().vote(user, m.target_id, m.stars),
            msgs.CreativeSubmit: lambda user, m: self._require_engine().submit(user, m.image),
            msgs.TelephoneSubmit: lambda user, m: self._require_engine().submit(user, m.content),
            msgs.Spectate: lambda user, m: self._require_engine().subscribe(user, m.target_id),
            msgs.StartGame: lambda user, m: self.start_ready_check(user),
            msgs.PlayerReady: lambda user, m: self.player_ready(user),
            msgs.PlayerRefused: lambda user, m: self.player_refused(user),
            msgs.UpdateSettings: lambda user, m: self.update_settings(user, m.settings),
            msgs.KickPlayer: lambda user, m: self.kick(user, m.target_id),
            msgs.SwitchRole: lambda user, m: self.switch_role(user),
        }

    # -- Membership -----------------------------------------------------

    def get_user(self, user_id: str | None) -> User | None:
        """Get a member by id."""
        return next((user for user in self.users if user.id == user_id), None)

    def players(self) -> list[User]:
        """Get the non-spectator members, in join order."""
        return [user for user in self.users if not user.is_spectator]

    def spectators(self) -> list[User]:
        """Get the spectators, in join order."""
        return [user for user in self.users if user.is_spectator]

    @property
    def is_empty(self) -> bool:
        """Whether nobody is left in the room."""
        return not self.users

    def users_payload(self) -> list[dict[str, Any]]:
        """Serialize every member."""
        return [user.to_dict() for user in self.users]

    async def join(self, user_id: str, username: str, avatar: Any = None, *, is_spectator: bool = False) -> User:
        """Add a member to the room.

        Args:
            user_id: Session-scoped id of the new member.
            username: Requested display name.
            avatar: Client avatar descriptor.
            is_spectator: Join as a spectator.

        Returns:
            The new member.

        Raises:
            JoinRejectedError: If the name is empty or taken, spectators are
                not allowed, or the room is full.
        """
        async with self.lock:
            return await self._join(user_id, username, avatar, is_spectator=is_spectator)

    async def _join(self, user_id: str, username: str, avatar: Any, *, is_spectator: bool) -> User:
        if self.closed:
            msg = "This room was closed."
            raise JoinRejectedError(msg)
        name = sanitize_username(username)
        if not name:
            msg = "A username is required."
            raise JoinRejectedError(msg)
        if self.get_user(user_id) is not None:
            msg = "You are already in this room."
            raise JoinRejectedError(msg)
        if any(user.username.lower() == name.lower() for user in self.users):
            msg = "This username is already taken in this room."
            raise JoinRejectedError(msg)
        if is_spectator and not self.settings.allow_spectators:
            msg = "Spectators are not allowed in this room."
            raise JoinRejectedError(msg)
        if not is_spectator and len(self.players()) >= self.settings.max_players:
            msg = "This room is full."
            raise JoinRejectedError(msg)

        user = User(id=user_id, username=name, avatar=avatar, is_spectator=is_spectator, active_layer_id=self.layers.default_id)
        self.users.append(user)
        if self.leader_id is None and not is_spectator:
            self.leader_id = user.id

        logger.info(
            "User joined room",
            room_code=self.code,
            user_id=user.id,
            is_spectator=is_spectator,
            total_users=len(self.users),
        )

        if self.state == RoomState.PLAYING and self.engine is not None:
            await self.engine.handle_join(user)

        await self.channel.room(
            ServerEvent.USER_JOINED,
            {"user": user.to_dict(), "users": self.users_payload(), "leaderId": self.leader_id},
            exclude=user.id,
        )
        await self.channel.user(user.id, ServerEvent.ROOM_JOINED, self.snapshot_for(user))
        await self.system_message(f"{user.username} joined the room.")
        if self.state == RoomState.READY_CHECK and not is_spectator:
            await self._broadcast_ready_status()
        return user

    def snapshot_for(self, user: User) -> dict[str, Any]:
        """Full room state sent to a member when they join."""
        return {
            "roomCode": self.code,
            "userId": user.id,
            "users": self.users_payload(),
            "leaderId": self.leader_id,
            "settings": self.settings.to_dict(),
            "state": str(self.state),
            "layers": self.layers.to_list(),
            "canvas": self.canvas.snapshot(),
            "undoRedo": self.canvas.availability(user.id),
            "readyPlayers": list(self.ready_players),
            "game": self.engine.state_for(user) if self.engine is not None else None,
        }

    async def leave(self, user_id: str) -> bool:
        """Remove a member who disconnected or left.

        Args:
            user_id: The leaving member.

        Returns:
            True if the room is now empty.
        """
        async with self.lock:
            await self._remove_user(user_id)
            return self.is_empty

    async def _remove_user(self, user_id: str, *, kicked: bool = False) -> User | None:
        user = self.get_user(user_id)
        if user is None:
            return None
        self.users.remove(user)
        logger.info("User left room", room_code=self.code, user_id=user.id, kicked=kicked, remaining=len(self.users))

        if self.leader_id == user.id:
            await self._transfer_leadership()

        await self.channel.room(
            ServerEvent.USER_LEFT,
            {"userId": user.id, "username": user.username, "users": self.users_payload(), "leaderId": self.leader_id},
        )
        verb = "was kicked" if kicked else "left the room"
        await self.system_message(f"{user.username} {verb}.")

        if self.state == RoomState.READY_CHECK and not user.is_spectator:
            if user.id in self.ready_players:
                self.ready_players.remove(user.id)
            if kicked:
                await self._broadcast_ready_status()
                await self._maybe_start_countdown()
            else:
                await self.cancel_ready_check(f"{user.username} left the room.")
        elif self.state == RoomState.PLAYING and self.engine is not None:
            await self.engine.handle_disconnect(user)
        return user

    async def _transfer_leadership(self) -> None:
        successor = next(iter(self.players()), None)
        if successor is not None:
            self.leader_id = successor.id
            logger.info("Leadership transferred", room_code=self.code, leader_id=successor.id)
            await self.system_message(f"{successor.username} is now the room leader.")
            return

        self.leader_id = None
        # A room without players cannot continue; remaining spectators are let go.
        for spectator in list(self.users):
            await self.channel.user(spectator.id, ServerEvent.KICKED, {"reason": "The last player left the room."})
            self.users.remove(spectator)
            await self.channel.close(spectator.id)
        if self.engine is not None:
            await self.return_to_lobby()

    async def kick(self, leader: User, target_id: str) -> None:
        """Remove a member on the leader's request.

        Raises:
            PermissionDeniedError: If the requester is not the leader.
            InvalidActionError: If the target is unknown or the leader.
        """
        if leader.id != self.leader_id:
            msg = "Only the room leader can kick players."
            raise PermissionDeniedError(msg)
        target = self.get_user(target_id)
        if target is None or target.id == leader.id:
            msg = "Invalid kick target."
            raise InvalidActionError(msg)

        await self.channel.user(target.id, ServerEvent.KICKED, {"reason": "You were kicked by the room leader."})
        await self._remove_user(target.id, kicked=True)
        await self.channel.close(target.id)

    async def switch_role(self, user: User) -> None:
        """Toggle a member between player and spectator (lobby only).

        Raises:
            GameStateError: Outside the lobby, or if the room would lose its last player.
            JoinRejectedError: If the room is full or spectators are not allowed.
        """
        if self.state != RoomState.LOBBY:
            msg = "Roles can only be changed in the lobby."
            raise GameStateError(msg)

        if user.is_spectator:
            if len(self.players()) >= self.settings.max_players:
                msg = "This room is full."
                raise JoinRejectedError(msg)
            user.is_spectator = False
            if self.leader_id is None:
                self.leader_id = user.id
        else:
            if not self.settings.allow_spectators:
                msg = "Spectators are not allowed in this room."
                raise JoinRejectedError(msg)
            if len(self.players()) <= 1:
                msg = "The room needs at least one player."
                raise GameStateError(msg)
            user.is_spectator = True
            if self.leader_id == user.id:
                await self._transfer_leadership()

        await self.channel.room(
            ServerEvent.ROLE_CHANGED,
            {"userId": user.id, "isSpectator": user.is_spectator, "users": self.users_payload(), "leaderId": self.leader_id},
        )

    async def update_settings(self, user: User, changes: dict[str, Any]) -> None:
        """Apply the leader's settings changes (lobby only).

        Raises:
            PermissionDeniedError: If the requester is not the leader.
            GameStateError: Outside the lobby.
            InvalidActionError: If a value is invalid.
        """
        if user.id != self.leader_id:
            msg = "Only the room leader can change the settings."
            raise PermissionDeniedError(msg)
        if self.state != RoomState.LOBBY:
            msg = "Settings can only be changed in the lobby."
            raise GameStateError(msg)
        applied = self.settings.update(changes)
        logger.info("Room settings updated", room_code=self.code, changes=applied)
        await self.channel.room(ServerEvent.ROOM_SETTINGS_UPDATED, {"settings": self.settings.to_dict()})

    # -- Ready check and game lifecycle ---------------------------------

    async def start_ready_check(self, user: User) -> None:
        """Ask every player to confirm they are ready.

        Raises:
            PermissionDeniedError: If the requester is not the leader.
            GameStateError: Outside the lobby or with fewer than two players.
            InvalidActionError: If an AI-themed game has no theme.
        """
        if user.id != self.leader_id:
            msg = "Only the room leader can start the game."
            raise PermissionDeniedError(msg)
        if self.state != RoomState.LOBBY:
            msg = "A game is already starting."
            raise GameStateError(msg)
        if len(self.players()) < MIN_PLAYERS_TO_START:
            msg = f"At least {MIN_PLAYERS_TO_START} players are required to start."
            raise GameStateError(msg)
        if self.settings.mode == GameMode.AI_THEME and not self.settings.theme:
            msg = "Choose a theme before starting an AI-themed game."
            raise InvalidActionError(msg)

        self.state = RoomState.READY_CHECK
        self.ready_players = []
        self.countdown = 0
        logger.info("Ready check started", room_code=self.code, players=len(self.players()))

        await self.channel.room(ServerEvent.GAME_STATE_CHANGED, {"state": str(self.state)})
        await self.channel.room(
            ServerEvent.READY_CHECK_STARTED,
            {"timeout": READY_CHECK_TIMEOUT, "totalPlayers": len(self.players()), "settings": self.settings.to_dict()},
        )
        self.timers.start("ready_check", READY_CHECK_TIMEOUT, self._ready_check_expired)

    async def player_ready(self, user: User) -> None:
        """Mark a player ready; start the countdown once everyone is.

        Raises:
            GameStateError: Outside a ready check or for spectators.
        """
        if self.state != RoomState.READY_CHECK or user.is_spectator:
            msg = "There is no ready check for you to answer."
            raise GameStateError(msg)
        if user.id in self.ready_players:
            return
        self.ready_players.append(user.id)
        await self._broadcast_ready_status()
        await self._maybe_start_countdown()

    async def player_refused(self, user: User) -> None:
        """Cancel the ready check because a player declined.

        Raises:
            GameStateError: Outside a ready check or for spectators.
        """
        if self.state != RoomState.READY_CHECK or user.is_spectator:
            msg = "There is no ready check for you to answer."
            raise GameStateError(msg)
        await self.cancel_ready_check(f"{user.username} is not ready.")

    async def _broadcast_ready_status(self) -> None:
        await self.channel.room(
            ServerEvent.UPDATE_READY_STATUS,
            {"readyPlayers": list(self.ready_players), "totalPlayers": len(self.players())},
        )

    async def _maybe_start_countdown(self) -> None:
        if self.state != RoomState.READY_CHECK or self.countdown > 0:
            return
        players = self.players()
        if len(players) < MIN_PLAYERS_TO_START:
            await self.cancel_ready_check("Not enough players to start.")
            return
        if not all(player.id in self.ready_players for player in players):
            return
        self.timers.cancel("ready_check")
        self.countdown = START_COUNTDOWN
        await self.channel.room(ServerEvent.GAME_STARTING, {"countdown": self.countdown})
        self.timers.start("countdown", 1, self._countdown_tick)

    async def _countdown_tick(self) -> None:
        if self.state != RoomState.READY_CHECK:
            return
        self.countdown -= 1
        if self.countdown <= 0:
            await self.start_game()
            return
        await self.channel.room(ServerEvent.GAME_STARTING, {"countdown": self.countdown})
        self.timers.start("countdown", 1, self._countdown_tick)

    async def _ready_check_expired(self) -> None:
        await self.cancel_ready_check("Not every player was ready in time.")

    async def cancel_ready_check(self, reason: str) -> None:
        """Abort a ready check or countdown and go back to the lobby."""
        if self.state != RoomState.READY_CHECK:
            return
        self.timers.cancel("ready_check")
        self.timers.cancel("countdown")
        self.countdown = 0
        self.ready_players = []
        self.state = RoomState.LOBBY
        logger.info("Ready check cancelled", room_code=self.code, reason=reason)
        await self.channel.room(ServerEvent.GAME_CANCELLED, {"reason": reason})
        await self.channel.room(ServerEvent.GAME_STATE_CHANGED, {"state": str(self.state)})

    async def start_game(self) -> None:
        """Build the engine for the configured mode and start it."""
        self.timers.cancel("ready_check")
        self.timers.cancel("countdown")
        self.countdown = 0
        self.ready_players = []
        if len(self.players()) < MIN_PLAYERS_TO_START:
            self.state = RoomState.READY_CHECK
            await self.cancel_ready_check("Not enough players to start.")
            return

        self.state = RoomState.PLAYING
        logger.info("Game starting", room_code=self.code, mode=str(self.settings.mode))
        await self.channel.room(ServerEvent.GAME_STATE_CHANGED, {"state": str(self.state), "mode": str(self.settings.mode)})
        self.engine = build_engine(self)
        await self.engine.start()

    async def return_to_lobby(self) -> None:
        """Tear down the engine and reopen the lobby."""
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.tear_down()
        self.state = RoomState.LOBBY
        logger.info("Room back in lobby", room_code=self.code)
        await self.channel.room(
            ServerEvent.GAME_STATE_CHANGED,
            {"state": str(self.state), "users": self.users_payload(), "leaderId": self.leader_id},
        )

    async def close(self) -> None:
        """Stop everything; the room is being destroyed."""
        self.closed = True
        engine, self.engine = self.engine, None
        if engine is not None:
            await engine.tear_down()
        self.timers.cancel_all()

    def _require_engine(self) -> ModeEngine:
        if self.engine is None:
            msg = "No game in progress."
            raise GameStateError(msg)
        return self.engine

    # -- Shared canvas --------------------------------------------------

    def _check_canvas_access(self, user: User) -> None:
        if user.is_spectator:
            msg = "Spectators cannot draw."
            raise PermissionDeniedError(msg)
        if self.engine is not None:
            if self.engine.private_surfaces:
                msg = "The shared canvas is not used in this game mode."
                raise GameStateError(msg)
            if not self.engine.may_draw(user):
                msg = "Only the drawer can change the canvas."
                raise PermissionDeniedError(msg)

    async def _broadcast_undo_state(self) -> None:
        for user in self.users:
            await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, self.canvas.availability(user.id))

    async def draw(self, user: User, payload: dict[str, Any]) -> None:
        """Record a drawing action.

        Draws from users who may not draw are dropped silently. In creative
        and telephone games the action goes to the player's private surface.
        """
        if user.is_spectator:
            return
        action = CanvasAction.from_payload(user.id, payload)
        if self.engine is not None and self.engine.private_surfaces:
            await self.engine.handle_draw(user, action)
            return
        if self.engine is not None and not self.engine.may_draw(user):
            return
        if action.layer_id not in self.layers:
            return
        self.canvas.record(action)
        await self.channel.room(ServerEvent.DRAW, action.to_dict(), exclude=user.id)
        await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, self.canvas.availability(user.id))

    async def undo(self, user: User) -> None:
        """Undo the user's last stroke."""
        if self.engine is not None and self.engine.private_surfaces and not user.is_spectator:
            await self.engine.handle_undo(user)
            return
        self._check_canvas_access(user)
        if self.canvas.undo(user.id):
            await self.channel.room(ServerEvent.CANVAS_STATE, self.canvas.snapshot())
        await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, self.canvas.availability(user.id))

    async def redo(self, user: User) -> None:
        """Redo the user's last undone stroke."""
        if self.engine is not None and self.engine.private_surfaces and not user.is_spectator:
            await self.engine.handle_redo(user)
            return
        self._check_canvas_access(user)
        if self.canvas.redo(user.id):
            await self.channel.room(ServerEvent.CANVAS_STATE, self.canvas.snapshot())
        await self.channel.user(user.id, ServerEvent.UNDO_REDO_STATE, self.canvas.availability(user.id))

    async def clear_canvas(self, user: User) -> None:
        """Wipe the shared canvas and every undo/redo stack."""
        self._check_canvas_access(user)
        self.canvas.clear()
        await self.channel.room(ServerEvent.CLEAR_CANVAS)
        await self._broadcast_undo_state()

    async def clear_layer(self, user: User, layer_id: str) -> None:
        """Remove everything drawn on one layer."""
        self._check_canvas_access(user)
        if layer_id not in self.layers:
            msg = "Unknown layer."
            raise InvalidActionError(msg)
        self.canvas.purge_layer(layer_id)
        await self.channel.room(ServerEvent.CLEAR_LAYER, {"layerId": layer_id})
        await self._broadcast_undo_state()

    async def add_layer(self, user: User, name: str = "", layer_id: str | None = None) -> None:
        """Add a layer on top of the stack."""
        self._check_canvas_access(user)
        layer = self.layers.add(name, creator_id=user.id, layer_id=layer_id)
        await self.channel.room(ServerEvent.LAYER_ADDED, {"layer": layer.to_dict(), "layers": self.layers.to_list()})

    async def delete_layer(self, user: User, layer_id: str) -> None:
        """Delete a layer, purging its actions from the history."""
        self._check_canvas_access(user)
        if not self.layers.delete(layer_id):
            msg = "This layer cannot be deleted."
            raise InvalidActionError(msg)
        self.canvas.purge_layer(layer_id)
        for member in self.users:
            if member.active_layer_id == layer_id:
                member.active_layer_id = self.layers.default_id
        await self.channel.room(ServerEvent.LAYER_DELETED, {"layerId": layer_id, "layers": self.layers.to_list()})
        await self._broadcast_undo_state()

    async def rename_layer(self, user: User, layer_id: str, name: str) -> None:
        """Rename a layer."""
        self._check_canvas_access(user)
        layer = self.layers.rename(layer_id, name)
        if layer is None:
            msg = "Invalid layer or name."
            raise InvalidActionError(msg)
        await self.channel.room(ServerEvent.LAYER_RENAMED, {"layerId": layer.id, "name": layer.name})

    async def reorder_layers(self, user: User, layer_ids: list[str]) -> None:
        """Apply a new layer order."""
        self._check_canvas_access(user)
        if not self.layers.reorder(layer_ids):
            msg = "The new order must list every layer exactly once."
            raise InvalidActionError(msg)
        await self.channel.room(ServerEvent.LAYERS_REORDERED, {"layers": self.layers.to_list()})

    async def set_active_layer(self, user: User, layer_id: str) -> None:
        """Remember which layer the user draws on and tell the others."""
        if layer_id not in self.layers:
            msg = "Unknown layer."
            raise InvalidActionError(msg)
        user.active_layer_id = layer_id
        await self.channel.room(ServerEvent.PLAYER_LAYER_CHANGED, {"userId": user.id, "layerId": layer_id}, exclude=user.id)

    async def reset_canvas(self) -> None:
        """Reset layers and wipe the shared canvas (between turns)."""
        self.layers.reset()
        self.canvas.clear()
        for member in self.users:
            member.active_layer_id = self.layers.default_id
        await self.channel.room(ServerEvent.RESET_LAYERS, {"layers": self.layers.to_list()})
        await self.channel.room(ServerEvent.CLEAR_CANVAS)
        await self._broadcast_undo_state()

    # -- Chat -----------------------------------------------------------

    async def chat(self, user: User, text: str) -> None:
        """Broadcast a chat line unless the game consumes it as a guess.

        Spectators are muted.
        """
        if user.is_spectator:
            return
        text = text.strip()[:MAX_CHAT_LENGTH]
        if not text:
            return
        if self.engine is not None and await self.engine.handle_chat(user, text):
            return
        message = ChatMessage(message=text, username=user.username, user_id=user.id)
        await self.channel.room(ServerEvent.CHAT_MESSAGE, message.to_dict())

    async def system_message(self, text: str) -> None:
        """Broadcast a system notification in the chat."""
        await self.channel.room(ServerEvent.CHAT_MESSAGE, ChatMessage.system(text).to_dict())

    # -- Dispatch -------------------------------------------------------

    async def handle(self, user_id: str, message: msgs.ClientMessage) -> None:
        """Process one inbound message from a member, under the room lock.

        Args:
            user_id: The sender.
            message: The validated message.
        """
        handler = self._handlers.get(type(message))
        async with self.lock:
            user = self.get_user(user_id)
            if user is None or handler is None:
                return
            try:
                await handler(user, message)
            except GameError as e:
                logger.debug(
                    "Action rejected",
                    room_code=self.code,
                    user_id=user_id,
                    message_type=str(message.type),
                    error=str(e),
                )
                payload: dict[str, Any] = {"code": e.code, "message": str(e)}
                if isinstance(e, HintUnavailableError) and e.retry_after is not None:
                    payload["retryAfter"] = e.retry_after
                await self.channel.user(user_id, ServerEvent.ERROR, payload)

