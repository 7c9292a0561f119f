"""Shared canvas history with per-user undo/redo.

The canvas is an append-only log of drawing actions. Each action belongs to a
stroke (every segment of one continuous pen movement shares a stroke id), and
undo/redo always operates on whole strokes:

- each user has an undo stack of their last ``max_undo`` distinct stroke ids,
  oldest evicted first;
- undo removes every action of the user's most recent stroke from the log and
  parks that batch on the user's redo stack;
- redo re-appends the parked batch at the end of the log;
- a new stroke clears the user's redo stack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_MAX_UNDO = 10


@dataclass
class CanvasAction:
    """A single drawing action (one segment, fill, or shape) on a layer."""

    user_id: str
    stroke_id: str
    layer_id: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, user_id: str, payload: dict[str, Any]) -> CanvasAction:
        """Build an action from a client draw payload.

        Args:
            user_id: Id of the user who drew.
            payload: Client payload; ``strokeId`` and ``layerId`` are lifted
                out, everything else (tool, geometry, style) is kept verbatim.

        Returns:
            The canvas action.
        """
        data = {k: v for k, v in payload.items() if k not in ("strokeId", "layerId", "userId", "type")}
        return cls(
            user_id=user_id,
            stroke_id=str(payload["strokeId"]),
            layer_id=str(payload["layerId"]),
            data=data,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            **self.data,
            "userId": self.user_id,
            "strokeId": self.stroke_id,
            "layerId": self.layer_id,
        }


@dataclass
class _RedoBatch:
    stroke_id: str
    actions: list[CanvasAction]


class CanvasHistory:
    """Action log of one drawing surface plus per-user undo/redo stacks.

    Attributes:
        max_undo: Maximum number of distinct strokes a user can undo.
    """

    def __init__(self, max_undo: int = DEFAULT_MAX_UNDO) -> None:
        """Initialize an empty history.

        Args:
            max_undo: Maximum number of strokes kept on each undo stack.
        """
        self.max_undo = max_undo
        self._actions: list[CanvasAction] = []
        self._undo: dict[str, list[str]] = {}
        self._redo: dict[str, list[_RedoBatch]] = {}

    def record(self, action: CanvasAction) -> None:
        """Append an action to the log.

        The first action of a new stroke pushes its id on the author's undo
        stack and invalidates the author's redo stack.

        Args:
            action: The action to record.
        """
        self._actions.append(action)
        stack = self._undo.setdefault(action.user_id, [])
        if stack and stack[-1] == action.stroke_id:
            return
        stack.append(action.stroke_id)
        if len(stack) > self.max_undo:
            stack.pop(0)
        self._redo.pop(action.user_id, None)

    def undo(self, user_id: str) -> bool:
        """Remove the user's most recent stroke from the log.

        Args:
            user_id: The user undoing.

        Returns:
            True if the undo stack had a stroke to pop.
        """
        stack = self._undo.get(user_id)
        if not stack:
            return False
        stroke_id = stack.pop()
        removed = [a for a in self._actions if a.user_id == user_id and a.stroke_id == stroke_id]
        if removed:
            self._actions = [a for a in self._actions if not (a.user_id == user_id and a.stroke_id == stroke_id)]
            self._redo.setdefault(user_id, []).append(_RedoBatch(stroke_id, removed))
        return True

    def redo(self, user_id: str) -> bool:
        """Re-append the user's most recently undone stroke.

        Args:
            user_id: The user redoing.

        Returns:
            True if a batch was restored.
        """
        stack = self._redo.get(user_id)
        if not stack:
            return False
        batch = stack.pop()
        self._actions.extend(batch.actions)
        undo_stack = self._undo.setdefault(user_id, [])
        undo_stack.append(batch.stroke_id)
        if len(undo_stack) > self.max_undo:
            undo_stack.pop(0)
        return True

    def purge_layer(self, layer_id: str) -> None:
        """Drop every action drawn on ``layer_id``.

        All undo and redo stacks are cleared room-wide: stroke ids left on
        them could otherwise point at partially purged strokes.

        Args:
            layer_id: The layer being deleted or cleared.
        """
        self._actions = [a for a in self._actions if a.layer_id != layer_id]
        self._undo.clear()
        self._redo.clear()

    def clear(self) -> None:
        """Empty the log and every undo/redo stack."""
        self._actions.clear()
        self._undo.clear()
        self._redo.clear()

    def can_undo(self, user_id: str) -> bool:
        """Check if the user has a stroke to undo."""
        return bool(self._undo.get(user_id))

    def can_redo(self, user_id: str) -> bool:
        """Check if the user has a stroke to redo."""
        return bool(self._redo.get(user_id))

    def availability(self, user_id: str) -> dict[str, bool]:
        """Get the ``undoRedoState`` payload for a user."""
        return {"canUndo": self.can_undo(user_id), "canRedo": self.can_redo(user_id)}

    def snapshot(self) -> list[dict[str, Any]]:
        """Serialize the current log for replay on a client."""
        return [action.to_dict() for action in self._actions]

    @property
    def actions(self) -> list[CanvasAction]:
        """Get a copy of the current log."""
        return list(self._actions)

    def __len__(self) -> int:
        return len(self._actions)
