"""Ordered drawing layers shared by everyone in a room."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

DEFAULT_LAYER_ID = "layer-1"
DEFAULT_LAYER_NAME = "Layer 1"
MAX_LAYER_NAME_LENGTH = 30


@dataclass
class Layer:
    """A named drawing layer."""

    id: str
    name: str
    order: int
    creator_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"id": self.id, "name": self.name, "order": self.order, "creatorId": self.creator_id}


class LayerStack:
    """The room's layers, kept sorted by ``order``.

    A room always has at least one layer.
    """

    def __init__(self) -> None:
        """Initialize with the single default layer."""
        self._layers: list[Layer] = []
        self.reset()

    def reset(self) -> None:
        """Drop every layer and recreate the default one."""
        self._layers = [Layer(id=DEFAULT_LAYER_ID, name=DEFAULT_LAYER_NAME, order=0)]

    def get(self, layer_id: str) -> Layer | None:
        """Get a layer by id."""
        return next((layer for layer in self._layers if layer.id == layer_id), None)

    def add(self, name: str | None = None, *, creator_id: str | None = None, layer_id: str | None = None) -> Layer:
        """Append a new layer on top.

        Args:
            name: Display name. Defaults to ``Layer <n>``.
            creator_id: Id of the user creating the layer.
            layer_id: Client-chosen id. A fresh id is generated when missing
                or already taken.

        Returns:
            The new layer.
        """
        if not layer_id or self.get(layer_id) is not None:
            layer_id = f"layer-{uuid.uuid4().hex[:8]}"
        order = max((layer.order for layer in self._layers), default=-1) + 1
        clean_name = (name or "").strip()[:MAX_LAYER_NAME_LENGTH] or f"Layer {len(self._layers) + 1}"
        layer = Layer(id=layer_id, name=clean_name, order=order, creator_id=creator_id)
        self._layers.append(layer)
        return layer

    def delete(self, layer_id: str) -> bool:
        """Remove a layer. The last remaining layer cannot be removed.

        Returns:
            True if the layer was removed.
        """
        if len(self._layers) <= 1 or self.get(layer_id) is None:
            return False
        self._layers = [layer for layer in self._layers if layer.id != layer_id]
        return True

    def rename(self, layer_id: str, name: str) -> Layer | None:
        """Rename a layer.

        Returns:
            The renamed layer, or None if the id or name is invalid.
        """
        layer = self.get(layer_id)
        clean_name = name.strip()[:MAX_LAYER_NAME_LENGTH]
        if layer is None or not clean_name:
            return None
        layer.name = clean_name
        return layer

    def reorder(self, layer_ids: list[str]) -> bool:
        """Apply a new bottom-to-top order.

        Args:
            layer_ids: Every current layer id, exactly once.

        Returns:
            True if the order was applied.
        """
        if sorted(layer_ids) != sorted(layer.id for layer in self._layers):
            return False
        by_id = {layer.id: layer for layer in self._layers}
        for order, layer_id in enumerate(layer_ids):
            by_id[layer_id].order = order
        self._layers.sort(key=lambda layer: layer.order)
        return True

    def to_list(self) -> list[dict[str, Any]]:
        """Serialize every layer in order."""
        return [layer.to_dict() for layer in self._layers]

    @property
    def default_id(self) -> str:
        """Get the id of the bottom layer."""
        return self._layers[0].id

    def __contains__(self, layer_id: object) -> bool:
        return any(layer.id == layer_id for layer in self._layers)

    def __len__(self) -> int:
        return len(self._layers)
