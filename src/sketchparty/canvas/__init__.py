"""Drawing surfaces: action history and layers."""

from sketchparty.canvas.history import CanvasAction, CanvasHistory
from sketchparty.canvas.layers import Layer, LayerStack

__all__ = [
    "CanvasAction",
    "CanvasHistory",
    "Layer",
    "LayerStack",
]
