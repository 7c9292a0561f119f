"""HTTP layer of sketchparty: health probes and the lobby API."""

from sketchparty.web.health import HealthController
from sketchparty.web.rooms import RoomController
from sketchparty.web.router import create_router

__all__ = ["HealthController", "RoomController", "create_router"]
