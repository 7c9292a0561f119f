"""Health check endpoints for sketchparty.

Provides /health and /ready endpoints for container orchestration
and load balancer health checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from litestar import Controller, get

if TYPE_CHECKING:
    from litestar import Request


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of an individual component."""

    name: str
    status: HealthStatus
    message: str | None = None
    details: dict[str, int] = field(default_factory=dict)


@dataclass
class HealthResponse:
    """Health check response."""

    status: HealthStatus
    version: str = "0.1.0"
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    components: list[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "version": self.version,
            "timestamp": self.timestamp,
            "components": [
                {
                    "name": c.name,
                    "status": c.status.value,
                    "message": c.message,
                    "details": c.details,
                }
                for c in self.components
            ],
        }


class HealthController(Controller):
    """Health check controller.

    Provides endpoints for liveness and readiness probes used by
    container orchestration systems like Kubernetes.
    """

    path = ""
    include_in_schema: ClassVar[bool] = True
    tags: ClassVar[list[str]] = ["Health"]

    @get("/health")
    async def health(self, request: Request) -> dict:
        """Liveness probe endpoint.

        Returns the overall health status of the application along with the
        number of live rooms and open connections.

        Returns:
            Health status with component details.
        """
        components = [
            ComponentHealth(
                name="application",
                status=HealthStatus.HEALTHY,
                message="Application is running",
            ),
            self._check_rooms(request),
        ]

        statuses = [c.status for c in components]
        if HealthStatus.UNHEALTHY in statuses:
            overall_status = HealthStatus.UNHEALTHY
        elif HealthStatus.DEGRADED in statuses:
            overall_status = HealthStatus.DEGRADED
        else:
            overall_status = HealthStatus.HEALTHY

        return HealthResponse(status=overall_status, components=components).to_dict()

    @get("/ready")
    async def ready(self, request: Request) -> dict:
        """Readiness probe endpoint.

        The application is ready once the game plugin has set up the room
        registry and the connection manager.

        Returns:
            Readiness status with individual check results.
        """
        checks = {
            "application": True,
            "rooms": request.app.state.get("room_registry") is not None,
            "connections": request.app.state.get("connection_manager") is not None,
        }
        return {
            "ready": all(checks.values()),
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        }

    def _check_rooms(self, request: Request) -> ComponentHealth:
        registry = request.app.state.get("room_registry")
        manager = request.app.state.get("connection_manager")
        if registry is None or manager is None:
            return ComponentHealth(
                name="rooms",
                status=HealthStatus.DEGRADED,
                message="Game plugin not initialized",
            )
        return ComponentHealth(
            name="rooms",
            status=HealthStatus.HEALTHY,
            details={
                "rooms": len(registry),
                "connections": manager.total_connections,
            },
        )
