"""Structured logging configuration for sketchparty.

Provides structlog setup, request logging middleware, and helpers for binding
room context to log lines emitted while a WebSocket connection is open.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from litestar.types import ASGIApp, Message, Receive, Scope, Send


def configure_logging(*, debug: bool = False, json_logs: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        debug: Enable debug level logging.
        json_logs: Output logs as JSON (for production).
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_connection_context(*, room_code: str, user_id: str) -> None:
    """Bind the room and user of a WebSocket connection to the log context.

    Args:
        room_code: Code of the room the connection belongs to.
        user_id: Session-scoped id of the connected user.
    """
    structlog.contextvars.bind_contextvars(room_code=room_code, user_id=user_id)


def clear_connection_context() -> None:
    """Drop any room context bound by :func:`bind_connection_context`."""
    structlog.contextvars.unbind_contextvars("room_code", "user_id")


class RequestLoggingMiddleware:
    """Middleware that logs HTTP request/response information.

    Logs the response status code and duration once the request completes,
    at a level matching the status class.
    """

    def __init__(self, app: ASGIApp, *, exclude_paths: set[str] | None = None) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application.
            exclude_paths: Paths to exclude from logging (e.g., health checks).
        """
        self.app = app
        self.exclude_paths = exclude_paths or {"/health", "/favicon.ico"}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process the request and log information."""
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        logger = structlog.get_logger(__name__)
        start_time = time.perf_counter()
        status_code = 500

        client = scope.get("client")
        client_ip = client[0] if client else "unknown"

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception("Request failed with exception", path=scope.get("path", ""), client_ip=client_ip)
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if status_code >= 500:
                log_method = logger.error
            elif status_code >= 400:
                log_method = logger.warning
            else:
                log_method = logger.info

            log_method(
                "Request completed",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_ip=client_ip,
            )
