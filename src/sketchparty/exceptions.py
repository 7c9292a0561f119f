"""Custom exceptions for sketchparty."""

from __future__ import annotations


class SketchPartyError(Exception):
    """Base exception class for all sketchparty errors."""


class RoomNotFoundError(SketchPartyError):
    """Raised when a room with the specified code cannot be found.

    Attributes:
        room_code: The code of the room that was not found.
    """

    def __init__(self, room_code: str) -> None:
        """Initialize the exception with the room code.

        Args:
            room_code: The code of the room that was not found.
        """
        self.room_code = room_code
        super().__init__(f"Room {room_code} not found")


class InvalidMessageError(SketchPartyError):
    """Raised when an inbound client message is malformed.

    This exception is used for validation errors at the WebSocket boundary.

    Attributes:
        code: Machine-readable error code sent back to the client.
    """

    def __init__(self, message: str, code: str = "invalid_message") -> None:
        """Initialize the exception with a custom message.

        Args:
            message: Description of why the message is invalid.
            code: Machine-readable error code.
        """
        self.code = code
        super().__init__(message)
