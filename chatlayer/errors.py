"""Error codes and the exception type raised by chatlayer.

Every failure surfaced to callers is a ``ChatError`` carrying a numeric code.
Feature-level transport failures are wrapped with the feature's own
attachment or detachment code so callers can tell which part of a room broke.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCode(int, Enum):
    """Numeric error codes for chatlayer failures."""

    BAD_REQUEST = 40000
    INVALID_ARGUMENT = 40001

    # Feature attachment failures (102006 - 102049 reserved)
    MESSAGES_ATTACHMENT_FAILED = 102001
    PRESENCE_ATTACHMENT_FAILED = 102002
    REACTIONS_ATTACHMENT_FAILED = 102003
    OCCUPANCY_ATTACHMENT_FAILED = 102004
    TYPING_ATTACHMENT_FAILED = 102005

    # Feature detachment failures (102055 - 102099 reserved)
    MESSAGES_DETACHMENT_FAILED = 102050
    PRESENCE_DETACHMENT_FAILED = 102051
    REACTIONS_DETACHMENT_FAILED = 102052
    OCCUPANCY_DETACHMENT_FAILED = 102053
    TYPING_DETACHMENT_FAILED = 102054

    ROOM_DISCONTINUITY = 102100

    # Room cannot perform the requested operation
    ROOM_IN_FAILED_STATE = 102101
    ROOM_IS_RELEASING = 102102
    ROOM_IS_RELEASED = 102103
    PREVIOUS_OPERATION_FAILED = 102104
    ROOM_LIFECYCLE_ERROR = 102105

    ROOM_EXISTS_WITH_DIFFERENT_OPTIONS = 102107
    FEATURE_NOT_ENABLED_IN_ROOM = 102108


class ChatError(Exception):
    """Error raised by rooms and their features.

    Args:
        message: Human readable description.
        code: Numeric error code (``ErrorCode`` or a raw transport code).
        status_code: HTTP-like status hint.
        cause: Underlying exception, if any. Also set as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        code: int,
        status_code: int = 500,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = int(code)
        self.status_code = status_code
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.message} (code={self.code})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"code={self.code}, status_code={self.status_code})"
        )

    def is_code(self, code: int) -> bool:
        """Check whether this error carries the given code."""
        return self.code == int(code)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        data: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    @classmethod
    def room_is_released(cls, operation: str) -> ChatError:
        return cls(f"unable to {operation} room; room is released", ErrorCode.ROOM_IS_RELEASED)

    @classmethod
    def room_is_releasing(cls, operation: str) -> ChatError:
        return cls(f"unable to {operation} room; room is releasing", ErrorCode.ROOM_IS_RELEASING)

    @classmethod
    def room_in_failed_state(cls, operation: str) -> ChatError:
        return cls(f"unable to {operation} room; room has failed", ErrorCode.ROOM_IN_FAILED_STATE)

    @classmethod
    def feature_attach_failed(cls, code: int, cause: Optional[BaseException]) -> ChatError:
        """Wrap a transport attach failure with the feature's attachment code."""
        return cls("failed to attach feature", code, cause=cause)

    @classmethod
    def feature_detach_failed(cls, code: int, cause: Optional[BaseException]) -> ChatError:
        """Wrap a transport detach failure with the feature's detachment code."""
        return cls("failed to detach feature", code, cause=cause)

    @classmethod
    def previous_operation_failed(cls, cause: Optional[BaseException]) -> ChatError:
        return cls(
            "failed to release room; existing attempt failed",
            ErrorCode.PREVIOUS_OPERATION_FAILED,
            cause=cause,
        )

    @classmethod
    def lifecycle_error(cls, message: str) -> ChatError:
        """An internal consistency failure in the lifecycle state machine."""
        return cls(message, ErrorCode.ROOM_LIFECYCLE_ERROR)
