"""
Unlock Errors: Domain-specific error types.

Error hierarchy:
    UnlockError (base)
    ├── CallerError
    │   ├── InvalidQRCodeError
    │   ├── AttemptActiveError
    │   └── CoordinatorClosedError
    ├── InvalidTransitionError
    ├── OwnershipError
    ├── SignalError
    │   ├── NetworkError
    │   └── DecodeError
    ├── PlaybackError
    ├── PhysicalOpenDenied
    ├── ActionError
    └── BackendError (never crosses a component boundary)
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Failure category surfaced to the caller."""
    CALLER = "caller"
    OWNERSHIP = "ownership"
    NETWORK = "network"
    DECODE = "decode"
    PLAYBACK = "playback"
    PHYSICAL_OPEN_DENIED = "physical_open_denied"
    ACTION = "action"
    INTERNAL = "internal"


class OwnershipFailure(Enum):
    """Why an ownership check refused the attempt."""
    RESERVATION_MISSING_BOX_ID = "reservation_missing_box_id"
    HOST_MISSING_ON_RESERVATION = "host_missing_on_reservation"
    NOT_OWNED = "not_owned"
    BOX_MISMATCH = "box_mismatch"
    LOOKUP_FAILED = "lookup_failed"
    ROLE_NOT_PERMITTED = "role_not_permitted"
    NOT_ELIGIBLE = "not_eligible"


class UnlockError(Exception):
    """Base error for all unlock-related errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CallerError(UnlockError):
    """The caller supplied bad input or called at the wrong time."""

    kind = ErrorKind.CALLER


class InvalidQRCodeError(CallerError):
    """Raised when a scanned payload is not a box id."""

    def __init__(self, payload: str):
        super().__init__(
            "Invalid QR code. Please scan a valid box QR code.",
            details={"payload": payload},
        )
        self.payload = payload


class AttemptActiveError(CallerError):
    """Raised when a new attempt is started while one is mid-flight."""

    def __init__(self, attempt_id: str, state: str):
        super().__init__(
            f"Attempt {attempt_id} is still active ({state})",
            details={"attempt_id": attempt_id, "state": state},
        )
        self.attempt_id = attempt_id
        self.state = state


class CoordinatorClosedError(CallerError):
    """Raised when a closed coordinator is asked to start an attempt."""

    def __init__(self) -> None:
        super().__init__("Coordinator is closed")


class InvalidTransitionError(UnlockError):
    """
    Raised when a state transition is not allowed.

    The coordinator never performs an illegal edge; this surfaces
    calls such as ``submit_notes`` outside of note collection.
    """

    kind = ErrorKind.CALLER

    def __init__(
        self,
        from_state: str,
        to_state: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state}",
            details,
        )
        self.from_state = from_state
        self.to_state = to_state


class OwnershipError(UnlockError):
    """
    Raised when the principal may not open the scanned box.

    Examples:
    - Guest scanned a box other than the one on their reservation
    - Cleaner scanned a box that does not belong to the order's host
    - The host lookup itself failed
    - The reservation or order is not in a state the action accepts
    """

    kind = ErrorKind.OWNERSHIP

    def __init__(
        self,
        reason: OwnershipFailure,
        message: str,
        box_id: int | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.reason = reason
        self.box_id = box_id
        self.cause = cause

    @property
    def is_caller_error(self) -> bool:
        """Wrong box scanned, or a record not in a state the action accepts."""
        return self.reason in (OwnershipFailure.BOX_MISMATCH, OwnershipFailure.NOT_ELIGIBLE)


class SignalError(UnlockError):
    """Base for failures while obtaining the open signal."""


class NetworkError(SignalError):
    """The signal request did not complete."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message, details={"cause": repr(cause)} if cause else None)
        self.cause = cause


class DecodeError(SignalError):
    """The signal payload could not be turned into playable audio."""

    kind = ErrorKind.DECODE

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message, details={"cause": repr(cause)} if cause else None)
        self.cause = cause


class PlaybackError(UnlockError):
    """The audio output failed to start or faulted while looping."""

    kind = ErrorKind.PLAYBACK

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message, details={"cause": repr(cause)} if cause else None)
        self.cause = cause


class PhysicalOpenDenied(UnlockError):
    """The human reported that the box did not open."""

    kind = ErrorKind.PHYSICAL_OPEN_DENIED

    def __init__(self, box_id: int | None = None):
        super().__init__(
            "Box opening failed. Please try again.",
            details={"box_id": box_id},
        )
        self.box_id = box_id


class ActionError(UnlockError):
    """
    The ledger transaction failed after the box was opened.

    The box is physically open at this point, so callers should tell
    the user so and offer a manual retry.
    """

    kind = ErrorKind.ACTION
    box_opened = True

    def __init__(
        self,
        action: str,
        message: str,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.action = action
        self.cause = cause


class BackendError(UnlockError):
    """Raw transport or HTTP failure from the backend API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
        self.cause = cause
