"""
Unlock attempt states.

    IDLE -> VERIFYING_OWNERSHIP -> REQUESTING_SIGNAL -> EMITTING
         -> AWAITING_CONFIRMATION -> [COLLECTING_NOTES] -> APPLYING_ACTION
         -> SUCCEEDED | FAILED

Any non-terminal state may move to CANCELLED. Terminal states accept a
new attempt (which starts verification) or a reset back to IDLE.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from box_unlock.errors import ErrorKind, UnlockError
from box_unlock.models import ActionOutcome, FulfillOrder, PendingAction, Principal
from box_unlock.signal.emitter import EmitterHandle


class AttemptState(Enum):
    IDLE = "idle"
    VERIFYING_OWNERSHIP = "verifying_ownership"
    REQUESTING_SIGNAL = "requesting_signal"
    EMITTING = "emitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COLLECTING_NOTES = "collecting_notes"
    APPLYING_ACTION = "applying_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        return self is not AttemptState.IDLE and not self.is_terminal


TERMINAL_STATES = frozenset({
    AttemptState.SUCCEEDED,
    AttemptState.FAILED,
    AttemptState.CANCELLED,
})

_RESTART = {AttemptState.IDLE, AttemptState.VERIFYING_OWNERSHIP}

# Valid state transitions (from -> to)
VALID_TRANSITIONS: dict[AttemptState, set[AttemptState]] = {
    AttemptState.IDLE: {AttemptState.VERIFYING_OWNERSHIP},
    AttemptState.VERIFYING_OWNERSHIP: {
        AttemptState.REQUESTING_SIGNAL,
        AttemptState.FAILED,
        AttemptState.CANCELLED,
    },
    AttemptState.REQUESTING_SIGNAL: {
        AttemptState.EMITTING,
        AttemptState.FAILED,
        AttemptState.CANCELLED,
    },
    AttemptState.EMITTING: {
        AttemptState.AWAITING_CONFIRMATION,
        AttemptState.FAILED,
        AttemptState.CANCELLED,
    },
    AttemptState.AWAITING_CONFIRMATION: {
        AttemptState.COLLECTING_NOTES,
        AttemptState.APPLYING_ACTION,
        AttemptState.FAILED,
        AttemptState.CANCELLED,
    },
    AttemptState.COLLECTING_NOTES: {
        AttemptState.APPLYING_ACTION,
        AttemptState.CANCELLED,
    },
    AttemptState.APPLYING_ACTION: {
        AttemptState.SUCCEEDED,
        AttemptState.FAILED,
        AttemptState.CANCELLED,
    },
    AttemptState.SUCCEEDED: set(_RESTART),
    AttemptState.FAILED: set(_RESTART),
    AttemptState.CANCELLED: set(_RESTART),
}


def is_valid_transition(from_state: AttemptState, to_state: AttemptState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


@dataclass(frozen=True)
class AttemptFailure:
    """Why an attempt ended in FAILED."""
    kind: ErrorKind
    message: str
    error: UnlockError | None = None

    @property
    def box_opened(self) -> bool:
        return self.kind == ErrorKind.ACTION


@dataclass
class UnlockAttempt:
    """One in-flight unlock. Owned by a single coordinator; never persisted."""
    box_id: int
    principal: Principal
    action: PendingAction
    attempt_id: str = field(default_factory=lambda: str(uuid4()))
    state: AttemptState = AttemptState.IDLE
    host_id: int | None = None
    signal_handle: EmitterHandle | None = None
    notes: str | None = None
    outcome: ActionOutcome | None = None
    failure: AttemptFailure | None = None
    box_opened: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def needs_notes(self) -> bool:
        return isinstance(self.action, FulfillOrder)


@dataclass(frozen=True)
class UnlockSnapshot:
    """Read-only view of the coordinator for presentation layers."""
    state: AttemptState
    attempt_id: str | None = None
    box_id: int | None = None
    confirmation_required: bool = False
    notes_required: bool = False
    box_opened: bool = False
    outcome: ActionOutcome | None = None
    failure: AttemptFailure | None = None

    @property
    def message(self) -> str:
        if self.outcome is not None:
            return self.outcome.message
        if self.failure is not None:
            return self.failure.message
        return ""

    @classmethod
    def of(cls, state: AttemptState, attempt: UnlockAttempt | None) -> "UnlockSnapshot":
        if attempt is None:
            return cls(state=state)
        return cls(
            state=state,
            attempt_id=attempt.attempt_id,
            box_id=attempt.box_id,
            confirmation_required=state in (AttemptState.EMITTING, AttemptState.AWAITING_CONFIRMATION),
            notes_required=state == AttemptState.COLLECTING_NOTES,
            box_opened=attempt.box_opened,
            outcome=attempt.outcome,
            failure=attempt.failure,
        )
