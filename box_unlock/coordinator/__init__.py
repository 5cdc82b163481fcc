"""
Unlock coordination.

    UnlockCoordinator   - state machine driving one attempt at a time
    AttemptState        - attempt lifecycle states
    UnlockSnapshot      - read-only view for presentation layers
"""

from box_unlock.coordinator.states import (
    AttemptFailure,
    AttemptState,
    TERMINAL_STATES,
    UnlockAttempt,
    UnlockSnapshot,
    VALID_TRANSITIONS,
    is_valid_transition,
)
from box_unlock.coordinator.coordinator import (
    UnlockCoordinator,
    failure_message,
)

__all__ = [
    "AttemptFailure",
    "AttemptState",
    "TERMINAL_STATES",
    "UnlockAttempt",
    "UnlockSnapshot",
    "VALID_TRANSITIONS",
    "is_valid_transition",
    "UnlockCoordinator",
    "failure_message",
]
