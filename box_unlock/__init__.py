"""
Box Unlock - Remote unlocking of storage boxes with one-time acoustic signals.

Flow:
    QR scan → OwnershipVerifier → UnlockSignalClient → SignalEmitter (loops)
            → human confirmation → ActionStrategy → ledger

Public API (stable):
    UnlockCoordinator   - State machine for one unlock attempt at a time
    BoxUnlockClient     - Coordinator wired to the REST backend
    UnlockConfig        - Configuration (env-backed defaults)
    Principal, Role     - Who is opening the box
    CheckIn, CheckOut, FulfillOrder, NoAction - Pending actions

Components:
    ownership       - OwnershipVerifier
    signal          - UnlockSignalClient, SignalEmitter
    strategies      - CheckIn/CheckOut/FulfillOrder/NoOp strategies
    backend         - httpx clients for boxes, reservations, orders
    monitoring      - Structured logging
    audit           - Transition audit trail
    testing         - Fakes, MockAudioOutput, fixtures

Example:
    from box_unlock import BoxUnlockClient, CheckIn, Principal, Role

    async with BoxUnlockClient() as client:
        reservation = await client.get_reservation(12)
        guest = Principal(100, Role.GUEST)
        snap = await client.coordinator.start_from_qr("42", guest, CheckIn(reservation))
        snap = await client.coordinator.confirm(True)
        print(snap.message)
"""

__version__ = "1.0.0"

from box_unlock.config import UnlockConfig
from box_unlock.errors import (
    ErrorKind,
    OwnershipFailure,
    UnlockError,
    CallerError,
    InvalidQRCodeError,
    AttemptActiveError,
    CoordinatorClosedError,
    InvalidTransitionError,
    OwnershipError,
    SignalError,
    NetworkError,
    DecodeError,
    PlaybackError,
    PhysicalOpenDenied,
    ActionError,
    BackendError,
)
from box_unlock.models import (
    Role,
    Principal,
    Reservation,
    ExtraOrder,
    CheckIn,
    CheckOut,
    FulfillOrder,
    NoAction,
    ActionOutcome,
    LedgerResponse,
)
from box_unlock.qr import parse_box_qr
from box_unlock.ownership import OwnershipVerifier
from box_unlock.signal import UnlockSignalClient, SignalEmitter
from box_unlock.strategies import (
    ActionStrategy,
    CheckInStrategy,
    CheckOutStrategy,
    FulfillOrderStrategy,
    NoOpStrategy,
    StrategyRegistry,
)
from box_unlock.coordinator import (
    AttemptState,
    UnlockCoordinator,
    UnlockSnapshot,
)
from box_unlock.adapters.api import BoxUnlockClient

__all__ = [
    "__version__",
    "UnlockConfig",
    # Errors
    "ErrorKind",
    "OwnershipFailure",
    "UnlockError",
    "CallerError",
    "InvalidQRCodeError",
    "AttemptActiveError",
    "CoordinatorClosedError",
    "InvalidTransitionError",
    "OwnershipError",
    "SignalError",
    "NetworkError",
    "DecodeError",
    "PlaybackError",
    "PhysicalOpenDenied",
    "ActionError",
    "BackendError",
    # Models
    "Role",
    "Principal",
    "Reservation",
    "ExtraOrder",
    "CheckIn",
    "CheckOut",
    "FulfillOrder",
    "NoAction",
    "ActionOutcome",
    "LedgerResponse",
    # Components
    "parse_box_qr",
    "OwnershipVerifier",
    "UnlockSignalClient",
    "SignalEmitter",
    "ActionStrategy",
    "CheckInStrategy",
    "CheckOutStrategy",
    "FulfillOrderStrategy",
    "NoOpStrategy",
    "StrategyRegistry",
    "AttemptState",
    "UnlockCoordinator",
    "UnlockSnapshot",
    "BoxUnlockClient",
]
