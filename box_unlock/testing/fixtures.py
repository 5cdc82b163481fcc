"""
Test Fixtures - Common fixtures for testing.

Provides:
    - Test signal generation (base64 audio payloads)
    - Reservation / order builders
    - A fully wired coordinator over fakes
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from box_unlock.audit import AuditTrail
from box_unlock.coordinator import UnlockCoordinator
from box_unlock.models import (
    ExtraOrder,
    OrderStatus,
    Reservation,
    ReservationBox,
    ReservationDetail,
    ReservationStatus,
    UserRef,
)
from box_unlock.monitoring.logging import StructuredLogger
from box_unlock.ownership import OwnershipVerifier
from box_unlock.signal.client import UnlockSignalClient
from box_unlock.signal.emitter import SignalEmitter
from box_unlock.strategies import StrategyRegistry
from box_unlock.testing.mock import (
    FakeBoxDirectory,
    FakeOrderLedger,
    FakeReservationLedger,
    FakeSignalSource,
    MockAudioOutput,
)


def create_test_audio(
    duration: float = 0.25,
    sample_rate: int = 8000,
    frequency: float = 1000.0,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Create a float32 sine tone."""
    num_samples = int(duration * sample_rate)
    t = np.linspace(0, duration, num_samples, endpoint=False, dtype=np.float32)
    return (np.sin(2 * np.pi * frequency * t) * amplitude).astype(np.float32)


def create_test_signal(
    duration: float = 0.25,
    sample_rate: int = 8000,
    audio_format: str = "WAV",
) -> str:
    """Create a base64 audio payload like the open endpoint returns."""
    buffer = io.BytesIO()
    sf.write(buffer, create_test_audio(duration, sample_rate), sample_rate, format=audio_format)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def make_reservation(
    reservation_id: int = 1,
    box_id: str | int | None = 42,
    host_id: int | None = 7,
    guest_id: int = 100,
    status: ReservationStatus = ReservationStatus.PENDING,
) -> Reservation:
    return Reservation(
        id=reservation_id,
        box=ReservationBox(box_id=None if box_id is None else str(box_id)),
        host=UserRef(id=host_id, username="host") if host_id is not None else None,
        guest=UserRef(id=guest_id, username="guest"),
        status=status,
    )


def make_order(
    order_id: int = 5,
    host_id: int | None = 7,
    reservation_id: int = 1,
    status: OrderStatus = OrderStatus.PENDING,
) -> ExtraOrder:
    return ExtraOrder(
        id=order_id,
        status=status,
        reservation=ReservationDetail(
            id=reservation_id,
            host=UserRef(id=host_id, username="host") if host_id is not None else None,
        ),
    )


@dataclass
class UnlockHarness:
    """A coordinator wired to fakes, with handles on each fake."""
    coordinator: UnlockCoordinator
    source: FakeSignalSource
    boxes: FakeBoxDirectory
    reservations: FakeReservationLedger
    orders: FakeOrderLedger
    output: MockAudioOutput
    emitter: SignalEmitter
    cache_dir: Path

    def signal_files(self) -> list[Path]:
        """Decoded signal files currently on disk."""
        return sorted(self.cache_dir.glob("box_open_audio*"))


def create_harness(
    cache_dir: Path,
    boxes: dict[int, list[int]] | None = None,
    signal_data: str | None = None,
    events: StructuredLogger | None = None,
) -> UnlockHarness:
    source = FakeSignalSource(data=signal_data if signal_data is not None else create_test_signal())
    directory = FakeBoxDirectory(boxes if boxes is not None else {7: [42]})
    reservations = FakeReservationLedger()
    orders = FakeOrderLedger()
    output = MockAudioOutput()
    emitter = SignalEmitter(output)

    coordinator = UnlockCoordinator(
        verifier=OwnershipVerifier(directory, events=events),
        signals=UnlockSignalClient(source, cache_dir=cache_dir, events=events),
        emitter=emitter,
        strategies=StrategyRegistry.default(reservations, orders),
        audit=AuditTrail(),
        events=events,
    )
    return UnlockHarness(
        coordinator=coordinator,
        source=source,
        boxes=directory,
        reservations=reservations,
        orders=orders,
        output=output,
        emitter=emitter,
        cache_dir=Path(cache_dir),
    )
