"""
Testing utilities for box unlocking.

Components:
    MockAudioOutput     - records play/stop, simulates device faults
    Fake* collaborators - signal source, box directory, ledgers
    create_harness      - coordinator wired to fakes
    create_test_signal  - base64 audio payload

Example:
    from box_unlock.testing import create_harness, make_reservation

    h = create_harness(tmp_path)
    snap = await h.coordinator.start_attempt(42, guest, CheckIn(make_reservation()))
    assert h.output.playing
"""

from box_unlock.testing.mock import (
    CallRecord,
    FakeBoxDirectory,
    FakeOrderLedger,
    FakeReservationLedger,
    FakeSignalSource,
    MockAudioOutput,
)
from box_unlock.testing.fixtures import (
    UnlockHarness,
    create_harness,
    create_test_audio,
    create_test_signal,
    make_order,
    make_reservation,
)

__all__ = [
    "CallRecord",
    "FakeBoxDirectory",
    "FakeOrderLedger",
    "FakeReservationLedger",
    "FakeSignalSource",
    "MockAudioOutput",
    "UnlockHarness",
    "create_harness",
    "create_test_audio",
    "create_test_signal",
    "make_order",
    "make_reservation",
]
