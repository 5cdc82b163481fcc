"""
Test doubles for unlock collaborators.

Features:
    - Call recording
    - Failure injection
    - Controllable latency (asyncio.Event gates)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import numpy as np

from box_unlock.errors import BackendError
from box_unlock.models import BoxRecord, LedgerResponse


@dataclass
class CallRecord:
    """Record of a fake collaborator call."""

    method: str
    args: tuple = field(default_factory=tuple)
    timestamp: float = field(default_factory=time.time)


class _Recorder:
    """Shared call recording, failure injection and gating."""

    def __init__(self) -> None:
        self.calls: list[CallRecord] = []
        self._failures: dict[str, BaseException] = {}
        self._gates: dict[str, asyncio.Event] = {}

    def fail_on(self, method: str, error: BaseException | None = None) -> None:
        """Make every call to ``method`` raise ``error`` (default BackendError)."""
        self._failures[method] = error or BackendError(f"{method} unavailable", status_code=503)

    def hold(self, method: str) -> asyncio.Event:
        """Block calls to ``method`` until the returned event is set."""
        gate = asyncio.Event()
        self._gates[method] = gate
        return gate

    def calls_to(self, method: str) -> list[CallRecord]:
        return [c for c in self.calls if c.method == method]

    def call_count(self, method: str) -> int:
        return len(self.calls_to(method))

    def reset(self) -> None:
        self.calls.clear()
        self._failures.clear()
        self._gates.clear()

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append(CallRecord(method=method, args=args))
        gate = self._gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self._failures.get(method)
        if error is not None:
            raise error


class FakeSignalSource(_Recorder):
    """Backend open endpoint returning a fixed payload."""

    def __init__(self, data: str | None = None, body: dict[str, Any] | None = None):
        super().__init__()
        if body is None:
            body = {"data": data, "result": "ok", "errorNumber": 0, "tokenFormat": "audio"}
        self.body = body

    async def open_box(self, box_id: int, host_id: int) -> dict[str, Any]:
        await self._enter("open_box", box_id, host_id)
        return dict(self.body)


class FakeBoxDirectory(_Recorder):
    """Host inventory keyed by host id."""

    def __init__(self, boxes: dict[int, list[int]] | None = None):
        super().__init__()
        self.boxes = boxes or {}

    async def boxes_by_host(self, host_id: int) -> list[BoxRecord]:
        await self._enter("boxes_by_host", host_id)
        return [BoxRecord(box_id=b, owner_id=host_id) for b in self.boxes.get(host_id, [])]


class FakeReservationLedger(_Recorder):
    """Reservation ledger that succeeds unless told otherwise."""

    def __init__(self) -> None:
        super().__init__()
        self.responses: dict[str, LedgerResponse] = {}

    def respond(self, method: str, success: bool, message: str = "") -> None:
        self.responses[method] = LedgerResponse(success=success, message=message)

    def _response(self, method: str, default: str) -> LedgerResponse:
        return self.responses.get(method, LedgerResponse(success=True, message=default))

    async def check_in(self, reservation_id: int) -> LedgerResponse:
        await self._enter("check_in", reservation_id)
        return self._response("check_in", "Checked in")

    async def check_out(self, reservation_id: int) -> LedgerResponse:
        await self._enter("check_out", reservation_id)
        return self._response("check_out", "Checked out")

    async def update_timestamp(self, reservation_id: int, field: str, value: datetime) -> LedgerResponse:
        await self._enter("update_timestamp", reservation_id, field, value)
        return self._response("update_timestamp", "Updated")


class FakeOrderLedger(_Recorder):
    """Order ledger that succeeds unless told otherwise."""

    def __init__(self) -> None:
        super().__init__()
        self.response = LedgerResponse(success=True, message="Fulfilled")

    async def fulfill(self, order_id: int, notes: str | None) -> LedgerResponse:
        await self._enter("fulfill", order_id, notes)
        return self.response


class MockAudioOutput:
    """
    Audio output that records play/stop calls instead of using a device.

    Example:
        output = MockAudioOutput()
        emitter = SignalEmitter(output)
        ...
        output.fault(RuntimeError("device unplugged"))
        assert not output.playing
    """

    def __init__(self, fail_on_play: BaseException | None = None):
        self.fail_on_play = fail_on_play
        self.calls: list[CallRecord] = []
        self.playing = False
        self.samples: np.ndarray | None = None
        self.sample_rate: int | None = None
        self._on_error = None

    def play_loop(self, samples: np.ndarray, sample_rate: int, on_error) -> None:
        self.calls.append(CallRecord(method="play_loop", args=(len(samples), sample_rate)))
        if self.fail_on_play is not None:
            raise self.fail_on_play
        self.samples = samples
        self.sample_rate = sample_rate
        self.playing = True
        self._on_error = on_error

    def stop(self) -> None:
        self.calls.append(CallRecord(method="stop"))
        self.playing = False
        self._on_error = None

    def fault(self, error: BaseException) -> None:
        """Simulate a device fault while looping."""
        if self._on_error is not None:
            self._on_error(error)

    @property
    def play_count(self) -> int:
        return sum(1 for c in self.calls if c.method == "play_loop")

    @property
    def stop_count(self) -> int:
        return sum(1 for c in self.calls if c.method == "stop")
