"""
Shared fixtures for box_unlock tests.

Provides:
    - A coordinator harness wired to fakes
    - Principals for each role
    - A captured structured-log stream
    - Helpers for driving coroutines from sync tests
"""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from box_unlock.models import Principal, Role
from box_unlock.monitoring.logging import LogLevel, StructuredLogger
from box_unlock.signal.client import SignalResource
from box_unlock.testing import create_harness, create_test_audio


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks advance to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def log_events(stream: io.StringIO) -> list[dict]:
    """Parse JSON log lines written to ``stream``."""
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def events(log_stream) -> StructuredLogger:
    return StructuredLogger(level=LogLevel.DEBUG, output=log_stream)


@pytest.fixture
def signal_dir(tmp_path) -> Path:
    return tmp_path / "signals"


@pytest.fixture
def harness(signal_dir, events):
    return create_harness(signal_dir, events=events)


@pytest.fixture
def guest() -> Principal:
    return Principal(id=100, role=Role.GUEST, username="guest")


@pytest.fixture
def host() -> Principal:
    return Principal(id=7, role=Role.HOST, username="host")


@pytest.fixture
def cleaner() -> Principal:
    return Principal(id=300, role=Role.CLEANER, username="cleaner")


@pytest.fixture
def make_resource(tmp_path):
    """Build SignalResources backed by real files."""
    counter = iter(range(1000))

    def _make() -> SignalResource:
        path = tmp_path / f"box_open_audio_{next(counter)}.wav"
        samples = create_test_audio()
        sf.write(str(path), samples, 8000)
        return SignalResource(path=path, samples=samples.astype(np.float32), sample_rate=8000)

    return _make
