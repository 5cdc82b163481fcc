"""
Unlock signal client.

Requests a one-time open signal from the backend and decodes the
base64 audio it carries into a playable waveform. The waveform is
backed by a temporary file that must be released when playback ends.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf

from box_unlock.backend.base import SignalSource
from box_unlock.errors import BackendError, DecodeError, NetworkError
from box_unlock.monitoring.logging import StructuredLogger, get_logger

logger = logging.getLogger(__name__)

TEMP_PREFIX = "box_open_audio"

# Leading bytes -> container suffix
_MAGIC_SUFFIXES: tuple[tuple[bytes, str], ...] = (
    (b"RIFF", ".wav"),
    (b"OggS", ".ogg"),
    (b"fLaC", ".flac"),
)


@dataclass
class SignalPayload:
    """Opaque open signal bound to one request.

    A payload decodes exactly once.
    """
    box_id: int
    host_id: int
    data: str
    token_format: str | None = None
    result: Any = None
    received_at: float = field(default_factory=time.time)
    consumed: bool = False


@dataclass
class SignalResource:
    """Decoded signal waveform plus the temporary file behind it."""
    path: Path
    samples: np.ndarray = field(repr=False)
    sample_rate: int
    released: bool = False

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / self.sample_rate if self.sample_rate else 0.0

    def release(self) -> None:
        """Delete the backing file. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove signal file %s: %s", self.path, e)


def sniff_suffix(audio: bytes, default: str = ".mp3") -> str:
    """Pick a file suffix from the audio container's magic bytes."""
    for magic, suffix in _MAGIC_SUFFIXES:
        if audio.startswith(magic):
            return suffix
    return default


class UnlockSignalClient:
    """Fetches and decodes open signals.

    Example:
        client = UnlockSignalClient(BoxApi(api), cache_dir=config.cache_dir)
        payload = await client.request_signal(box_id=12, host_id=7)
        resource = client.decode(payload)
    """

    def __init__(
        self,
        source: SignalSource,
        cache_dir: Path | str | None = None,
        default_suffix: str = ".mp3",
        events: StructuredLogger | None = None,
    ):
        self._source = source
        self.cache_dir = Path(cache_dir) if cache_dir else Path(tempfile.gettempdir())
        self.default_suffix = default_suffix
        self._events = events

    @property
    def events(self) -> StructuredLogger:
        return self._events or get_logger()

    async def request_signal(self, box_id: int, host_id: int) -> SignalPayload:
        """Issue exactly one open request.

        Raises:
            NetworkError: The request did not complete.
            DecodeError: The response carried no signal data.
        """
        start = time.perf_counter()
        try:
            body = await self._source.open_box(box_id, host_id)
        except BackendError as e:
            raise NetworkError(f"Failed to request open signal: {e.message}", cause=e) from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, str) or not data:
            raise DecodeError("Open signal response contained no audio data")

        self.events.signal_requested(
            host_id,
            (time.perf_counter() - start) * 1000,
            box_id=box_id,
        )
        return SignalPayload(
            box_id=box_id,
            host_id=host_id,
            data=data,
            token_format=body.get("tokenFormat"),
            result=body.get("result"),
        )

    def decode(self, payload: SignalPayload) -> SignalResource:
        """Decode a payload into a waveform backed by a temporary file.

        Raises:
            DecodeError: The payload was already used or is not valid audio.
                No temporary file is left behind.
        """
        if payload.consumed:
            raise DecodeError("Open signal has already been used")
        payload.consumed = True

        # Line-wrapped (MIME style) payloads are valid
        data = "".join(payload.data.split())
        try:
            audio = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError("Open signal is not valid base64", cause=e) from e
        if not audio:
            raise DecodeError("Open signal is empty")

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix=TEMP_PREFIX,
            suffix=sniff_suffix(audio, self.default_suffix),
            dir=self.cache_dir,
            delete=False,
        ) as f:
            f.write(audio)
            path = Path(f.name)

        try:
            samples, sample_rate = sf.read(str(path), dtype="float32")
        except (RuntimeError, TypeError, ValueError) as e:
            _discard(path)
            raise DecodeError(f"Could not decode open signal: {e}", cause=e) from e

        if len(samples) == 0:
            _discard(path)
            raise DecodeError("Open signal contains no samples")

        logger.debug("Decoded signal for box %s: %d samples @ %d Hz", payload.box_id, len(samples), sample_rate)
        return SignalResource(path=path, samples=samples, sample_rate=int(sample_rate))


def _discard(path: Path) -> None:
    try:
        os.unlink(path)
    except OSError:
        pass
