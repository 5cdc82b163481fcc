"""
Signal emitter.

Plays a decoded open signal on an unbounded loop until stopped. At most
one signal plays at a time; starting a new one stops the previous.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable
from uuid import uuid4

import numpy as np

from box_unlock.errors import PlaybackError
from box_unlock.signal.client import SignalResource

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], None]


@runtime_checkable
class AudioOutput(Protocol):
    """Audio device the emitter drives."""

    def play_loop(self, samples: np.ndarray, sample_rate: int, on_error: ErrorCallback) -> None:
        """Start looping playback. Raises if the device cannot start."""
        ...

    def stop(self) -> None:
        """Stop playback. Must be safe when nothing is playing."""
        ...


class SoundDeviceOutput:
    """Default output using a ``sounddevice`` output stream.

    The stream callback loops the samples and watches the status flags.
    Device faults are reported through ``on_error`` from the audio thread.

    ``sounddevice`` is imported on first use so that importing the
    package does not require PortAudio.
    """

    def __init__(self, device: int | str | None = None, blocksize: int = 0):
        self.device = device
        self.blocksize = blocksize
        self._stream = None

    def play_loop(self, samples: np.ndarray, sample_rate: int, on_error: ErrorCallback) -> None:
        import sounddevice as sd

        self.stop()

        data = np.asarray(samples, dtype=np.float32)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        if len(data) == 0:
            raise ValueError("Open signal has no samples")

        position = 0
        faulted = False

        def report(error: BaseException) -> None:
            nonlocal faulted
            if faulted or self._stream is not stream:
                return
            faulted = True
            on_error(error)

        def callback(outdata, frames, time_info, status) -> None:
            nonlocal position
            if status.output_underflow or status.output_overflow:
                report(RuntimeError(f"audio device fault: {status}"))
            filled = 0
            while filled < frames:
                chunk = min(frames - filled, len(data) - position)
                outdata[filled:filled + chunk] = data[position:position + chunk]
                filled += chunk
                position = (position + chunk) % len(data)

        def finished() -> None:
            # Also fires after stop(); by then the stream is no longer ours
            report(RuntimeError("audio stream ended unexpectedly"))

        stream = sd.OutputStream(
            samplerate=sample_rate,
            channels=data.shape[1],
            dtype="float32",
            device=self.device,
            blocksize=self.blocksize,
            callback=callback,
            finished_callback=finished,
        )
        self._stream = stream
        try:
            stream.start()
        except Exception:
            self._stream = None
            stream.close()
            raise

    def stop(self) -> None:
        stream = self._stream
        if stream is None:
            return

        self._stream = None
        try:
            stream.stop()
        finally:
            stream.close()


@dataclass
class EmitterHandle:
    """A running (or finished) emission."""
    resource: SignalResource
    handle_id: str = field(default_factory=lambda: str(uuid4()))
    started_at: float = field(default_factory=time.time)
    active: bool = True


class SignalEmitter:
    """Loops open signals through an audio output.

    Example:
        emitter = SignalEmitter()
        handle = emitter.start(resource, on_error=report)
        ...
        emitter.stop()
    """

    def __init__(self, output: AudioOutput | None = None):
        self.output = output or SoundDeviceOutput()
        self._active: EmitterHandle | None = None

    @property
    def is_emitting(self) -> bool:
        return self._active is not None

    @property
    def active_handle(self) -> EmitterHandle | None:
        return self._active

    def start(
        self,
        resource: SignalResource,
        on_error: Callable[[PlaybackError], None] | None = None,
    ) -> EmitterHandle:
        """Start looping ``resource``.

        Raises:
            PlaybackError: The output could not start. ``resource`` has
                been released.
        """
        if self._active is not None:
            self.stop(self._active)

        handle = EmitterHandle(resource=resource)

        def device_fault(error: BaseException) -> None:
            if not handle.active:
                return
            logger.warning("Playback fault on %s: %s", handle.handle_id, error)
            if on_error is not None:
                on_error(PlaybackError(f"Box opening signal sent, but audio error: {error}", cause=error))

        try:
            self.output.play_loop(resource.samples, resource.sample_rate, device_fault)
        except Exception as e:
            handle.active = False
            resource.release()
            raise PlaybackError(f"Box opening signal sent, but audio error: {e}", cause=e) from e

        self._active = handle
        logger.debug("Emitting %s (%.2fs loop)", handle.handle_id, resource.duration_seconds)
        return handle

    def stop(self, handle: EmitterHandle | None = None) -> None:
        """Stop emission and release the resource. Idempotent.

        With no argument, stops whatever is playing. A stale handle is
        only released; the current emission keeps playing.
        """
        target = handle or self._active
        if target is None:
            return

        if target is self._active:
            self._active = None
            try:
                self.output.stop()
            except Exception as e:
                logger.warning("Audio output failed to stop cleanly: %s", e)

        target.active = False
        target.resource.release()
