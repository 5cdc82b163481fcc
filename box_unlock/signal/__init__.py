"""
Open signal handling.

    UnlockSignalClient  - request and decode one-time open signals
    SignalEmitter       - loop a decoded signal until stopped
"""

from box_unlock.signal.client import (
    SignalPayload,
    SignalResource,
    UnlockSignalClient,
    sniff_suffix,
)
from box_unlock.signal.emitter import (
    AudioOutput,
    EmitterHandle,
    SignalEmitter,
    SoundDeviceOutput,
)

__all__ = [
    "SignalPayload",
    "SignalResource",
    "UnlockSignalClient",
    "sniff_suffix",
    "AudioOutput",
    "EmitterHandle",
    "SignalEmitter",
    "SoundDeviceOutput",
]
