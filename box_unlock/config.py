"""
Configuration for box unlocking.

Values default from the environment so the CLI and embedding apps
share one source of truth.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_API_URL = "http://localhost:3000"


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class UnlockConfig:
    """Box unlock configuration.

    Args:
        api_url: Base URL of the backend API.
        api_token: Bearer token sent with every request.
        connect_timeout: Seconds to wait for a connection.
        read_timeout: Seconds to wait for a response (also used for writes).
        cache_dir: Where decoded signal files are written.
        signal_suffix: File suffix used when the payload header is not recognised.
        log_level: Structured logger level.
        json_logs: Emit JSON log lines instead of human-readable ones.

    Example:
        config = UnlockConfig(api_url="https://boxes.example.com", api_token=token)
    """
    api_url: str = field(default_factory=lambda: os.environ.get("BOX_UNLOCK_API_URL", DEFAULT_API_URL))
    api_token: str | None = field(default_factory=lambda: os.environ.get("BOX_UNLOCK_API_TOKEN"))
    connect_timeout: float = field(default_factory=lambda: _env_float("BOX_UNLOCK_CONNECT_TIMEOUT", 30.0))
    read_timeout: float = field(default_factory=lambda: _env_float("BOX_UNLOCK_READ_TIMEOUT", 60.0))
    cache_dir: Path = field(default_factory=lambda: Path(os.environ.get("BOX_UNLOCK_CACHE_DIR", tempfile.gettempdir())))
    signal_suffix: str = ".mp3"
    log_level: str = field(default_factory=lambda: os.environ.get("BOX_UNLOCK_LOG_LEVEL", "info"))
    json_logs: bool = True

    def __post_init__(self):
        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive, got {self.connect_timeout}")
        if self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be positive, got {self.read_timeout}")
        if not self.signal_suffix.startswith("."):
            self.signal_suffix = "." + self.signal_suffix
        self.api_url = self.api_url.rstrip("/")
        self.cache_dir = Path(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
