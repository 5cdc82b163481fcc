"""
Structured event logging for box unlocking.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, TextIO


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def numeric(self) -> int:
        return {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
        }[self.value]


@dataclass
class LogRecord:
    """A structured log record.

    Attributes:
        level: Log level.
        event: Event name.
        message: Human-readable message.
        timestamp: Unix timestamp.
        data: Bound context plus per-call fields.
    """

    level: str
    event: str
    message: str = ""
    timestamp: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)
    logger_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d.update(d.pop("data", {}))
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class StructuredLogger:
    """Event logger with JSON output and bound context.

    Example:
        logger = StructuredLogger("box_unlock")
        attempt_log = logger.bind(attempt_id="a1", box_id=12)
        attempt_log.attempt_transition("idle", "verifying_ownership")

        # {"level": "info", "event": "attempt_transition",
        #  "attempt_id": "a1", "box_id": 12, "from_state": "idle", ...}
    """

    def __init__(
        self,
        name: str = "box_unlock",
        level: LogLevel = LogLevel.INFO,
        output: TextIO | None = None,
        json_format: bool = True,
    ):
        self.name = name
        self._level = level
        self._output = output
        self._json_format = json_format
        self._context: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger that adds ``context`` to every record."""
        bound = StructuredLogger(
            name=self.name,
            level=self._level,
            output=self._output,
            json_format=self._json_format,
        )
        bound._context = {**self._context, **context}
        bound._lock = self._lock
        return bound

    def _log(self, level: LogLevel, event: str, message: str = "", **data: Any) -> None:
        if level.numeric < self._level.numeric:
            return

        record = LogRecord(
            level=level.value,
            event=event,
            message=message,
            data={**self._context, **data},
            logger_name=self.name,
        )
        self._emit(record)

    def _emit(self, record: LogRecord) -> None:
        # Resolved per call so pytest's capsys sees the redirected stream
        output = self._output or sys.stderr
        with self._lock:
            if self._json_format:
                line = record.to_json()
            else:
                line = self._format_human(record)
            print(line, file=output)

    def _format_human(self, record: LogRecord) -> str:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(record.timestamp))
        parts = [f"[{timestamp}]", f"[{record.level.upper()}]", f"[{record.event}]"]
        if record.message:
            parts.append(record.message)
        if record.data:
            parts.append("(" + " ".join(f"{k}={v}" for k, v in record.data.items()) + ")")
        return " ".join(parts)

    def debug(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.DEBUG, event, message, **data)

    def info(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.INFO, event, message, **data)

    def warning(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.WARNING, event, message, **data)

    def error(self, event: str, message: str = "", **data: Any) -> None:
        self._log(LogLevel.ERROR, event, message, **data)

    # Unlock events

    def attempt_started(self, action: str, role: str, **extra: Any) -> None:
        self.info("attempt_started", f"Starting {action} unlock", action=action, role=role, **extra)

    def attempt_transition(self, from_state: str, to_state: str, **extra: Any) -> None:
        self.info(
            "attempt_transition",
            f"{from_state} -> {to_state}",
            from_state=from_state,
            to_state=to_state,
            **extra,
        )

    def ownership_denied(self, reason: str, message: str, **extra: Any) -> None:
        self.warning("ownership_denied", message, reason=reason, **extra)

    def signal_requested(self, host_id: int, duration_ms: float, **extra: Any) -> None:
        self.info(
            "signal_requested",
            f"Open signal received in {duration_ms:.1f}ms",
            host_id=host_id,
            duration_ms=duration_ms,
            **extra,
        )

    def attempt_failed(self, kind: str, error: BaseException, **extra: Any) -> None:
        self.error(
            "attempt_failed",
            str(error),
            kind=kind,
            error_type=type(error).__name__,
            **extra,
        )

    def attempt_succeeded(self, action: str, message: str, **extra: Any) -> None:
        self.info("attempt_succeeded", message, action=action, **extra)


_global_logger: StructuredLogger | None = None


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    output: TextIO | None = None,
    json_format: bool = True,
) -> StructuredLogger:
    """Configure the global structured logger.

    Args:
        level: Log level, as an enum or its lowercase name.
        output: Output stream (default: stderr).
        json_format: Use JSON format.

    Returns:
        Configured logger.
    """
    global _global_logger

    if isinstance(level, str):
        level = LogLevel(level.lower())

    _global_logger = StructuredLogger(
        name="box_unlock",
        level=level,
        output=output,
        json_format=json_format,
    )
    return _global_logger


def get_logger() -> StructuredLogger:
    """Get the global structured logger, creating a default one if needed."""
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger()
    return _global_logger
