"""
Observability for box unlocking.

Components:
    StructuredLogger - JSON structured event logging
    configure_logging / get_logger - global logger management

Example:
    from box_unlock.monitoring import configure_logging

    logger = configure_logging(level="debug", json_format=False)
    logger.info("ready", message="Coordinator ready")
"""

from box_unlock.monitoring.logging import (
    StructuredLogger,
    LogLevel,
    LogRecord,
    configure_logging,
    get_logger,
)

__all__ = [
    "StructuredLogger",
    "LogLevel",
    "LogRecord",
    "configure_logging",
    "get_logger",
]
