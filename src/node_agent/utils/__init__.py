"""Utility modules for logging and event recording."""
from .audit_log import EventRecord, EventRecorder, setup_event_logging
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
)

__all__ = [
    "EventRecord",
    "EventRecorder",
    "setup_event_logging",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
]
