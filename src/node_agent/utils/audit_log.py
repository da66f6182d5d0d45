"""Event logging for reconciliation steps.

Provides change tracking with:
- One structured event per completed sub-step (file written, unit stopped, ...)
- One terminal success/failure event per reconciliation pass
- Structured JSON log format in a separate event log file
"""
import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Create dedicated event logger
event_logger = logging.getLogger("node_agent.events")


def setup_event_logging(log_dir: str) -> None:
    """Configure event logging to file.

    Args:
        log_dir: Directory for the event log
    """
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    event_logger.setLevel(logging.INFO)
    event_logger.handlers.clear()

    handler = RotatingFileHandler(
        Path(log_dir) / "events.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
    )

    # Use JSON format for machine-readability
    handler.setFormatter(logging.Formatter("%(message)s"))
    event_logger.addHandler(handler)

    # Don't propagate to the main log
    event_logger.propagate = False


@dataclass
class EventRecord:
    """Record of a completed reconciliation step."""
    timestamp: str
    node: str
    reason: str  # FileApplied, UnitEnabled, UnitStopped, ConfigApplied, ...
    message: str
    target: str = ""
    success: bool = True

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "EventRecord":
        """Parse from JSON string."""
        return cls(**json.loads(json_str))


class EventRecorder:
    """Record reconciliation events for a node."""

    def __init__(self, node_name: str, keep: int = 1000):
        self.node_name = node_name
        self.keep = keep
        self.records: list[EventRecord] = []

    def record(
        self,
        reason: str,
        message: str,
        target: str = "",
        success: bool = True,
    ) -> EventRecord:
        """Log an event.

        Args:
            reason: Short machine-readable reason (e.g., "UnitRestarted")
            message: Human-readable description
            target: Path or unit name the event is about
            success: Whether the step succeeded

        Returns:
            The EventRecord that was logged
        """
        record = EventRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            node=self.node_name,
            reason=reason,
            message=message,
            target=target,
            success=success,
        )

        event_logger.info(record.to_json())

        self.records.append(record)
        if len(self.records) > self.keep:
            del self.records[: len(self.records) - self.keep]

        return record

    def reasons(self, target: Optional[str] = None) -> list[str]:
        """Reasons of recorded events, optionally for a single target."""
        return [r.reason for r in self.records if target is None or r.target == target]
