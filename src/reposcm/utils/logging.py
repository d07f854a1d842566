"""
Structured JSONL event logging for reposcm.

Provides an EventLog class that appends timestamped JSON Lines events for
debugging and auditing checkouts. Events are written to
``<job_dir>/<state_dir>/events.jsonl``.

Each log line is valid JSON with the format:
{
  "timestamp": "2026-01-15T12:34:56.789Z",
  "event_type": "checkout_start",
  "data": { ... event-specific data ... }
}
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

EVENTS_FILENAME = "events.jsonl"


class EventType(str, Enum):
    """Types of events that can be logged."""

    CHECKOUT_START = "checkout_start"
    CHECKOUT_END = "checkout_end"
    PHASE_FAILED = "phase_failed"
    SYNC_FAILED = "sync_failed"
    RECOVERY = "recovery"
    RETRY_SYNC = "retry_sync"
    POLL_RESULT = "poll_result"
    ERROR = "error"


class LogEntry(BaseModel):
    """A single structured log entry in JSONL format."""

    model_config = ConfigDict(use_enum_values=True)

    timestamp: datetime = Field(..., description="When the event occurred (ISO 8601 format)")
    event_type: EventType = Field(..., description="Type of event")
    data: dict[str, Any] = Field(default_factory=dict, description="Event-specific data")


class EventLog:
    """
    Structured JSONL log of checkout and poll events.

    Each line is valid JSON that can be queried with jq. Write failures are
    reported as warnings and never interrupt a checkout.

    Example:
        events = EventLog.for_state_dir(Path("/jobs/android/.reposcm"))
        events.log_event(EventType.CHECKOUT_START, {"workspace": "/ws"})
        events.log_checkout_end(success=True, build_number=12)
    """

    def __init__(self, log_file: Path):
        """
        Args:
            log_file: Path to the JSONL log file (created on first write)
        """
        self.log_file = Path(log_file)

    @staticmethod
    def for_state_dir(state_dir: Path) -> "EventLog":
        """Event log stored in a job's state directory."""
        return EventLog(Path(state_dir) / EVENTS_FILENAME)

    def log_event(self, event_type: EventType, data: dict[str, Any] | None = None) -> None:
        """
        Append an event to the JSONL file.

        Args:
            event_type: Type of event (from EventType enum)
            data: Event-specific data (optional, defaults to {})
        """
        if data is None:
            data = {}

        try:
            entry = LogEntry(timestamp=datetime.now(timezone.utc), event_type=event_type, data=data)
            log_line = entry.model_dump_json(exclude_none=True, by_alias=False) + "\n"

            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(log_line)

        except OSError as e:
            logger.warning("Failed to write to event log %s: %s", self.log_file, e)

    def log_checkout_start(self, workspace: Path, manifest_url: str) -> None:
        self.log_event(
            EventType.CHECKOUT_START,
            {"workspace": str(workspace), "manifest_url": manifest_url},
        )

    def log_checkout_end(
        self,
        success: bool,
        build_number: int | None = None,
        changes: int | None = None,
        duration_sec: float | None = None,
    ) -> None:
        """
        Log the end of a checkout.

        Args:
            success: Whether the checkout completed
            build_number: Number of the recorded build (successful checkouts only)
            changes: Number of changed projects against the baseline
            duration_sec: Duration in seconds
        """
        data: dict[str, Any] = {"success": success}
        if build_number is not None:
            data["build_number"] = build_number
        if changes is not None:
            data["changes"] = changes
        if duration_sec is not None:
            data["duration_sec"] = round(duration_sec, 3)
        self.log_event(EventType.CHECKOUT_END, data)

    def log_phase_failed(self, phase: str, message: str, behavior: str | None = None) -> None:
        data: dict[str, Any] = {"phase": phase, "message": message}
        if behavior:
            data["behavior"] = behavior
        self.log_event(EventType.PHASE_FAILED, data)

    def log_sync_failed(self, attempt: int, exit_code: int | None) -> None:
        self.log_event(EventType.SYNC_FAILED, {"attempt": attempt, "exit_code": exit_code})

    def log_recovery(self, exit_code: int | None) -> None:
        self.log_event(EventType.RECOVERY, {"exit_code": exit_code})

    def log_retry_sync(self) -> None:
        self.log_event(EventType.RETRY_SYNC)

    def log_poll_result(self, change: str, reason: str, affected: list[str] | None = None) -> None:
        data: dict[str, Any] = {"change": change, "reason": reason}
        if affected:
            data["affected"] = affected
        self.log_event(EventType.POLL_RESULT, data)

    def log_error(self, message: str, context: dict[str, Any] | None = None) -> None:
        """
        Log an error event.

        Args:
            message: Error message
            context: Additional error context (optional)
        """
        data: dict[str, Any] = {"message": message}
        if context:
            data["context"] = context

        self.log_event(EventType.ERROR, data)

    def read_events(self) -> list[LogEntry]:
        """All entries logged so far, oldest first (unparsable lines skipped)."""
        if not self.log_file.exists():
            return []
        entries: list[LogEntry] = []
        for line in self.log_file.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(LogEntry.model_validate_json(line))
            except ValueError:
                logger.debug("Skipping unparsable event line: %r", line)
        return entries
