"""Utility modules for reposcm."""

from .envvars import build_environment, expand, parse_assignments
from .logging import EventLog, EventType, LogEntry

__all__ = [
    "build_environment",
    "expand",
    "parse_assignments",
    "EventLog",
    "EventType",
    "LogEntry",
]
