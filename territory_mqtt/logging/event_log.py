"""
Event Log
=========

Bounded Context: User-facing narration of a tracking session.

Bounded in-memory log of human-readable entries, shown in the UI and
exportable as text. Separate from StructuredLogger: this is what the
walker reads, not what the log aggregator indexes.

Design:
- Ring buffer (collections.deque, maxlen) drops oldest entries first
- Thread-safe (sampling thread writes, control thread exports)
- Subscribers notified on every append
- Structured counterparts of narrated lines are emitted by the narrator,
  not by this log
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Deque, List, Optional
import uuid

logger = logging.getLogger(__name__)

DISPLAY_TIME_FORMAT = "%H:%M:%S"
EXPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_ENTRIES = 200


class LogLevel(str, Enum):
    """Event log entry level."""
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class LogEntry:
    """
    Single narrated entry.

    Attributes:
        message: Human-readable text
        level: Entry level
        timestamp: Local time of the entry
        entry_id: Unique identifier
    """

    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime = field(default_factory=datetime.now)
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def display_string(self) -> str:
        """On-screen form: [HH:MM:SS] [LEVEL] message."""
        return f"[{self.timestamp.strftime(DISPLAY_TIME_FORMAT)}] [{self.level.value}] {self.message}"

    @property
    def export_string(self) -> str:
        """Same as display_string with the full date."""
        return f"[{self.timestamp.strftime(EXPORT_TIME_FORMAT)}] [{self.level.value}] {self.message}"

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict."""
        return {
            'entry_id': self.entry_id,
            'timestamp': self.timestamp.isoformat(),
            'level': self.level.value,
            'message': self.message,
        }


EntryListener = Callable[[LogEntry], None]


class EventLog:
    """
    Bounded, thread-safe narration log.

    Usage:
        log = EventLog(max_entries=200)
        log.info("Tracking started")
        log.success("Territory claimed")
        print(log.text)
        report = log.export()
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        title: str = "Territory Tracking Log"
    ):
        """
        Args:
            max_entries: Ring capacity
            title: Header line of export()
        """
        if max_entries <= 0:
            raise ValueError(f"max_entries must be > 0, got {max_entries}")
        self.max_entries = max_entries
        self.title = title
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._listeners: List[EntryListener] = []

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        """Append an entry; the oldest entry is dropped once full."""
        entry = LogEntry(message=message, level=level)
        with self._lock:
            self._entries.append(entry)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Event log listener failed: {e}", exc_info=True)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.log(message, LogLevel.INFO)

    def success(self, message: str) -> LogEntry:
        return self.log(message, LogLevel.SUCCESS)

    def warning(self, message: str) -> LogEntry:
        return self.log(message, LogLevel.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.log(message, LogLevel.ERROR)

    def subscribe(self, listener: EntryListener) -> None:
        """Call listener(entry) after every append."""
        with self._lock:
            self._listeners.append(listener)

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()

    @property
    def entries(self) -> List[LogEntry]:
        """Copy of the entries, oldest first."""
        with self._lock:
            return list(self._entries)

    @property
    def text(self) -> str:
        """Display strings joined by newlines."""
        return "\n".join(entry.display_string for entry in self.entries)

    def export(self, now: Optional[datetime] = None) -> str:
        """
        Plain-text report: header (title, export time, entry count), a
        blank line, then one export_string per line.
        """
        entries = self.entries
        exported_at = (now or datetime.now()).strftime(EXPORT_TIME_FORMAT)
        lines = [
            f"=== {self.title} ===",
            f"Export time: {exported_at}",
            f"Entries: {len(entries)}",
            "",
        ]
        lines.extend(entry.export_string for entry in entries)
        return "\n".join(lines) + "\n"

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
