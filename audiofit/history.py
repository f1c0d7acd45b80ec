"""
Append-only run log for audiofit.

Every fitting run writes structured records (run start, each attempt,
termination reason, teardown) to a JSON-lines file so a user can inspect
what happened to a file after the fact. This is separate from process
logging: it is meant to be read back and shared.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class LogCategory(str, Enum):
    REENCODE = "REENCODE"
    API_CALL = "API_CALL"
    FILE_OP = "FILE_OP"
    ERROR = "ERROR"


@dataclass
class LogEntry:
    timestamp: datetime
    category: LogCategory
    event: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "event": self.event,
            "message": self.message,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LogEntry":
        try:
            category = LogCategory(raw.get("category", "ERROR"))
        except ValueError:
            category = LogCategory.ERROR
        return cls(
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            category=category,
            event=raw.get("event", ""),
            message=raw.get("message", ""),
            data=raw.get("data") or {},
        )

    def format_line(self) -> str:
        stamp = self.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return f"[{stamp}] [{self.category.value}] {self.message}"


class HistoryStore:
    """Thread-safe JSON-lines store of LogEntry records."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(
        self,
        category: LogCategory,
        event: str,
        message: str,
        **data: Any,
    ) -> LogEntry:
        """
        Append one record.

        Write failures are logged and swallowed: the run log is advisory and
        must never fail a transcoding run.
        """
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            category=category,
            event=event,
            message=message,
            data=data,
        )
        line = json.dumps(entry.to_dict(), default=str)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.warning(f"[History] Could not append to {self.path}: {e}")
        return entry

    def read_all(self) -> List[LogEntry]:
        """All parseable records, oldest first. Corrupt lines are skipped."""
        with self._lock:
            if not self.path.exists():
                return []
            try:
                lines = self.path.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                logger.warning(f"[History] Could not read {self.path}: {e}")
                return []

        entries = []
        for line in lines:
            if not line.strip():
                continue
            try:
                entries.append(LogEntry.from_dict(json.loads(line)))
            except (ValueError, KeyError, TypeError):
                logger.debug(f"[History] Skipping unreadable line: {line[:80]}")
        return entries

    def as_text(self, category: Optional[LogCategory] = None) -> str:
        """Plain-text rendering for sharing."""
        return "\n".join(
            entry.format_line()
            for entry in self.read_all()
            if category is None or entry.category == category
        )

    def clear(self) -> None:
        with self._lock:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[History] Could not clear {self.path}: {e}")
