"""
Append-only audit log of actor/action events.

One instance lives for the whole process and is handed to every component
that records actions. Entries are never modified or removed.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from photo_manager.utils.metrics import audit_entries_total
from photo_manager.utils.timeutils import utcnow

logger = logging.getLogger("photo_manager.audit")

# Actor names used by system components
SYSTEM_ACTOR = "System"


@dataclass(frozen=True)
class AuditEntry:
    """A single recorded action."""

    timestamp: datetime
    actor: str
    action: str

    @property
    def line(self) -> str:
        """Rendered form: ``[ISO-8601 timestamp] actor: action``."""
        return f"[{self.timestamp.isoformat()}] {self.actor}: {self.action}"

    def __str__(self) -> str:
        return self.line


class AuditLog:
    """
    Thread-safe, append-only list of AuditEntry.

    Appends from concurrent callers are serialised; snapshots are immutable
    tuples taken at call time.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow
        self._entries: List[AuditEntry] = []
        self._lock = threading.Lock()

    def append(self, actor: str, action: str) -> AuditEntry:
        """Timestamp and record an action."""
        with self._lock:
            entry = AuditEntry(timestamp=self._clock(), actor=actor, action=action)
            self._entries.append(entry)
        audit_entries_total.inc()
        logger.info(entry.line, extra={"event": "audit", "actor": actor})
        return entry

    def all_entries(self) -> Tuple[AuditEntry, ...]:
        """Snapshot of every entry, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def entries_for_actor(self, actor_id: str) -> Tuple[AuditEntry, ...]:
        """
        Entries whose rendered line contains ``actor_id``.

        This is a substring match: an id that appears inside another actor's
        name or inside an action text (e.g. "Changed package for user X")
        is included too. Use entries_by_actor for an exact actor match.
        """
        return tuple(e for e in self.all_entries() if actor_id in e.line)

    def entries_by_actor(self, actor: str) -> Tuple[AuditEntry, ...]:
        """Entries recorded by exactly ``actor``."""
        return tuple(e for e in self.all_entries() if e.actor == actor)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
