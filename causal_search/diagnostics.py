"""
Structured diagnostics for a search run.

Every decision the pipeline makes that a caller may want to audit (edge
removals, skipped orientations, oracle failures, legality verdicts) is
recorded as a DiagnosticEvent and mirrored to the module logger.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class EventKind(Enum):
    EDGE_REMOVED = "edge_removed"
    ORACLE_FAILURE = "oracle_failure"
    UNTESTED_EDGE = "untested_edge"
    KNOWLEDGE_ORIENTATION = "knowledge_orientation"
    COLLIDER_ORIENTED = "collider_oriented"
    NONCOLLIDER = "noncollider"
    AMBIGUOUS_TRIPLE = "ambiguous_triple"
    RULE_APPLIED = "rule_applied"
    KNOWLEDGE_CONFLICT = "knowledge_conflict"
    ORIENTATION_CONFLICT = "orientation_conflict"
    ILLEGAL_RESULT = "illegal_result"
    CANCELLED = "cancelled"


_LEVELS = {
    EventKind.EDGE_REMOVED: logging.DEBUG,
    EventKind.NONCOLLIDER: logging.DEBUG,
    EventKind.ORACLE_FAILURE: logging.WARNING,
    EventKind.UNTESTED_EDGE: logging.WARNING,
    EventKind.KNOWLEDGE_CONFLICT: logging.WARNING,
    EventKind.ILLEGAL_RESULT: logging.WARNING,
    EventKind.CANCELLED: logging.WARNING,
}


@dataclass(frozen=True)
class DiagnosticEvent:
    kind: EventKind
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self):
        return f"[{self.kind.value}] {self.message}"


class Diagnostics:
    """Append-only event log shared by the stages of one search run."""

    def __init__(self):
        self._events: List[DiagnosticEvent] = []
        self._lock = threading.Lock()

    def record(self, kind: EventKind, message: str, **data) -> DiagnosticEvent:
        event = DiagnosticEvent(kind, message, data)
        with self._lock:
            self._events.append(event)
        logger.log(_LEVELS.get(kind, logging.INFO), "%s", event)
        return event

    def events(self, kind: Optional[EventKind] = None) -> List[DiagnosticEvent]:
        with self._lock:
            return [e for e in self._events if kind is None or e.kind == kind]

    def count(self, kind: EventKind) -> int:
        return len(self.events(kind))

    def summary(self) -> Dict[str, int]:
        with self._lock:
            counts = Counter(e.kind.value for e in self._events)
        return dict(sorted(counts.items()))

    def __iter__(self) -> Iterator[DiagnosticEvent]:
        return iter(self.events())

    def __len__(self):
        return len(self._events)


class CancellationToken:
    """Cooperative cancellation flag, polled at depth and pass boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
