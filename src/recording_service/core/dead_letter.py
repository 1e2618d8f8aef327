"""
Dead-Letter Sink

Collects secondary effects that failed after the primary state change went
through (object deletes, audit writes, exhausted post-processing jobs) so
they can be reconciled instead of being lost in the logs.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

STORAGE_DELETE = "storage_delete"
ACCESS_LOG = "access_log"
POST_PROCESSING = "post_processing"


@dataclass
class FailedEffect:
    """A secondary effect that could not be applied"""

    kind: str
    recording_id: str
    error: str
    payload: Dict[str, Any] = field(default_factory=dict)
    failed_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "recording_id": self.recording_id,
            "error": self.error,
            "payload": self.payload,
            "failed_at": self.failed_at.isoformat(),
        }


class DeadLetterSink:
    """Bounded in-memory store of failed secondary effects.

    The oldest entries are dropped once ``max_entries`` is reached.
    """

    def __init__(self, max_entries: int = 1000):
        self._entries: Deque[FailedEffect] = deque(maxlen=max_entries)

    def record(
        self,
        kind: str,
        recording_id: str,
        error: Exception,
        payload: Optional[Dict[str, Any]] = None,
    ) -> FailedEffect:
        entry = FailedEffect(
            kind=kind,
            recording_id=recording_id,
            error=f"{type(error).__name__}: {error}",
            payload=payload or {},
        )
        self._entries.append(entry)

        logger.error(f"Dead-lettered {kind} for recording {recording_id}: {entry.error}")
        return entry

    def entries(self, kind: Optional[str] = None) -> List[FailedEffect]:
        """Recorded failures, oldest first, optionally filtered by kind"""
        if kind is None:
            return list(self._entries)
        return [e for e in self._entries if e.kind == kind]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
