"""
In-memory dataset sessions.

Each upload creates (or replaces) the dataset of one session. Sessions expire
after a period without access, and the oldest session is evicted when the
store is full. Recommendations are computed once per stored dataset.
"""
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from chartsmith.core.config import get_settings
from chartsmith.core.schemas import ChartRecommendation, Dataset

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    dataset: Dataset
    timestamp: float
    recommendations: Optional[List[ChartRecommendation]] = field(default=None)


class DatasetStore:
    """Thread-safe session store with TTL and bounded capacity."""

    def __init__(self, ttl: float = 3600, max_sessions: int = 100):
        self._sessions: "OrderedDict[str, SessionEntry]" = OrderedDict()
        self._lock = Lock()
        self.ttl = ttl
        self.max_sessions = max_sessions

    @staticmethod
    def new_session_id() -> str:
        return uuid.uuid4().hex

    def _expired(self, entry: SessionEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def _purge_expired(self, now: float) -> int:
        # Caller holds the lock
        expired = [sid for sid, entry in self._sessions.items() if self._expired(entry, now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Expired {len(expired)} dataset sessions")
        return len(expired)

    def _live_entry(self, session_id: str) -> Optional[SessionEntry]:
        # Caller holds the lock; touching an entry renews its TTL
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        now = time.time()
        if self._expired(entry, now):
            del self._sessions[session_id]
            logger.debug(f"Session expired: {session_id}")
            return None
        entry.timestamp = now
        self._sessions.move_to_end(session_id)
        return entry

    def put(self, session_id: str, dataset: Dataset) -> None:
        """Store a dataset, replacing whatever the session held before."""
        with self._lock:
            now = time.time()
            self._purge_expired(now)
            self._sessions.pop(session_id, None)
            self._sessions[session_id] = SessionEntry(dataset=dataset, timestamp=now)
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info(f"Session store full, evicted {evicted}")

    def get(self, session_id: str) -> Optional[Dataset]:
        with self._lock:
            entry = self._live_entry(session_id)
            return entry.dataset if entry else None

    def get_recommendations(
        self,
        session_id: str,
        compute: Callable[[Dataset], List[ChartRecommendation]],
    ) -> Optional[List[ChartRecommendation]]:
        """
        Recommendations for the session's dataset, computed on first use.

        Returns None when the session is unknown or expired.
        """
        with self._lock:
            entry = self._live_entry(session_id)
            if entry is None:
                return None
            if entry.recommendations is not None:
                return entry.recommendations
            dataset = entry.dataset

        # Computed outside the lock; a concurrent caller may compute it too
        recommendations = compute(dataset)

        with self._lock:
            entry = self._sessions.get(session_id)
            # Only memoize if the session still holds the same dataset
            if entry is not None and entry.dataset is dataset:
                entry.recommendations = recommendations
        return recommendations

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def clear(self):
        with self._lock:
            self._sessions.clear()
            logger.info("Dataset store cleared")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            self._purge_expired(time.time())
            return {
                'sessions': len(self._sessions),
                'max_sessions': self.max_sessions,
                'ttl_seconds': self.ttl,
            }


_store: Optional[DatasetStore] = None


def get_dataset_store() -> DatasetStore:
    """Process-wide store sized from settings."""
    global _store
    if _store is None:
        settings = get_settings()
        _store = DatasetStore(ttl=settings.dataset_ttl_seconds, max_sessions=settings.max_sessions)
    return _store
