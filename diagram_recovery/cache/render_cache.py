"""
Render Outcome Cache

Per-diagram cache of the last committed render outcome, keyed by diagram id
and a hash of the whitespace-collapsed normalized text. Re-submitting
unchanged markup (a re-render of the same chat message, for instance) is
served without touching the renderer.

Architectural Design:
- One entry per diagram id; a new input for the id invalidates the old entry
- Content hash keys, so whitespace-only edits still hit
- LRU eviction across ids, bounded by configuration
"""

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

from diagram_recovery.render_outcome import RenderOutcome

logger = logging.getLogger(__name__)


class RenderOutcomeCache:
    """LRU cache of RenderOutcome values, one slot per diagram id"""

    def __init__(self, max_entries: int = 128):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Tuple[str, RenderOutcome]]" = OrderedDict()
        self._lock = threading.RLock()

        # Statistics
        self.hits = 0
        self.misses = 0
        self.invalidations = 0
        self.evictions = 0
        self.cache_saves = 0

    @staticmethod
    def make_key(normalized_text: str) -> str:
        """Content key for normalized text; whitespace runs are insignificant"""
        collapsed = " ".join(normalized_text.split())
        return hashlib.sha256(collapsed.encode("utf-8")).hexdigest()

    def get(self, diagram_id: str, key: str) -> Optional[RenderOutcome]:
        with self._lock:
            entry = self._entries.get(diagram_id)
            if entry is None:
                self.misses += 1
                return None

            cached_key, outcome = entry
            if cached_key != key:
                # Input changed for this diagram; the old outcome is stale
                del self._entries[diagram_id]
                self.invalidations += 1
                self.misses += 1
                logger.debug(f"Cache invalidated for {diagram_id}")
                return None

            self._entries.move_to_end(diagram_id)
            self.hits += 1
            logger.debug(f"🎯 Cache hit for {diagram_id}")
            return outcome

    def store(self, diagram_id: str, key: str, outcome: RenderOutcome) -> None:
        with self._lock:
            self._entries[diagram_id] = (key, outcome)
            self._entries.move_to_end(diagram_id)
            self.cache_saves += 1

            while len(self._entries) > self.max_entries:
                evicted_id, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Evicted cached outcome for {evicted_id}")

    def discard(self, diagram_id: str) -> bool:
        with self._lock:
            if self._entries.pop(diagram_id, None) is not None:
                self.invalidations += 1
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, diagram_id: str) -> bool:
        return diagram_id in self._entries

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache performance statistics"""
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0.0

        return {
            'hits': self.hits,
            'misses': self.misses,
            'invalidations': self.invalidations,
            'evictions': self.evictions,
            'total_requests': total_requests,
            'hit_rate_percent': hit_rate,
            'cache_saves': self.cache_saves,
            'cached_diagrams': len(self._entries),
            'max_entries': self.max_entries,
        }
