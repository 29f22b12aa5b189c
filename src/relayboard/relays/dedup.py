"""Deduplication filter for relay events.

The same event is usually stored on several relays, so a fan-out query
sees it once per relay. The first copy wins; later copies with the same
id are dropped no matter what the relay sent alongside them.

One filter lives for exactly one logical query. Nothing is shared across
queries, so no eviction window is needed.
"""

from __future__ import annotations


class EventDeduplicator:
    """Per-query deduplication of event ids."""

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._dedup_hits = 0

    def is_duplicate(self, event_id: str) -> bool:
        """Check if an event_id has already been seen in this query.

        Returns True if this is a duplicate (should be dropped).
        Returns False if this is new (should be kept).
        Side effect: records the event_id for future checks.
        """
        if event_id in self._seen:
            self._dedup_hits += 1
            return True
        self._seen.add(event_id)
        return False

    @property
    def stats(self) -> dict[str, int]:
        return {
            "tracked": len(self._seen),
            "dedup_hits": self._dedup_hits,
        }
