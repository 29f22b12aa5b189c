"""Query fan-out: one filter set to every relay, results merged by event id.

Architecture:
  relay A --[REQ]--> drain task --\
  relay B --[REQ]--> drain task ----> asyncio.Queue --> dedup --> consumer
  relay C --[REQ]--> drain task --/

Each drain task pushes raw events, then a completion marker (EOSE) or the
exception that ended it. The consumer side is the single suspension point:
it waits on the queue until every relay has finished or the deadline
passes, whichever comes first. Relays that error or never finish simply
contribute nothing more.

Two ways to consume:
  query()   collects everything into an AggregatedFeed.
  stream()  yields events as they arrive (stop-early mode). Wrap it in
            contextlib.aclosing() when you may stop before it ends, so the
            drain tasks are cancelled right away.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from relayboard.nostr.event import SignedEvent, verify_event
from relayboard.nostr.filters import Filter
from relayboard.relays.dedup import EventDeduplicator
from relayboard.relays.relay_set import RelaySet, as_relay_set
from relayboard.relays.transport import RelayTransport

logger = structlog.get_logger()

_DONE = object()


@dataclass
class QueryAccounting:
    """Per-relay bookkeeping for one query."""

    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)
    dropped: int = 0
    duplicates: int = 0


@dataclass(frozen=True)
class AggregatedFeed:
    """Events from one logical query, de-duplicated by id, in arrival order."""

    events: tuple[SignedEvent, ...] = ()
    completed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    timed_out: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.events)

    def __bool__(self) -> bool:
        return bool(self.events)

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self.events]

    def newest_first(self) -> list[SignedEvent]:
        return sorted(self.events, key=lambda e: e.created_at, reverse=True)

    def by_author(self) -> dict[str, list[SignedEvent]]:
        grouped: dict[str, list[SignedEvent]] = {}
        for event in self.events:
            grouped.setdefault(event.pubkey, []).append(event)
        return grouped


class QueryAggregator:
    """Concurrent multi-relay query with dedup and a bounded wait."""

    def __init__(
        self,
        transport: RelayTransport,
        relays: RelaySet,
        timeout: float = 5.0,
        verify_signatures: bool = True,
    ) -> None:
        self._transport = transport
        self._relays = relays
        self._timeout = timeout
        self._verify = verify_signatures

    async def query(
        self,
        filters: Filter | Sequence[Filter],
        relays: RelaySet | Iterable[str] | None = None,
        timeout: float | None = None,
    ) -> AggregatedFeed:
        """Collect every event the relays return before EOSE or the timeout."""
        accounting = QueryAccounting()
        events = [e async for e in self.stream(filters, relays, timeout, accounting=accounting)]
        logger.debug(
            "query_complete",
            events=len(events),
            completed=len(accounting.completed),
            failed=len(accounting.failed),
            timed_out=len(accounting.timed_out),
            duplicates=accounting.duplicates,
        )
        return AggregatedFeed(
            events=tuple(events),
            completed=tuple(accounting.completed),
            failed=tuple(accounting.failed),
            timed_out=tuple(accounting.timed_out),
        )

    async def stream(
        self,
        filters: Filter | Sequence[Filter],
        relays: RelaySet | Iterable[str] | None = None,
        timeout: float | None = None,
        accounting: QueryAccounting | None = None,
    ) -> AsyncIterator[SignedEvent]:
        """Yield de-duplicated events as relays deliver them."""
        filter_list = [filters] if isinstance(filters, Filter) else list(filters)
        relay_set = self._relays if relays is None else as_relay_set(relays)
        wait_for = self._timeout if timeout is None else timeout
        accounting = accounting if accounting is not None else QueryAccounting()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + wait_for
        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        dedup = EventDeduplicator()
        tasks = [
            asyncio.create_task(self._drain(relay, filter_list, queue), name=f"query:{relay}")
            for relay in relay_set
        ]
        remaining = set(relay_set)

        try:
            while remaining:
                left = deadline - loop.time()
                if left <= 0:
                    break
                try:
                    relay, item = await asyncio.wait_for(queue.get(), timeout=left)
                except asyncio.TimeoutError:
                    break

                if item is _DONE:
                    remaining.discard(relay)
                    accounting.completed.append(relay)
                    continue
                if isinstance(item, BaseException):
                    remaining.discard(relay)
                    accounting.failed.append(relay)
                    logger.warning("relay_query_failed", relay=relay, error=str(item))
                    continue

                event = self._accept(relay, item)
                if event is None:
                    accounting.dropped += 1
                    continue
                if dedup.is_duplicate(event.id):
                    accounting.duplicates += 1
                    continue
                yield event

            for relay in relay_set:
                if relay in remaining:
                    accounting.timed_out.append(relay)
                    logger.info("relay_query_timeout", relay=relay, timeout=wait_for)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _drain(self, relay: str, filters: list[Filter], queue: asyncio.Queue[tuple[str, Any]]) -> None:
        try:
            async for raw in self._transport.query(relay, filters):
                queue.put_nowait((relay, raw))
        except Exception as e:
            queue.put_nowait((relay, e))
            return
        queue.put_nowait((relay, _DONE))

    def _accept(self, relay: str, raw: Any) -> SignedEvent | None:
        try:
            event = SignedEvent.model_validate(raw)
        except ValidationError:
            logger.debug("relay_event_malformed", relay=relay)
            return None
        if self._verify and not verify_event(event):
            logger.debug("relay_event_bad_signature", relay=relay, event_id=event.id)
            return None
        return event
