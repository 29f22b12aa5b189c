"""Social feeds: recent posts, posts from follows, top streaks, personal stats.

Only one feed is active at a time. switch() cancels the aggregation of the
previous feed before starting the next one, and a result that belongs to a
superseded feed is discarded rather than returned.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum

import structlog

from relayboard.config import Settings
from relayboard.leaderboard.engine import LeaderboardEngine, PlayerStats, RankedEntry
from relayboard.nostr.event import EventKind, SignedEvent
from relayboard.nostr.filters import Filter
from relayboard.profiles.cache import ProfileCache
from relayboard.relays.query import AggregatedFeed, QueryAggregator

logger = structlog.get_logger()

_HEX64 = re.compile(r"^[0-9a-f]{64}$")


class FeedKind(str, Enum):
    SOCIAL = "social"
    FOLLOWS = "follows"
    TOP = "top"


@dataclass(frozen=True)
class FeedView:
    """What the presentation layer renders for one feed."""

    kind: FeedKind
    events: list[SignedEvent] = field(default_factory=list)
    leaderboard: list[RankedEntry] = field(default_factory=list)
    empty_message: str | None = None
    feed: AggregatedFeed | None = None


def parse_contacts(event: SignedEvent) -> list[str]:
    """Followed pubkeys from a kind-3 contact list, in order, without duplicates."""
    seen: dict[str, None] = {}
    for value in event.tag_values("p"):
        key = value.lower()
        if _HEX64.match(key):
            seen.setdefault(key, None)
    return list(seen)


class FeedService:
    """Builds feed views from fan-out queries."""

    def __init__(
        self,
        aggregator: QueryAggregator,
        engine: LeaderboardEngine,
        profiles: ProfileCache,
        settings: Settings,
    ) -> None:
        self._aggregator = aggregator
        self._engine = engine
        self._profiles = profiles
        self._settings = settings
        self._active: asyncio.Task[FeedView] | None = None
        self._generation = 0

    def _notes_filter(self, limit: int, authors: list[str] | None = None) -> Filter:
        return Filter(
            kinds=[EventKind.TEXT_NOTE],
            authors=authors,
            tags={"t": [self._settings.feed_hashtag]},
            limit=limit,
        )

    async def _with_profiles(self, events: list[SignedEvent]) -> None:
        if events:
            await self._profiles.fill(e.pubkey for e in events)

    # ── Feeds ──

    async def social(self) -> FeedView:
        feed = await self._aggregator.query(self._notes_filter(self._settings.feed_limit))
        events = feed.newest_first()
        await self._with_profiles(events)
        message = None if events else f"No {self._settings.feed_hashtag} posts found yet. Be the first to share!"
        return FeedView(kind=FeedKind.SOCIAL, events=events, empty_message=message, feed=feed)

    async def contacts(self, pubkey: str) -> list[str]:
        """The newest contact list of pubkey, as followed pubkeys."""
        feed = await self._aggregator.query(Filter(kinds=[EventKind.CONTACTS], authors=[pubkey], limit=1))
        lists = [e for e in feed if e.kind == EventKind.CONTACTS and e.pubkey == pubkey]
        if not lists:
            return []
        newest = max(lists, key=lambda e: e.created_at)
        return parse_contacts(newest)

    async def follows(self, pubkey: str | None) -> FeedView:
        if not pubkey:
            return FeedView(
                kind=FeedKind.FOLLOWS,
                empty_message="No identity found. Create or import a key to see follows.",
            )
        follows = await self.contacts(pubkey)
        if not follows:
            return FeedView(
                kind=FeedKind.FOLLOWS,
                empty_message=(
                    "No contacts found for this key. "
                    f"Follow some people to see their {self._settings.feed_hashtag} posts here."
                ),
            )
        feed = await self._aggregator.query(self._notes_filter(self._settings.feed_limit, authors=follows))
        events = feed.newest_first()
        await self._with_profiles(events)
        message = None if events else f"No {self._settings.feed_hashtag} posts from your follows yet."
        return FeedView(kind=FeedKind.FOLLOWS, events=events, empty_message=message, feed=feed)

    async def top(self, now: float | None = None) -> FeedView:
        feed = await self._aggregator.query(self._notes_filter(self._settings.leaderboard_query_limit))
        ranked = self._engine.rank(feed, now=now, top_n=self._settings.leaderboard_top_n)
        if ranked:
            await self._profiles.fill(entry.record.author_key for entry in ranked)
        message = (
            None
            if ranked
            else "No streak data found yet. Play and share your results to appear on the leaderboard!"
        )
        return FeedView(kind=FeedKind.TOP, leaderboard=ranked, empty_message=message, feed=feed)

    async def stats(self, pubkey: str, now: float | None = None) -> PlayerStats:
        feed = await self._aggregator.query(
            self._notes_filter(self._settings.stats_query_limit, authors=[pubkey])
        )
        return self._engine.player_stats([e for e in feed if e.pubkey == pubkey], now=now)

    async def load(self, kind: FeedKind | str, pubkey: str | None = None) -> FeedView:
        kind = FeedKind(kind)
        if kind == FeedKind.SOCIAL:
            return await self.social()
        if kind == FeedKind.FOLLOWS:
            return await self.follows(pubkey)
        return await self.top()

    # ── Active feed ──

    def cancel_active(self) -> None:
        """Abandon the in-flight feed, if any. Its result will be discarded."""
        if self._active is not None and not self._active.done():
            logger.debug("feed_cancelled", task=self._active.get_name())
            self._active.cancel()
        self._active = None

    async def switch(self, kind: FeedKind | str, pubkey: str | None = None) -> FeedView | None:
        """Make kind the active feed. Returns None if a later switch superseded this one."""
        self.cancel_active()
        self._generation += 1
        generation = self._generation
        task = asyncio.create_task(self.load(kind, pubkey), name=f"feed:{FeedKind(kind).value}")
        self._active = task
        try:
            view = await task
        except asyncio.CancelledError:
            if generation != self._generation and task.cancelled():
                return None
            raise
        finally:
            if self._active is task:
                self._active = None
        if generation != self._generation:
            return None
        return view
