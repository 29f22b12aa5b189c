"""Streak leaderboard over a merged, replicated event feed.

Score posts carry their stats as tags:
    ["streak", "3"]      current streak when the post was made
    ["maxStreak", "9"]   best streak ever achieved
    ["played", "40"]     total games played
    ["won", "31"]        total games won

Reduction is deterministic given the feed order: for each author the event
with the highest maxStreak is the "best record" (ties keep the first one
seen), and the author's most recent event supplies the current streak.
A current streak is reported as 0 once the author's last post is more than
`grace_periods` periods old ("did not play yesterday or today").

Ranking: best streak DESC, then author key ASC. Never time-based, so equal
scores always come out in the same order.
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from relayboard.nostr.event import SignedEvent

STREAK_TAG = "streak"
MAX_STREAK_TAG = "maxStreak"
PLAYED_TAG = "played"
WON_TAG = "won"

DEFAULT_PERIOD_SECONDS = 86_400
DEFAULT_GRACE_PERIODS = 2
DEFAULT_TOP_N = 50

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int_tag(value: str | None) -> int:
    """Leading integer of a tag value, 0 when there is none ("12abc" -> 12, "x" -> 0)."""
    if not value:
        return 0
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class ScoreTags:
    streak: int = 0
    max_streak: int = 0
    played: int = 0
    won: int = 0

    @classmethod
    def from_event(cls, event: SignedEvent) -> ScoreTags:
        return cls(
            streak=parse_int_tag(event.tag_value(STREAK_TAG)),
            max_streak=parse_int_tag(event.tag_value(MAX_STREAK_TAG)),
            played=parse_int_tag(event.tag_value(PLAYED_TAG)),
            won=parse_int_tag(event.tag_value(WON_TAG)),
        )


def win_rate(won: int, played: int) -> int:
    """Win percentage rounded half up, in [0, 100]. 0 when nothing was played."""
    if played <= 0:
        return 0
    pct = math.floor(won / played * 100 + 0.5)
    return max(0, min(100, pct))


def days_playing(first_at: float, last_at: float, period_seconds: int = DEFAULT_PERIOD_SECONDS) -> int:
    """Inclusive number of periods between first and last post, at least 1."""
    return max(1, math.ceil((last_at - first_at) / period_seconds) + 1)


def is_streak_expired(
    last_at: float,
    now: float,
    period_seconds: int = DEFAULT_PERIOD_SECONDS,
    grace_periods: int = DEFAULT_GRACE_PERIODS,
) -> bool:
    """True when the last post is older than the grace window."""
    return now - last_at > grace_periods * period_seconds


@dataclass(frozen=True)
class LeaderboardRecord:
    """One author's reduced standing."""

    author_key: str
    best_max_streak: int
    current_streak: int
    total_played: int
    total_won: int
    first_seen_at: int
    last_seen_at: int
    event_id: str
    streak_expired: bool = False
    win_rate: int = 0
    days_playing: int = 1


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    record: LeaderboardRecord


@dataclass(frozen=True)
class PlayerStats:
    """The personal stats view for one author."""

    current_streak: int = 0
    best_streak: int = 0
    total_played: int = 0
    total_won: int = 0
    win_rate: int = 0
    days_playing: int = 0
    post_count: int = 0
    streak_expired: bool = False
    last_played_at: int | None = None


@dataclass
class _AuthorState:
    latest: SignedEvent
    first_at: int
    last_at: int
    best: SignedEvent | None = None
    best_tags: ScoreTags = field(default_factory=ScoreTags)


class LeaderboardEngine:
    """Best-record reduction, ranking and personal stats."""

    def __init__(
        self,
        period_seconds: int = DEFAULT_PERIOD_SECONDS,
        grace_periods: int = DEFAULT_GRACE_PERIODS,
        top_n: int = DEFAULT_TOP_N,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.period_seconds = period_seconds
        self.grace_periods = grace_periods
        self.top_n = top_n
        self._clock = clock

    def reduce(self, events: Iterable[SignedEvent], now: float | None = None) -> list[LeaderboardRecord]:
        """One record per author that has at least one post with maxStreak > 0."""
        if now is None:
            now = self._clock()

        states: dict[str, _AuthorState] = {}
        for event in events:
            tags = ScoreTags.from_event(event)
            state = states.get(event.pubkey)
            if state is None:
                state = states[event.pubkey] = _AuthorState(
                    latest=event,
                    first_at=event.created_at,
                    last_at=event.created_at,
                )
            else:
                if event.created_at > state.latest.created_at:
                    state.latest = event
                state.first_at = min(state.first_at, event.created_at)
                state.last_at = max(state.last_at, event.created_at)
            # Posts without maxStreak still count as activity, never as a best record
            if tags.max_streak > 0 and (state.best is None or tags.max_streak > state.best_tags.max_streak):
                state.best, state.best_tags = event, tags

        records = []
        for author, state in states.items():
            if state.best is None:
                continue
            expired = is_streak_expired(state.last_at, now, self.period_seconds, self.grace_periods)
            current = 0 if expired else ScoreTags.from_event(state.latest).streak
            records.append(
                LeaderboardRecord(
                    author_key=author,
                    best_max_streak=state.best_tags.max_streak,
                    current_streak=current,
                    total_played=state.best_tags.played,
                    total_won=state.best_tags.won,
                    first_seen_at=state.first_at,
                    last_seen_at=state.last_at,
                    event_id=state.best.id,
                    streak_expired=expired,
                    win_rate=win_rate(state.best_tags.won, state.best_tags.played),
                    days_playing=days_playing(state.first_at, state.last_at, self.period_seconds),
                )
            )
        return records

    def rank(
        self,
        events: Iterable[SignedEvent],
        now: float | None = None,
        top_n: int | None = None,
    ) -> list[RankedEntry]:
        """Top-N records by best streak, ranks 1-indexed."""
        records = self.reduce(events, now=now)
        records.sort(key=lambda r: (-r.best_max_streak, r.author_key))
        limit = self.top_n if top_n is None else top_n
        return [RankedEntry(rank=idx + 1, record=r) for idx, r in enumerate(records[:limit])]

    def player_stats(self, events: Iterable[SignedEvent], now: float | None = None) -> PlayerStats:
        """Stats across one author's posts. Totals are maxima, since tags are cumulative."""
        if now is None:
            now = self._clock()

        ordered = sorted(events, key=lambda e: e.created_at, reverse=True)
        if not ordered:
            return PlayerStats()

        best = played = won = 0
        for event in ordered:
            tags = ScoreTags.from_event(event)
            best = max(best, tags.max_streak)
            played = max(played, tags.played)
            won = max(won, tags.won)

        last_at = ordered[0].created_at
        first_at = ordered[-1].created_at
        expired = is_streak_expired(last_at, now, self.period_seconds, self.grace_periods)
        raw_current = ScoreTags.from_event(ordered[0]).streak

        return PlayerStats(
            current_streak=0 if expired else raw_current,
            best_streak=best,
            total_played=played,
            total_won=won,
            win_rate=win_rate(won, played),
            days_playing=days_playing(first_at, last_at, self.period_seconds),
            post_count=len(ordered),
            streak_expired=expired and raw_current > 0,
            last_played_at=last_at,
        )
