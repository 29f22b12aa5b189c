"""Score note construction.

A score post is a kind-1 note whose tags make it findable and rankable:
    ["series", ...]     constant per deployment, groups games for leaderboards
    ["game", ...]       per-game identifier
    ["launchdate", ...] fixed launch date of the game
    ["score", "1200"]
    ["t", "word5"]      hashtag the feeds query on, defaults to feed_hashtag
    ["streak", ...] ["maxStreak", ...] ["played", ...] ["won", ...]  (optional stats)
    ["p", <pubkey>, <npub>]   mention of the promoting account
"""

from __future__ import annotations

import time
from functools import lru_cache

import structlog
from pydantic import BaseModel

from relayboard.config import Settings
from relayboard.leaderboard.engine import MAX_STREAK_TAG, PLAYED_TAG, STREAK_TAG, WON_TAG
from relayboard.nostr.event import EventKind, UnsignedEvent
from relayboard.nostr.keys import npub_decode

logger = structlog.get_logger()


class ScoreContext(BaseModel):
    """Where and how a score was achieved. Unset fields fall back to Settings."""

    base_url: str | None = None
    series: str | None = None
    game: str | None = None
    launchdate: str | None = None
    hashtag: str | None = None
    streak: int | None = None
    max_streak: int | None = None
    played: int | None = None
    won: int | None = None


@lru_cache(maxsize=8)
def tagged_pubkey(npub: str) -> str | None:
    """Hex pubkey for the promoted npub, or None if it does not decode."""
    try:
        return npub_decode(npub)
    except ValueError as e:
        logger.warning("tagged_npub_decode_failed", npub=npub, error=str(e))
        return None


def build_score_content(score: int | str, base_url: str, settings: Settings) -> str:
    return "\n".join(
        [
            f"Check out my score: {score}!",
            "",
            f"At {base_url}",
            "",
            settings.promo_line,
            f"nostr:{settings.tagged_npub}",
        ]
    )


def build_score_tags(score: int | str, context: ScoreContext, settings: Settings) -> list[list[str]]:
    tags = [
        ["series", context.series or settings.series],
        ["game", context.game or settings.game],
        ["launchdate", context.launchdate or settings.launchdate],
        ["score", str(score)],
    ]
    hashtag = context.hashtag or settings.feed_hashtag
    if hashtag:
        tags.append(["t", hashtag])
    stats = (
        (STREAK_TAG, context.streak),
        (MAX_STREAK_TAG, context.max_streak),
        (PLAYED_TAG, context.played),
        (WON_TAG, context.won),
    )
    tags.extend([name, str(value)] for name, value in stats if value is not None)

    pubkey = tagged_pubkey(settings.tagged_npub) if settings.tagged_npub else None
    if pubkey:
        tags.append(["p", pubkey, settings.tagged_npub])
    return tags


def build_score_event(
    score: int | str,
    context: ScoreContext | None,
    settings: Settings,
    created_at: int | None = None,
) -> UnsignedEvent:
    """Unsigned kind-1 score note, ready for a Signer."""
    context = context or ScoreContext()
    base_url = context.base_url or settings.base_url
    return UnsignedEvent(
        kind=EventKind.TEXT_NOTE,
        created_at=created_at if created_at is not None else int(time.time()),
        tags=build_score_tags(score, context, settings),
        content=build_score_content(score, base_url, settings),
    )
