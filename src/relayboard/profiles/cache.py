"""Author profile cache (kind-0 metadata), keyed by public key.

Lives for one client session with no eviction. fill() fetches only keys
that are not cached yet. A malformed metadata payload means "no profile"
and is never surfaced as an error.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog

from relayboard.exceptions import MalformedMetadata
from relayboard.nostr.event import EventKind, SignedEvent
from relayboard.nostr.filters import Filter
from relayboard.nostr.keys import npub_encode, shorten_npub
from relayboard.relays.query import QueryAggregator

logger = structlog.get_logger()

ProfileListener = Callable[[str, "ProfileEntry"], None]


@dataclass(frozen=True)
class ProfileEntry:
    display_name: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    handle: str | None = None
    bio: str | None = None


def _text(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def _short_key(author_key: str) -> str:
    try:
        return shorten_npub(npub_encode(author_key))
    except ValueError:
        # Not hex; show the raw key
        return author_key[:12]


def parse_profile(event: SignedEvent) -> ProfileEntry:
    """
    Parse a kind-0 event's JSON content.

    Raises:
        MalformedMetadata: If the content is not a JSON object.
    """
    try:
        data = json.loads(event.content)
    except json.JSONDecodeError as e:
        raise MalformedMetadata(f"metadata for {event.pubkey[:12]}... is not JSON") from e
    if not isinstance(data, dict):
        raise MalformedMetadata(f"metadata for {event.pubkey[:12]}... is not an object")

    name = _text(data.get("name"))
    display_name = _text(data.get("display_name"))
    return ProfileEntry(
        display_name=display_name or name,
        name=name or display_name,
        avatar_url=_text(data.get("picture")),
        handle=_text(data.get("nip05")),
        bio=_text(data.get("about")),
    )


class ProfileCache:
    """Session-lifetime memo of author profiles."""

    def __init__(self, aggregator: QueryAggregator, timeout: float | None = None) -> None:
        self._aggregator = aggregator
        self._timeout = timeout
        self._entries: dict[str, ProfileEntry] = {}
        self._listeners: list[ProfileListener] = []

    def __contains__(self, author_key: object) -> bool:
        return author_key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, author_key: str) -> ProfileEntry | None:
        return self._entries.get(author_key)

    def set(self, author_key: str, entry: ProfileEntry) -> None:
        self._entries[author_key] = entry
        for listener in list(self._listeners):
            listener(author_key, entry)

    def on_profile(self, listener: ProfileListener) -> None:
        """Be told about every profile stored from now on."""
        self._listeners.append(listener)

    def display_name(self, author_key: str) -> str:
        """Profile display name, falling back to the shortened npub."""
        entry = self._entries.get(author_key)
        if entry and entry.display_name:
            return entry.display_name
        return _short_key(author_key)

    def handle(self, author_key: str) -> str:
        entry = self._entries.get(author_key)
        if entry and entry.handle:
            return entry.handle
        return _short_key(author_key)

    async def fill(self, author_keys: Iterable[str]) -> dict[str, ProfileEntry]:
        """Fetch metadata for the uncached keys. Returns the newly stored entries."""
        needed = sorted({k for k in author_keys if k not in self._entries})
        if not needed:
            return {}

        feed = await self._aggregator.query(
            Filter(kinds=[EventKind.METADATA], authors=needed, limit=len(needed)),
            timeout=self._timeout,
        )

        # Metadata is replaceable: keep the newest event per author
        newest: dict[str, SignedEvent] = {}
        wanted = set(needed)
        for event in feed:
            if event.kind != EventKind.METADATA or event.pubkey not in wanted:
                continue
            current = newest.get(event.pubkey)
            if current is None or event.created_at > current.created_at:
                newest[event.pubkey] = event

        stored: dict[str, ProfileEntry] = {}
        for author_key, event in newest.items():
            try:
                entry = parse_profile(event)
            except MalformedMetadata as e:
                logger.debug("profile_metadata_malformed", author=author_key, error=str(e))
                continue
            self.set(author_key, entry)
            stored[author_key] = entry

        logger.debug("profiles_filled", requested=len(needed), stored=len(stored))
        return stored
