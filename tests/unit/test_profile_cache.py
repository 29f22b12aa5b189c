"""Tests for the session profile cache."""

import pytest

from helpers.events import NOW, PUBKEY_A, PUBKEY_B, PUBKEY_C, SECRET_A, SECRET_B, SECRET_C, metadata
from helpers.relays import RELAY_1, RELAY_2
from relayboard.exceptions import MalformedMetadata
from relayboard.nostr.keys import npub_encode, shorten_npub
from relayboard.profiles.cache import ProfileCache, ProfileEntry, parse_profile


class TestParseProfile:
    """Test profile metadata parsing."""

    def test_fields(self):
        entry = parse_profile(
            metadata(
                SECRET_A,
                {
                    "name": "spidey",
                    "display_name": "Spider Fan",
                    "picture": "https://img.example/a.png",
                    "nip05": "spidey@example.com",
                    "about": "I play every day",
                },
            )
        )
        assert entry == ProfileEntry(
            display_name="Spider Fan",
            name="spidey",
            avatar_url="https://img.example/a.png",
            handle="spidey@example.com",
            bio="I play every day",
        )

    def test_name_falls_back_both_ways(self):
        assert parse_profile(metadata(SECRET_A, {"name": "only-name"})).display_name == "only-name"
        assert parse_profile(metadata(SECRET_A, {"display_name": "Only Display"})).name == "Only Display"

    def test_non_string_fields_ignored(self):
        entry = parse_profile(metadata(SECRET_A, {"name": 42, "picture": ["x"]}))
        assert entry.name is None
        assert entry.avatar_url is None

    def test_not_json(self):
        with pytest.raises(MalformedMetadata):
            parse_profile(metadata(SECRET_A, "{broken"))

    def test_not_an_object(self):
        with pytest.raises(MalformedMetadata):
            parse_profile(metadata(SECRET_A, "[1, 2]"))


@pytest.mark.asyncio
class TestFill:
    """Test profile fetching."""

    async def test_fetches_and_caches(self, aggregator, transport):
        transport.store(RELAY_1, metadata(SECRET_A, {"name": "alice"}))
        transport.store(RELAY_2, metadata(SECRET_B, {"name": "bob"}))
        cache = ProfileCache(aggregator)

        stored = await cache.fill([PUBKEY_A, PUBKEY_B, PUBKEY_A])

        assert set(stored) == {PUBKEY_A, PUBKEY_B}
        assert cache.get(PUBKEY_A).name == "alice"
        assert PUBKEY_B in cache
        assert len(cache) == 2

    async def test_only_missing_keys_are_queried(self, aggregator, transport):
        transport.store(RELAY_1, metadata(SECRET_A, {"name": "alice"}))
        cache = ProfileCache(aggregator)
        await cache.fill([PUBKEY_A])
        transport.queries.clear()

        assert await cache.fill([PUBKEY_A]) == {}
        assert transport.queries == []

        await cache.fill([PUBKEY_A, PUBKEY_B])
        _, filters = transport.queries[0]
        assert filters[0].authors == [PUBKEY_B]

    async def test_newest_metadata_wins(self, aggregator, transport):
        transport.store(RELAY_1, metadata(SECRET_A, {"name": "old"}, created_at=NOW - 100))
        transport.store(RELAY_2, metadata(SECRET_A, {"name": "new"}, created_at=NOW))
        cache = ProfileCache(aggregator)
        await cache.fill([PUBKEY_A])
        assert cache.get(PUBKEY_A).name == "new"

    async def test_malformed_is_absent(self, aggregator, transport):
        transport.store(RELAY_1, metadata(SECRET_A, "not json at all"))
        cache = ProfileCache(aggregator)
        assert await cache.fill([PUBKEY_A]) == {}
        assert cache.get(PUBKEY_A) is None
        assert cache.display_name(PUBKEY_A) == shorten_npub(npub_encode(PUBKEY_A))

    async def test_listener_told_about_new_profiles(self, aggregator, transport):
        transport.store(RELAY_1, metadata(SECRET_C, {"name": "carol"}))
        cache = ProfileCache(aggregator)
        seen = []
        cache.on_profile(lambda key, entry: seen.append((key, entry.name)))
        await cache.fill([PUBKEY_C])
        assert seen == [(PUBKEY_C, "carol")]

    async def test_no_metadata_anywhere(self, aggregator):
        cache = ProfileCache(aggregator)
        assert await cache.fill([PUBKEY_A]) == {}
        assert len(cache) == 0


class TestDisplay:
    """Test display name and handle fallbacks."""

    def test_display_name_and_handle(self, aggregator):
        cache = ProfileCache(aggregator)
        cache.set(PUBKEY_A, ProfileEntry(display_name="Alice", handle="alice@example.com"))
        assert cache.display_name(PUBKEY_A) == "Alice"
        assert cache.handle(PUBKEY_A) == "alice@example.com"

    def test_fallback_to_short_npub(self, aggregator):
        cache = ProfileCache(aggregator)
        cache.set(PUBKEY_B, ProfileEntry())
        short = shorten_npub(npub_encode(PUBKEY_B))
        assert cache.display_name(PUBKEY_B) == short
        assert cache.handle(PUBKEY_B) == short
        assert short.startswith("npub1")
        assert ".." in short

    def test_fallback_for_non_hex_key(self, aggregator):
        cache = ProfileCache(aggregator)
        assert cache.display_name("zz") == "zz"
        assert cache.handle("not-a-hex-public-key") == "not-a-hex-pu"
