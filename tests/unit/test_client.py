"""End-to-end tests for the session client over in-process relays."""

import pytest

from helpers.events import DAY, NOW, PUBKEY_B, SECRET_B, contact_list, score_post
from helpers.relays import HANG, RELAY_1, RELAY_3, RELAYS, FakeExternalSigner, FakeRelayTransport
from relayboard import FeedKind, NoSignerAvailable, RelayboardClient, ScoreContext
from relayboard.identity.models import AuthMode
from relayboard.identity.storage import MemoryStorage
from relayboard.nostr.event import verify_event
from relayboard.relays.publish import RelayStatus

pytestmark = pytest.mark.asyncio


@pytest.fixture
def capability():
    return FakeExternalSigner(SECRET_B)


@pytest.fixture
def client(settings, transport, capability):
    return RelayboardClient(
        settings=settings,
        storage=MemoryStorage(),
        transport=transport,
        capability_provider=lambda: capability,
        clock=lambda: NOW,
    )


class TestLifecycle:
    """Test client construction and shutdown."""

    async def test_context_manager_creates_identity_and_closes(self, settings):
        transport = FakeRelayTransport()
        async with RelayboardClient(settings=settings, storage=MemoryStorage(), transport=transport) as client:
            assert client.identity.get() is not None
        assert transport.closed

    async def test_default_storage_is_identity_file(self, settings, transport, tmp_path):
        client = RelayboardClient(settings=settings, transport=transport)
        identity = client.ensure_identity()
        assert (tmp_path / "identity.json").exists()
        assert RelayboardClient(settings=settings, transport=transport).ensure_identity() == identity

    async def test_relays_from_settings(self, client):
        assert list(client.relays) == RELAYS


class TestPublishScore:
    """Test score publishing through the client."""

    async def test_signed_and_sent_everywhere(self, client, transport):
        identity = client.ensure_identity()
        result = await client.publish_score(1200, ScoreContext(streak=3, max_streak=9, played=12, won=10))

        assert result.signer_mode == "local"
        assert result.ok_count == 3
        assert result.event.pubkey == identity.public_key
        assert verify_event(result.event)
        assert result.event.tag_value("maxStreak") == "9"
        for relay in RELAYS:
            assert transport.published[relay] == [result.event]

    async def test_partial_failure(self, client, transport):
        transport.publish_behaviour[RELAY_3] = HANG
        result = await client.publish_score(10)
        assert [r.status for r in result.relay_results] == [RelayStatus.OK, RelayStatus.OK, RelayStatus.TIMEOUT]

    async def test_external_signer_used_when_linked(self, client, capability):
        client.ensure_identity()
        await client.link_external_signer()
        result = await client.publish_score(10)
        assert result.signer_mode == "external"
        assert result.event.pubkey == PUBKEY_B
        assert len(capability.signed) == 1

    async def test_falls_back_to_local_signer(self, client, capability):
        local = client.ensure_identity()
        await client.link_external_signer()
        capability.available = False
        result = await client.publish_score(10)
        assert result.signer_mode == "local"
        assert result.event.pubkey == local.public_key

    async def test_published_score_reaches_leaderboard(self, client):
        identity = client.ensure_identity()
        await client.publish_score(10, ScoreContext(streak=4, max_streak=4, played=5, won=4))
        top = await client.query_leaderboard()
        assert len(top) == 1
        assert top[0].record.author_key == identity.public_key
        assert top[0].record.best_max_streak == 4


class TestIdentityOperations:
    """Test identity operations exposed by the client."""

    async def test_link_without_capability(self, settings, transport):
        client = RelayboardClient(settings=settings, storage=MemoryStorage(), transport=transport)
        client.ensure_identity()
        with pytest.raises(NoSignerAvailable):
            await client.link_external_signer()

    async def test_link_and_unlink(self, client):
        local = client.ensure_identity()
        linked = await client.link_external_signer()
        assert linked.auth_mode == AuthMode.EXTERNAL
        assert client.export_secret() is None
        unlinked = client.unlink_external_signer()
        assert unlinked.auth_mode == AuthMode.LOCAL
        assert client.export_secret() == local.nsec

    async def test_import_export_and_observer(self, client):
        seen = []
        client.subscribe_identity(seen.append)
        client.ensure_identity()
        exported = client.export_secret()
        fresh = client.reset_identity()
        assert fresh.nsec != exported
        restored = client.import_secret(exported)
        assert restored.nsec == exported
        assert len(seen) == 3


class TestReadPaths:
    """Test feed and stats queries through the client."""

    async def test_follows_defaults_to_active_key(self, client, transport, capability):
        client.ensure_identity()
        await client.link_external_signer()
        transport.store(RELAY_1, contact_list(SECRET_B, [PUBKEY_B]))
        transport.store(RELAY_1, score_post(SECRET_B, max_streak=1))

        view = await client.query_feed(FeedKind.FOLLOWS)

        assert view.kind == FeedKind.FOLLOWS
        assert [e.pubkey for e in view.events] == [PUBKEY_B]

    async def test_social_feed(self, client, transport):
        transport.store(RELAY_1, score_post(SECRET_B))
        view = await client.query_feed("social")
        assert len(view.events) == 1

    async def test_player_stats_for_active_signer(self, client, transport):
        identity = client.ensure_identity()
        await client.publish_score(1, ScoreContext(streak=2, max_streak=6, played=8, won=6))
        transport.store(RELAY_1, score_post(SECRET_B, created_at=NOW - DAY, streak=9, max_streak=9))

        stats = await client.player_stats(now=NOW + 60)

        assert stats.best_streak == 6
        assert stats.total_played == 8
        assert stats.win_rate == 75
        assert stats.post_count == 1
        assert identity.public_key != PUBKEY_B
