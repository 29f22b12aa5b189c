"""Session context object.

RelayboardClient owns everything that lives for one player session: the
relay set, the transport (connection pool), the identity store, the
profile cache and the active feed. Nothing is kept at module level, so
two clients (or two tests) never share hidden state.

Usage:
    async with RelayboardClient() as client:
        result = await client.publish_score(1200, ScoreContext(max_streak=9))
        top = await client.query_leaderboard()
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from relayboard.config import Settings, get_settings
from relayboard.feeds import FeedKind, FeedService, FeedView
from relayboard.identity.models import PlayerIdentity
from relayboard.identity.signers import CapabilityProvider, SignerResolver
from relayboard.identity.storage import FileStorage, IdentityStorage
from relayboard.identity.store import IdentityObserver, IdentityStore
from relayboard.leaderboard.engine import LeaderboardEngine, PlayerStats, RankedEntry
from relayboard.profiles.cache import ProfileCache
from relayboard.relays.publish import PublishFanout, PublishResult
from relayboard.relays.query import QueryAggregator
from relayboard.relays.relay_set import RelaySet
from relayboard.relays.transport import RelayTransport, WebSocketRelayTransport
from relayboard.scores import ScoreContext, build_score_event

logger = structlog.get_logger()


class RelayboardClient:
    """The library's inbound surface for a presentation layer."""

    def __init__(
        self,
        settings: Settings | None = None,
        storage: IdentityStorage | None = None,
        transport: RelayTransport | None = None,
        capability_provider: CapabilityProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or get_settings()
        self.relays = RelaySet.from_urls(self.settings.relays)
        self.transport = transport or WebSocketRelayTransport(connect_timeout=self.settings.connect_timeout_seconds)
        self._capability_provider = capability_provider

        self.identity = IdentityStore(
            storage or FileStorage(self.settings.identity_path),
            storage_key=self.settings.storage_key,
        )
        self.signers = SignerResolver(self.identity, capability_provider)
        self.publisher = PublishFanout(self.transport, self.relays, timeout=self.settings.publish_timeout_seconds)
        self.aggregator = QueryAggregator(
            self.transport,
            self.relays,
            timeout=self.settings.query_timeout_seconds,
            verify_signatures=self.settings.verify_signatures,
        )
        self.profiles = ProfileCache(self.aggregator, timeout=self.settings.query_timeout_seconds)
        self.leaderboard = LeaderboardEngine(
            period_seconds=self.settings.streak_period_seconds,
            grace_periods=self.settings.streak_grace_periods,
            top_n=self.settings.leaderboard_top_n,
            clock=clock,
        )
        self.feeds = FeedService(self.aggregator, self.leaderboard, self.profiles, self.settings)

    async def __aenter__(self) -> RelayboardClient:
        self.ensure_identity()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        self.feeds.cancel_active()
        await self.transport.close()

    # ── Identity ──

    def ensure_identity(self) -> PlayerIdentity:
        return self.identity.ensure()

    def subscribe_identity(self, observer: IdentityObserver) -> Callable[[], None]:
        return self.identity.subscribe(observer)

    def import_secret(self, text: str) -> PlayerIdentity:
        return self.identity.import_secret(text)

    def export_secret(self) -> str | None:
        return self.identity.export_secret()

    def reset_identity(self) -> PlayerIdentity:
        return self.identity.reset()

    async def link_external_signer(self) -> PlayerIdentity:
        capability = self._capability_provider() if self._capability_provider else None
        return await self.identity.link_external(capability)

    def unlink_external_signer(self) -> PlayerIdentity:
        return self.identity.unlink_external()

    # ── Publish ──

    async def publish_score(self, score: int | str, context: ScoreContext | None = None) -> PublishResult:
        """Sign a score note with the active signer and send it to every relay."""
        self.identity.ensure()
        signer = self.signers.resolve()
        event = await signer.sign(build_score_event(score, context, self.settings))
        logger.info("score_signed", event_id=event.id, signer=signer.mode.value)
        return await self.publisher.publish(event, signer_mode=signer.mode.value)

    # ── Read ──

    async def query_feed(self, kind: FeedKind | str, pubkey: str | None = None) -> FeedView | None:
        """Switch the active feed. None means a later switch superseded this one."""
        if FeedKind(kind) == FeedKind.FOLLOWS and pubkey is None:
            pubkey = self.identity.ensure().active_public_key
        return await self.feeds.switch(kind, pubkey)

    async def query_leaderboard(self, now: float | None = None) -> list[RankedEntry]:
        view = await self.feeds.top(now=now)
        return view.leaderboard

    async def player_stats(self, now: float | None = None) -> PlayerStats:
        """Stats for whoever the active signer signs as."""
        self.identity.ensure()
        pubkey = await self.signers.resolve().get_public_key()
        return await self.feeds.stats(pubkey, now=now)
