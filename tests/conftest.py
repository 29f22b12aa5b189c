"""Shared fixtures for relayboard tests."""

from __future__ import annotations

import pytest

from helpers.relays import RELAYS, FakeRelayTransport
from relayboard.config import Settings, get_settings
from relayboard.identity.storage import MemoryStorage
from relayboard.identity.store import IdentityStore
from relayboard.relays.publish import PublishFanout
from relayboard.relays.query import QueryAggregator
from relayboard.relays.relay_set import RelaySet


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        relays=RELAYS,
        publish_timeout_seconds=0.2,
        query_timeout_seconds=0.2,
        identity_path=str(tmp_path / "identity.json"),
    )


@pytest.fixture
def relay_set() -> RelaySet:
    return RelaySet.from_urls(RELAYS)


@pytest.fixture
def transport() -> FakeRelayTransport:
    return FakeRelayTransport()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage) -> IdentityStore:
    return IdentityStore(storage)


@pytest.fixture
def publisher(transport, relay_set) -> PublishFanout:
    return PublishFanout(transport, relay_set, timeout=0.2)


@pytest.fixture
def aggregator(transport, relay_set) -> QueryAggregator:
    return QueryAggregator(transport, relay_set, timeout=0.2)
