"""Signed score posts, cross-relay feeds and streak leaderboards over Nostr relays."""

from relayboard.client import RelayboardClient
from relayboard.config import Settings, get_settings
from relayboard.exceptions import (
    InvalidEvent,
    InvalidKeyEncoding,
    MalformedMetadata,
    NoSignerAvailable,
    RelayboardError,
    RelayFailure,
    RelayTimeout,
)
from relayboard.feeds import FeedKind, FeedView
from relayboard.scores import ScoreContext

__version__ = "0.1.0"

__all__ = [
    "FeedKind",
    "FeedView",
    "InvalidEvent",
    "InvalidKeyEncoding",
    "MalformedMetadata",
    "NoSignerAvailable",
    "RelayFailure",
    "RelayTimeout",
    "RelayboardClient",
    "RelayboardError",
    "ScoreContext",
    "Settings",
    "get_settings",
]
