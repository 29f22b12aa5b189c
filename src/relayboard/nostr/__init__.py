"""Nostr primitives: NIP-19 keys, NIP-01 events and filters."""

from relayboard.nostr.event import (
    EventKind,
    SignedEvent,
    UnsignedEvent,
    compute_event_id,
    finalize_event,
    verify_event,
)
from relayboard.nostr.filters import Filter
from relayboard.nostr.keys import (
    KeyPair,
    decode_secret,
    generate_keypair,
    npub_decode,
    npub_encode,
    shorten_npub,
)

__all__ = [
    "EventKind",
    "Filter",
    "KeyPair",
    "SignedEvent",
    "UnsignedEvent",
    "compute_event_id",
    "decode_secret",
    "finalize_event",
    "generate_keypair",
    "npub_decode",
    "npub_encode",
    "shorten_npub",
    "verify_event",
]
