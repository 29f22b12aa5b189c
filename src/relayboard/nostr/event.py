"""Nostr event models, id computation and BIP-340 signing.

Every event shares the NIP-01 envelope:
{
    "id": "<sha256 of the serialized event, hex>",
    "pubkey": "<x-only public key, hex>",
    "created_at": 1733011200,
    "kind": 1,
    "tags": [["t", "word5"], ["maxStreak", "9"]],
    "content": "...",
    "sig": "<64-byte schnorr signature over id, hex>"
}

The id is a pure function of (pubkey, created_at, kind, tags, content) and
the signature is deterministic for a given secret key, so the same logical
event always carries the same id no matter which relay returned it.
"""

from __future__ import annotations

import hashlib
import json
import time
from enum import IntEnum
from typing import Any

from coincurve import PrivateKey, PublicKeyXOnly
from pydantic import BaseModel, Field

from relayboard.exceptions import InvalidEvent


class EventKind(IntEnum):
    """Event kinds used by relayboard."""

    METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3


class UnsignedEvent(BaseModel):
    """An event template before a signer fills in pubkey, id and sig."""

    kind: int = int(EventKind.TEXT_NOTE)
    created_at: int = Field(default_factory=lambda: int(time.time()))
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "created_at": self.created_at,
            "tags": self.tags,
            "content": self.content,
        }


class SignedEvent(BaseModel):
    """A complete, signed event as stored and served by relays."""

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str = ""
    sig: str

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    def tag_value(self, name: str) -> str | None:
        """Value of the first tag with the given name, or None."""
        for tag in self.tags:
            if tag and tag[0] == name:
                return tag[1] if len(tag) > 1 else ""
        return None

    def tag_values(self, name: str) -> list[str]:
        """Values of every tag with the given name, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]


def serialize_for_id(pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str) -> bytes:
    """NIP-01 canonical serialization: compact JSON array, UTF-8, no escaping of non-ASCII."""
    payload = [0, pubkey, int(created_at), int(kind), tags, content]
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_event_id(pubkey: str, created_at: int, kind: int, tags: list[list[str]], content: str) -> str:
    """sha256 of the canonical serialization, hex."""
    return hashlib.sha256(serialize_for_id(pubkey, created_at, kind, tags, content)).hexdigest()


def finalize_event(unsigned: UnsignedEvent, secret_hex: str) -> SignedEvent:
    """Sign an event template with a local secret key."""
    private_key = PrivateKey(bytes.fromhex(secret_hex))
    pubkey = PublicKeyXOnly.from_secret(private_key.secret).format().hex()
    event_id = compute_event_id(pubkey, unsigned.created_at, unsigned.kind, unsigned.tags, unsigned.content)
    # No auxiliary randomness: the same event always gets the same signature
    sig = private_key.sign_schnorr(bytes.fromhex(event_id), None)
    return SignedEvent(
        id=event_id,
        pubkey=pubkey,
        created_at=unsigned.created_at,
        kind=unsigned.kind,
        tags=unsigned.tags,
        content=unsigned.content,
        sig=sig.hex(),
    )


def verify_event(event: SignedEvent) -> bool:
    """
    Verify an event's id and signature.

    Returns True only if the id matches the content and the signature is a
    valid BIP-340 signature by pubkey. Never raises.
    """
    try:
        expected = compute_event_id(event.pubkey, event.created_at, event.kind, event.tags, event.content)
        if expected != event.id:
            return False
        pubkey = PublicKeyXOnly(bytes.fromhex(event.pubkey))
        return pubkey.verify(bytes.fromhex(event.sig), bytes.fromhex(event.id))  # type: ignore[no-any-return]
    except Exception:
        return False


def ensure_valid(event: SignedEvent) -> SignedEvent:
    """Return the event unchanged, or raise InvalidEvent if it does not verify."""
    if not verify_event(event):
        msg = f"Event {event.id[:12]}... failed id/signature verification"
        raise InvalidEvent(msg)
    return event
