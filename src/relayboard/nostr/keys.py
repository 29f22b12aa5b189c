"""
secp256k1 key handling for Nostr identities.

Public keys are BIP-340 x-only keys (32 bytes, hex on the wire). NIP-19
bech32 forms are used for display and import/export: npub for public
keys, nsec for secret keys.

Uses coincurve for secp256k1 operations.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from coincurve import PrivateKey, PublicKeyXOnly

from relayboard.exceptions import InvalidKeyEncoding
from relayboard.nostr import _bech32

NPUB_PREFIX = "npub"
NSEC_PREFIX = "nsec"
NOTE_PREFIX = "note"

_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class KeyPair:
    """A secret key and its derived x-only public key, both hex."""

    secret_hex: str
    public_hex: str

    @property
    def npub(self) -> str:
        return npub_encode(self.public_hex)

    @property
    def nsec(self) -> str:
        return nsec_encode(self.secret_hex)


def generate_keypair() -> KeyPair:
    """Generate a fresh random keypair."""
    secret = PrivateKey().secret
    return KeyPair(secret_hex=secret.hex(), public_hex=derive_public_key(secret.hex()))


def derive_public_key(secret_hex: str) -> str:
    """Derive the x-only public key (hex) for a hex secret key."""
    return PublicKeyXOnly.from_secret(bytes.fromhex(secret_hex)).format().hex()


def keypair_from_secret(secret_hex: str) -> KeyPair:
    return KeyPair(secret_hex=secret_hex.lower(), public_hex=derive_public_key(secret_hex))


def npub_encode(public_hex: str) -> str:
    return _bech32.encode(NPUB_PREFIX, bytes.fromhex(public_hex))


def nsec_encode(secret_hex: str) -> str:
    return _bech32.encode(NSEC_PREFIX, bytes.fromhex(secret_hex))


def note_encode(event_id: str) -> str:
    return _bech32.encode(NOTE_PREFIX, bytes.fromhex(event_id))


def npub_decode(npub: str) -> str:
    """Decode an npub into a hex public key. Raises ValueError on bad input."""
    hrp, payload = _bech32.decode(npub)
    if hrp != NPUB_PREFIX or len(payload) != 32:
        msg = f"Not an npub: {npub[:12]}..."
        raise ValueError(msg)
    return payload.hex()


def decode_secret(encoded: str) -> str:
    """
    Decode a user-supplied secret key into hex.

    Accepts an nsec bech32 string or a 64-character hex string. The decoded
    value must be a valid secp256k1 scalar.

    Raises:
        InvalidKeyEncoding: If the input cannot be decoded as a secret key.
    """
    text = (encoded or "").strip()
    if not text:
        raise InvalidKeyEncoding("Missing secret key")

    if _HEX64.match(text):
        secret = bytes.fromhex(text)
    else:
        try:
            hrp, secret = _bech32.decode(text)
        except ValueError as e:
            raise InvalidKeyEncoding(f"Not a valid nsec: {e}") from e
        if hrp != NSEC_PREFIX:
            raise InvalidKeyEncoding(f"Expected an nsec, got '{hrp}'")
        if len(secret) != 32:
            raise InvalidKeyEncoding("Secret key must be 32 bytes")

    try:
        PrivateKey(secret)
    except ValueError as e:
        raise InvalidKeyEncoding("Secret key is out of range for secp256k1") from e
    return secret.hex()


def shorten_npub(npub: str) -> str:
    """Shorten an npub for display: first 10 and last 6 characters."""
    if not npub or len(npub) < 20:
        return npub
    return npub[:10] + ".." + npub[-6:]
