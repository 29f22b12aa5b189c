"""
Bech32 encoding and decoding for NIP-19 entities (npub / nsec / note).

Minimal pure-Python implementation. NIP-19 uses plain bech32 (not bech32m)
and packs the raw 32-byte payload without a witness version.
Reference: https://github.com/bitcoin/bips/blob/master/bip-0173.mediawiki
           https://github.com/nostr-protocol/nips/blob/master/19.md
"""

from __future__ import annotations

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1


def _bech32_polymod(values: list[int]) -> int:
    """Internal function that computes the Bech32 checksum."""
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for i in range(5):
            chk ^= gen[i] if ((top >> i) & 1) else 0
    return chk


def _bech32_hrp_expand(hrp: str) -> list[int]:
    """Expand HRP into values for checksum computation."""
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _bech32_create_checksum(hrp: str, data: list[int]) -> list[int]:
    """Compute the checksum values given HRP and data."""
    values = _bech32_hrp_expand(hrp) + data
    polymod = _bech32_polymod(values + [0, 0, 0, 0, 0, 0]) ^ BECH32_CONST
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def _convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int] | None:
    """General power-of-2 base conversion."""
    acc = 0
    bits = 0
    ret: list[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return ret


def decode(bech: str) -> tuple[str, bytes]:
    """
    Decode a NIP-19 bech32 string.

    Args:
        bech: The full bech32 string, e.g. "npub1...".

    Returns:
        Tuple of (hrp, payload_bytes).

    Raises:
        ValueError: If the string is not valid bech32.
    """
    if any(ord(x) < 33 or ord(x) > 126 for x in bech):
        msg = "Invalid character in bech32 string"
        raise ValueError(msg)
    if bech.lower() != bech and bech.upper() != bech:
        msg = "Mixed case in bech32 string"
        raise ValueError(msg)
    bech = bech.lower()
    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech):
        msg = "Invalid bech32 format"
        raise ValueError(msg)
    hrp = bech[:pos]
    data_part = bech[pos + 1 :]
    if not all(x in CHARSET for x in data_part):
        msg = "Invalid character in data part"
        raise ValueError(msg)
    data = [CHARSET.find(x) for x in data_part]
    if _bech32_polymod(_bech32_hrp_expand(hrp) + data) != BECH32_CONST:
        msg = "Invalid bech32 checksum"
        raise ValueError(msg)
    payload = _convertbits(data[:-6], 5, 8, pad=False)
    if payload is None:
        msg = "Invalid bech32 padding"
        raise ValueError(msg)
    return hrp, bytes(payload)


def encode(hrp: str, payload: bytes) -> str:
    """
    Encode raw bytes under a human-readable prefix.

    Args:
        hrp: Human-readable part ("npub", "nsec", "note").
        payload: Raw payload bytes.

    Returns:
        The bech32 encoded string.
    """
    converted = _convertbits(list(payload), 8, 5)
    if converted is None:
        msg = "Failed to convert payload"
        raise ValueError(msg)
    checksum = _bech32_create_checksum(hrp, converted)
    return hrp + "1" + "".join(CHARSET[d] for d in converted + checksum)
