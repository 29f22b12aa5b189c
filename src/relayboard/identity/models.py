"""Player identity record."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from relayboard.nostr.keys import derive_public_key, npub_encode, nsec_encode

REQUIRED_KEY_FIELDS = ("secret_key", "public_key", "npub", "nsec")

_HEX64 = re.compile(r"^[0-9a-f]{64}$")


class AuthMode(str, Enum):
    """Which signing capability is authoritative for this identity."""

    LOCAL = "local"
    EXTERNAL = "external"


class PlayerIdentity(BaseModel):
    """The persisted identity record.

    The local keypair is always present, even while an external signer is
    linked, so signing can fall back to it when the external capability
    disappears. Records are immutable; every mutation persists a new one.
    """

    model_config = ConfigDict(frozen=True)

    auth_mode: AuthMode = AuthMode.LOCAL
    secret_key: str
    public_key: str
    npub: str
    nsec: str
    external_public_key: str | None = None
    external_npub: str | None = None
    created_at: datetime | None = None
    imported_at: datetime | None = None
    linked_at: datetime | None = None

    @model_validator(mode="after")
    def _check_keypair(self) -> PlayerIdentity:
        # All four local key forms must describe the same keypair
        if not _HEX64.match(self.secret_key) or not _HEX64.match(self.public_key):
            raise ValueError("secret_key and public_key must be 64 lowercase hex characters")
        if derive_public_key(self.secret_key) != self.public_key:
            raise ValueError("public_key does not match secret_key")
        if self.npub != npub_encode(self.public_key) or self.nsec != nsec_encode(self.secret_key):
            raise ValueError("npub/nsec do not match the hex keys")
        if self.external_public_key is not None and not _HEX64.match(self.external_public_key):
            raise ValueError("external_public_key must be 64 lowercase hex characters")
        return self

    @property
    def is_external(self) -> bool:
        return self.auth_mode == AuthMode.EXTERNAL

    @property
    def display_npub(self) -> str:
        """npub shown to the player: the linked external key wins over the local one."""
        return self.external_npub or self.npub

    @property
    def active_public_key(self) -> str:
        """Public key whose follows/stats the player sees."""
        if self.is_external and self.external_public_key:
            return self.external_public_key
        return self.public_key


def is_structurally_valid(raw: Any) -> bool:
    """True if a persisted record carries every local key form, with hex keys."""
    if not isinstance(raw, dict):
        return False
    if not all(isinstance(raw.get(name), str) and raw.get(name) for name in REQUIRED_KEY_FIELDS):
        return False
    return bool(_HEX64.match(raw["secret_key"]) and _HEX64.match(raw["public_key"]))
