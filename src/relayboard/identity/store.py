"""Player identity lifecycle: create, import, link, unlink, reset.

The store always hands back a usable identity. A missing or corrupt
record is discarded and replaced with a freshly generated LOCAL one.
Every mutation writes the whole record and then notifies observers
synchronously, once, with the new record.

Mutations are serialized by a lock. Two writers racing on the same record
resolve as last-write-wins: each mutation re-reads the current record
under the lock and replaces it wholesale.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

import structlog
from pydantic import ValidationError

from relayboard.config import DEFAULT_STORAGE_KEY
from relayboard.exceptions import NoSignerAvailable
from relayboard.identity.models import AuthMode, PlayerIdentity, is_structurally_valid
from relayboard.identity.storage import IdentityStorage
from relayboard.nostr.keys import decode_secret, generate_keypair, keypair_from_secret, npub_encode

if TYPE_CHECKING:
    from relayboard.identity.signers import ExternalSignerCapability

logger = structlog.get_logger()

IdentityObserver = Callable[[PlayerIdentity], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityStore:
    """Owns the persisted PlayerIdentity."""

    def __init__(
        self,
        storage: IdentityStorage,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._key = storage_key
        self._clock = clock
        self._lock = threading.RLock()
        self._observers: list[IdentityObserver] = []

    # ── Observers ──

    def subscribe(self, observer: IdentityObserver) -> Callable[[], None]:
        """Register an identity-changed observer. Returns an unsubscribe callable."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, identity: PlayerIdentity) -> None:
        for observer in list(self._observers):
            observer(identity)

    # ── Persistence ──

    def _load(self) -> PlayerIdentity | None:
        raw = self._storage.get(self._key)
        if not is_structurally_valid(raw):
            return None
        try:
            return PlayerIdentity.model_validate(raw)
        except ValidationError:
            return None

    def _save(self, identity: PlayerIdentity) -> PlayerIdentity:
        self._storage.set(self._key, identity.model_dump(mode="json"))
        self._notify(identity)
        return identity

    def _generate(self) -> PlayerIdentity:
        pair = generate_keypair()
        return PlayerIdentity(
            auth_mode=AuthMode.LOCAL,
            secret_key=pair.secret_hex,
            public_key=pair.public_hex,
            npub=pair.npub,
            nsec=pair.nsec,
            created_at=self._clock(),
        )

    # ── Operations ──

    def get(self) -> PlayerIdentity | None:
        """Current identity, or None if nothing valid is persisted."""
        return self._load()

    def ensure(self) -> PlayerIdentity:
        """Load the identity, generating a fresh LOCAL one if absent or corrupt."""
        with self._lock:
            identity = self._load()
            if identity is not None:
                return identity
            if self._storage.get(self._key) is not None:
                logger.warning("identity_record_invalid", storage_key=self._key)
            self._storage.delete(self._key)
            identity = self._save(self._generate())
            logger.info("identity_created", npub=identity.npub)
            return identity

    def update(self, **patch: Any) -> PlayerIdentity:
        """Shallow-merge fields into the current record and persist the result."""
        with self._lock:
            current = self._load() or self._generate()
            merged = {**current.model_dump(), **patch}
            return self._save(PlayerIdentity.model_validate(merged))

    def reset(self) -> PlayerIdentity:
        """Discard the identity (and any external link) and generate a new LOCAL one."""
        with self._lock:
            self._storage.delete(self._key)
            identity = self._save(self._generate())
            logger.info("identity_reset", npub=identity.npub)
            return identity

    def import_secret(self, encoded_secret: str) -> PlayerIdentity:
        """
        Replace the identity with a LOCAL one derived from an imported secret.

        Raises:
            InvalidKeyEncoding: If the input is not a decodable secret key.
        """
        secret_hex = decode_secret(encoded_secret)
        pair = keypair_from_secret(secret_hex)
        with self._lock:
            identity = self._save(
                PlayerIdentity(
                    auth_mode=AuthMode.LOCAL,
                    secret_key=pair.secret_hex,
                    public_key=pair.public_hex,
                    npub=pair.npub,
                    nsec=pair.nsec,
                    imported_at=self._clock(),
                )
            )
        logger.info("identity_imported", npub=identity.npub)
        return identity

    def export_secret(self) -> str | None:
        """The nsec while LOCAL is authoritative; None while an external signer is linked."""
        identity = self._load()
        if identity is None or identity.auth_mode != AuthMode.LOCAL:
            return None
        return identity.nsec

    async def link_external(self, capability: ExternalSignerCapability | None) -> PlayerIdentity:
        """Link an external signer: its public key becomes the displayed identity."""
        if capability is None or not capability.is_available():
            raise NoSignerAvailable("External signer not available")
        public_key = (await capability.get_public_key()).lower()
        try:
            if len(bytes.fromhex(public_key)) != 32:
                raise ValueError("expected 32 bytes")
            external_npub = npub_encode(public_key)
        except ValueError as e:
            raise NoSignerAvailable(f"External signer returned an invalid public key: {e}") from e
        identity = self.update(
            auth_mode=AuthMode.EXTERNAL,
            external_public_key=public_key,
            external_npub=external_npub,
            linked_at=self._clock(),
        )
        logger.info("external_signer_linked", npub=external_npub)
        return identity

    def unlink_external(self) -> PlayerIdentity:
        """Drop the external link and return to LOCAL signing."""
        identity = self.update(
            auth_mode=AuthMode.LOCAL,
            external_public_key=None,
            external_npub=None,
            linked_at=None,
        )
        logger.info("external_signer_unlinked", npub=identity.npub)
        return identity
