"""Signer resolution: prefer a linked external signer, otherwise the local key.

Resolution happens on every call. A session that loses its external
capability mid-run falls back to the local key on the next resolve().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

import structlog

from relayboard.exceptions import NoSignerAvailable
from relayboard.identity.models import AuthMode, PlayerIdentity
from relayboard.identity.store import IdentityStore
from relayboard.nostr.event import SignedEvent, UnsignedEvent, ensure_valid, finalize_event

logger = structlog.get_logger()


@runtime_checkable
class ExternalSignerCapability(Protocol):
    """An environment-provided signer (a NIP-07 style extension, a remote bunker, ...)."""

    def is_available(self) -> bool: ...

    async def get_public_key(self) -> str: ...

    async def sign_event(self, event: dict[str, Any]) -> dict[str, Any]: ...


CapabilityProvider = Callable[[], "ExternalSignerCapability | None"]


class SignerMode(str, Enum):
    LOCAL = "local"
    EXTERNAL = "external"


class Signer(ABC):
    """Common signing interface."""

    mode: SignerMode

    @abstractmethod
    async def get_public_key(self) -> str: ...

    @abstractmethod
    async def sign(self, unsigned: UnsignedEvent) -> SignedEvent: ...


class LocalSigner(Signer):
    """Signs with the identity's locally held secret key."""

    mode = SignerMode.LOCAL

    def __init__(self, identity: PlayerIdentity) -> None:
        self._identity = identity

    async def get_public_key(self) -> str:
        return self._identity.public_key

    async def sign(self, unsigned: UnsignedEvent) -> SignedEvent:
        return finalize_event(unsigned, self._identity.secret_key)


class ExternalSigner(Signer):
    """Delegates to an external signing capability."""

    mode = SignerMode.EXTERNAL

    def __init__(self, capability: ExternalSignerCapability) -> None:
        self._capability = capability

    async def get_public_key(self) -> str:
        return await self._capability.get_public_key()

    async def sign(self, unsigned: UnsignedEvent) -> SignedEvent:
        raw = await self._capability.sign_event(unsigned.to_dict())
        return ensure_valid(SignedEvent.model_validate(raw))


class SignerResolver:
    """Chooses the signer for the current identity at call time."""

    def __init__(self, store: IdentityStore, capability_provider: CapabilityProvider | None = None) -> None:
        self._store = store
        self._capability_provider = capability_provider

    def external_capability(self) -> ExternalSignerCapability | None:
        """The external capability if the environment currently advertises one."""
        if self._capability_provider is None:
            return None
        capability = self._capability_provider()
        if capability is None:
            return None
        try:
            available = capability.is_available()
        except Exception as e:
            logger.warning("external_signer_check_failed", error=str(e))
            return None
        return capability if available else None

    def resolve(self) -> Signer:
        """
        Pick the signer for the next operation.

        Raises:
            NoSignerAvailable: If no identity exists at all.
        """
        identity = self._store.get()
        if identity is None:
            raise NoSignerAvailable("No identity available; call ensure() first")

        if identity.auth_mode == AuthMode.EXTERNAL:
            capability = self.external_capability()
            if capability is not None:
                return ExternalSigner(capability)
            logger.info("external_signer_unavailable_fallback", npub=identity.npub)

        if identity.secret_key:
            return LocalSigner(identity)
        raise NoSignerAvailable("Identity has no local secret key")
