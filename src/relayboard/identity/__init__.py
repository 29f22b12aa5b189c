from relayboard.identity.models import AuthMode, PlayerIdentity
from relayboard.identity.signers import (
    ExternalSigner,
    ExternalSignerCapability,
    LocalSigner,
    Signer,
    SignerMode,
    SignerResolver,
)
from relayboard.identity.storage import FileStorage, IdentityStorage, MemoryStorage
from relayboard.identity.store import DEFAULT_STORAGE_KEY, IdentityStore

__all__ = [
    "DEFAULT_STORAGE_KEY",
    "AuthMode",
    "ExternalSigner",
    "ExternalSignerCapability",
    "FileStorage",
    "IdentityStorage",
    "IdentityStore",
    "LocalSigner",
    "MemoryStorage",
    "PlayerIdentity",
    "Signer",
    "SignerMode",
    "SignerResolver",
]
