"""Exception hierarchy.

Identity and signing errors propagate to the caller. Relay errors are
raised per relay by the transport and caught at the fan-out boundary,
where they become RelayOutcome entries or feed accounting instead.
"""

from __future__ import annotations


class RelayboardError(Exception):
    """Base class for all relayboard errors."""


class InvalidKeyEncoding(RelayboardError, ValueError):
    """Raised when an imported secret cannot be decoded as a secp256k1 secret key."""


class NoSignerAvailable(RelayboardError, RuntimeError):
    """Raised when there is no identity (or no usable external signer) to sign with."""


class InvalidEvent(RelayboardError, ValueError):
    """Raised when an event's id or signature does not verify."""


class MalformedMetadata(RelayboardError, ValueError):
    """Raised when a kind-0 metadata payload cannot be parsed into a profile."""


class RelayFailure(RelayboardError):
    """A single relay rejected a request or broke the connection."""

    def __init__(self, relay: str, reason: str) -> None:
        self.relay = relay
        self.reason = reason
        super().__init__(f"{relay}: {reason}")


class RelayTimeout(RelayboardError, TimeoutError):
    """A single relay did not answer in time."""

    def __init__(self, relay: str, reason: str = "timed out") -> None:
        self.relay = relay
        self.reason = reason
        super().__init__(f"{relay}: {reason}")
