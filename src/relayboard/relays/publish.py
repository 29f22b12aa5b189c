"""Publish fan-out: one signed event to every relay at once.

Partial success is the normal case. The call never fails because some or
all relays misbehaved; the caller gets exactly one RelayOutcome per
configured relay, in configuration order, and decides how to present it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from relayboard.exceptions import RelayTimeout
from relayboard.nostr.event import SignedEvent
from relayboard.relays.relay_set import RelaySet, as_relay_set
from relayboard.relays.transport import RelayTransport

logger = structlog.get_logger()


class RelayStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class RelayOutcome:
    """Result of one publish attempt against one relay."""

    relay: str
    status: RelayStatus
    reason: str | None = None


@dataclass(frozen=True)
class PublishResult:
    """Everything the caller needs to render a publish."""

    event: SignedEvent
    relay_results: list[RelayOutcome] = field(default_factory=list)
    signer_mode: str | None = None

    @property
    def ok_count(self) -> int:
        return sum(1 for r in self.relay_results if r.status == RelayStatus.OK)

    @property
    def any_ok(self) -> bool:
        return self.ok_count > 0


class PublishFanout:
    """Concurrent publish to a RelaySet with a single bounded wait."""

    def __init__(self, transport: RelayTransport, relays: RelaySet, timeout: float = 5.0) -> None:
        self._transport = transport
        self._relays = relays
        self._timeout = timeout

    async def publish(
        self,
        event: SignedEvent,
        relays: RelaySet | Iterable[str] | None = None,
        timeout: float | None = None,
        signer_mode: str | None = None,
    ) -> PublishResult:
        relay_set = self._relays if relays is None else as_relay_set(relays)
        wait_for = self._timeout if timeout is None else timeout

        tasks = {
            relay: asyncio.create_task(self._transport.publish(relay, event), name=f"publish:{relay}")
            for relay in relay_set
        }
        pending: set[asyncio.Task[None]] = set()
        if tasks:
            _, pending = await asyncio.wait(tasks.values(), timeout=wait_for)
            for task in pending:
                task.cancel()
            # Reap cancelled sends so nothing outlives the call
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes = [self._outcome(relay, task, task in pending, wait_for) for relay, task in tasks.items()]
        result = PublishResult(event=event, relay_results=outcomes, signer_mode=signer_mode)
        logger.info(
            "event_published",
            event_id=event.id,
            relays=len(outcomes),
            ok=result.ok_count,
        )
        return result

    @staticmethod
    def _outcome(relay: str, task: asyncio.Task[None], timed_out: bool, wait_for: float) -> RelayOutcome:
        if timed_out:
            logger.warning("relay_publish_timeout", relay=relay, timeout=wait_for)
            return RelayOutcome(relay=relay, status=RelayStatus.TIMEOUT, reason=f"no response within {wait_for}s")
        exc = task.exception()
        if exc is None:
            return RelayOutcome(relay=relay, status=RelayStatus.OK)
        if isinstance(exc, RelayTimeout):
            logger.warning("relay_publish_timeout", relay=relay, reason=exc.reason)
            return RelayOutcome(relay=relay, status=RelayStatus.TIMEOUT, reason=exc.reason)
        reason = getattr(exc, "reason", None) or str(exc) or type(exc).__name__
        logger.warning("relay_publish_failed", relay=relay, reason=reason)
        return RelayOutcome(relay=relay, status=RelayStatus.FAILED, reason=reason)
