"""Relay transport: the two verbs relayboard speaks to a relay.

  publish:  ["EVENT", <event>]                 -> ["OK", <id>, <accepted>, <message>]
  query:    ["REQ", <sub_id>, <filter>, ...]   -> ["EVENT", <sub_id>, <event>]* ["EOSE", <sub_id>]
            ["CLOSE", <sub_id>] once the caller is done

A transport raises RelayFailure / RelayTimeout for a single relay. It never
decides what a failure means for the overall operation; the fan-out layer
does that.

WebSocketRelayTransport owns one aiohttp ClientSession for the lifetime of
a RelayboardClient session (the "pool handle"). Each operation opens its
own websocket so that abandoning one query never disturbs another.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

import aiohttp
import structlog

from relayboard.exceptions import RelayFailure, RelayTimeout
from relayboard.nostr.event import SignedEvent
from relayboard.nostr.filters import Filter

logger = structlog.get_logger()


class RelayTransport(ABC):
    """Abstract relay connection provider."""

    @abstractmethod
    async def publish(self, relay: str, event: SignedEvent) -> None:
        """Send one event. Returns when the relay accepts it, raises otherwise."""

    @abstractmethod
    def query(self, relay: str, filters: Sequence[Filter]) -> AsyncIterator[dict[str, Any]]:
        """Yield raw event objects until the relay signals end of stored events."""

    async def close(self) -> None:
        """Release any pooled resources."""


async def _iter_messages(ws: Any, relay: str) -> AsyncIterator[list[Any]]:
    """Decoded relay messages until the socket closes. Non-array frames are skipped."""
    while True:
        msg = await ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            try:
                message = json.loads(msg.data)
            except json.JSONDecodeError:
                logger.debug("relay_invalid_json", relay=relay)
                continue
            if isinstance(message, list) and message:
                yield message
        elif msg.type == aiohttp.WSMsgType.ERROR:
            raise RelayFailure(relay, f"websocket error: {ws.exception()}")
        elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
            return


async def publish_over(ws: Any, relay: str, event: SignedEvent) -> None:
    """Run the EVENT/OK exchange on an open websocket."""
    await ws.send_str(json.dumps(["EVENT", event.to_dict()]))
    async for message in _iter_messages(ws, relay):
        verb = message[0]
        if verb == "OK" and len(message) >= 3 and message[1] == event.id:
            if message[2] is True:
                return
            reason = str(message[3]) if len(message) > 3 and message[3] else "rejected"
            raise RelayFailure(relay, reason)
        if verb == "NOTICE":
            logger.info("relay_notice", relay=relay, notice=message[1:] if len(message) > 1 else "")
    raise RelayFailure(relay, "connection closed before OK")


async def query_over(
    ws: Any,
    relay: str,
    sub_id: str,
    filters: Sequence[Filter],
) -> AsyncIterator[dict[str, Any]]:
    """Run the REQ/EVENT/EOSE exchange on an open websocket."""
    await ws.send_str(json.dumps(["REQ", sub_id, *[f.to_wire() for f in filters]]))
    try:
        async for message in _iter_messages(ws, relay):
            verb = message[0]
            if verb == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                if isinstance(message[2], dict):
                    yield message[2]
            elif verb == "EOSE" and len(message) >= 2 and message[1] == sub_id:
                return
            elif verb == "CLOSED" and len(message) >= 2 and message[1] == sub_id:
                reason = str(message[2]) if len(message) > 2 else "closed by relay"
                raise RelayFailure(relay, reason)
            elif verb == "NOTICE":
                logger.info("relay_notice", relay=relay, notice=message[1:] if len(message) > 1 else "")
        raise RelayFailure(relay, "connection closed before EOSE")
    finally:
        if not ws.closed:
            try:
                await ws.send_str(json.dumps(["CLOSE", sub_id]))
            except (ConnectionError, aiohttp.ClientError) as e:
                logger.debug("relay_close_failed", relay=relay, error=str(e))


class WebSocketRelayTransport(RelayTransport):
    """Relay transport over aiohttp websockets."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        connect_timeout: float = 3.0,
        heartbeat: float | None = 30.0,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._connect_timeout = connect_timeout
        self._heartbeat = heartbeat

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _connect(self, relay: str) -> aiohttp.ClientWebSocketResponse:
        session = self._get_session()
        try:
            return await asyncio.wait_for(
                session.ws_connect(relay, heartbeat=self._heartbeat),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RelayTimeout(relay, f"connect timed out after {self._connect_timeout}s") from e
        except (aiohttp.ClientError, OSError) as e:
            raise RelayFailure(relay, f"connect failed: {e}") from e

    async def publish(self, relay: str, event: SignedEvent) -> None:
        ws = await self._connect(relay)
        try:
            await publish_over(ws, relay, event)
        finally:
            await ws.close()

    async def query(self, relay: str, filters: Sequence[Filter]) -> AsyncIterator[dict[str, Any]]:
        ws = await self._connect(relay)
        sub_id = uuid.uuid4().hex[:16]
        try:
            async with aclosing(query_over(ws, relay, sub_id, filters)) as events:
                async for raw in events:
                    yield raw
        finally:
            await ws.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
