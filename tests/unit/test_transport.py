"""Tests for the relay wire exchanges over a websocket."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import aiohttp
import pytest

from helpers.events import note
from relayboard.exceptions import RelayFailure, RelayTimeout
from relayboard.nostr.event import EventKind
from relayboard.nostr.filters import Filter
from relayboard.relays.transport import WebSocketRelayTransport, publish_over, query_over

pytestmark = pytest.mark.asyncio

RELAY = "wss://relay.example"


class FakeWebSocket:
    """Replays scripted relay frames, records what the client sent."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.closed = False

    async def send_str(self, data):
        self.sent.append(json.loads(data))

    async def receive(self):
        if not self.frames:
            self.closed = True
            return SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None)
        frame = self.frames.pop(0)
        data = frame if isinstance(frame, str) else json.dumps(frame)
        return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)

    def exception(self):
        return None

    async def close(self):
        self.closed = True


class TestPublishOver:
    """Test publishing over a websocket."""

    async def test_accepted(self):
        event = note()
        ws = FakeWebSocket([["OK", event.id, True, ""]])
        await publish_over(ws, RELAY, event)
        assert ws.sent == [["EVENT", event.to_dict()]]

    async def test_rejected(self):
        event = note()
        ws = FakeWebSocket([["OK", event.id, False, "blocked: spam"]])
        with pytest.raises(RelayFailure) as exc_info:
            await publish_over(ws, RELAY, event)
        assert exc_info.value.reason == "blocked: spam"
        assert exc_info.value.relay == RELAY

    async def test_ignores_other_frames(self):
        event = note()
        ws = FakeWebSocket(
            [
                "not json",
                {"not": "an array"},
                ["NOTICE", "slow down"],
                ["OK", "someone-else", True, ""],
                ["OK", event.id, True, ""],
            ]
        )
        await publish_over(ws, RELAY, event)

    async def test_closed_before_ok(self):
        with pytest.raises(RelayFailure, match="before OK"):
            await publish_over(FakeWebSocket(), RELAY, note())


class TestQueryOver:
    """Test querying over a websocket."""

    async def test_events_until_eose(self):
        first, second = note(content="1"), note(content="2")
        ws = FakeWebSocket(
            [
                ["EVENT", "sub1", first.to_dict()],
                ["EVENT", "other-sub", second.to_dict()],
                ["EVENT", "sub1", second.to_dict()],
                ["EOSE", "sub1"],
                ["EVENT", "sub1", note(content="after eose").to_dict()],
            ]
        )
        filters = [Filter(kinds=[EventKind.TEXT_NOTE], tags={"t": ["word5"]}, limit=10)]
        received = [raw async for raw in query_over(ws, RELAY, "sub1", filters)]

        assert [r["id"] for r in received] == [first.id, second.id]
        assert ws.sent[0] == ["REQ", "sub1", {"kinds": [1], "limit": 10, "#t": ["word5"]}]
        assert ws.sent[-1] == ["CLOSE", "sub1"]

    async def test_closed_by_relay(self):
        ws = FakeWebSocket([["CLOSED", "sub1", "auth-required: sign in"]])
        with pytest.raises(RelayFailure, match="auth-required"):
            async for _ in query_over(ws, RELAY, "sub1", [Filter()]):
                pass

    async def test_socket_closed_before_eose(self):
        ws = FakeWebSocket([["EVENT", "sub1", note().to_dict()]])
        received = []
        with pytest.raises(RelayFailure, match="before EOSE"):
            async for raw in query_over(ws, RELAY, "sub1", [Filter()]):
                received.append(raw)
        assert len(received) == 1
        # Nothing to CLOSE on a dead socket
        assert ws.sent[-1][0] == "REQ"

    async def test_websocket_error(self):
        ws = FakeWebSocket()

        async def receive():
            return SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None)

        ws.receive = receive
        with pytest.raises(RelayFailure, match="websocket error"):
            async for _ in query_over(ws, RELAY, "sub1", [Filter()]):
                pass


class TestFilterWire:
    """Test filter wire rendering."""

    async def test_omits_unset_fields(self):
        assert Filter().to_wire() == {}

    async def test_full(self):
        wire = Filter(kinds=[0], authors=["ab"], since=1, until=2, limit=3, tags={"p": ["cd"]}).to_wire()
        assert wire == {"kinds": [0], "authors": ["ab"], "since": 1, "until": 2, "limit": 3, "#p": ["cd"]}


class TestWebSocketRelayTransport:
    """Test the websocket relay transport."""

    async def test_connect_failure_is_relay_failure(self):
        session = MagicMock()
        session.closed = False
        session.ws_connect.side_effect = aiohttp.ClientConnectionError("refused")
        transport = WebSocketRelayTransport(session=session)
        with pytest.raises(RelayFailure, match="connect failed"):
            await transport.publish(RELAY, note())

    async def test_connect_timeout_is_relay_timeout(self):
        async def never(*args, **kwargs):
            await asyncio.sleep(10)

        session = MagicMock()
        session.closed = False
        session.ws_connect = never
        transport = WebSocketRelayTransport(session=session, connect_timeout=0.05)
        with pytest.raises(RelayTimeout):
            await transport.publish(RELAY, note())

    async def test_publish_closes_socket(self):
        event = note()
        ws = FakeWebSocket([["OK", event.id, True, ""]])

        async def connect(*args, **kwargs):
            return ws

        session = MagicMock()
        session.closed = False
        session.ws_connect = connect
        await WebSocketRelayTransport(session=session).publish(RELAY, event)
        assert ws.closed

    async def test_borrowed_session_not_closed(self):
        session = MagicMock()
        session.closed = False
        transport = WebSocketRelayTransport(session=session)
        await transport.close()
        session.close.assert_not_called()
