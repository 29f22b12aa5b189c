from relayboard.relays.publish import PublishFanout, PublishResult, RelayOutcome, RelayStatus
from relayboard.relays.query import AggregatedFeed, QueryAggregator
from relayboard.relays.relay_set import RelaySet
from relayboard.relays.transport import RelayTransport, WebSocketRelayTransport

__all__ = [
    "AggregatedFeed",
    "PublishFanout",
    "PublishResult",
    "QueryAggregator",
    "RelayOutcome",
    "RelaySet",
    "RelayStatus",
    "RelayTransport",
    "WebSocketRelayTransport",
]
