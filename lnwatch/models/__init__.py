from .channel import (
    UNKNOWN_CHANNEL,
    UTXO,
    Channel,
    ChannelId,
    ForwardingEvent,
    Outpoint,
    PendingHTLC,
    RouteKey,
)

__all__ = [
    'UNKNOWN_CHANNEL',
    'UTXO',
    'Channel',
    'ChannelId',
    'ForwardingEvent',
    'Outpoint',
    'PendingHTLC',
    'RouteKey',
]
