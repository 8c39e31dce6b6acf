from .broadcaster import ChangeBroadcaster
from .connection import Connection, ConnectionState
from .handler import SyncProtocolHandler
from .registry import ConnectionRegistry

__all__ = [
    "ChangeBroadcaster",
    "Connection",
    "ConnectionRegistry",
    "ConnectionState",
    "SyncProtocolHandler",
]
