"""WebSocket transport for the relay engine."""
from .ws_server import RelayServer, WebSocketSink

__all__ = ["RelayServer", "WebSocketSink"]
