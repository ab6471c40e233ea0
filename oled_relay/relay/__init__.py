"""WebSocket relay between browser clients and OLED devices."""

from .hub import RelayHub
from .protocol import Identify, InboundMessage, PassThrough, Structured, parse_inbound
from .registry import Connection, ConnectionRegistry, RelaySocket, Role

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "Identify",
    "InboundMessage",
    "PassThrough",
    "RelayHub",
    "RelaySocket",
    "Role",
    "Structured",
    "parse_inbound",
]
