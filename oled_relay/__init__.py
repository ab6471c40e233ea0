"""oled-relay: WebSocket relay and sprite-to-bitmap pipeline for OLED devices."""

__version__ = "0.1.0"
