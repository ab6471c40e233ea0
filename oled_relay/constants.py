"""Constants used across the oled-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "oled-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
PORT_ENV_VAR = "OLED_RELAY_PORT"

# SSD1306 panel on the device firmware
DISPLAY_MAX_WIDTH = 128
DISPLAY_MAX_HEIGHT = 64

# Bits are set only for opaque, dark pixels
ALPHA_THRESHOLD = 128
LUMA_THRESHOLD = 180

DEFAULT_POKEAPI_URL = "https://pokeapi.co/api/v2"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_PROBE_CONCURRENCY = 8

DEFAULT_DEVICE_USER_AGENTS = ("ESP32", "arduino")
DEFAULT_DEVICE_ORIGINS = ("esp32",)
DEFAULT_IDENTIFY_CLIENT = "ESP32"
DEFAULT_SEND_TIMEOUT_SECONDS = 5.0
