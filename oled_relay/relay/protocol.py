"""Relay wire messages.

Inbound payloads are decoded permissively: anything that is not JSON, or is
JSON of an unknown shape, is still forwarded. Only the identify envelope is a
control message.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Union

IDENTIFY_TYPE = "identify"
DEVICE_MESSAGE_TYPE = "device"
BITMAP_PUSH_TYPE = "bitmap_push"

ACK_SUCCESS = "success"
ACK_ERROR = "error"

Payload = Union[str, bytes]


@dataclass(frozen=True, slots=True)
class PassThrough:
    """Opaque payload forwarded verbatim."""

    payload: Payload


@dataclass(frozen=True, slots=True)
class Identify:
    """``{"type": "identify", "client": ...}`` control envelope."""

    client: str
    raw: str


@dataclass(frozen=True, slots=True)
class Structured:
    """Any other JSON object; forwarded verbatim like pass-through text."""

    payload: Dict[str, Any]
    raw: str


InboundMessage = Union[PassThrough, Identify, Structured]


def parse_inbound(payload: Payload) -> InboundMessage:
    """Decode an inbound frame into one of the message variants. Never raises."""

    if isinstance(payload, bytes):
        return PassThrough(payload)

    try:
        decoded = json.loads(payload)
    except ValueError:
        return PassThrough(payload)

    if not isinstance(decoded, dict):
        return PassThrough(payload)

    client = decoded.get("client")
    if decoded.get("type") == IDENTIFY_TYPE and isinstance(client, str):
        return Identify(client=client, raw=payload)

    return Structured(payload=decoded, raw=payload)


def payload_of(message: InboundMessage) -> Payload:
    """Return the original frame for forwarding."""

    if isinstance(message, PassThrough):
        return message.payload
    return message.raw


def as_text(payload: Payload) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def encode(envelope: Dict[str, Any]) -> str:
    return json.dumps(envelope, separators=(",", ":"))


def ack(success: bool, message: str) -> Dict[str, Any]:
    return {"status": ACK_SUCCESS if success else ACK_ERROR, "message": message}


def device_message(text: str) -> Dict[str, Any]:
    return {"type": DEVICE_MESSAGE_TYPE, "message": text}


def bitmap_push(
    pokemon_id: int, name: str, width: int, height: int, bitmap_data: List[int]
) -> Dict[str, Any]:
    return {
        "type": BITMAP_PUSH_TYPE,
        "data": {
            "id": pokemon_id,
            "name": name,
            "width": width,
            "height": height,
            "bitmapData": bitmap_data,
        },
    }
