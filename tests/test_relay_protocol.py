"""Tests for relay message parsing and bookkeeping."""

from __future__ import annotations

import json

import pytest

from oled_relay.relay import (
    Connection,
    ConnectionRegistry,
    Identify,
    PassThrough,
    Role,
    Structured,
    parse_inbound,
)
from oled_relay.relay import protocol


class _Socket:
    closed = False

    async def send_str(self, data: str) -> None:  # pragma: no cover - unused
        pass

    async def send_bytes(self, data: bytes) -> None:  # pragma: no cover - unused
        pass


class TestParseInbound:
    def test_plain_text_is_pass_through(self):
        assert parse_inbound("hello") == PassThrough("hello")

    def test_binary_is_pass_through(self):
        assert parse_inbound(b"{}") == PassThrough(b"{}")

    @pytest.mark.parametrize("raw", ["[1, 2]", "42", '"text"', "null", "{broken"])
    def test_non_object_json_is_pass_through(self, raw):
        assert parse_inbound(raw) == PassThrough(raw)

    def test_identify(self):
        raw = '{"type":"identify","client":"ESP32"}'
        assert parse_inbound(raw) == Identify(client="ESP32", raw=raw)

    def test_identify_without_client_is_structured(self):
        message = parse_inbound('{"type":"identify"}')
        assert isinstance(message, Structured)
        assert message.payload == {"type": "identify"}

    def test_payload_of_returns_original_frame(self):
        raw = '{"type": "text",  "message": "spacing kept"}'
        assert protocol.payload_of(parse_inbound(raw)) == raw


def test_envelopes():
    assert protocol.ack(True, "ok") == {"status": "success", "message": "ok"}
    assert protocol.ack(False, "no") == {"status": "error", "message": "no"}
    assert protocol.device_message("hi") == {"type": "device", "message": "hi"}
    assert protocol.bitmap_push(25, "pikachu", 8, 1, [255]) == {
        "type": "bitmap_push",
        "data": {
            "id": 25,
            "name": "pikachu",
            "width": 8,
            "height": 1,
            "bitmapData": [255],
        },
    }
    assert json.loads(protocol.encode({"a": 1})) == {"a": 1}


def test_as_text_decodes_bytes():
    assert protocol.as_text(b"caf\xc3\xa9") == "café"
    assert protocol.as_text("plain") == "plain"


class TestConnectionRegistry:
    def test_membership_is_disjoint(self):
        registry = ConnectionRegistry()
        conn = Connection(_Socket())

        registry.add(conn, Role.WEB)
        assert registry.reclassify(conn, Role.DEVICE) is True
        assert registry.reclassify(conn, Role.DEVICE) is False

        assert conn.role is Role.DEVICE
        assert registry.members(Role.WEB) == []
        assert registry.members(Role.DEVICE) == [conn]
        assert len(registry) == 1

    def test_remove_is_idempotent(self):
        registry = ConnectionRegistry()
        conn = Connection(_Socket())
        registry.add(conn, Role.WEB)

        assert registry.remove(conn) is Role.WEB
        assert registry.remove(conn) is None
        assert conn not in registry

    def test_reclassify_unknown_connection(self):
        registry = ConnectionRegistry()
        assert registry.reclassify(Connection(_Socket()), Role.DEVICE) is False

    def test_cannot_register_unclassified(self):
        with pytest.raises(ValueError):
            ConnectionRegistry().add(Connection(_Socket()), Role.UNCLASSIFIED)

    def test_open_members_skips_closed(self):
        registry = ConnectionRegistry()
        closed_socket = _Socket()
        closed_socket.closed = True
        live = Connection(_Socket())
        registry.add(live, Role.DEVICE)
        registry.add(Connection(closed_socket), Role.DEVICE)

        assert registry.open_members(Role.DEVICE) == [live]
        assert registry.count(Role.DEVICE) == 2
