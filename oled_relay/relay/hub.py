"""Relay hub: classifies peers and routes messages between web and device clients.

Every registry mutation and every forward/broadcast runs under one
``asyncio.Lock``, so the recipient set cannot change between the "is anyone
there" check and the sends that follow it. Sends to the chosen recipients
run concurrently and each is bounded by ``send_timeout_seconds``, so a stalled
peer holds the lock for at most one timeout per delivery. A recipient that
fails or stalls is logged and skipped; the remaining recipients still receive
the message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

import aiohttp

from ..config import RelayConfig
from . import protocol
from .protocol import Identify, Payload, Structured
from .registry import Connection, ConnectionRegistry, RelaySocket, Role

LOGGER = logging.getLogger(__name__)

_SEND_ERRORS = (ConnectionError, RuntimeError, aiohttp.ClientError)

ACK_FORWARDED = "Message forwarded to device"
ACK_NO_DEVICES = "No device clients connected"


class RelayHub:
    """Owns all live relay connections and the routing rules between them."""

    def __init__(self, config: Optional[RelayConfig] = None) -> None:
        self._config = config or RelayConfig()
        self._registry = ConnectionRegistry()
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def classify(self, headers: Mapping[str, str]) -> Role:
        """Best-effort role guess from handshake headers."""

        user_agent = headers.get("User-Agent", "") or ""
        origin = headers.get("Origin", "") or ""
        if any(token in user_agent for token in self._config.device_user_agents):
            return Role.DEVICE
        if any(token in origin for token in self._config.device_origins):
            return Role.DEVICE
        return Role.WEB

    def is_device_client(self, client: str) -> bool:
        return client == self._config.identify_client

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def open(
        self,
        socket: RelaySocket,
        headers: Mapping[str, str],
        remote: Optional[str] = None,
    ) -> Connection:
        connection = Connection(socket=socket, remote=remote)
        role = self.classify(headers)
        async with self._lock:
            self._registry.add(connection, role)
            web, devices = self._counts()
        LOGGER.info(
            "Relay client connected as %s (web=%d, device=%d)",
            connection.describe(),
            web,
            devices,
        )
        return connection

    async def close(self, connection: Connection) -> None:
        async with self._lock:
            removed = self._registry.remove(connection)
            web, devices = self._counts()
        if removed is not None:
            LOGGER.info(
                "Relay client %s disconnected (web=%d, device=%d)",
                connection.describe(),
                web,
                devices,
            )

    async def handle_message(self, connection: Connection, payload: Payload) -> None:
        """Apply the routing rules to one inbound frame."""

        message = protocol.parse_inbound(payload)

        async with self._lock:
            if connection not in self._registry:
                LOGGER.debug("Dropping frame from unregistered connection")
                return

            if isinstance(message, Identify) and self.is_device_client(message.client):
                if self._registry.reclassify(connection, Role.DEVICE):
                    web, devices = self._counts()
                    LOGGER.info(
                        "Relay client %s identified as device (web=%d, device=%d)",
                        connection.describe(),
                        web,
                        devices,
                    )
                return

            frame = protocol.payload_of(message)
            if isinstance(message, Structured):
                LOGGER.debug(
                    "Relaying %s envelope from %s",
                    message.payload.get("type", "untyped"),
                    connection.describe(),
                )
            if connection.role is Role.WEB:
                await self._forward_from_web(connection, frame)
            elif connection.role is Role.DEVICE:
                await self._forward_from_device(frame)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    async def broadcast_to_devices(self, envelope: Dict[str, Any]) -> bool:
        """Send ``envelope`` to every open device; True if at least one got it."""

        encoded = protocol.encode(envelope)
        async with self._lock:
            delivered = await self._send_all(
                self._registry.open_members(Role.DEVICE), encoded
            )
        if delivered:
            LOGGER.info(
                "Pushed %s envelope to %d device(s)",
                envelope.get("type", "untyped"),
                delivered,
            )
        else:
            LOGGER.info("No device clients connected for %s push", envelope.get("type"))
        return delivered > 0

    async def snapshot(self) -> Dict[str, int]:
        async with self._lock:
            web, devices = self._counts()
        return {"web": web, "device": devices}

    async def _forward_from_web(self, sender: Connection, frame: Payload) -> None:
        delivered = await self._send_all(
            self._registry.open_members(Role.DEVICE), frame
        )
        if delivered:
            LOGGER.debug("Forwarded web message to %d device(s)", delivered)
            reply = protocol.ack(True, ACK_FORWARDED)
        else:
            LOGGER.warning("No device clients connected to forward message to")
            reply = protocol.ack(False, ACK_NO_DEVICES)
        await self._send_all([sender], protocol.encode(reply))

    async def _forward_from_device(self, frame: Payload) -> None:
        wrapped = protocol.encode(protocol.device_message(protocol.as_text(frame)))
        delivered = await self._send_all(self._registry.open_members(Role.WEB), wrapped)
        LOGGER.debug("Relayed device message to %d web client(s)", delivered)

    async def _send_all(self, recipients: Iterable[Connection], frame: Payload) -> int:
        targets = [recipient for recipient in recipients if recipient.is_open]
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._send_one(recipient, frame) for recipient in targets)
        )
        return sum(results)

    async def _send_one(self, recipient: Connection, frame: Payload) -> bool:
        timeout = self._config.send_timeout_seconds
        try:
            await asyncio.wait_for(recipient.send(frame), timeout)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Send to %s stalled for more than %.1fs; skipping",
                recipient.describe(),
                timeout,
            )
            return False
        except _SEND_ERRORS as exc:
            LOGGER.warning("Send to %s failed: %s", recipient.describe(), exc)
            return False
        return True

    def _counts(self) -> tuple[int, int]:
        return self._registry.count(Role.WEB), self._registry.count(Role.DEVICE)
