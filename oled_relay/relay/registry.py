"""Connection bookkeeping for the relay hub."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Set

from .protocol import Payload


class Role(str, Enum):
    """Classification of a relay peer."""

    UNCLASSIFIED = "unclassified"
    """Accepted but not yet placed in a membership set."""

    WEB = "web"
    """Browser or dashboard client."""

    DEVICE = "device"
    """Embedded OLED display client."""


class RelaySocket(Protocol):
    """Transport surface the hub needs; ``aiohttp.web.WebSocketResponse`` fits."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def send_bytes(self, data: bytes) -> None: ...


@dataclass(eq=False)
class Connection:
    """One live peer session. Compared and hashed by identity."""

    socket: RelaySocket
    remote: Optional[str] = None
    role: Role = Role.UNCLASSIFIED

    @property
    def is_open(self) -> bool:
        return not self.socket.closed

    async def send(self, payload: Payload) -> None:
        if isinstance(payload, bytes):
            await self.socket.send_bytes(payload)
        else:
            await self.socket.send_str(payload)

    def describe(self) -> str:
        return f"{self.role.value}@{self.remote or 'unknown'}"


class ConnectionRegistry:
    """Two disjoint membership sets, one per classified role.

    The registry does no locking of its own; the hub serialises every call.
    """

    def __init__(self) -> None:
        self._members: Dict[Role, Set[Connection]] = {
            Role.WEB: set(),
            Role.DEVICE: set(),
        }

    def __contains__(self, connection: object) -> bool:
        return any(connection in members for members in self._members.values())

    def __len__(self) -> int:
        return sum(len(members) for members in self._members.values())

    def add(self, connection: Connection, role: Role) -> None:
        if role not in self._members:
            raise ValueError(f"cannot register a connection as {role.value}")
        for members in self._members.values():
            members.discard(connection)
        self._members[role].add(connection)
        connection.role = role

    def reclassify(self, connection: Connection, role: Role) -> bool:
        """Move a registered connection to ``role``.

        Returns False when the connection already holds that role or is not
        registered.
        """
        if connection.role is role or connection not in self:
            return False
        self.add(connection, role)
        return True

    def remove(self, connection: Connection) -> Optional[Role]:
        """Drop the connection from whichever set holds it. Idempotent."""
        for role, members in self._members.items():
            if connection in members:
                members.remove(connection)
                return role
        return None

    def members(self, role: Role) -> List[Connection]:
        return list(self._members.get(role, ()))

    def open_members(self, role: Role) -> List[Connection]:
        return [conn for conn in self._members.get(role, ()) if conn.is_open]

    def count(self, role: Role) -> int:
        return len(self._members.get(role, ()))
