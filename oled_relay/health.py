"""Health reporting for oled-relay."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)

ConnectionCounter = Callable[[], Awaitable[Dict[str, int]]]


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks component statuses and relay membership for ``/healthz``.

    Components report themselves (for example the upstream sprite pipeline
    after each request). Relay membership is read live from the hub so the
    snapshot never lags behind connects and disconnects.
    """

    def __init__(self, connection_counter: Optional[ConnectionCounter] = None) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._lock = asyncio.Lock()
        self._connection_counter = connection_counter

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            previous = self._status.get(name)
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )
        if previous is not None and previous.healthy != healthy:
            LOGGER.info(
                "Component %s is now %s", name, "healthy" if healthy else "unhealthy"
            )

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            components = [status.as_dict() for status in self._status.values()]

        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        payload: Dict[str, object] = {"status": overall, "components": components}

        if self._connection_counter is not None:
            payload["connections"] = await self._connection_counter()

        return payload
