"""PokeAPI metadata lookups."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from .. import constants

LOGGER = logging.getLogger(__name__)


class PokeApiError(Exception):
    """Raised when Pokemon metadata cannot be retrieved.

    ``status`` carries the HTTP status of the response that failed, or None
    when no response arrived (timeouts and transport errors).
    """

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass(slots=True)
class PokemonRecord:
    id: int
    name: str
    sprites: Dict[str, Any] = field(default_factory=dict)

    @property
    def default_sprite(self) -> Optional[str]:
        value = self.sprites.get("front_default")
        if isinstance(value, str) and value.strip():
            return value
        return None

    def sprite_urls(self) -> List[str]:
        return collect_sprite_urls(self.sprites)


def collect_sprite_urls(sprites: Any) -> List[str]:
    """Collect every non-empty URL string nested anywhere in ``sprites``.

    Order follows the mapping's insertion order, depth first, which matches the
    order PokeAPI serialises its sprite tree.
    """

    urls: List[str] = []

    def _collect(node: Any) -> None:
        if isinstance(node, str):
            if node.strip():
                urls.append(node)
        elif isinstance(node, dict):
            for value in node.values():
                _collect(value)
        elif isinstance(node, list):
            for value in node:
                _collect(value)

    _collect(sprites)
    return urls


class PokeApiClient:
    """Minimal async client for the ``/pokemon/{id}`` endpoint."""

    def __init__(
        self,
        base_url: str = constants.DEFAULT_POKEAPI_URL,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_pokemon(self, pokemon_id: int) -> PokemonRecord:
        """Fetch the metadata for ``pokemon_id``.

        Raises:
            PokeApiError: On network failure, timeout, non-2xx status or a
                payload without ``id``/``name``.
        """
        session = await self._ensure_session()
        url = f"{self._base_url}/pokemon/{pokemon_id}"
        status: Optional[int] = None

        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self._timeout)
            ) as response:
                status = response.status
                if status != 200:
                    raise PokeApiError(
                        f"failed to fetch Pokemon {pokemon_id}: "
                        f"HTTP {status} {response.reason or ''}".strip(),
                        status=status,
                    )
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise PokeApiError(
                f"failed to fetch Pokemon {pokemon_id}: timed out after {self._timeout}s"
            ) from exc
        except aiohttp.ClientError as exc:
            raise PokeApiError(f"failed to fetch Pokemon {pokemon_id}: {exc}") from exc
        except ValueError as exc:
            raise PokeApiError(
                f"failed to fetch Pokemon {pokemon_id}: invalid JSON ({exc})",
                status=status,
            ) from exc

        if not isinstance(payload, dict):
            raise PokeApiError(
                f"unexpected PokeAPI payload for Pokemon {pokemon_id}", status=status
            )

        sprites = payload.get("sprites")
        try:
            record = PokemonRecord(
                id=int(payload["id"]),
                name=str(payload["name"]),
                sprites=sprites if isinstance(sprites, dict) else {},
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PokeApiError(
                f"incomplete PokeAPI payload for Pokemon {pokemon_id}: {exc}",
                status=status,
            ) from exc

        LOGGER.debug("Fetched PokeAPI record #%d (%s)", record.id, record.name)
        return record
