"""Sprite lookups and bitmap conversion for a Pokemon id."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from . import constants
from .adapters import (
    ImageFetcher,
    ImageFetchError,
    PokeApiClient,
    PokeApiError,
    SpriteSizeProber,
)
from .bitmap import BitmapConversionError, convert_image_bytes
from .relay import protocol

LOGGER = logging.getLogger(__name__)


class PokemonLookupError(Exception):
    """Raised when a sprite or bitmap request cannot be completed.

    ``upstream_outage`` is True only for transport failures and 5xx answers
    from PokeAPI or the sprite host. Caller mistakes such as an unknown id
    leave it False.
    """

    def __init__(self, message: str, *, upstream_outage: bool = False):
        super().__init__(message)
        self.upstream_outage = upstream_outage


def _is_outage(exc: Exception) -> bool:
    if not isinstance(exc, (PokeApiError, ImageFetchError)):
        return False
    return exc.status is None or exc.status >= 500


@dataclass(slots=True)
class SpriteSelection:
    id: int
    name: str
    url: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.url}


@dataclass(slots=True)
class PokemonBitmap:
    id: int
    name: str
    width: int
    height: int
    bitmap_data: List[int]
    source_url: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "bitmapData": list(self.bitmap_data),
            "sourceUrl": self.source_url,
        }

    def push_envelope(self) -> Dict[str, Any]:
        return protocol.bitmap_push(
            self.id, self.name, self.width, self.height, list(self.bitmap_data)
        )


class PokemonService:
    """Composes the metadata client, image fetcher, prober and codec."""

    def __init__(
        self,
        api: PokeApiClient,
        fetcher: ImageFetcher,
        prober: SpriteSizeProber,
        *,
        max_width: int = constants.DISPLAY_MAX_WIDTH,
        max_height: int = constants.DISPLAY_MAX_HEIGHT,
    ) -> None:
        self._api = api
        self._fetcher = fetcher
        self._prober = prober
        self._max_width = max_width
        self._max_height = max_height

    async def get_smallest_sprite(self, pokemon_id: int) -> SpriteSelection:
        try:
            record = await self._api.fetch_pokemon(pokemon_id)
        except PokeApiError as exc:
            raise PokemonLookupError(
                f"failed to get smallest sprite for Pokemon {pokemon_id}: {exc}",
                upstream_outage=_is_outage(exc),
            ) from exc

        url = await self._prober.select_smallest(record.sprite_urls())
        LOGGER.info(
            "Smallest sprite for Pokemon #%d (%s): %s", record.id, record.name, url
        )
        return SpriteSelection(id=record.id, name=record.name, url=url)

    async def get_bitmap(self, pokemon_id: int) -> PokemonBitmap:
        """Fetch the default front sprite and convert it for the display."""

        try:
            record = await self._api.fetch_pokemon(pokemon_id)
            sprite_url = record.default_sprite
            if sprite_url is None:
                raise PokemonLookupError(
                    f"no default sprite found for Pokemon {pokemon_id}"
                )
            fetched = await self._fetcher.fetch(sprite_url)
            bitmap = convert_image_bytes(
                fetched.data, self._max_width, self._max_height
            )
        except (PokeApiError, ImageFetchError, BitmapConversionError) as exc:
            raise PokemonLookupError(
                f"failed to get bitmap for Pokemon {pokemon_id}: {exc}",
                upstream_outage=_is_outage(exc),
            ) from exc

        LOGGER.info(
            "Converted sprite for Pokemon #%d (%s) to %dx%d bitmap",
            record.id,
            record.name,
            bitmap.width,
            bitmap.height,
        )
        return PokemonBitmap(
            id=record.id,
            name=record.name,
            width=bitmap.width,
            height=bitmap.height,
            bitmap_data=bitmap.as_payload(),
            source_url=sprite_url,
        )
