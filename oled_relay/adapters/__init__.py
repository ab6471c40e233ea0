"""Adapter modules for external integrations."""

from .image_fetcher import FetchedImage, ImageFetcher, ImageFetchError
from .pokeapi import PokeApiClient, PokeApiError, PokemonRecord, collect_sprite_urls
from .sprite_prober import SpriteSizeProber

__all__ = [
    "FetchedImage",
    "ImageFetcher",
    "ImageFetchError",
    "PokeApiClient",
    "PokeApiError",
    "PokemonRecord",
    "SpriteSizeProber",
    "collect_sprite_urls",
]
