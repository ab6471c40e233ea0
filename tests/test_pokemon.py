"""Tests for PokemonService against an in-process PokeAPI stand-in."""

from __future__ import annotations

import pytest
import pytest_asyncio

from conftest import make_sprite, png_bytes
from oled_relay.adapters import ImageFetcher, PokeApiClient, SpriteSizeProber
from oled_relay.pokemon import PokemonLookupError, PokemonService

SPRITE = png_bytes(make_sprite((96, 96)))
BACK_SPRITE = png_bytes(make_sprite((8, 8), (2, 2, 6, 6)))


def register_pikachu(server) -> None:
    server.sprites.update({"25": SPRITE, "25-back": BACK_SPRITE})
    server.pokemon[25] = {
        "id": 25,
        "name": "pikachu",
        "sprites": {
            "front_default": server.url("/sprites/25.png"),
            "back_default": server.url("/sprites/25-back.png"),
            "front_shiny": None,
            "other": {"home": {"front_default": server.url("/sprites/gone.png")}},
        },
    }


@pytest_asyncio.fixture
async def service(sprite_server):
    api = PokeApiClient(sprite_server.api_base, timeout=2.0)
    fetcher = ImageFetcher(timeout=2.0, max_retries=0)
    prober = SpriteSizeProber(fetcher)
    try:
        yield PokemonService(api, fetcher, prober)
    finally:
        await api.close()
        await prober.close()
        await fetcher.close()


@pytest.mark.asyncio
async def test_get_bitmap_converts_default_sprite(sprite_server, service):
    register_pikachu(sprite_server)

    result = await service.get_bitmap(25)

    assert (result.id, result.name) == (25, "pikachu")
    assert (result.width, result.height) == (64, 64)
    assert len(result.bitmap_data) == 64 * 64 // 8
    assert result.source_url == sprite_server.url("/sprites/25.png")
    assert any(result.bitmap_data)


@pytest.mark.asyncio
async def test_bitmap_payloads(sprite_server, service):
    register_pikachu(sprite_server)

    result = await service.get_bitmap(25)
    envelope = result.push_envelope()
    body = result.as_dict()

    assert envelope["type"] == "bitmap_push"
    assert envelope["data"] == {
        "id": 25,
        "name": "pikachu",
        "width": 64,
        "height": 64,
        "bitmapData": result.bitmap_data,
    }
    assert body["sourceUrl"] == result.source_url
    assert body["bitmapData"] == result.bitmap_data


@pytest.mark.asyncio
async def test_get_smallest_sprite(sprite_server, service):
    register_pikachu(sprite_server)

    selection = await service.get_smallest_sprite(25)

    assert selection.as_dict() == {
        "id": 25,
        "name": "pikachu",
        "url": sprite_server.url("/sprites/25-back.png"),
    }


@pytest.mark.asyncio
async def test_smallest_sprite_without_sprites(sprite_server, service):
    sprite_server.pokemon[7] = {"id": 7, "name": "squirtle", "sprites": {}}

    selection = await service.get_smallest_sprite(7)

    assert selection.url is None


@pytest.mark.asyncio
async def test_unknown_pokemon(service):
    with pytest.raises(PokemonLookupError, match="Pokemon 404404") as excinfo:
        await service.get_bitmap(404404)
    assert excinfo.value.upstream_outage is False

    with pytest.raises(PokemonLookupError):
        await service.get_smallest_sprite(404404)


@pytest.mark.asyncio
async def test_missing_default_sprite(sprite_server, service):
    sprite_server.pokemon[3] = {"id": 3, "name": "venusaur", "sprites": {}}

    with pytest.raises(PokemonLookupError, match="no default sprite") as excinfo:
        await service.get_bitmap(3)
    assert excinfo.value.upstream_outage is False


@pytest.mark.asyncio
async def test_undecodable_sprite(sprite_server, service):
    sprite_server.sprites["broken"] = b"<html>not a png</html>"
    sprite_server.pokemon[4] = {
        "id": 4,
        "name": "charmander",
        "sprites": {"front_default": sprite_server.url("/sprites/broken.png")},
    }

    with pytest.raises(
        PokemonLookupError, match="failed to convert image to bitmap"
    ) as excinfo:
        await service.get_bitmap(4)
    assert excinfo.value.upstream_outage is False


@pytest.mark.asyncio
async def test_unreachable_sprite(sprite_server, service):
    sprite_server.pokemon[5] = {
        "id": 5,
        "name": "charmeleon",
        "sprites": {"front_default": sprite_server.url("/sprites/gone.png")},
    }

    with pytest.raises(PokemonLookupError, match="HTTP 404") as excinfo:
        await service.get_bitmap(5)
    assert excinfo.value.upstream_outage is False


@pytest.mark.asyncio
async def test_sprite_host_errors_are_outages(sprite_server, service):
    sprite_server.flaky_failures = 10
    sprite_server.pokemon[6] = {
        "id": 6,
        "name": "charizard",
        "sprites": {"front_default": sprite_server.url("/flaky.png")},
    }

    with pytest.raises(PokemonLookupError, match="HTTP 503") as excinfo:
        await service.get_bitmap(6)
    assert excinfo.value.upstream_outage is True


@pytest.mark.asyncio
async def test_unreachable_pokeapi_is_an_outage(unused_tcp_port):
    api = PokeApiClient(f"http://127.0.0.1:{unused_tcp_port}/api/v2", timeout=1.0)
    fetcher = ImageFetcher(timeout=1.0, max_retries=0)
    prober = SpriteSizeProber(fetcher)
    service = PokemonService(api, fetcher, prober)
    try:
        with pytest.raises(PokemonLookupError) as excinfo:
            await service.get_smallest_sprite(25)
    finally:
        await api.close()
        await prober.close()
        await fetcher.close()

    assert excinfo.value.upstream_outage is True
