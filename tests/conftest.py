import asyncio
import io
from typing import Dict, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from PIL import Image


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def make_sprite(
    size: Tuple[int, int] = (96, 96), box: Tuple[int, int, int, int] = (28, 28, 68, 68)
) -> Image.Image:
    """Transparent canvas with an opaque dark square, like a game sprite."""
    image = Image.new("RGBA", size, (0, 0, 0, 0))
    image.paste((20, 20, 20, 255), box)
    return image


class SpriteServer:
    """In-process stand-in for PokeAPI and its sprite CDN."""

    def __init__(self, port: int) -> None:
        self.port = port
        self.sprites: Dict[str, bytes] = {}
        self.pokemon: Dict[int, dict] = {}
        self.hits: Dict[Tuple[str, str], int] = {}
        self.flaky_failures = 0

    def url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"http://127.0.0.1:{self.port}{path}"

    @property
    def api_base(self) -> str:
        return self.url("/api/v2")

    def count(self, method: str, path: str) -> int:
        return self.hits.get((method, path), 0)


@pytest_asyncio.fixture
async def sprite_server(unused_tcp_port_factory):
    server = SpriteServer(unused_tcp_port_factory())

    @web.middleware
    async def count_hits(request: web.Request, handler):
        key = (request.method, request.path)
        server.hits[key] = server.hits.get(key, 0) + 1
        return await handler(request)

    async def sprite_handler(request: web.Request) -> web.StreamResponse:
        name = request.match_info["name"]
        body = server.sprites.get(name)
        if body is None:
            raise web.HTTPNotFound()
        return web.Response(body=body, content_type="image/png")

    async def chunked_handler(request: web.Request) -> web.StreamResponse:
        name = request.match_info["name"]
        body = server.sprites.get(name)
        if body is None:
            raise web.HTTPNotFound()
        response = web.StreamResponse(headers={"Content-Type": "image/png"})
        response.enable_chunked_encoding()
        await response.prepare(request)
        if request.method != "HEAD":
            await response.write(body)
        await response.write_eof()
        return response

    async def slow_handler(request: web.Request) -> web.StreamResponse:
        await asyncio.sleep(1)
        return web.Response(body=b"late")

    async def flaky_handler(request: web.Request) -> web.StreamResponse:
        if server.flaky_failures > 0:
            server.flaky_failures -= 1
            return web.Response(status=503, text="busy")
        return web.Response(body=server.sprites.get("flaky", b"ok"))

    async def pokemon_handler(request: web.Request) -> web.StreamResponse:
        record = server.pokemon.get(int(request.match_info["pokemon_id"]))
        if record is None:
            return web.Response(status=404, text="Not Found")
        return web.json_response(record)

    app = web.Application(middlewares=[count_hits])
    app.router.add_get("/sprites/{name}.png", sprite_handler)
    app.router.add_get("/chunked/{name}.png", chunked_handler)
    app.router.add_get("/slow.png", slow_handler)
    app.router.add_get("/flaky.png", flaky_handler)
    app.router.add_get("/api/v2/pokemon/{pokemon_id}", pokemon_handler)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", server.port)
    await site.start()

    try:
        yield server
    finally:
        await runner.cleanup()
