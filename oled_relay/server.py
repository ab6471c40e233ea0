"""HTTP and WebSocket surface for oled-relay."""

from __future__ import annotations

import contextlib
import logging
from typing import Optional

from aiohttp import WSMsgType, web

from .health import HealthReporter
from .pokemon import PokemonLookupError, PokemonService
from .relay import RelayHub

LOGGER = logging.getLogger(__name__)

BANNER = "Server running"
UPSTREAM_COMPONENT = "sprite_pipeline"


class InvalidRequestError(Exception):
    """Raised for request bodies the API refuses to process."""


async def _read_pokemon_id(request: web.Request) -> int:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequestError("Request body must be valid JSON") from exc

    pokemon_id = body.get("id") if isinstance(body, dict) else None
    # bool is an int subclass; reject it explicitly
    if (
        not isinstance(pokemon_id, int)
        or isinstance(pokemon_id, bool)
        or pokemon_id <= 0
    ):
        raise InvalidRequestError("Pokemon ID is required and must be a positive integer")
    return pokemon_id


def _error_response(status: int, error: str, message: Optional[str] = None) -> web.Response:
    payload = {"success": False, "error": error}
    if message is not None:
        payload["message"] = message
    return web.json_response(payload, status=status)


class RelayServer:
    """Serves the relay WebSocket, the sprite API and ``/healthz``."""

    def __init__(
        self,
        hub: RelayHub,
        service: PokemonService,
        health: HealthReporter,
        host: str,
        port: int,
    ) -> None:
        self._hub = hub
        self._service = service
        self._health = health
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_post("/api/pokemon/smallest-sprite", self._handle_smallest_sprite)
        app.router.add_post("/api/pokemon/bitmap", self._handle_bitmap)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("HTTP server listening on http://%s:%s", self._host, self._port)
        LOGGER.info("Relay WebSocket ready on ws://%s:%s/", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_root(self, request: web.Request) -> web.StreamResponse:
        ws = web.WebSocketResponse()
        if not ws.can_prepare(request).ok:
            return web.Response(text=BANNER)

        await ws.prepare(request)
        connection = await self._hub.open(ws, request.headers, request.remote)
        try:
            async for message in ws:
                if message.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self._hub.handle_message(connection, message.data)
                elif message.type == WSMsgType.ERROR:
                    LOGGER.warning(
                        "Relay connection %s error: %s",
                        connection.describe(),
                        ws.exception(),
                    )
        finally:
            await self._hub.close(connection)
        return ws

    async def _record_failure(self, exc: PokemonLookupError) -> None:
        # a 4xx lookup is the caller's mistake, not a pipeline fault
        if exc.upstream_outage:
            await self._health.update(UPSTREAM_COMPONENT, False, str(exc))

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._health.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_smallest_sprite(self, request: web.Request) -> web.Response:
        try:
            pokemon_id = await _read_pokemon_id(request)
        except InvalidRequestError as exc:
            return _error_response(400, str(exc))

        try:
            selection = await self._service.get_smallest_sprite(pokemon_id)
        except PokemonLookupError as exc:
            LOGGER.error("Error getting smallest sprite: %s", exc)
            await self._record_failure(exc)
            return _error_response(500, "Failed to get Pokemon smallest sprite", str(exc))

        await self._health.update(UPSTREAM_COMPONENT, True)
        return web.json_response({"success": True, "data": selection.as_dict()})

    async def _handle_bitmap(self, request: web.Request) -> web.Response:
        try:
            pokemon_id = await _read_pokemon_id(request)
        except InvalidRequestError as exc:
            return _error_response(400, str(exc))

        try:
            result = await self._service.get_bitmap(pokemon_id)
        except PokemonLookupError as exc:
            LOGGER.error("Error getting Pokemon bitmap: %s", exc)
            await self._record_failure(exc)
            return _error_response(500, "Failed to get Pokemon bitmap", str(exc))

        await self._health.update(UPSTREAM_COMPONENT, True)
        sent = await self._hub.broadcast_to_devices(result.push_envelope())
        return web.json_response(
            {"success": True, "data": result.as_dict(), "sentToDevices": sent}
        )
