"""Main application entry-point for oled-relay."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from .adapters import ImageFetcher, PokeApiClient, SpriteSizeProber
from .config import RelayAppConfig, load_config
from .health import HealthReporter
from .logging import configure_logging
from .pokemon import PokemonService
from .relay import RelayHub
from .server import RelayServer

LOGGER = logging.getLogger(__name__)


class OledRelayApp:
    """Coordinates application startup and shutdown.

    Owns the shared ``aiohttp.ClientSession`` used for every upstream call,
    the relay hub, and the HTTP server that exposes both.
    """

    def __init__(self, config: Optional[RelayAppConfig] = None) -> None:
        self._config = config or load_config()
        self._hub = RelayHub(self._config.relay)
        self._health = HealthReporter(self._hub.snapshot)
        self._session: Optional[aiohttp.ClientSession] = None
        self._server: Optional[RelayServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def hub(self) -> RelayHub:
        return self._hub

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def run(self) -> None:
        """Start the server and block until shutdown is requested."""

        self._shutdown_event = asyncio.Event()
        LOGGER.info("oled-relay starting with config: %s", self._config.path)

        await self._start_services()
        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("oled-relay received shutdown signal")
            raise
        finally:
            await self._stop_services()

    async def _start_services(self) -> None:
        pokeapi = self._config.pokeapi
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=pokeapi.request_timeout_seconds)
        )

        fetcher = ImageFetcher(
            session=self._session,
            timeout=pokeapi.request_timeout_seconds,
            max_retries=pokeapi.fetch_retries,
        )
        service = PokemonService(
            PokeApiClient(
                pokeapi.base_url,
                session=self._session,
                timeout=pokeapi.request_timeout_seconds,
            ),
            fetcher,
            SpriteSizeProber(
                fetcher,
                session=self._session,
                max_concurrency=pokeapi.probe_concurrency,
            ),
            max_width=self._config.display.max_width,
            max_height=self._config.display.max_height,
        )

        self._server = RelayServer(
            self._hub,
            service,
            self._health,
            self._config.server.host,
            self._config.server.port,
        )
        await self._server.start()
        await self._health.update("http", True, "listening")

    async def _stop_services(self) -> None:
        if self._server is not None:
            await self._server.stop()
            self._server = None
        if self._session is not None:
            await self._session.close()
            self._session = None
        LOGGER.info("oled-relay stopped")

    @classmethod
    def start(cls, config: Optional[RelayAppConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("oled-relay received shutdown signal")
