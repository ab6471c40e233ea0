"""Command-line interface for oled-relay."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .adapters import ImageFetcher, ImageFetchError
from .app import OledRelayApp
from .bitmap import Bitmap, BitmapConversionError, convert_image_bytes
from .config import RelayAppConfig, load_config
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oled-relay",
        description="WebSocket relay and sprite bitmap pipeline for OLED devices",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the relay server")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    bitmap_parser = subparsers.add_parser(
        "bitmap", help="Convert an image file or URL and print a text preview"
    )
    bitmap_parser.add_argument("source", help="Local image path or http(s) URL")

    return parser


async def _load_source(source: str, config: RelayAppConfig) -> bytes:
    if source.startswith(("http://", "https://")):
        fetcher = ImageFetcher(
            timeout=config.pokeapi.request_timeout_seconds,
            max_retries=config.pokeapi.fetch_retries,
        )
        try:
            fetched = await fetcher.fetch(source)
        finally:
            await fetcher.close()
        return fetched.data
    return Path(source).expanduser().read_bytes()


def _print_bitmap(bitmap: Bitmap) -> None:
    print(f"{bitmap.width}x{bitmap.height}, {len(bitmap.data)} bytes")
    print(bitmap.render())


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        OledRelayApp.start(config)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "bitmap":
        configure_logging(config.logging.level, log_network=config.logging.log_network)
        try:
            data = asyncio.run(_load_source(args.source, config))
            bitmap = convert_image_bytes(
                data, config.display.max_width, config.display.max_height
            )
        except (OSError, ImageFetchError, BitmapConversionError) as exc:
            LOGGER.error("Bitmap conversion failed: %s", exc)
            return 1
        _print_bitmap(bitmap)
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
