"""Configuration loader for oled-relay."""

from __future__ import annotations

import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from . import constants


@dataclass(slots=True)
class ServerConfig:
    host: str = constants.DEFAULT_HOST
    port: int = constants.DEFAULT_PORT


@dataclass(slots=True)
class DisplayConfig:
    max_width: int = constants.DISPLAY_MAX_WIDTH
    max_height: int = constants.DISPLAY_MAX_HEIGHT


@dataclass(slots=True)
class RelayConfig:
    device_user_agents: List[str] = field(
        default_factory=lambda: list(constants.DEFAULT_DEVICE_USER_AGENTS)
    )
    device_origins: List[str] = field(
        default_factory=lambda: list(constants.DEFAULT_DEVICE_ORIGINS)
    )
    identify_client: str = constants.DEFAULT_IDENTIFY_CLIENT
    send_timeout_seconds: float = constants.DEFAULT_SEND_TIMEOUT_SECONDS


@dataclass(slots=True)
class PokeApiConfig:
    base_url: str = constants.DEFAULT_POKEAPI_URL
    request_timeout_seconds: float = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
    probe_concurrency: int = constants.DEFAULT_PROBE_CONCURRENCY
    fetch_retries: int = 1


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class RelayAppConfig:
    server: ServerConfig
    display: DisplayConfig
    relay: RelayConfig
    pokeapi: PokeApiConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path


def _parse_list(value: str, *, default: Iterable[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: Optional[Path] = None) -> RelayAppConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "server": {
                "host": constants.DEFAULT_HOST,
                "port": str(constants.DEFAULT_PORT),
            },
            "display": {
                "max_width": str(constants.DISPLAY_MAX_WIDTH),
                "max_height": str(constants.DISPLAY_MAX_HEIGHT),
            },
            "relay": {
                "device_user_agents": ",".join(constants.DEFAULT_DEVICE_USER_AGENTS),
                "device_origins": ",".join(constants.DEFAULT_DEVICE_ORIGINS),
                "identify_client": constants.DEFAULT_IDENTIFY_CLIENT,
                "send_timeout_seconds": str(constants.DEFAULT_SEND_TIMEOUT_SECONDS),
            },
            "pokeapi": {
                "base_url": constants.DEFAULT_POKEAPI_URL,
                "request_timeout_seconds": str(
                    constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
                ),
                "probe_concurrency": str(constants.DEFAULT_PROBE_CONCURRENCY),
                "fetch_retries": "1",
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    port_override = os.getenv(constants.PORT_ENV_VAR)
    if port_override:
        try:
            parsed_port = int(port_override)
        except ValueError:
            pass
        else:
            parser.set("server", "port", str(parsed_port))

    server = ServerConfig(
        host=parser.get("server", "host"),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_PORT),
    )

    # The codec packs whole bytes, so the box width must hold at least one byte
    display = DisplayConfig(
        max_width=max(
            8,
            parser.getint(
                "display", "max_width", fallback=constants.DISPLAY_MAX_WIDTH
            ),
        ),
        max_height=max(
            1,
            parser.getint(
                "display", "max_height", fallback=constants.DISPLAY_MAX_HEIGHT
            ),
        ),
    )

    default_send_timeout = constants.DEFAULT_SEND_TIMEOUT_SECONDS
    try:
        send_timeout = parser.getfloat(
            "relay", "send_timeout_seconds", fallback=default_send_timeout
        )
    except ValueError:
        send_timeout = default_send_timeout

    relay = RelayConfig(
        device_user_agents=_parse_list(
            parser.get("relay", "device_user_agents", fallback=""),
            default=constants.DEFAULT_DEVICE_USER_AGENTS,
        ),
        device_origins=_parse_list(
            parser.get("relay", "device_origins", fallback=""),
            default=constants.DEFAULT_DEVICE_ORIGINS,
        ),
        identify_client=parser.get(
            "relay", "identify_client", fallback=constants.DEFAULT_IDENTIFY_CLIENT
        ).strip()
        or constants.DEFAULT_IDENTIFY_CLIENT,
        send_timeout_seconds=send_timeout if send_timeout > 0 else default_send_timeout,
    )

    default_timeout = constants.DEFAULT_REQUEST_TIMEOUT_SECONDS
    try:
        timeout_value = parser.getfloat(
            "pokeapi", "request_timeout_seconds", fallback=default_timeout
        )
    except ValueError:
        timeout_value = default_timeout

    pokeapi = PokeApiConfig(
        base_url=parser.get("pokeapi", "base_url").rstrip("/"),
        request_timeout_seconds=timeout_value if timeout_value > 0 else default_timeout,
        probe_concurrency=max(
            1,
            parser.getint(
                "pokeapi",
                "probe_concurrency",
                fallback=constants.DEFAULT_PROBE_CONCURRENCY,
            ),
        ),
        fetch_retries=max(0, parser.getint("pokeapi", "fetch_retries", fallback=1)),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return RelayAppConfig(
        server=server,
        display=display,
        relay=relay,
        pokeapi=pokeapi,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )
