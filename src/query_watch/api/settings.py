from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.config import Config

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1 << 20


@dataclass(frozen=True)
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080
    refresh_seconds: int = 30
    max_body_bytes: int = MAX_BODY_BYTES


def load_server_settings(config: Config) -> ServerSettings:
    defaults = ServerSettings()
    host = config("HOST", cast=str, default=defaults.host) or defaults.host

    raw_port = config("PORT", cast=str, default="")
    try:
        port = int(raw_port) if raw_port else defaults.port
    except ValueError:
        logger.warning("Ignoring invalid PORT=%r, using %d", raw_port, defaults.port)
        port = defaults.port
    if not 0 < port < 65536:
        raise RuntimeError(f"PORT must be between 1 and 65535, got {port}")

    raw_refresh = config("QW_REFRESH_SECONDS", cast=str, default="")
    try:
        refresh = int(raw_refresh) if raw_refresh else defaults.refresh_seconds
    except ValueError:
        refresh = defaults.refresh_seconds
    if refresh <= 0:
        refresh = defaults.refresh_seconds

    return ServerSettings(host=host, port=port, refresh_seconds=refresh)


__all__ = ["ServerSettings", "load_server_settings", "MAX_BODY_BYTES"]
