from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy.pool import QueuePool
from starlette.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolSettings:
    """
    Bounds for the shared warehouse pool. ``pool_size`` connections are kept
    idle at most; ``max_overflow`` more may be opened under load.
    """

    pool_size: int = 5
    max_overflow: int = 5
    recycle_seconds: int = 300
    idle_timeout_seconds: int = 60
    ping_timeout_seconds: int = 10
    query_timeout_seconds: int = 30

    @property
    def max_open(self) -> int:
        return self.pool_size + self.max_overflow


def _get_int(config: Config, key: str, default: int, minimum: int = 0) -> int:
    raw = config(key, cast=str, default="")
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid %s=%r, using default %d", key, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring out-of-range %s=%d, using default %d", key, value, default)
        return default
    return value


def load_pool_settings(config: Config) -> PoolSettings:
    defaults = PoolSettings()
    return PoolSettings(
        pool_size=_get_int(config, "QW_POOL_SIZE", defaults.pool_size, minimum=1),
        max_overflow=_get_int(config, "QW_POOL_MAX_OVERFLOW", defaults.max_overflow),
        recycle_seconds=_get_int(
            config, "QW_POOL_RECYCLE_SECONDS", defaults.recycle_seconds, minimum=1
        ),
        idle_timeout_seconds=_get_int(
            config, "QW_POOL_IDLE_TIMEOUT_SECONDS", defaults.idle_timeout_seconds
        ),
        ping_timeout_seconds=_get_int(
            config, "QW_PING_TIMEOUT_SECONDS", defaults.ping_timeout_seconds, minimum=1
        ),
        query_timeout_seconds=_get_int(
            config, "QW_QUERY_TIMEOUT_SECONDS", defaults.query_timeout_seconds, minimum=1
        ),
    )


def build_sql_engine_kwargs(settings: PoolSettings) -> Dict[str, Any]:
    """
    Map pool settings to SQLAlchemy engine kwargs. Idle eviction has no engine
    kwarg and is installed as a pool event instead.
    """
    return {
        "poolclass": QueuePool,
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_recycle": settings.recycle_seconds,
    }


def build_connect_args(settings: PoolSettings) -> Dict[str, Any]:
    """Driver-level arguments shared by both auth modes."""
    return {
        "login_timeout": settings.ping_timeout_seconds,
        "session_parameters": {
            "STATEMENT_TIMEOUT_IN_SECONDS": settings.query_timeout_seconds,
        },
    }
