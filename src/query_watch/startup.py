from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.engine import Engine
from starlette.config import Config

from query_watch.context.credentials import (
    AuthMode,
    CredentialConfig,
    load_credential_config,
)
from query_watch.context.secrets.secret_utils import SecretSource
from query_watch.security.key_material import KeyMaterialParser, PrivateKeyHandle
from query_watch.security.scrubber import scrub, scrub_key
from query_watch.warehouse.connection_handler import SnowflakeConnectionHandler
from query_watch.warehouse.pool_args import load_pool_settings

_LOG = logging.getLogger("query_watch.startup")


class CoreState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIG_LOADED = "config_loaded"
    KEY_PARSED = "key_parsed"
    CONNECTED = "connected"
    SCRUBBED = "scrubbed"


@dataclass(frozen=True)
class WarehouseSession:
    engine: Engine
    auth_mode: AuthMode
    summary: str


class StartupSequence:
    """
    Drives credential resolution, key parsing, connection and scrubbing, in
    that order, exactly once. Any failure propagates unchanged; secrets are
    scrubbed on the way out either way.
    """

    def __init__(
        self,
        config: Config,
        secrets: Optional[SecretSource] = None,
        parser: Optional[KeyMaterialParser] = None,
        handler: Optional[SnowflakeConnectionHandler] = None,
    ) -> None:
        self._config = config
        self._secrets = secrets
        self._parser = parser or KeyMaterialParser()
        self._handler = handler or SnowflakeConnectionHandler(load_pool_settings(config))
        self._state = CoreState.UNCONFIGURED

    @property
    def state(self) -> CoreState:
        return self._state

    def _advance(self, state: CoreState) -> None:
        _LOG.debug("Startup state %s -> %s", self._state.value, state.value)
        self._state = state

    def run(self) -> WarehouseSession:
        if self._state is not CoreState.UNCONFIGURED:
            raise RuntimeError(f"startup already ran (state={self._state.value})")

        credentials: CredentialConfig = load_credential_config(self._config, self._secrets)
        self._advance(CoreState.CONFIG_LOADED)

        key: Optional[PrivateKeyHandle] = None
        try:
            if credentials.auth_mode is AuthMode.KEYPAIR:
                key = self._parser.parse(credentials)
                self._advance(CoreState.KEY_PARSED)
            engine = self._handler.open(credentials, key)
            self._advance(CoreState.CONNECTED)
        finally:
            scrub(credentials)
            scrub_key(key)

        self._advance(CoreState.SCRUBBED)
        return WarehouseSession(
            engine=engine,
            auth_mode=credentials.auth_mode,
            summary=credentials.describe(),
        )


def bootstrap(config: Config, **kwargs) -> WarehouseSession:
    return StartupSequence(config, **kwargs).run()


__all__ = ["CoreState", "WarehouseSession", "StartupSequence", "bootstrap"]
