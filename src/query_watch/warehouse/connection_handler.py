from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote, urlencode

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DisconnectionError

from query_watch.context.credentials import CredentialConfig, KeyPairAuth, PasswordAuth
from query_watch.errors import ConnectionErrorKind, WarehouseConnectionError
from query_watch.security.key_material import PrivateKeyHandle
from query_watch.warehouse.pool_args import (
    PoolSettings,
    build_connect_args,
    build_sql_engine_kwargs,
)

logger = logging.getLogger(__name__)

SCHEME = "snowflake"
JWT_AUTHENTICATOR = "SNOWFLAKE_JWT"
_ACCOUNT_FORBIDDEN = re.compile(r"[/@?#:\s%]")
_IDLE_STAMP = "query_watch_checked_in_at"


def _escape(value: str) -> str:
    return quote(value, safe="")


@dataclass(frozen=True)
class ConnectionDescriptor:
    """What the Snowflake dialect needs to authenticate: a URL plus driver args."""

    url: str
    connect_args: Dict[str, Any] = field(default_factory=dict)

    def redacted(self) -> str:
        return make_url(self.url).render_as_string(hide_password=True)

    def __repr__(self) -> str:
        keys = ", ".join(sorted(self.connect_args))
        return f"ConnectionDescriptor(url={self.redacted()!r}, connect_args=[{keys}])"

    __str__ = __repr__


def install_idle_eviction(
    engine: Engine,
    idle_timeout_seconds: int,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Discard pooled connections that sat idle longer than the timeout."""
    if idle_timeout_seconds <= 0:
        return

    @event.listens_for(engine, "checkin")
    def _stamp(dbapi_connection: Any, connection_record: Any) -> None:
        if connection_record is not None:
            connection_record.info[_IDLE_STAMP] = clock()

    @event.listens_for(engine, "checkout")
    def _evict(dbapi_connection: Any, connection_record: Any, proxy: Any) -> None:
        stamped = connection_record.info.pop(_IDLE_STAMP, None)
        if stamped is not None and clock() - stamped > idle_timeout_seconds:
            # the pool invalidates the record and retries with a fresh connection
            raise DisconnectionError("idle connection evicted")


def _select_one(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1")).scalar_one()


class SnowflakeConnectionHandler:
    """
    Builds the connection descriptor for either auth mode and opens a pooled,
    verified SQLAlchemy engine.
    """

    def __init__(
        self,
        settings: Optional[PoolSettings] = None,
        engine_factory: Callable[..., Engine] = create_engine,
    ) -> None:
        self._settings = settings or PoolSettings()
        self._engine_factory = engine_factory

    @property
    def settings(self) -> PoolSettings:
        return self._settings

    @staticmethod
    def build_url(
        *,
        account: str,
        user: str,
        password: Optional[str] = None,
        database: str = "",
        schema: str = "",
        warehouse: str = "",
        role: str = "",
    ) -> str:
        if not account or not user:
            raise WarehouseConnectionError(
                ConnectionErrorKind.DSN_BUILD_FAILED, "account and user are required"
            )
        if _ACCOUNT_FORBIDDEN.search(account):
            raise WarehouseConnectionError(
                ConnectionErrorKind.DSN_BUILD_FAILED,
                f"account identifier {account!r} contains reserved characters",
            )
        if schema and not database:
            raise WarehouseConnectionError(
                ConnectionErrorKind.DSN_BUILD_FAILED,
                "SNOWFLAKE_SCHEMA requires SNOWFLAKE_DATABASE",
            )

        userinfo = _escape(user)
        if password is not None:
            userinfo += ":" + _escape(password)

        path = ""
        if database:
            path += "/" + _escape(database)
        if schema:
            path += "/" + _escape(schema)

        params = {k: v for k, v in (("warehouse", warehouse), ("role", role)) if v}
        query = "?" + urlencode(params, quote_via=quote, safe="") if params else ""
        return f"{SCHEME}://{userinfo}@{account}{path}{query}"

    def build_descriptor(
        self, config: CredentialConfig, private_key: Optional[PrivateKeyHandle] = None
    ) -> ConnectionDescriptor:
        connect_args = build_connect_args(self._settings)
        auth = config.auth

        if isinstance(auth, PasswordAuth):
            # last point where the password exists as an immutable str
            try:
                password = auth.password.reveal()
            except UnicodeDecodeError as exc:
                raise WarehouseConnectionError(
                    ConnectionErrorKind.DSN_BUILD_FAILED,
                    "password is not valid UTF-8",
                ) from exc
        elif isinstance(auth, KeyPairAuth):
            if private_key is None:
                raise WarehouseConnectionError(
                    ConnectionErrorKind.DSN_BUILD_FAILED,
                    "key-pair authentication requires a parsed private key",
                )
            password = None
            connect_args["authenticator"] = JWT_AUTHENTICATOR
            connect_args["private_key"] = private_key.private_key
        else:  # pragma: no cover - exhaustive over AuthPayload
            raise WarehouseConnectionError(
                ConnectionErrorKind.DSN_BUILD_FAILED,
                f"unsupported auth payload {type(auth).__name__}",
            )

        url = self.build_url(
            account=config.account,
            user=config.user,
            password=password,
            database=config.database,
            schema=config.schema,
            warehouse=config.warehouse,
            role=config.role,
        )
        return ConnectionDescriptor(url=url, connect_args=connect_args)

    def ping(self, engine: Engine) -> None:
        timeout = self._settings.ping_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="warehouse-ping")
        future = executor.submit(_select_one, engine)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise WarehouseConnectionError(
                ConnectionErrorKind.UNREACHABLE,
                f"failed to ping snowflake: no answer within {timeout}s",
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise WarehouseConnectionError(
                ConnectionErrorKind.UNREACHABLE, f"failed to ping snowflake: {exc}"
            ) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def open(
        self, config: CredentialConfig, private_key: Optional[PrivateKeyHandle] = None
    ) -> Engine:
        descriptor = self.build_descriptor(config, private_key)
        redacted = descriptor.redacted()

        try:
            engine = self._engine_factory(
                descriptor.url,
                connect_args=descriptor.connect_args,
                **build_sql_engine_kwargs(self._settings),
            )
        except Exception as exc:  # noqa: BLE001
            raise WarehouseConnectionError(
                ConnectionErrorKind.DSN_BUILD_FAILED,
                f"failed to create snowflake engine: {type(exc).__name__}",
                descriptor=redacted,
            ) from exc
        install_idle_eviction(engine, self._settings.idle_timeout_seconds)

        try:
            self.ping(engine)
        except WarehouseConnectionError as exc:
            exc.descriptor = redacted
            engine.dispose()
            raise

        logger.info(
            "Connected to snowflake at %s (max_open=%d, max_idle=%d, recycle=%ds, "
            "idle_timeout=%ds)",
            redacted,
            self._settings.max_open,
            self._settings.pool_size,
            self._settings.recycle_seconds,
            self._settings.idle_timeout_seconds,
        )
        return engine


__all__ = [
    "ConnectionDescriptor",
    "SnowflakeConnectionHandler",
    "install_idle_eviction",
]
