from __future__ import annotations

import logging

from starlette.config import Config

from query_watch.context.secret_buffer import SecretBuffer, trimmed
from query_watch.context.secrets.file_provider import (
    DEFAULT_SECRETS_DIR,
    FileSecretProvider,
)
from query_watch.context.secrets.keyring_provider import KeyringSecretProvider
from query_watch.context.secrets.secret_provider import SecretProvider

logger = logging.getLogger(__name__)


class SecretSource:
    """
    Layered secret lookup: the secret store wins, the environment is the
    fallback, and absence is an empty value. Nothing is cached.
    """

    def __init__(self, store: SecretProvider, config: Config) -> None:
        self._store = store
        self._config = config

    @property
    def store(self) -> SecretProvider:
        return self._store

    def resolve_buffer(self, secret_name: str, env_var_name: str) -> SecretBuffer:
        raw = self._store.get(secret_name)
        if raw is not None:
            logger.debug("Secret %s resolved from secret store", secret_name)
            return SecretBuffer(trimmed(raw))

        value = self._config(env_var_name, cast=str, default="")
        if value:
            logger.debug("Secret %s resolved from %s", secret_name, env_var_name)
        return SecretBuffer(value)

    def resolve(self, secret_name: str, env_var_name: str) -> str:
        buf = self.resolve_buffer(secret_name, env_var_name)
        try:
            return buf.reveal()
        except UnicodeDecodeError:
            logger.warning(
                "Secret %s is not valid UTF-8, treating it as unset", secret_name
            )
            return ""
        finally:
            buf.wipe()


def create_secret_provider(config: Config) -> SecretProvider:
    """
    Decide the secret store backend at runtime.

    Env:
      - SECRET_BACKEND: "file" (default) or "keyring"
      - SECRETS_DIR: directory for the file backend (default "/run/secrets")
      - SECRET_SERVICE: service name for keyring (default "query-watch")
    """
    backend = config("SECRET_BACKEND", cast=str, default="file").strip().lower()

    if backend == "keyring":
        service = config("SECRET_SERVICE", cast=str, default="query-watch").strip()
        return KeyringSecretProvider(service=service)

    if backend not in ("", "file"):
        logger.warning(
            "Unsupported SECRET_BACKEND=%r, using the file secret store", backend
        )
    directory = config("SECRETS_DIR", cast=str, default=DEFAULT_SECRETS_DIR)
    return FileSecretProvider(directory or DEFAULT_SECRETS_DIR)


def create_secret_source(config: Config) -> SecretSource:
    return SecretSource(create_secret_provider(config), config)
