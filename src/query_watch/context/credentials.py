from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from starlette.config import Config

from query_watch.context.secret_buffer import SecretBuffer
from query_watch.context.secrets.secret_utils import SecretSource, create_secret_source
from query_watch.errors import ConfigError, ConfigErrorKind

logger = logging.getLogger(__name__)

PASSWORD_SECRET = "snowflake_password"
PASSPHRASE_SECRET = "snowflake_private_key_passphrase"

ENV_AUTH_TYPE = "SNOWFLAKE_AUTH_TYPE"
ENV_PASSWORD = "SNOWFLAKE_PASSWORD"
ENV_PRIVATE_KEY_PATH = "SNOWFLAKE_PRIVATE_KEY_PATH"
ENV_PRIVATE_KEY_CONTENT = "SNOWFLAKE_PRIVATE_KEY_CONTENT"
ENV_PRIVATE_KEY_PASSPHRASE = "SNOWFLAKE_PRIVATE_KEY_PASSPHRASE"


class AuthMode(str, Enum):
    PASSWORD = "password"
    KEYPAIR = "keypair"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "AuthMode":
        """Case-sensitive; unset or empty means password."""
        if not raw:
            return cls.PASSWORD
        for mode in cls:
            if mode.value == raw:
                return mode
        raise ConfigError(
            ConfigErrorKind.INVALID_AUTH_MODE,
            f"invalid {ENV_AUTH_TYPE}: {raw!r} (must be 'password' or 'keypair')",
            key=ENV_AUTH_TYPE,
        )


@dataclass(frozen=True)
class PasswordAuth:
    password: SecretBuffer

    mode: ClassVar[AuthMode] = AuthMode.PASSWORD

    def secret_buffers(self) -> Tuple[SecretBuffer, ...]:
        return (self.password,)


@dataclass(frozen=True)
class KeyPairAuth:
    """
    Exactly one locator is non-empty: ``private_key_path`` or the base64
    ``private_key_content``. The passphrase is optional.
    """

    private_key_path: str = ""
    private_key_content: SecretBuffer = field(default_factory=SecretBuffer)
    passphrase: SecretBuffer = field(default_factory=SecretBuffer)

    mode: ClassVar[AuthMode] = AuthMode.KEYPAIR

    def secret_buffers(self) -> Tuple[SecretBuffer, ...]:
        return (self.passphrase, self.private_key_content)


AuthPayload = Union[PasswordAuth, KeyPairAuth]


def _current(buf: SecretBuffer) -> str:
    return "" if buf.wiped else buf.reveal(errors="replace")


@dataclass(frozen=True)
class CredentialConfig:
    account: str
    user: str
    auth: AuthPayload
    database: str = ""
    schema: str = ""
    warehouse: str = ""
    role: str = ""

    @property
    def auth_mode(self) -> AuthMode:
        return self.auth.mode

    @property
    def password(self) -> str:
        if isinstance(self.auth, PasswordAuth):
            return _current(self.auth.password)
        return ""

    @property
    def private_key_passphrase(self) -> str:
        if isinstance(self.auth, KeyPairAuth):
            return _current(self.auth.passphrase)
        return ""

    def secret_buffers(self) -> Tuple[SecretBuffer, ...]:
        return self.auth.secret_buffers()

    def describe(self) -> str:
        """Non-secret one-line summary suitable for logs."""
        return (
            f"account={self.account} user={self.user} auth={self.auth_mode.value} "
            f"database={self.database or '-'} schema={self.schema or '-'} "
            f"warehouse={self.warehouse or '-'} role={self.role or '-'}"
        )


def _load_keypair(config: Config, secrets: SecretSource) -> KeyPairAuth:
    path = config(ENV_PRIVATE_KEY_PATH, cast=str, default="")
    content = SecretBuffer(config(ENV_PRIVATE_KEY_CONTENT, cast=str, default=""))
    passphrase = secrets.resolve_buffer(PASSPHRASE_SECRET, ENV_PRIVATE_KEY_PASSPHRASE)

    if not path and not content:
        passphrase.wipe()
        raise ConfigError(
            ConfigErrorKind.MISSING_CREDENTIAL,
            f"either {ENV_PRIVATE_KEY_PATH} or {ENV_PRIVATE_KEY_CONTENT} is "
            "required for key-pair authentication",
            key=ENV_PRIVATE_KEY_PATH,
        )
    if path and content:
        logger.warning(
            "Both %s and %s are set; using the key file and ignoring the content",
            ENV_PRIVATE_KEY_PATH,
            ENV_PRIVATE_KEY_CONTENT,
        )
        content.wipe()
        content = SecretBuffer()
    return KeyPairAuth(
        private_key_path=path, private_key_content=content, passphrase=passphrase
    )


def _load_password(secrets: SecretSource) -> PasswordAuth:
    password = secrets.resolve_buffer(PASSWORD_SECRET, ENV_PASSWORD)
    if not password:
        raise ConfigError(
            ConfigErrorKind.MISSING_CREDENTIAL,
            f"{ENV_PASSWORD} is required for password authentication "
            f"(provide via the '{PASSWORD_SECRET}' secret or the {ENV_PASSWORD} "
            "env var)",
            key=ENV_PASSWORD,
        )
    return PasswordAuth(password=password)


def load_credential_config(
    config: Config, secrets: Optional[SecretSource] = None
) -> CredentialConfig:
    """
    Build the validated credential configuration from the environment and the
    secret store. Only secrets are resolved here; key files are read later.
    """
    mode = AuthMode.parse(config(ENV_AUTH_TYPE, cast=str, default=""))

    account = config("SNOWFLAKE_ACCOUNT", cast=str, default="")
    user = config("SNOWFLAKE_USER", cast=str, default="")
    if not account or not user:
        raise ConfigError(
            ConfigErrorKind.MISSING_REQUIRED,
            "SNOWFLAKE_ACCOUNT and SNOWFLAKE_USER are required",
            key="SNOWFLAKE_ACCOUNT" if not account else "SNOWFLAKE_USER",
        )

    if secrets is None:
        secrets = create_secret_source(config)

    auth: AuthPayload
    if mode is AuthMode.PASSWORD:
        auth = _load_password(secrets)
    else:
        auth = _load_keypair(config, secrets)

    credential_config = CredentialConfig(
        account=account,
        user=user,
        auth=auth,
        database=config("SNOWFLAKE_DATABASE", cast=str, default=""),
        schema=config("SNOWFLAKE_SCHEMA", cast=str, default=""),
        warehouse=config("SNOWFLAKE_WAREHOUSE", cast=str, default=""),
        role=config("SNOWFLAKE_ROLE", cast=str, default=""),
    )
    logger.info("Credential configuration loaded: %s", credential_config.describe())
    return credential_config


__all__ = [
    "AuthMode",
    "PasswordAuth",
    "KeyPairAuth",
    "CredentialConfig",
    "load_credential_config",
    "PASSWORD_SECRET",
    "PASSPHRASE_SECRET",
]
