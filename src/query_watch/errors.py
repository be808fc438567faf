from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple


class ConfigErrorKind(str, Enum):
    INVALID_AUTH_MODE = "InvalidAuthMode"
    MISSING_REQUIRED = "MissingRequired"
    MISSING_CREDENTIAL = "MissingCredential"


class KeyErrorKind(str, Enum):
    UNREADABLE = "Unreadable"
    BAD_ENCODING = "BadEncoding"
    MALFORMED_ENVELOPE = "MalformedEnvelope"
    PASSPHRASE_REQUIRED = "PassphraseRequired"
    UNSUPPORTED_KEY_TYPE = "UnsupportedKeyType"
    DECRYPTION_FAILED = "DecryptionFailed"
    INVALID_KEY_DATA = "InvalidKeyData"


class ConnectionErrorKind(str, Enum):
    UNREACHABLE = "Unreachable"
    DSN_BUILD_FAILED = "DSNBuildFailed"


class StartupError(Exception):
    """Base for every failure that must stop the process before it serves."""

    def __init__(self, kind: Enum, message: str) -> None:
        self.kind = kind
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.args[0]}"


class ConfigError(StartupError):
    """Environment or secret-store configuration is invalid or incomplete."""

    def __init__(
        self, kind: ConfigErrorKind, message: str, key: Optional[str] = None
    ) -> None:
        self.key = key
        super().__init__(kind, message)


class KeyMaterialError(StartupError):
    """Private key material could not be read, decrypted or parsed."""

    def __init__(
        self,
        kind: KeyErrorKind,
        message: str,
        attempts: Optional[List[Tuple[str, str]]] = None,
    ) -> None:
        self.attempts = list(attempts or [])
        super().__init__(kind, message)


class WarehouseConnectionError(StartupError):
    """Descriptor could not be built or the warehouse did not answer the ping."""

    def __init__(
        self,
        kind: ConnectionErrorKind,
        message: str,
        descriptor: Optional[str] = None,
    ) -> None:
        # redacted form only
        self.descriptor = descriptor
        super().__init__(kind, message)


class ScrubbedSecretError(RuntimeError):
    """A secret was read after it had been wiped."""


class QueryFetchError(Exception):
    """The failed-query lookup against the warehouse did not complete."""


__all__ = [
    "ConfigErrorKind",
    "KeyErrorKind",
    "ConnectionErrorKind",
    "StartupError",
    "ConfigError",
    "KeyMaterialError",
    "WarehouseConnectionError",
    "ScrubbedSecretError",
    "QueryFetchError",
]
