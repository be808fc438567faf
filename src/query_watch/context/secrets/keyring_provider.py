from __future__ import annotations

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

from query_watch.context.secrets.secret_provider import SecretProvider

logger = logging.getLogger(__name__)


class KeyringSecretProvider(SecretProvider):
    """
    OS keychain-backed secret provider using keyring package.
    Store secrets outside the environment and the filesystem.
    """

    def __init__(self, service: str) -> None:
        self._service = service

    @property
    def service(self) -> str:
        return self._service

    def get(self, key: str) -> Optional[bytearray]:
        try:
            value: Optional[str] = keyring.get_password(self._service, key)
        except KeyringError as exc:
            logger.warning(
                "keyring lookup failed for service='%s' key='%s': %s",
                self._service,
                key,
                exc,
            )
            return None
        if value is None:
            return None
        return bytearray(value.encode("utf-8"))
