from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

from query_watch.context.secrets.secret_provider import SecretProvider

DEFAULT_SECRETS_DIR = "/run/secrets"

logger = logging.getLogger(__name__)


class FileSecretProvider(SecretProvider):
    """
    Secret store backed by one file per secret, as mounted by Docker/Kubernetes
    under ``/run/secrets``. Contents are read straight into a bytearray.
    """

    def __init__(self, directory: Union[str, Path] = DEFAULT_SECRETS_DIR) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Optional[Path]:
        if not key or key in (".", "..") or "/" in key or os.sep in key:
            return None
        return self._directory / key

    def get(self, key: str) -> Optional[bytearray]:
        path = self._path_for(key)
        if path is None:
            logger.debug("Rejected secret name %r", key)
            return None
        try:
            with open(path, "rb") as fh:
                size = os.fstat(fh.fileno()).st_size
                buf = bytearray(size)
                read = fh.readinto(buf) or 0
        except OSError as exc:
            logger.debug("Secret file %s not usable: %s", path, exc.strerror)
            return None
        del buf[read:]
        return buf
