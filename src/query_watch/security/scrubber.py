from __future__ import annotations

import logging
from typing import Optional

from query_watch.context.credentials import CredentialConfig
from query_watch.security.key_material import PrivateKeyHandle

logger = logging.getLogger(__name__)


def scrub(config: CredentialConfig) -> None:
    """
    Zero every secret buffer held by ``config`` and leave it empty.
    Safe to call more than once.
    """
    for buf in config.secret_buffers():
        buf.wipe()
    logger.info("Credential secrets scrubbed from memory")


def scrub_key(handle: Optional[PrivateKeyHandle]) -> None:
    """
    Drop the handle's reference to the private key object.

    The key object is an opaque OpenSSL handle, so its numbers cannot be
    overwritten from Python; they are freed once the last reference goes.
    In key-pair mode the engine keeps that same object in its connect
    arguments for re-authentication, so the private numbers stay in memory
    until the engine is disposed. Releasing the handle only stops this
    process from reading them through it.
    """
    if handle is None or handle.released:
        return
    handle.release()
    logger.info("Private key material released")


__all__ = ["scrub", "scrub_key"]
