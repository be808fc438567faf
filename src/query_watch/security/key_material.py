from __future__ import annotations

import binascii
import logging
import os
import re
from contextlib import ExitStack
from typing import List, Optional, Tuple

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from query_watch.context.credentials import CredentialConfig, KeyPairAuth
from query_watch.context.secret_buffer import wipe_bytes
from query_watch.errors import KeyErrorKind, KeyMaterialError, ScrubbedSecretError
from query_watch.security.pem import PemEnvelope, find_envelope

logger = logging.getLogger(__name__)

ENCRYPTED_PKCS8_TYPE = "ENCRYPTED PRIVATE KEY"
PKCS8_TYPE = "PRIVATE KEY"
PKCS1_TYPE = "RSA PRIVATE KEY"

_LABEL_FORMATS = {PKCS8_TYPE: "PKCS#8", PKCS1_TYPE: "PKCS#1"}

# tried in order, each by relabelling the same body
PLAINTEXT_FORMATS: Tuple[Tuple[str, str], ...] = (
    ("PKCS#8", PKCS8_TYPE),
    ("PKCS#1", PKCS1_TYPE),
)

_BASE64_TEXT = re.compile(rb"[A-Za-z0-9+/=\s]+")
_PARSE_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)


class PrivateKeyHandle:
    """
    Owns the parsed RSA private key until it is released by the scrubber.
    Public parameters stay readable afterwards; the private key does not.
    """

    def __init__(self, key: rsa.RSAPrivateKey, source_format: str) -> None:
        numbers = key.public_key().public_numbers()
        self._key: Optional[rsa.RSAPrivateKey] = key
        self.source_format = source_format
        self.key_size = key.key_size
        self.modulus = numbers.n
        self.public_exponent = numbers.e

    def __repr__(self) -> str:
        state = "released" if self._key is None else "live"
        return (
            f"PrivateKeyHandle(format={self.source_format}, "
            f"bits={self.key_size}, {state})"
        )

    @property
    def released(self) -> bool:
        return self._key is None

    @property
    def private_key(self) -> rsa.RSAPrivateKey:
        if self._key is None:
            raise ScrubbedSecretError("private key was read after it had been released")
        return self._key

    def release(self) -> None:
        self._key = None


def _read_key_file(path: str) -> bytearray:
    try:
        with open(path, "rb") as fh:
            buf = bytearray(os.fstat(fh.fileno()).st_size)
            read = fh.readinto(buf) or 0
    except OSError as exc:
        raise KeyMaterialError(
            KeyErrorKind.UNREADABLE,
            f"failed to read private key file {path}: {exc.strerror or exc}",
        ) from exc
    del buf[read:]
    return buf


def _decode_key_content(content: bytearray) -> bytearray:
    if _BASE64_TEXT.fullmatch(content) is None:
        raise KeyMaterialError(
            KeyErrorKind.BAD_ENCODING,
            "failed to decode base64 private key: unexpected characters",
        )
    try:
        decoded = binascii.a2b_base64(content)
    except binascii.Error as exc:
        raise KeyMaterialError(
            KeyErrorKind.BAD_ENCODING, f"failed to decode base64 private key: {exc}"
        ) from exc
    if not decoded:
        raise KeyMaterialError(
            KeyErrorKind.BAD_ENCODING, "failed to decode base64 private key: empty"
        )
    out = bytearray(decoded)
    del decoded
    return out


class KeyMaterialParser:
    """
    Turns the configured key locator into an RSA private key.

    Supported envelopes: unencrypted PKCS#8 and PKCS#1, legacy DEK-Info
    encrypted PEM and PKCS#8 ``ENCRYPTED PRIVATE KEY``. Decoding and
    decryption are done by ``cryptography``; every buffer this class
    allocates is wiped before :meth:`parse` returns or raises.
    """

    def parse(self, config: CredentialConfig) -> PrivateKeyHandle:
        auth = config.auth
        if not isinstance(auth, KeyPairAuth):
            raise ValueError("private key material is only used for key-pair auth")

        with ExitStack() as cleanup:
            raw = self._read_raw(auth)
            cleanup.callback(wipe_bytes, raw)

            envelope = find_envelope(raw)
            if envelope is None:
                raise KeyMaterialError(
                    KeyErrorKind.MALFORMED_ENVELOPE,
                    "failed to parse PEM block containing the private key",
                )

            if envelope.legacy_encrypted:
                passphrase = self._require_passphrase(auth)
                key = self._decrypt(raw, passphrase, "PEM block")
                label = _LABEL_FORMATS.get(envelope.label, envelope.label)
                fmt = f"{label} (legacy encrypted)"
            elif envelope.label == ENCRYPTED_PKCS8_TYPE:
                passphrase = self._require_passphrase(auth)
                key = self._decrypt(raw, passphrase, "encrypted PKCS#8 private key")
                fmt = "PKCS#8 (encrypted)"
            else:
                key, fmt = self._parse_plaintext(raw, envelope)

            handle = PrivateKeyHandle(self._require_rsa(key), fmt)

        logger.info("Loaded %s-bit RSA private key (%s)", handle.key_size, fmt)
        return handle

    @staticmethod
    def _read_raw(auth: KeyPairAuth) -> bytearray:
        if auth.private_key_path:
            return _read_key_file(auth.private_key_path)
        return _decode_key_content(auth.private_key_content.raw())

    @staticmethod
    def _require_passphrase(auth: KeyPairAuth) -> bytearray:
        if not auth.passphrase:
            raise KeyMaterialError(
                KeyErrorKind.PASSPHRASE_REQUIRED,
                "private key is encrypted but no passphrase provided "
                "(set SNOWFLAKE_PRIVATE_KEY_PASSPHRASE)",
            )
        return auth.passphrase.raw()

    @staticmethod
    def _decrypt(raw: bytearray, passphrase: bytearray, what: str) -> PrivateKeyTypes:
        # a wrong passphrase, an unknown cipher and a corrupt body all land here
        try:
            return serialization.load_pem_private_key(raw, password=passphrase)
        except _PARSE_ERRORS as exc:
            raise KeyMaterialError(
                KeyErrorKind.DECRYPTION_FAILED,
                f"failed to decrypt {what}: {exc}",
            ) from exc

    @staticmethod
    def _parse_plaintext(
        raw: bytearray, envelope: PemEnvelope
    ) -> Tuple[PrivateKeyTypes, str]:
        attempts: List[Tuple[str, str]] = []
        for fmt, label in PLAINTEXT_FORMATS:
            framed = envelope.reframe(raw, label)
            try:
                return serialization.load_pem_private_key(framed, password=None), fmt
            except _PARSE_ERRORS as exc:
                attempts.append((fmt, str(exc)))
            finally:
                wipe_bytes(framed)

        detail = "; ".join(f"{fmt}: {msg}" for fmt, msg in attempts)
        raise KeyMaterialError(
            KeyErrorKind.INVALID_KEY_DATA,
            f"failed to parse private key ({detail})",
            attempts=attempts,
        )

    @staticmethod
    def _require_rsa(key: PrivateKeyTypes) -> rsa.RSAPrivateKey:
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyMaterialError(
                KeyErrorKind.UNSUPPORTED_KEY_TYPE,
                f"private key is not RSA type, got {type(key).__name__}",
            )
        return key


def parse_private_key(config: CredentialConfig) -> PrivateKeyHandle:
    return KeyMaterialParser().parse(config)


__all__ = [
    "KeyMaterialParser",
    "PrivateKeyHandle",
    "parse_private_key",
    "PLAINTEXT_FORMATS",
]
