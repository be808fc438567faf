from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from starlette.config import Config

from query_watch.context.secrets.file_provider import FileSecretProvider
from query_watch.context.secrets.secret_utils import SecretSource
from tests.helpers import PASSPHRASE, legacy_encrypted_pem


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def _pem(key, fmt, encryption=None) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=fmt,
        encryption_algorithm=encryption or serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def key_pems(rsa_key, ec_key) -> Dict[str, bytes]:
    """PEM renditions of the same RSA key, plus an EC key."""
    pkcs1_der = rsa_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )
    return {
        "pkcs8": _pem(rsa_key, serialization.PrivateFormat.PKCS8),
        "pkcs1": _pem(rsa_key, serialization.PrivateFormat.TraditionalOpenSSL),
        "pkcs8_encrypted": _pem(
            rsa_key,
            serialization.PrivateFormat.PKCS8,
            serialization.BestAvailableEncryption(PASSPHRASE),
        ),
        "legacy_encrypted": _pem(
            rsa_key,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.BestAvailableEncryption(PASSPHRASE),
        ),
        "legacy_aes128": legacy_encrypted_pem(pkcs1_der, PASSPHRASE, "AES-128-CBC"),
        "legacy_des3": legacy_encrypted_pem(pkcs1_der, PASSPHRASE, "DES-EDE3-CBC"),
        "ec_pkcs8": _pem(ec_key, serialization.PrivateFormat.PKCS8),
    }


@pytest.fixture
def secrets_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "secrets"
    directory.mkdir()
    return directory


@pytest.fixture
def make_source(secrets_dir: Path):
    """Build a file-backed SecretSource over ``secrets_dir`` and an env dict."""

    def _make(environ: Dict[str, str]) -> SecretSource:
        return SecretSource(FileSecretProvider(secrets_dir), Config(environ=environ))

    return _make
