"""
RSA key loading and canonical PEM serialization.

Input may be PKCS#1 (``RSA PUBLIC KEY`` / ``RSA PRIVATE KEY``), PKCS#8
(``PRIVATE KEY``) or PKIX (``PUBLIC KEY``). Output is always PKCS#8 for private
keys and SubjectPublicKeyInfo for public keys.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from secure_packager.common.config import RSA_KEY_SIZE, RSA_PUBLIC_EXPONENT
from secure_packager.common.exceptions import ConfigurationError, KeyFormatError

logger = logging.getLogger(__name__)


class KeyRole(str, Enum):
    RECIPIENT = "recipient"
    VENDOR = "vendor"


def _read_pem(path: Path | str, role: KeyRole, kind: str) -> bytes:
    path = Path(path)
    try:
        return path.read_bytes()
    except FileNotFoundError as err:
        msg = f"{role.value} {kind} key not found: {path}"
        raise ConfigurationError(msg) from err
    except OSError as err:
        msg = f"cannot read {role.value} {kind} key {path}: {err}"
        raise ConfigurationError(msg) from err


def parse_public_key(
    pem: bytes, role: KeyRole = KeyRole.RECIPIENT
) -> rsa.RSAPublicKey:
    """Parse a PKIX or PKCS#1 PEM public key, requiring RSA."""
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, UnsupportedAlgorithm) as err:
        msg = f"invalid {role.value} public key PEM: {err}"
        raise KeyFormatError(msg) from err
    if not isinstance(key, rsa.RSAPublicKey):
        msg = f"{role.value} public key is not RSA"
        raise KeyFormatError(msg)
    return key


def parse_private_key(
    pem: bytes, role: KeyRole = KeyRole.RECIPIENT
) -> rsa.RSAPrivateKey:
    """Parse a PKCS#1 or PKCS#8 PEM private key, requiring RSA."""
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except TypeError as err:
        # Raised for password-protected keys.
        msg = f"{role.value} private key is encrypted: {err}"
        raise KeyFormatError(msg) from err
    except (ValueError, UnsupportedAlgorithm) as err:
        msg = f"invalid {role.value} private key PEM: {err}"
        raise KeyFormatError(msg) from err
    if not isinstance(key, rsa.RSAPrivateKey):
        msg = f"{role.value} private key is not RSA"
        raise KeyFormatError(msg)
    return key


def load_public_key(
    path: Path | str, role: KeyRole = KeyRole.RECIPIENT
) -> rsa.RSAPublicKey:
    """Load an RSA public key from a PEM file."""
    key = parse_public_key(_read_pem(path, role, "public"), role)
    logger.debug("Loaded %s public key (%d bits) from %s", role.value, key.key_size, path)
    return key


def load_private_key(
    path: Path | str, role: KeyRole = KeyRole.RECIPIENT
) -> rsa.RSAPrivateKey:
    """Load an RSA private key from a PEM file."""
    key = parse_private_key(_read_pem(path, role, "private"), role)
    logger.debug("Loaded %s private key (%d bits) from %s", role.value, key.key_size, path)
    return key


def public_key_to_pem(key: rsa.RSAPublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def private_key_to_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def generate_private_key(key_size: int = RSA_KEY_SIZE) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size
    )
