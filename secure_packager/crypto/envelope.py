"""
Wrapping of the package key under the recipient's RSA key pair.
"""

from __future__ import annotations

import logging
import re

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from secure_packager.common.config import OAEP_LABEL
from secure_packager.common.exceptions import KeyUnwrapError, MalformedKeyError
from secure_packager.crypto.symmetric import SymmetricCipher

logger = logging.getLogger(__name__)

# Fernet keys: 32 bytes, urlsafe base64 with padding.
_KEY_ENCODING = re.compile(rb"[A-Za-z0-9_-]{43}=")


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=OAEP_LABEL,
    )


def wrap_key(public_key: rsa.RSAPublicKey, symmetric_key: bytes) -> bytes:
    """Encrypt the textual key encoding with RSA-OAEP under ``public_key``."""
    wrapped = public_key.encrypt(symmetric_key, _oaep())
    logger.debug("Wrapped symmetric key (%d bytes)", len(wrapped))
    return wrapped


def unwrap_key(private_key: rsa.RSAPrivateKey, wrapped: bytes) -> bytes:
    """Recover the symmetric key wrapped by :func:`wrap_key`.

    Raises:
        KeyUnwrapError: the blob does not decrypt under ``private_key``.
        MalformedKeyError: it decrypts, but not to a valid key encoding.
    """
    try:
        raw = private_key.decrypt(wrapped, _oaep())
    except ValueError as err:
        msg = "failed to unwrap key: wrong private key or corrupted blob"
        raise KeyUnwrapError(msg) from err

    # Fail here rather than on the first file.
    if not _KEY_ENCODING.fullmatch(raw):
        msg = "unwrapped key is not a 44-character base64url key encoding"
        raise MalformedKeyError(msg)
    SymmetricCipher(raw)
    return raw
