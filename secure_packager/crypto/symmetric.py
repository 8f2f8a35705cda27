"""Authenticated symmetric encryption of payload files.

Uses Fernet tokens, which are self-describing: a version byte, a timestamp, a
random IV, the AES-128-CBC ciphertext and an HMAC-SHA256 tag over all of it.
A single key protects every file of a package.
"""

from __future__ import annotations

import binascii

from cryptography.fernet import Fernet, InvalidToken

from secure_packager.common.exceptions import IntegrityError, MalformedKeyError


class SymmetricCipher:
    """Fernet-based cipher bound to one symmetric key."""

    def __init__(self, key: bytes) -> None:
        try:
            self._fernet = Fernet(key)
        except (ValueError, TypeError, binascii.Error) as err:
            msg = f"invalid symmetric key encoding: {err}"
            raise MalformedKeyError(msg) from err

    @staticmethod
    def generate() -> bytes:
        """Return a fresh base64url-encoded key."""
        return Fernet.generate_key()

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._fernet.encrypt(plaintext)

    def decrypt(self, blob: bytes) -> bytes:
        """Authenticate and decrypt ``blob``.

        Raises ``IntegrityError`` on any tag, version or structure problem;
        no plaintext is returned in that case.
        """
        try:
            return self._fernet.decrypt(blob)
        except InvalidToken as err:
            msg = "ciphertext failed integrity check"
            raise IntegrityError(msg) from err


def generate_key() -> bytes:
    return SymmetricCipher.generate()


def encrypt(key: bytes, plaintext: bytes) -> bytes:
    return SymmetricCipher(key).encrypt(plaintext)


def decrypt(key: bytes, blob: bytes) -> bytes:
    return SymmetricCipher(key).decrypt(blob)
