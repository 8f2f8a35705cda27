"""
Custom exceptions for the secure packager.

Every fatal condition derives from :class:`PackagerError`. ``status_code`` is the
HTTP status the service layer answers with.
"""

from __future__ import annotations


class PackagerError(Exception):
    """Base exception for fatal packaging and unpacking failures."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(PackagerError):
    """Bad or missing inputs, such as a required key or token path."""


class KeyFormatError(PackagerError):
    """Key material that cannot be parsed or is of the wrong type."""


class ArchiveFormatError(PackagerError):
    """Corrupt container, unsafe entry name, or missing expected entry."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 422)


class LicenseError(PackagerError):
    """License verification failed; decryption is blocked."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class TokenFormatError(LicenseError):
    """Token could not be decoded or has the wrong shape."""


class TokenSignatureError(LicenseError):
    """Token signature does not match the vendor public key."""


class LicenseExpiredError(LicenseError):
    """The license expiry date has passed."""


class LicenseBlockedError(LicenseError):
    """The license expires within the hard block window."""


class CryptoError(PackagerError):
    """Cryptographic operation failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 422)


class IntegrityError(CryptoError):
    """Ciphertext failed authentication; no plaintext is returned."""


class KeyUnwrapError(CryptoError):
    """Wrapped key could not be decrypted with the given private key."""


class MalformedKeyError(CryptoError):
    """Unwrapped content is not a valid symmetric key encoding."""


class OperationCancelledError(PackagerError):
    """The caller asked for the operation to stop at a checkpoint."""

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class LicenseWarning(UserWarning):
    """Non-fatal: the license is close to expiry but still usable."""
