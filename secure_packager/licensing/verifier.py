"""
License token verification and expiry policy.
"""

from __future__ import annotations

import base64
import binascii
import logging
import warnings
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from secure_packager.common.config import (
    EXPIRY_FORMAT,
    LICENSE_BLOCK_WINDOW,
    LICENSE_WARNING_WINDOW,
    RESERVED_FIELD,
    TOKEN_FIELD_COUNT,
    TOKEN_SEPARATOR,
)
from secure_packager.common.exceptions import (
    ConfigurationError,
    LicenseBlockedError,
    LicenseExpiredError,
    LicenseWarning,
    TokenFormatError,
    TokenSignatureError,
)
from secure_packager.common.models import LicenseLevel, LicenseStatus, LicenseToken
from secure_packager.crypto.keys import KeyRole, load_public_key
from secure_packager.licensing.issuer import pss_padding

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import rsa

_DAY = timedelta(days=1)


def _b64url_decode(value: str | bytes, what: str) -> bytes:
    try:
        return base64.b64decode(value, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as err:
        msg = f"invalid {what} base64: {err}"
        raise TokenFormatError(msg) from err


def decode_token(text: str) -> LicenseToken:
    """Undo the outer encoding and split the token into its five fields."""
    raw = _b64url_decode(text.strip(), "token")
    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError as err:
        msg = "token payload is not valid UTF-8"
        raise TokenFormatError(msg) from err

    parts = decoded.split(TOKEN_SEPARATOR)
    if len(parts) != TOKEN_FIELD_COUNT:
        msg = (
            f"invalid token format: expected {TOKEN_FIELD_COUNT} fields, "
            f"got {len(parts)}"
        )
        raise TokenFormatError(msg)
    expiry, company, email, reserved, signature_b64 = parts
    return LicenseToken(
        expiry=expiry,
        company=company,
        email=email,
        reserved=reserved,
        signature=_b64url_decode(signature_b64, "signature"),
    )


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class LicenseVerifier:
    """Verifies vendor-signed tokens and applies the expiry policy."""

    def __init__(self, vendor_public_key: rsa.RSAPublicKey):
        self.vendor_public_key = vendor_public_key
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_file(cls, path: Path | str) -> LicenseVerifier:
        return cls(load_public_key(path, KeyRole.VENDOR))

    def check_signature(self, token: LicenseToken) -> None:
        try:
            self.vendor_public_key.verify(
                token.signature,
                token.signed_payload(),
                pss_padding(padding.PSS.AUTO),
                hashes.SHA256(),
            )
        except InvalidSignature as err:
            msg = "token signature invalid"
            raise TokenSignatureError(msg) from err
        if token.reserved != RESERVED_FIELD:
            self.logger.debug("Token carries non-standard reserved field")

    @staticmethod
    def evaluate(token: LicenseToken, now: datetime | None = None) -> LicenseStatus:
        """Apply the expiry policy to a token whose signature was checked.

        ``now`` replaces the wall clock for this comparison only.
        """
        try:
            expiry = datetime.strptime(token.expiry, EXPIRY_FORMAT).replace(
                tzinfo=timezone.utc
            )
        except ValueError as err:
            msg = f"invalid expiry date: {token.expiry!r}"
            raise TokenFormatError(msg) from err

        checked_at = _utc(now) if now is not None else datetime.now(timezone.utc)
        expiry_label = expiry.strftime(EXPIRY_FORMAT)
        if checked_at > expiry:
            msg = (
                f"token expired (expiry: {expiry_label}, "
                f"now: {checked_at.strftime(EXPIRY_FORMAT)})"
            )
            raise LicenseExpiredError(msg)

        remaining = expiry - checked_at
        if remaining <= LICENSE_BLOCK_WINDOW:
            msg = f"access blocked - license expires within 24 hours ({expiry_label})"
            raise LicenseBlockedError(msg)

        level = (
            LicenseLevel.WARNING
            if remaining <= LICENSE_WARNING_WINDOW
            else LicenseLevel.VALID
        )
        return LicenseStatus(
            company=token.company,
            email=token.email,
            expiry=expiry.date(),
            expires_at=expiry,
            checked_at=checked_at,
            remaining=remaining,
            remaining_days=remaining // _DAY,
            level=level,
        )

    def verify(self, token_text: str, now: datetime | None = None) -> LicenseStatus:
        """Decode, authenticate and evaluate a token.

        Emits ``LicenseWarning`` when the license is inside the warning window.
        """
        token = decode_token(token_text)
        self.check_signature(token)
        status = self.evaluate(token, now)
        if status.warning:
            message = (
                f"license for {status.company} expires in "
                f"{status.remaining_days} days ({status.expiry.isoformat()})"
            )
            self.logger.warning(message)
            warnings.warn(message, LicenseWarning, stacklevel=2)
        else:
            self.logger.info(
                "License valid for %d more days (expires %s)",
                status.remaining_days,
                status.expiry.isoformat(),
            )
        return status

    def verify_file(
        self, token_path: Path | str, now: datetime | None = None
    ) -> LicenseStatus:
        token_path = Path(token_path)
        try:
            text = token_path.read_text()
        except FileNotFoundError as err:
            msg = f"license token not found: {token_path}"
            raise ConfigurationError(msg) from err
        except (OSError, UnicodeDecodeError) as err:
            msg = f"cannot read license token {token_path}: {err}"
            raise TokenFormatError(msg) from err
        return self.verify(text, now)


def verify_token(
    vendor_public_key_path: Path | str,
    token_path: Path | str,
    now: datetime | None = None,
) -> LicenseStatus:
    """Verify the token at ``token_path`` against the vendor public key."""
    return LicenseVerifier.from_file(vendor_public_key_path).verify_file(
        token_path, now
    )
