"""
License token issuance.
"""

from __future__ import annotations

import base64
import logging
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from secure_packager.common.config import (
    EXPIRY_FORMAT,
    RESERVED_FIELD,
    TOKEN_SEPARATOR,
)
from secure_packager.common.exceptions import ConfigurationError
from secure_packager.common.models import LicenseToken
from secure_packager.crypto.keys import KeyRole, load_private_key

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import rsa


def pss_padding(salt_length: int) -> padding.PSS:
    return padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=salt_length)


def encode_token(token: LicenseToken) -> str:
    """Outer-encode a signed token as one base64url line."""
    signature_b64 = base64.urlsafe_b64encode(token.signature).decode()
    raw = TOKEN_SEPARATOR.join(
        (token.expiry, token.company, token.email, token.reserved, signature_b64)
    )
    return base64.urlsafe_b64encode(raw.encode()).decode()


def _normalize_expiry(expiry: date | str) -> str:
    if isinstance(expiry, datetime):
        expiry = expiry.date()
    if isinstance(expiry, date):
        return expiry.strftime(EXPIRY_FORMAT)
    try:
        datetime.strptime(expiry, EXPIRY_FORMAT)
    except ValueError as err:
        msg = f"invalid expiry {expiry!r}, expected YYYY-MM-DD"
        raise ConfigurationError(msg) from err
    return expiry


def _check_field(name: str, value: str) -> str:
    value = value.strip()
    if not value:
        msg = f"{name} must not be empty"
        raise ConfigurationError(msg)
    if TOKEN_SEPARATOR in value:
        msg = f"{name} must not contain {TOKEN_SEPARATOR!r}"
        raise ConfigurationError(msg)
    return value


class LicenseIssuer:
    """Signs license tokens with the vendor private key."""

    def __init__(self, vendor_private_key: rsa.RSAPrivateKey):
        self.vendor_private_key = vendor_private_key
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_file(cls, path: Path | str) -> LicenseIssuer:
        return cls(load_private_key(path, KeyRole.VENDOR))

    def sign(self, payload: bytes) -> bytes:
        return self.vendor_private_key.sign(
            payload, pss_padding(padding.PSS.MAX_LENGTH), hashes.SHA256()
        )

    def issue(self, expiry: date | str, company: str, email: str) -> LicenseToken:
        """Build and sign a token; the reserved field is always ``NOFERNET``."""
        unsigned = LicenseToken(
            expiry=_normalize_expiry(expiry),
            company=_check_field("company", company),
            email=_check_field("email", email),
            reserved=RESERVED_FIELD,
        )
        signature = self.sign(unsigned.signed_payload())
        self.logger.debug(
            "Issued token for %s <%s> expiring %s",
            unsigned.company,
            unsigned.email,
            unsigned.expiry,
        )
        return unsigned.model_copy(update={"signature": signature})

    def issue_to_file(
        self, expiry: date | str, company: str, email: str, output_path: Path | str
    ) -> Path:
        token = self.issue(expiry, company, email)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(encode_token(token) + "\n")
        self.logger.info("Token issued -> %s", output_path)
        return output_path


def issue_token(
    vendor_private_key_path: Path | str,
    expiry: date | str,
    company: str,
    email: str,
    output_path: Path | str,
) -> Path:
    """Issue a signed license token and write it to ``output_path``."""
    # Inputs are checked before the key file is read.
    _normalize_expiry(expiry)
    _check_field("company", company)
    _check_field("email", email)
    issuer = LicenseIssuer.from_file(vendor_private_key_path)
    return issuer.issue_to_file(expiry, company, email, output_path)
