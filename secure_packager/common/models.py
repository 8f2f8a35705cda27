"""
Pydantic models for archive metadata, license data and request/response validation.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from secure_packager.common.config import (
    RESERVED_FIELD,
    TOKEN_SEPARATOR,
    VENDOR_KEY_ENTRY,
)


class Manifest(BaseModel):
    """Archive metadata describing licensing requirements."""

    license_required: bool = False
    vendor_public_key: str | None = VENDOR_KEY_ENTRY


class LicenseToken(BaseModel):
    """Decoded, not yet verified, license token fields."""

    model_config = ConfigDict(frozen=True)

    expiry: str
    company: str
    email: str
    reserved: str = RESERVED_FIELD
    signature: bytes = b""

    def signed_payload(self) -> bytes:
        """Bytes covered by the vendor signature."""
        return TOKEN_SEPARATOR.join(
            (self.expiry, self.company, self.email, self.reserved)
        ).encode()


class LicenseLevel(str, Enum):
    VALID = "valid"
    WARNING = "warning"


class LicenseStatus(BaseModel):
    """Outcome of a successful license verification."""

    company: str
    email: str
    expiry: date
    expires_at: datetime
    checked_at: datetime
    remaining: timedelta
    remaining_days: int
    level: LicenseLevel

    @property
    def warning(self) -> bool:
        return self.level is LicenseLevel.WARNING


class UnpackResult(BaseModel):
    files: list[Path]
    license_required: bool = False
    license_status: LicenseStatus | None = None


class PackRequest(BaseModel):
    input_dir: Path
    output_dir: Path
    recipient_public_key_path: Path
    enable_zip: bool = True
    enable_license: bool = False
    vendor_public_key_path: Path | None = None
    cleanup: bool = True


class PackResponse(BaseModel):
    archive_path: Path


class UnpackRequest(BaseModel):
    archive_path: Path
    recipient_private_key_path: Path
    output_dir: Path
    license_token_path: Path | None = None
    vendor_public_key_path: Path | None = None


class IssueTokenRequest(BaseModel):
    vendor_private_key_path: Path
    expiry: str
    company: str
    email: str
    output_path: Path
    admin_password: str


class IssueTokenResponse(BaseModel):
    token_path: Path
