"""Business logic services for the packager HTTP service.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any

from secure_packager.common.exceptions import PackagerError
from secure_packager.common.models import (
    IssueTokenRequest,
    IssueTokenResponse,
    PackRequest,
    PackResponse,
    UnpackRequest,
    UnpackResult,
)
from secure_packager.licensing.issuer import issue_token
from secure_packager.packaging.packager import pack
from secure_packager.packaging.unpacker import unpack


class PackagerService:
    """Maps validated requests onto the packaging core."""

    def __init__(self, admin_password: str | None, logger: logging.Logger):
        self.admin_password = admin_password
        self.logger = logger

    @property
    def token_issuance_enabled(self) -> bool:
        return bool(self.admin_password)

    def health(self) -> dict[str, Any]:
        return {"status": "ok", "token_issuance": self.token_issuance_enabled}

    def pack(self, req: PackRequest) -> PackResponse:
        self.logger.info("Pack request for %s", req.input_dir)
        archive_path = pack(
            req.input_dir,
            req.output_dir,
            req.recipient_public_key_path,
            enable_zip=req.enable_zip,
            enable_license=req.enable_license,
            vendor_public_key_path=req.vendor_public_key_path,
            cleanup=req.cleanup,
        )
        return PackResponse(archive_path=archive_path)

    def unpack(self, req: UnpackRequest) -> UnpackResult:
        self.logger.info("Unpack request for %s", req.archive_path)
        return unpack(
            req.archive_path,
            req.recipient_private_key_path,
            req.output_dir,
            license_token_path=req.license_token_path,
            vendor_public_key_path=req.vendor_public_key_path,
        )

    def issue_token(self, req: IssueTokenRequest) -> IssueTokenResponse:
        if not self.token_issuance_enabled or not hmac.compare_digest(
            req.admin_password.encode(), (self.admin_password or "").encode()
        ):
            msg = "Invalid admin password"
            raise PackagerError(msg, 403)
        self.logger.info("Issuing token for %s", req.company)
        token_path = issue_token(
            req.vendor_private_key_path,
            req.expiry,
            req.company,
            req.email,
            req.output_path,
        )
        return IssueTokenResponse(token_path=token_path)
