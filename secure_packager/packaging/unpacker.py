"""
Unpacking workflow: extract, check the license, unwrap the key, decrypt.

The pipeline moves through ``EXTRACTED -> LICENSE_CHECKED | LICENSE_SKIPPED ->
KEY_UNWRAPPED -> DECRYPTED``. Any gate failure raises and the pipeline stops in
``FAILED``. Plaintext reaches the output directory only after every gate passed.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from secure_packager.common.config import (
    CIPHERTEXT_SUFFIX,
    MANIFEST_ENTRY,
    WRAPPED_KEY_ENTRY,
)
from secure_packager.common.exceptions import (
    ArchiveFormatError,
    ConfigurationError,
    OperationCancelledError,
)
from secure_packager.common.models import LicenseStatus, Manifest, UnpackResult
from secure_packager.crypto.envelope import unwrap_key
from secure_packager.crypto.keys import KeyRole, load_private_key
from secure_packager.crypto.symmetric import SymmetricCipher
from secure_packager.licensing.verifier import LicenseVerifier
from secure_packager.packaging.archive import check_entry_name, extract_archive

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime


class UnpackState(str, Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    LICENSE_CHECKED = "license_checked"
    LICENSE_SKIPPED = "license_skipped"
    KEY_UNWRAPPED = "key_unwrapped"
    DECRYPTED = "decrypted"
    FAILED = "failed"


class Unpacker:
    """Runs one unpack of one archive.

    ``now`` overrides the wall clock for the license expiry comparison only.
    """

    def __init__(
        self,
        recipient_private_key_path: Path | str,
        license_token_path: Path | str | None = None,
        vendor_public_key_path: Path | str | None = None,
        now: datetime | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.recipient_private_key_path = Path(recipient_private_key_path)
        self.license_token_path = (
            Path(license_token_path) if license_token_path else None
        )
        self.vendor_public_key_path = (
            Path(vendor_public_key_path) if vendor_public_key_path else None
        )
        self.now = now
        self.should_cancel = should_cancel
        self.state = UnpackState.PENDING

    def _advance(self, state: UnpackState) -> None:
        self.logger.debug("Unpack state %s -> %s", self.state.value, state.value)
        self.state = state

    def _checkpoint(self, stage: str) -> None:
        if self.should_cancel is not None and self.should_cancel():
            msg = f"unpacking cancelled before {stage}"
            raise OperationCancelledError(msg)

    def _read_manifest(self, work_dir: Path) -> Manifest | None:
        path = work_dir / MANIFEST_ENTRY
        if not path.is_file():
            return None
        try:
            return Manifest.model_validate_json(path.read_bytes())
        except ValidationError as err:
            msg = f"invalid {MANIFEST_ENTRY}: {err}"
            raise ArchiveFormatError(msg) from err

    def license_required(self, manifest: Manifest | None) -> bool:
        """Any one signal is enough to enforce the license."""
        signals = {
            "manifest": bool(manifest and manifest.license_required),
            "license_token": self.license_token_path is not None,
            "vendor_public_key": self.vendor_public_key_path is not None,
        }
        required = any(signals.values())
        if required:
            self.logger.info(
                "License enforcement on (signals: %s)",
                ", ".join(name for name, on in signals.items() if on),
            )
        else:
            self.logger.debug("No license signal present; skipping license check")
        return required

    def _resolve_vendor_key(
        self, manifest: Manifest | None, work_dir: Path
    ) -> Path:
        if self.vendor_public_key_path is not None:
            if not self.vendor_public_key_path.is_file():
                msg = f"vendor public key not found: {self.vendor_public_key_path}"
                raise ConfigurationError(msg)
            return self.vendor_public_key_path
        if manifest is not None and manifest.vendor_public_key:
            embedded = check_entry_name(manifest.vendor_public_key, work_dir)
            if embedded.is_file():
                return embedded
        msg = (
            "license required: vendor public key not found; provide a vendor "
            "public key path or include it in the archive"
        )
        raise ConfigurationError(msg)

    def _check_license(
        self, manifest: Manifest | None, work_dir: Path
    ) -> LicenseStatus:
        if self.license_token_path is None:
            msg = "license required: provide a license token path"
            raise ConfigurationError(msg)
        vendor_key_path = self._resolve_vendor_key(manifest, work_dir)
        if not self.license_token_path.is_file():
            msg = f"license token not found: {self.license_token_path}"
            raise ConfigurationError(msg)
        self._checkpoint("license verification")
        verifier = LicenseVerifier.from_file(vendor_key_path)
        return verifier.verify_file(self.license_token_path, self.now)

    def _unwrap(self, work_dir: Path) -> bytes:
        wrapped_path = work_dir / WRAPPED_KEY_ENTRY
        if not wrapped_path.is_file():
            msg = f"archive is missing {WRAPPED_KEY_ENTRY}"
            raise ArchiveFormatError(msg)
        private_key = load_private_key(
            self.recipient_private_key_path, KeyRole.RECIPIENT
        )
        self._checkpoint("key unwrap")
        return unwrap_key(private_key, wrapped_path.read_bytes())

    def _decrypt_all(
        self, cipher: SymmetricCipher, work_dir: Path, plain_dir: Path
    ) -> None:
        plain_dir.mkdir()
        encrypted = sorted(
            p
            for p in work_dir.iterdir()
            if p.is_file()
            and p.name.endswith(CIPHERTEXT_SUFFIX)
            and len(p.name) > len(CIPHERTEXT_SUFFIX)
        )
        for enc in encrypted:
            self._checkpoint(f"decrypting {enc.name}")
            name = enc.name[: -len(CIPHERTEXT_SUFFIX)]
            (plain_dir / name).write_bytes(cipher.decrypt(enc.read_bytes()))
            self.logger.info("Decrypted %s -> %s", enc.name, name)

    def _commit(self, plain_dir: Path, output_dir: Path) -> list[Path]:
        if output_dir.exists() and not output_dir.is_dir():
            msg = f"output path is not a directory: {output_dir}"
            raise ConfigurationError(msg)
        entries = sorted(plain_dir.iterdir())
        for entry in entries:
            target = output_dir / entry.name
            if target.is_dir():
                msg = f"output path is a directory: {target}"
                raise ConfigurationError(msg)
        output_dir.mkdir(parents=True, exist_ok=True)
        files = []
        for entry in entries:
            target = output_dir / entry.name
            shutil.move(str(entry), str(target))
            files.append(target)
        return files

    def unpack(self, archive_path: Path | str, output_dir: Path | str) -> UnpackResult:
        archive_path = Path(archive_path)
        output_dir = Path(output_dir)
        if not archive_path.is_file():
            msg = f"archive not found: {archive_path}"
            raise ConfigurationError(msg)
        if not self.recipient_private_key_path.is_file():
            msg = f"recipient private key not found: {self.recipient_private_key_path}"
            raise ConfigurationError(msg)

        try:
            with tempfile.TemporaryDirectory(prefix="secure_packager-") as scratch:
                work_dir = Path(scratch) / "archive"
                plain_dir = Path(scratch) / "plain"
                work_dir.mkdir()
                extract_archive(archive_path, work_dir)
                self._advance(UnpackState.EXTRACTED)

                manifest = self._read_manifest(work_dir)
                required = self.license_required(manifest)
                status: LicenseStatus | None = None
                if required:
                    status = self._check_license(manifest, work_dir)
                    self._advance(UnpackState.LICENSE_CHECKED)
                else:
                    self._advance(UnpackState.LICENSE_SKIPPED)

                cipher = SymmetricCipher(self._unwrap(work_dir))
                self._advance(UnpackState.KEY_UNWRAPPED)

                self._decrypt_all(cipher, work_dir, plain_dir)
                self._checkpoint("writing output")
                files = self._commit(plain_dir, output_dir)
                self._advance(UnpackState.DECRYPTED)
        except Exception:
            self._advance(UnpackState.FAILED)
            raise

        return UnpackResult(
            files=files, license_required=required, license_status=status
        )


def unpack(
    archive_path: Path | str,
    recipient_private_key_path: Path | str,
    output_dir: Path | str,
    license_token_path: Path | str | None = None,
    vendor_public_key_path: Path | str | None = None,
    now: datetime | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> UnpackResult:
    """Reproduce the packaged files in ``output_dir`` if every gate passes."""
    unpacker = Unpacker(
        recipient_private_key_path,
        license_token_path=license_token_path,
        vendor_public_key_path=vendor_public_key_path,
        now=now,
        should_cancel=should_cancel,
    )
    return unpacker.unpack(archive_path, output_dir)
