"""
Packaging workflow: encrypt a directory of files for one recipient.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from secure_packager.common.config import (
    ARCHIVE_NAME,
    CIPHERTEXT_SUFFIX,
    MANIFEST_ENTRY,
    VENDOR_KEY_ENTRY,
    WRAPPED_KEY_ENTRY,
)
from secure_packager.common.exceptions import (
    ConfigurationError,
    OperationCancelledError,
)
from secure_packager.common.models import Manifest
from secure_packager.crypto.envelope import wrap_key
from secure_packager.crypto.keys import KeyRole, load_public_key, public_key_to_pem
from secure_packager.crypto.symmetric import SymmetricCipher
from secure_packager.packaging.archive import build_archive

if TYPE_CHECKING:
    from collections.abc import Callable

    from cryptography.hazmat.primitives.asymmetric import rsa


class Packager:
    """Builds an encrypted package for a single recipient key.

    All artifacts are produced in a private staging directory next to the
    output location and only moved into place once every step succeeded.
    """

    def __init__(
        self,
        recipient_public_key_path: Path | str,
        enable_license: bool = False,  # noqa: FBT001, FBT002
        vendor_public_key_path: Path | str | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.enable_license = enable_license
        self.should_cancel = should_cancel

        if enable_license and (
            vendor_public_key_path is None or not str(vendor_public_key_path).strip()
        ):
            msg = "licensing requires a vendor public key path"
            raise ConfigurationError(msg)

        self.recipient_key: rsa.RSAPublicKey = load_public_key(
            recipient_public_key_path, KeyRole.RECIPIENT
        )
        self.vendor_key: rsa.RSAPublicKey | None = None
        if enable_license:
            self.vendor_key = load_public_key(
                vendor_public_key_path, KeyRole.VENDOR  # type: ignore[arg-type]
            )

    def _checkpoint(self, stage: str) -> None:
        if self.should_cancel is not None and self.should_cancel():
            msg = f"packaging cancelled before {stage}"
            raise OperationCancelledError(msg)

    @staticmethod
    def _source_files(input_dir: Path) -> list[Path]:
        if not input_dir.is_dir():
            msg = f"input directory not found: {input_dir}"
            raise ConfigurationError(msg)
        return sorted(p for p in input_dir.iterdir() if p.is_file())

    def _encrypt_files(
        self, cipher: SymmetricCipher, sources: list[Path], staging: Path
    ) -> None:
        for src in sources:
            self._checkpoint(f"encrypting {src.name}")
            out_name = src.name + CIPHERTEXT_SUFFIX
            (staging / out_name).write_bytes(cipher.encrypt(src.read_bytes()))
            self.logger.info("Encrypted %s -> %s", src.name, out_name)

    def _stage_license(self, staging: Path) -> None:
        manifest = Manifest(license_required=True, vendor_public_key=VENDOR_KEY_ENTRY)
        (staging / MANIFEST_ENTRY).write_text(manifest.model_dump_json(indent=2) + "\n")
        (staging / VENDOR_KEY_ENTRY).write_bytes(
            public_key_to_pem(self.vendor_key)  # type: ignore[arg-type]
        )
        self.logger.info(
            "Wrote %s and %s for license enforcement", MANIFEST_ENTRY, VENDOR_KEY_ENTRY
        )

    def pack(
        self,
        input_dir: Path | str,
        output_dir: Path | str,
        enable_zip: bool = True,  # noqa: FBT001, FBT002
        cleanup: bool = True,  # noqa: FBT001, FBT002
    ) -> Path:
        """Encrypt every file in ``input_dir`` and write the package.

        Returns:
            The archive path, or ``output_dir`` when zipping is disabled and
            the loose artifacts were written there instead.
        """
        input_dir = Path(input_dir)
        output_dir = Path(output_dir)
        sources = self._source_files(input_dir)
        if not sources:
            self.logger.warning("No files found in %s", input_dir)

        if output_dir.exists() and not output_dir.is_dir():
            msg = f"output path is not a directory: {output_dir}"
            raise ConfigurationError(msg)
        output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(
            prefix=".staging-", dir=output_dir
        ) as staging_name:
            staging = Path(staging_name)

            symmetric_key = SymmetricCipher.generate()
            try:
                self._encrypt_files(SymmetricCipher(symmetric_key), sources, staging)
                self._checkpoint("wrapping key")
                wrapped = wrap_key(self.recipient_key, symmetric_key)
            finally:
                del symmetric_key
            (staging / WRAPPED_KEY_ENTRY).write_bytes(wrapped)
            self.logger.info("Wrote %s", WRAPPED_KEY_ENTRY)

            if self.enable_license:
                self._stage_license(staging)

            self._checkpoint("commit")
            if not enable_zip:
                self._check_targets(output_dir, self._staged_names(staging))
                self._commit_loose(staging, output_dir)
                return output_dir

            staged_archive = staging / ARCHIVE_NAME
            build_archive(staging, staged_archive)
            loose = [] if cleanup else self._staged_names(staging, skip={ARCHIVE_NAME})
            self._check_targets(output_dir, [ARCHIVE_NAME, *loose])
            if loose:
                self._commit_loose(staging, output_dir, skip={ARCHIVE_NAME})
            archive_path = output_dir / ARCHIVE_NAME
            staged_archive.replace(archive_path)
            self.logger.info("Created %s", archive_path)
            return archive_path

    @staticmethod
    def _staged_names(staging: Path, skip: set[str] | None = None) -> list[str]:
        skip = skip or set()
        return sorted(p.name for p in staging.iterdir() if p.name not in skip)

    @staticmethod
    def _check_targets(output_dir: Path, names: list[str]) -> None:
        for name in names:
            target = output_dir / name
            if target.is_dir():
                msg = f"output path is a directory: {target}"
                raise ConfigurationError(msg)

    def _commit_loose(
        self, staging: Path, output_dir: Path, skip: set[str] | None = None
    ) -> None:
        skip = skip or set()
        for entry in sorted(staging.iterdir()):
            if entry.name in skip:
                continue
            shutil.move(str(entry), str(output_dir / entry.name))
        self.logger.debug("Committed staged artifacts to %s", output_dir)


def pack(
    input_dir: Path | str,
    output_dir: Path | str,
    recipient_public_key_path: Path | str,
    enable_zip: bool = True,  # noqa: FBT001, FBT002
    enable_license: bool = False,  # noqa: FBT001, FBT002
    vendor_public_key_path: Path | str | None = None,
    cleanup: bool = True,  # noqa: FBT001, FBT002
    should_cancel: Callable[[], bool] | None = None,
) -> Path:
    """Package ``input_dir`` for the holder of the recipient private key."""
    packager = Packager(
        recipient_public_key_path,
        enable_license=enable_license,
        vendor_public_key_path=vendor_public_key_path,
        should_cancel=should_cancel,
    )
    return packager.pack(input_dir, output_dir, enable_zip=enable_zip, cleanup=cleanup)
