"""
Configuration settings and protocol constants for the secure packager.
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path

# Protocol constants shared by the packing and unpacking sides. Changing any of
# these breaks compatibility with archives and tokens produced earlier.
OAEP_LABEL: bytes = b"secure_packager"
CIPHERTEXT_SUFFIX: str = ".enc"
WRAPPED_KEY_ENTRY: str = "wrapped_key.bin"
MANIFEST_ENTRY: str = "manifest.json"
VENDOR_KEY_ENTRY: str = "vendor_public.pem"
ARCHIVE_NAME: str = "encrypted_files.zip"

# License token layout: expiry:company:email:RESERVED_FIELD:signature
RESERVED_FIELD: str = "NOFERNET"  # once carried key material, now a fixed value
TOKEN_SEPARATOR: str = ":"
TOKEN_FIELD_COUNT: int = 5
EXPIRY_FORMAT: str = "%Y-%m-%d"
LICENSE_BLOCK_WINDOW: timedelta = timedelta(hours=24)
LICENSE_WARNING_WINDOW: timedelta = timedelta(days=7)

RSA_KEY_SIZE: int = 2048
RSA_PUBLIC_EXPONENT: int = 65537


def _log_level_from_env(default: int = logging.INFO) -> int:
    value = os.getenv("SECURE_PACKAGER_LOG_LEVEL")
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


class Config:
    """Central configuration class for all system settings."""

    def __init__(self) -> None:
        # Packaging defaults
        self.ARCHIVE_NAME: str = ARCHIVE_NAME
        self.DEFAULT_ZIP: bool = True
        self.DEFAULT_CLEANUP: bool = True
        self.DEFAULT_OUTPUT_DIR: Path = Path("./decrypted")
        self.DEFAULT_TOKEN_PATH: Path = Path("token.txt")

        # Key generation defaults
        self.RSA_KEY_SIZE: int = RSA_KEY_SIZE
        self.KEYS_DIR: Path = Path(os.getenv("SECURE_PACKAGER_KEYS_DIR", "keys"))

        # Server settings
        self.ADMIN_PASSWORD: str | None = os.getenv("SECURE_PACKAGER_ADMIN_PASSWORD")
        self.SERVER_HOST: str = os.getenv("SECURE_PACKAGER_SERVER_HOST", "127.0.0.1")
        self.SERVER_PORT: int = int(os.getenv("SECURE_PACKAGER_SERVER_PORT", "8000"))
        self.SERVER_URL: str = f"http://{self.SERVER_HOST}:{self.SERVER_PORT}"

        # Logging
        self.LOG_LEVEL: int = _log_level_from_env()
