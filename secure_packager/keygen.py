"""
Key generator for RSA key pairs in canonical PEM form.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from secure_packager.common.config import Config
from secure_packager.crypto.keys import (
    generate_private_key,
    private_key_to_pem,
    public_key_to_pem,
)

logger = logging.getLogger(__name__)


class KeyGenerator:
    """Writes ``<name>_private.pem`` (PKCS#8) and ``<name>_public.pem`` (SPKI)."""

    def __init__(self, keys_dir: Path | None = None):
        config = Config()
        self.keys_dir = keys_dir or config.KEYS_DIR
        self.key_size = config.RSA_KEY_SIZE

    def generate_keys(self, name: str = "customer", bits: int | None = None) -> tuple[Path, Path]:
        """Generate and save a private/public key pair."""
        bits = bits or self.key_size
        logger.info("Generating %d-bit RSA keys for %s...", bits, name)

        private_key = generate_private_key(bits)
        private_pem = private_key_to_pem(private_key)
        public_pem = public_key_to_pem(private_key.public_key())

        private_path = self.keys_dir / f"{name}_private.pem"
        public_path = self.keys_dir / f"{name}_public.pem"
        self.keys_dir.mkdir(parents=True, exist_ok=True)

        with private_path.open("wb") as f:
            f.write(private_pem)
        os.chmod(private_path, 0o600)

        with public_path.open("wb") as f:
            f.write(public_pem)

        logger.info("Keys generated and saved:")
        logger.info("  Private: %s", private_path)
        logger.info("  Public: %s", public_path)
        logger.info("Keep the private key secure!")
        return private_path, public_path
