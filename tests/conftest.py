import os
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from secure_packager.crypto.keys import private_key_to_pem, public_key_to_pem


def _generate() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def recipient_key() -> rsa.RSAPrivateKey:
    return _generate()


@pytest.fixture(scope="session")
def other_recipient_key() -> rsa.RSAPrivateKey:
    return _generate()


@pytest.fixture(scope="session")
def vendor_key() -> rsa.RSAPrivateKey:
    return _generate()


def write_key_pair(keys_dir: Path, name: str, key: rsa.RSAPrivateKey) -> tuple[Path, Path]:
    keys_dir.mkdir(parents=True, exist_ok=True)
    private_path = keys_dir / f"{name}_private.pem"
    public_path = keys_dir / f"{name}_public.pem"
    private_path.write_bytes(private_key_to_pem(key))
    public_path.write_bytes(public_key_to_pem(key.public_key()))
    return private_path, public_path


@pytest.fixture
def recipient_keys(tmp_path: Path, recipient_key) -> tuple[Path, Path]:
    """Recipient (private, public) PEM paths."""
    return write_key_pair(tmp_path / "keys", "customer", recipient_key)


@pytest.fixture
def vendor_keys(tmp_path: Path, vendor_key) -> tuple[Path, Path]:
    """Vendor (private, public) PEM paths."""
    return write_key_pair(tmp_path / "keys", "vendor", vendor_key)


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    """Two files: 5 bytes of text and 32 KiB of random data."""
    src = tmp_path / "input"
    src.mkdir()
    (src / "hello.txt").write_bytes(b"hello")
    (src / "random.bin").write_bytes(os.urandom(32 * 1024))
    return src


@pytest.fixture
def key_writer():
    """Write an extra key pair to disk: key_writer(dir, name, key)."""
    return write_key_pair
