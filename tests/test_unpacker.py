import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from secure_packager.common.exceptions import (
    ArchiveFormatError,
    ConfigurationError,
    IntegrityError,
    KeyUnwrapError,
    LicenseBlockedError,
    LicenseExpiredError,
    OperationCancelledError,
    TokenSignatureError,
)
from secure_packager.crypto.keys import public_key_to_pem
from secure_packager.licensing import issue_token
from secure_packager.packaging import Unpacker, UnpackState, pack, unpack


@pytest.fixture
def plain_archive(tmp_path: Path, input_dir: Path, recipient_keys) -> Path:
    return pack(input_dir, tmp_path / "packed", recipient_keys[1])


@pytest.fixture
def licensed_archive(tmp_path: Path, input_dir: Path, recipient_keys, vendor_keys) -> Path:
    return pack(
        input_dir,
        tmp_path / "packed_lic",
        recipient_keys[1],
        enable_license=True,
        vendor_public_key_path=vendor_keys[1],
    )


@pytest.fixture
def token(tmp_path: Path, vendor_keys) -> Path:
    return issue_token(
        vendor_keys[0], "2099-12-31", "Demo Co", "demo@example.com", tmp_path / "token.txt"
    )


@pytest.fixture
def scratch_dir(tmp_path: Path, monkeypatch) -> Path:
    """Redirect temporary directories so leftovers can be inspected."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def _rewrite_entry(archive: Path, name: str, transform) -> None:
    with zipfile.ZipFile(archive) as zf:
        entries = {n: zf.read(n) for n in zf.namelist()}
    entries[name] = transform(entries[name])
    with zipfile.ZipFile(archive, "w") as zf:
        for n, data in entries.items():
            zf.writestr(n, data)


def _drop_entry(archive: Path, name: str) -> None:
    with zipfile.ZipFile(archive) as zf:
        entries = {n: zf.read(n) for n in zf.namelist() if n != name}
    with zipfile.ZipFile(archive, "w") as zf:
        for n, data in entries.items():
            zf.writestr(n, data)


def test_round_trip(tmp_path: Path, input_dir: Path, plain_archive: Path, recipient_keys) -> None:
    out = tmp_path / "decrypted"
    result = unpack(plain_archive, recipient_keys[0], out)
    assert sorted(p.name for p in result.files) == ["hello.txt", "random.bin"]
    for name in ("hello.txt", "random.bin"):
        assert (out / name).read_bytes() == (input_dir / name).read_bytes()
    assert result.license_required is False
    assert result.license_status is None


def test_state_machine_without_license(tmp_path: Path, plain_archive: Path, recipient_keys) -> None:
    unpacker = Unpacker(recipient_keys[0])
    states = []
    original = unpacker._advance

    def record(state):
        states.append(state)
        original(state)

    unpacker._advance = record
    unpacker.unpack(plain_archive, tmp_path / "out")
    assert states == [
        UnpackState.EXTRACTED,
        UnpackState.LICENSE_SKIPPED,
        UnpackState.KEY_UNWRAPPED,
        UnpackState.DECRYPTED,
    ]


def test_wrong_private_key_fails(tmp_path: Path, plain_archive: Path, other_recipient_key, key_writer) -> None:
    other_private, _ = key_writer(tmp_path / "other", "other", other_recipient_key)
    out = tmp_path / "out"
    unpacker = Unpacker(other_private)
    with pytest.raises(KeyUnwrapError):
        unpacker.unpack(plain_archive, out)
    assert unpacker.state is UnpackState.FAILED
    assert not out.exists()


def test_tampered_entry_writes_nothing(tmp_path: Path, plain_archive: Path, recipient_keys) -> None:
    def flip(data: bytes) -> bytes:
        raw = bytearray(data)
        raw[40] = ord("A") if raw[40] != ord("A") else ord("B")
        return bytes(raw)

    _rewrite_entry(plain_archive, "random.bin.enc", flip)
    out = tmp_path / "out"
    with pytest.raises(IntegrityError):
        unpack(plain_archive, recipient_keys[0], out)
    # hello.txt decrypts fine but must not be emitted either.
    assert not out.exists()


def test_missing_wrapped_key(tmp_path: Path, plain_archive: Path, recipient_keys) -> None:
    _drop_entry(plain_archive, "wrapped_key.bin")
    with pytest.raises(ArchiveFormatError, match="wrapped_key.bin"):
        unpack(plain_archive, recipient_keys[0], tmp_path / "out")


def test_traversal_entry_rejected(tmp_path: Path, plain_archive: Path, recipient_keys) -> None:
    with zipfile.ZipFile(plain_archive, "a") as zf:
        zf.writestr("../escape.enc", b"x")
    with pytest.raises(ArchiveFormatError):
        unpack(plain_archive, recipient_keys[0], tmp_path / "out")
    assert not (tmp_path / "escape.enc").exists()


def test_missing_archive(tmp_path: Path, recipient_keys) -> None:
    with pytest.raises(ConfigurationError, match="archive not found"):
        unpack(tmp_path / "nope.zip", recipient_keys[0], tmp_path / "out")


def test_work_dir_removed_on_success(tmp_path: Path, plain_archive, recipient_keys, scratch_dir) -> None:
    unpack(plain_archive, recipient_keys[0], tmp_path / "out")
    assert list(scratch_dir.iterdir()) == []


def test_work_dir_removed_on_failure(
    tmp_path: Path, plain_archive, other_recipient_key, key_writer, scratch_dir
) -> None:
    other_private, _ = key_writer(tmp_path / "other", "other", other_recipient_key)
    with pytest.raises(KeyUnwrapError):
        unpack(plain_archive, other_private, tmp_path / "out")
    assert list(scratch_dir.iterdir()) == []


def test_licensed_archive_requires_token(tmp_path: Path, licensed_archive, recipient_keys) -> None:
    unpacker = Unpacker(recipient_keys[0])
    unwrap_calls = []
    unpacker._unwrap = lambda work_dir: unwrap_calls.append(work_dir)
    with pytest.raises(ConfigurationError, match="license token"):
        unpacker.unpack(licensed_archive, tmp_path / "out")
    assert unwrap_calls == []


def test_licensed_archive_with_token(tmp_path: Path, input_dir, licensed_archive, recipient_keys, token) -> None:
    out = tmp_path / "out"
    result = unpack(licensed_archive, recipient_keys[0], out, license_token_path=token)
    assert result.license_required is True
    status = result.license_status
    assert status is not None
    assert (status.company, status.email, status.expiry.isoformat()) == (
        "Demo Co",
        "demo@example.com",
        "2099-12-31",
    )
    assert (out / "hello.txt").read_bytes() == b"hello"


def test_token_signal_forces_check_on_plain_archive(tmp_path: Path, plain_archive, recipient_keys, token) -> None:
    # Token supplied but no vendor key anywhere: cannot verify, so refuse.
    with pytest.raises(ConfigurationError, match="vendor public key"):
        unpack(plain_archive, recipient_keys[0], tmp_path / "out", license_token_path=token)


def test_vendor_key_signal_requires_token(tmp_path: Path, plain_archive, recipient_keys, vendor_keys) -> None:
    with pytest.raises(ConfigurationError, match="license token"):
        unpack(plain_archive, recipient_keys[0], tmp_path / "out", vendor_public_key_path=vendor_keys[1])


def test_plain_archive_with_token_and_vendor_key(tmp_path: Path, plain_archive, recipient_keys, vendor_keys, token) -> None:
    result = unpack(
        plain_archive,
        recipient_keys[0],
        tmp_path / "out",
        license_token_path=token,
        vendor_public_key_path=vendor_keys[1],
    )
    assert result.license_required is True
    assert result.license_status is not None


def test_explicit_vendor_key_takes_precedence(
    tmp_path: Path, licensed_archive, recipient_keys, other_recipient_key, token
) -> None:
    # The token was signed by the embedded vendor key, so an explicit
    # different key must be the one used, and fail.
    impostor = tmp_path / "impostor.pem"
    impostor.write_bytes(public_key_to_pem(other_recipient_key.public_key()))
    with pytest.raises(TokenSignatureError):
        unpack(
            licensed_archive,
            recipient_keys[0],
            tmp_path / "out",
            license_token_path=token,
            vendor_public_key_path=impostor,
        )


def test_manifest_without_embedded_key(tmp_path: Path, licensed_archive, recipient_keys, token) -> None:
    _drop_entry(licensed_archive, "vendor_public.pem")
    with pytest.raises(ConfigurationError, match="vendor public key not found"):
        unpack(licensed_archive, recipient_keys[0], tmp_path / "out", license_token_path=token)


def test_invalid_manifest(tmp_path: Path, licensed_archive, recipient_keys, token) -> None:
    _rewrite_entry(licensed_archive, "manifest.json", lambda _: b"{not json")
    with pytest.raises(ArchiveFormatError, match="manifest.json"):
        unpack(licensed_archive, recipient_keys[0], tmp_path / "out", license_token_path=token)


@pytest.mark.parametrize(
    ("now", "error"),
    [
        (datetime(2100, 1, 1, tzinfo=timezone.utc), LicenseExpiredError),
        (datetime(2099, 12, 30, 12, tzinfo=timezone.utc), LicenseBlockedError),
    ],
)
def test_expired_license_blocks_output(tmp_path: Path, licensed_archive, recipient_keys, token, now, error) -> None:
    out = tmp_path / "out"
    with pytest.raises(error):
        unpack(licensed_archive, recipient_keys[0], out, license_token_path=token, now=now)
    assert not out.exists()


def test_cancellation_between_gates(tmp_path: Path, plain_archive, recipient_keys) -> None:
    out = tmp_path / "out"
    with pytest.raises(OperationCancelledError):
        unpack(plain_archive, recipient_keys[0], out, should_cancel=lambda: True)
    assert not out.exists()


def test_directory_in_output_blocks_commit(tmp_path: Path, plain_archive, recipient_keys) -> None:
    out = tmp_path / "out"
    (out / "random.bin").mkdir(parents=True)
    with pytest.raises(ConfigurationError, match="is a directory"):
        unpack(plain_archive, recipient_keys[0], out)
    # Nothing is moved when any target is blocked.
    assert sorted(p.name for p in out.iterdir()) == ["random.bin"]
    assert list((out / "random.bin").iterdir()) == []


def test_output_path_is_a_file(tmp_path: Path, plain_archive, recipient_keys) -> None:
    out = tmp_path / "out"
    out.write_text("occupied")
    with pytest.raises(ConfigurationError, match="not a directory"):
        unpack(plain_archive, recipient_keys[0], out)
