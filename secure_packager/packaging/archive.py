"""
Zip container building and safe extraction.
"""

from __future__ import annotations

import logging
import os
import zipfile
import zlib
from pathlib import Path, PurePosixPath, PureWindowsPath

from secure_packager.common.exceptions import ArchiveFormatError

logger = logging.getLogger(__name__)

# Fixed entry metadata so the same staged bytes always give the same archive.
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_ENTRY_MODE = 0o644


def build_archive(staging_dir: Path, archive_path: Path) -> list[str]:
    """Write every regular file directly inside ``staging_dir`` to a zip.

    Subdirectories are not descended into. Entries are written in sorted order
    with fixed timestamps and permissions.

    Returns:
        The entry names written, in archive order.
    """
    names = sorted(
        entry.name
        for entry in staging_dir.iterdir()
        if entry.is_file() and entry.resolve() != archive_path.resolve()
    )
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in names:
            info = zipfile.ZipInfo(name, date_time=_ENTRY_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = _ENTRY_MODE << 16
            zf.writestr(info, (staging_dir / name).read_bytes())
    logger.debug("Built %s with %d entries", archive_path, len(names))
    return names


def check_entry_name(name: str, dest_dir: Path) -> Path:
    """Resolve ``name`` under ``dest_dir`` or raise ``ArchiveFormatError``.

    Rejects empty, absolute and drive-qualified names, any ``..`` component
    (with either separator), and anything that still resolves outside
    ``dest_dir``.
    """
    if not name or "\x00" in name:
        msg = f"illegal archive entry name: {name!r}"
        raise ArchiveFormatError(msg)

    posix = PurePosixPath(name.replace("\\", "/"))
    if (
        posix.is_absolute()
        or PureWindowsPath(name).drive
        or PureWindowsPath(name).is_absolute()
    ):
        msg = f"illegal absolute path in archive: {name}"
        raise ArchiveFormatError(msg)
    if ".." in posix.parts:
        msg = f"illegal path traversal in archive: {name}"
        raise ArchiveFormatError(msg)

    root = dest_dir.resolve()
    target = (root / posix).resolve()
    if target == root or not target.is_relative_to(root):
        msg = f"illegal file path in archive: {name}"
        raise ArchiveFormatError(msg)
    return target


def list_entries(archive_path: Path) -> list[str]:
    try:
        with zipfile.ZipFile(archive_path) as zf:
            return zf.namelist()
    except (zipfile.BadZipFile, OSError) as err:
        msg = f"cannot read archive {archive_path}: {err}"
        raise ArchiveFormatError(msg) from err


def extract_archive(archive_path: Path, dest_dir: Path) -> list[Path]:
    """Extract ``archive_path`` into ``dest_dir``.

    Every entry name is validated before any bytes are written, so an archive
    with a single unsafe or conflicting entry leaves ``dest_dir`` untouched.

    Returns:
        Paths of the regular files written.
    """
    try:
        zf = zipfile.ZipFile(archive_path)
    except FileNotFoundError as err:
        msg = f"archive not found: {archive_path}"
        raise ArchiveFormatError(msg) from err
    except (zipfile.BadZipFile, OSError) as err:
        msg = f"cannot open archive {archive_path}: {err}"
        raise ArchiveFormatError(msg) from err

    with zf:
        plan: list[tuple[zipfile.ZipInfo, Path]] = []
        seen: set[Path] = set()
        files: set[Path] = set()
        parents: set[Path] = set()
        for info in zf.infolist():
            target = check_entry_name(info.filename, dest_dir)
            if target in seen:
                msg = f"duplicate archive entry: {info.filename}"
                raise ArchiveFormatError(msg)
            ancestors = set(target.parents)
            # A path cannot be both a file and a directory.
            if ancestors & files or (not info.is_dir() and target in parents):
                msg = f"conflicting archive entry: {info.filename}"
                raise ArchiveFormatError(msg)
            seen.add(target)
            parents.update(ancestors)
            if info.is_dir():
                parents.add(target)
            else:
                files.add(target)
            plan.append((info, target))

        written: list[Path] = []
        for info, target in plan:
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
            except OSError as err:
                msg = f"cannot create directory for {info.filename}: {err}"
                raise ArchiveFormatError(msg) from err
            try:
                data = zf.read(info)
            except (
                zipfile.BadZipFile,
                zipfile.LargeZipFile,
                zlib.error,
                EOFError,
                NotImplementedError,
                RuntimeError,
                OSError,
            ) as err:
                msg = f"corrupt archive entry {info.filename}: {err}"
                raise ArchiveFormatError(msg) from err
            try:
                with open(target, "wb") as f:
                    f.write(data)
                os.chmod(target, 0o600)
            except OSError as err:
                msg = f"cannot write archive entry {info.filename}: {err}"
                raise ArchiveFormatError(msg) from err
            written.append(target)
    logger.debug("Extracted %d entries from %s", len(written), archive_path)
    return written
