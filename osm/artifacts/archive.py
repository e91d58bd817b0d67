# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Archive Codec

Builds and extracts the package payload: a gzip-compressed tar with a
flat layout. Files sit at the archive root exactly as they appear in
the package directory (no enclosing directory prefix). Only regular
files are packed; version-control and dependency-install directories
are skipped at any depth.
"""

import io
import logging
import os
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Union

from osm.core.errors import BadRequestError

logger = logging.getLogger(__name__)

EXCLUDED_NAMES = frozenset({".git", ".hg", ".svn", "node_modules"})

# Raised by tarfile/gzip on truncated or corrupt input
_READ_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)


def iter_package_files(source_dir: Path) -> List[Path]:
    """
    List the files that belong in a package, in a stable order.

    Args:
        source_dir: Package source directory

    Returns:
        Absolute paths of regular files, sorted by relative path
    """
    files = []
    for root, dirs, filenames in os.walk(source_dir):
        # Prune in place so os.walk never descends into excluded dirs
        dirs[:] = sorted(d for d in dirs if d not in EXCLUDED_NAMES)
        for filename in sorted(filenames):
            if filename in EXCLUDED_NAMES:
                continue
            path = Path(root) / filename
            if path.is_symlink() or not path.is_file():
                continue
            files.append(path)
    return files


def pack_directory(source_dir: Union[str, Path]) -> bytes:
    """
    Archive a package directory.

    Args:
        source_dir: Package source directory

    Returns:
        gzip-compressed tar bytes

    Raises:
        BadRequestError: If source_dir is not a directory
    """
    source = Path(source_dir)
    if not source.is_dir():
        raise BadRequestError(f"Not a directory: {source}")

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for path in iter_package_files(source):
            arcname = path.relative_to(source).as_posix()
            info = tar.gettarinfo(str(path), arcname=arcname)
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            with open(path, "rb") as f:
                tar.addfile(info, f)

    data = buffer.getvalue()
    logger.debug(f"Packed {source} ({len(data)} bytes)")
    return data


def _open(source: Union[bytes, Path]) -> tarfile.TarFile:
    try:
        if isinstance(source, (bytes, bytearray)):
            return tarfile.open(fileobj=io.BytesIO(source), mode="r:gz")
        return tarfile.open(str(source), mode="r:gz")
    except _READ_ERRORS as e:
        raise BadRequestError(f"Invalid package archive: {e}")


def _members(tar: tarfile.TarFile) -> List[tarfile.TarInfo]:
    try:
        return tar.getmembers()
    except _READ_ERRORS as e:
        raise BadRequestError(f"Invalid package archive: {e}")


def _read_member(tar: tarfile.TarFile, member: tarfile.TarInfo) -> bytes:
    try:
        f = tar.extractfile(member)
        return f.read() if f is not None else b""
    except _READ_ERRORS as e:
        raise BadRequestError(f"Invalid package archive member {member.name}: {e}")


def _member_path(name: str) -> PurePosixPath:
    """
    Normalize a member name to a safe relative path.

    Raises:
        BadRequestError: If the name is absolute or escapes the root
    """
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise BadRequestError(f"Unsafe path in package archive: {name}")
    parts = [p for p in path.parts if p not in ("", ".")]
    if not parts:
        raise BadRequestError(f"Empty path in package archive: {name!r}")
    return PurePosixPath(*parts)


def list_archive(source: Union[bytes, Path]) -> List[str]:
    """Relative names of the regular files in an archive."""
    with _open(source) as tar:
        return [str(_member_path(m.name)) for m in _members(tar) if m.isfile()]


def read_archive_texts(
    source: Union[bytes, Path],
    predicate: Callable[[str], bool],
    max_size: int
) -> Dict[str, str]:
    """
    Read small text members selected by predicate.

    Args:
        source: Archive bytes or path
        predicate: Called with each member's relative name
        max_size: Members larger than this are skipped

    Returns:
        Relative name -> decoded text
    """
    contents = {}
    with _open(source) as tar:
        for member in _members(tar):
            if not member.isfile() or member.size > max_size:
                continue
            name = str(_member_path(member.name))
            if not predicate(name):
                continue
            contents[name] = _read_member(tar, member).decode("utf-8", errors="replace")
    return contents


def extract_archive(source: Union[bytes, Path], dest_dir: Union[str, Path]) -> List[str]:
    """
    Extract an archive into dest_dir.

    Regular files and directories are materialized; links and special
    files are skipped. Every member must stay inside dest_dir.

    Args:
        source: Archive bytes or path
        dest_dir: Destination directory (created if missing)

    Returns:
        Relative names of the extracted files

    Raises:
        BadRequestError: If the archive is unreadable or a member is unsafe
    """
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    extracted = []

    with _open(source) as tar:
        for member in _members(tar):
            relative = _member_path(member.name)
            target = dest.joinpath(*relative.parts)

            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            if not member.isfile():
                logger.warning(f"Skipping non-file archive member: {member.name}")
                continue

            data = _read_member(tar, member)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as out:
                out.write(data)
            os.chmod(target, member.mode & 0o755 | 0o600)
            extracted.append(str(relative))

    return extracted
