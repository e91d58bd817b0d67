# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Local artifact cache.

Layout:
    <cache_dir>/<name>@<version>/<name>-<version>.tgz
    <cache_dir>/<name>@<version>/meta.json    {"digest": "<sha256 hex>"}

Entries never expire. Writes go through a temp file plus atomic rename
and every lookup re-hashes the file, so a shared cache directory fails
safe without locking.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from osm.artifacts.hashing import digest_file, digests_match
from osm.core.logging import log_event

logger = logging.getLogger(__name__)

META_FILE = "meta.json"


class LocalCache:
    """Content-verified artifact cache keyed by name@version."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)

    def entry_dir(self, name: str, version: str) -> Path:
        return self.cache_dir / f"{name}@{version}"

    def path_for(self, name: str, version: str) -> Path:
        return self.entry_dir(name, version) / f"{name}-{version}.tgz"

    def store(self, name: str, version: str, source: Path, digest: str) -> Path:
        """
        Copy a verified artifact into the cache, replacing any earlier entry.

        Args:
            name: Package name
            version: Package version
            source: File holding the artifact bytes
            digest: Digest the bytes were verified against

        Returns:
            Path of the cached artifact
        """
        entry = self.entry_dir(name, version)
        entry.mkdir(parents=True, exist_ok=True)
        target = self.path_for(name, version)

        def copy_artifact(out):
            with open(source, "rb") as src:
                shutil.copyfileobj(src, out)

        self._atomic_write(entry, target, copy_artifact)
        meta = json.dumps({"digest": digest}, indent=2).encode()
        self._atomic_write(entry, entry / META_FILE, lambda f: f.write(meta))

        logger.debug(f"Cached {name}@{version} at {target}")
        return target

    @staticmethod
    def _atomic_write(directory: Path, target: Path, write) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                write(f)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def lookup(self, name: str, version: str, expected_digest: str) -> Optional[Path]:
        """
        Return the cached artifact only if it still hashes to expected_digest.

        Both the recorded digest and the file's recomputed digest must
        equal expected_digest. Every other outcome is a miss.
        """
        path = self.path_for(name, version)
        meta_path = self.entry_dir(name, version) / META_FILE

        if not path.is_file() or not meta_path.is_file():
            logger.debug(f"Cache miss for {name}@{version}: no entry")
            return None

        try:
            recorded = json.loads(meta_path.read_text()).get("digest")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Cache miss for {name}@{version}: unreadable {META_FILE} ({e})")
            return None

        if not digests_match(recorded, expected_digest):
            log_event(
                logger, "cache_digest_mismatch", "WARNING",
                package=name, version=version, recorded=recorded, expected=expected_digest,
            )
            return None

        actual = digest_file(path)
        if not digests_match(actual, expected_digest):
            log_event(
                logger, "cache_corrupted", "WARNING",
                package=name, version=version, actual=actual, expected=expected_digest,
            )
            return None

        return path

    def clear(self) -> int:
        """Remove every entry; returns how many were removed."""
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for entry in self.cache_dir.iterdir():
            if entry.is_dir():
                shutil.rmtree(entry)
                removed += 1
            else:
                entry.unlink()
        return removed
