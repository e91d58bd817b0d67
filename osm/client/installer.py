# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Installer / Lockfile Manager

Resolves requirements, downloads and verifies each artifact (falling
back to the local cache when the network or the registry fails),
extracts it into the skills directory and records the result in the
project lockfile.

Installs run sequentially in resolution order. A package that can be
obtained neither from the registry nor from a valid cache entry aborts
the run before the lockfile is written.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional

from osm.artifacts.archive import extract_archive
from osm.artifacts.hashing import verify_digest
from osm.client.cache import LocalCache
from osm.client.lockfile import merge_lockfile, read_lockfile, remove_lock_entry
from osm.client.manifest import read_project_manifest
from osm.client.resolver import DependencyResolver
from osm.core.config import Config
from osm.core.errors import BadRequestError, InstallError, OSMError
from osm.core.logging import get_service_logger, log_event
from osm.models.registry_models import LockEntry, ProjectManifest, ResolvedDependency, name_error
from osm.models.versioning import LATEST

logger = get_service_logger("installer")


class Installer:
    """
    Installs packages for one project.

    Responsibilities:
    - Resolve the dependency graph
    - Download, verify and cache artifacts
    - Fall back to the cache on download failure
    - Extract into <skills_dir>/<name>
    - Maintain osm-lock.json
    """

    def __init__(self, client, cache: LocalCache, skills_dir: Path, project_dir: Path):
        """
        Initialize Installer.

        Args:
            client: RegistryClient (or anything with fetch_metadata/download_artifact)
            cache: Local artifact cache
            skills_dir: Root of the install tree
            project_dir: Directory holding osm.json / osm-lock.json
        """
        self.client = client
        self.cache = cache
        self.skills_dir = Path(skills_dir)
        self.project_dir = Path(project_dir)

    @classmethod
    def from_config(cls, config: Config, client, project_dir: Optional[Path] = None) -> "Installer":
        return cls(
            client=client,
            cache=LocalCache(config.cache_dir),
            skills_dir=config.skills_dir,
            project_dir=Path(project_dir) if project_dir else Path.cwd(),
        )

    def _project(self) -> Optional[ProjectManifest]:
        return read_project_manifest(self.project_dir, required=False)

    @staticmethod
    def _check_name(name: str) -> None:
        """Names become directory names under skills_dir; reject anything else."""
        error = name_error(name)
        if error:
            raise BadRequestError(f"Invalid package name {name!r}: {error}", field="name")

    def _declared_range(self, project: Optional[ProjectManifest], name: str) -> str:
        if project is None:
            return LATEST
        return project.dependencies.get(name, LATEST)

    # =========================================================================
    # Operations
    # =========================================================================

    def install(self, roots: Optional[Dict[str, str]] = None) -> Dict[str, LockEntry]:
        """
        Install roots (default: the project's dependencies) and everything
        they depend on.

        Returns:
            Package name -> lock entry written for it

        Raises:
            BadRequestError: No roots given and no osm.json
            ResolutionError: Unsatisfiable requirements (fatal)
            InstallError: A package could not be obtained (fatal)
        """
        project = self._project()
        if roots is None:
            if project is None:
                raise BadRequestError("No osm.json found; name a package to install")
            roots = project.dependencies

        if not roots:
            logger.info("Nothing to install")
            return {}
        for name in roots:
            self._check_name(name)

        resolved = DependencyResolver(self.client).resolve(roots)
        logger.info(f"Resolved {len(resolved)} package(s): {', '.join(resolved)}")

        self.skills_dir.mkdir(parents=True, exist_ok=True)
        entries = {}
        for node in resolved.values():
            entries[node.name] = self._install_one(node)

        merge_lockfile(self.project_dir, entries, name=project.name if project else None)
        return entries

    def install_package(self, name: str, range_spec: Optional[str] = None) -> Dict[str, LockEntry]:
        """Install one package at the given range, the declared range, or latest."""
        if range_spec is None:
            range_spec = self._declared_range(self._project(), name)
        return self.install({name: range_spec})

    def update(self, names: Optional[Iterable[str]] = None) -> Dict[str, LockEntry]:
        """
        Re-install names (default: every locked package) at the project's
        declared range or latest.
        """
        if names is None:
            names = list(read_lockfile(self.project_dir).packages)
        names = list(names)
        if not names:
            logger.info("Nothing to update")
            return {}

        project = self._project()
        return self.install({name: self._declared_range(project, name) for name in names})

    def remove(self, name: str) -> bool:
        """
        Delete an installed package and its lock entry.

        Returns:
            False if the package was neither installed nor locked

        Raises:
            BadRequestError: name is not a valid package name
        """
        self._check_name(name)
        target = self.skills_dir / name
        existed = target.exists()
        if existed:
            shutil.rmtree(target)

        locked = remove_lock_entry(self.project_dir, name)
        if existed or locked:
            log_event(logger, "package_removed", package=name)
        return existed or locked

    # =========================================================================
    # Per-package steps
    # =========================================================================

    def _install_one(self, node: ResolvedDependency) -> LockEntry:
        self._check_name(node.name)
        target = self.skills_dir / node.name
        if target.exists():
            shutil.rmtree(target)

        artifact = self._obtain(node)
        extract_archive(artifact, target)

        log_event(
            logger, "package_installed",
            package=node.name, version=node.version, digest=node.dist.digest, path=str(target),
        )
        return LockEntry(
            install_path=str(target),
            version=node.version,
            resolved=node.dist.tarball,
            digest=node.dist.digest,
            dependencies=dict(node.dependencies),
        )

    def _obtain(self, node: ResolvedDependency) -> Path:
        """
        Verified artifact path for node: fresh download, else cache.

        Raises:
            InstallError: Download failed and no valid cache entry exists
        """
        try:
            return self._download(node)
        except OSMError as e:
            download_error = e

        log_event(
            logger, "download_failed", "WARNING",
            package=node.name, version=node.version, reason=download_error.message,
        )

        cached = self.cache.lookup(node.name, node.version, node.dist.digest)
        if cached is None:
            raise InstallError(
                node.name, node.version,
                f"Could not download {node.key} ({download_error.message}) "
                f"and no valid cached copy exists",
            ) from download_error

        log_event(logger, "cache_fallback", package=node.name, version=node.version, path=str(cached))
        return cached

    def _download(self, node: ResolvedDependency) -> Path:
        with tempfile.TemporaryDirectory(prefix="osm-") as tmp:
            tmp_path = Path(tmp) / f"{node.name}-{node.version}.tgz"
            self.client.download_artifact(node.dist.tarball, tmp_path)

            verify_digest(tmp_path, node.dist.digest, subject=node.key)

            return self.cache.store(node.name, node.version, tmp_path, node.dist.digest)
