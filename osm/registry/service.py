# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Service - publish/fetch protocol over the Registry Store.

Single responsibility: enforce the publish contract (identity, shape,
size, ownership, immutability) and assemble the documents the HTTP
surface serves. Transport concerns live in osm.registry.api.
"""

import base64
import binascii
import re
from pathlib import PurePosixPath
from typing import Any, List, Optional
from urllib.parse import quote

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from osm.artifacts.archive import list_archive, read_archive_texts
from osm.artifacts.hashing import compute_digest, digests_match
from osm.core.config import Config
from osm.core.errors import (
    BadRequestError, ForbiddenError, NotFoundError, PayloadTooLargeError, UnauthorizedError
)
from osm.core.logging import get_service_logger, log_event
from osm.models.registry_models import (
    FileListing,
    Manifest,
    PackageDocument,
    PackageListing,
    PackageSummary,
    PublishRequest,
    PublishResult,
    UserInfo,
    describe_validation_error,
)
from osm.models.versioning import latest_release
from osm.registry.database import PackageDB, UserDB
from osm.registry.store import RegistryStore

logger = get_service_logger("registry")

MAX_TEXT_FILE_BYTES = 64 * 1024
LISTING_LIMIT_MAX = 100
FEATURED_LIMIT = 10

_TEXT_FILES = {"readme", "readme.md", "skill.md"}


def tarball_url(base_url: str, name: str, version: str) -> str:
    """Absolute URL of a version's artifact."""
    encoded = quote(name, safe="")
    return f"{base_url.rstrip('/')}/registry/{encoded}/-/{encoded}-{quote(version, safe='')}.tgz"


def _is_text_file(path: str) -> bool:
    return PurePosixPath(path).name.lower() in _TEXT_FILES


def _summaries(rows: List[PackageDB]) -> List[PackageSummary]:
    return [PackageSummary.model_validate(row) for row in rows]


class RegistryService:
    """
    Authoritative package registry.

    Responsibilities:
    - Authenticate bearer tokens
    - Accept publishes (validation, size cap, ownership, immutability)
    - Serve metadata documents and artifact bytes
    - Search and list packages
    """

    def __init__(self, store: RegistryStore, config: Config):
        """
        Initialize RegistryService.

        Args:
            store: Registry persistence
            config: Application configuration (size cap, publisher policy)
        """
        self.store = store
        self.config = config

    # =========================================================================
    # Identity
    # =========================================================================

    async def authenticate(self, authorization: Optional[str]) -> Optional[UserDB]:
        """
        Resolve an Authorization header to a user.

        Returns:
            The user, or None for a missing/unknown credential
        """
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            return None
        return await self.store.user_for_token(token)

    async def whoami(self, user: Optional[UserDB]) -> UserInfo:
        if user is None:
            raise UnauthorizedError()
        return UserInfo(username=user.username, email=user.email)

    # =========================================================================
    # Fetch
    # =========================================================================

    async def get_metadata(self, name: str, base_url: str) -> PackageDocument:
        """
        Build the metadata document for a package.

        Args:
            name: Package name
            base_url: Public base URL used for tarball links

        Raises:
            NotFoundError: If the package is unknown or has no versions
        """
        package = await self.store.get_package(name)
        if package is None:
            raise NotFoundError("Package", name)

        rows = await self.store.list_versions(package.id)
        if not rows:
            raise NotFoundError("Package", name)

        versions = {}
        for row in rows:
            document = dict(row.manifest)
            document["dist"] = {
                "digest": row.digest,
                "tarball": tarball_url(base_url, name, row.version),
            }
            versions[row.version] = document

        latest = package.latest_version
        if latest not in versions:
            latest = latest_release(versions)

        return PackageDocument.model_validate({
            "name": package.name,
            "description": package.description,
            "downloads": package.downloads,
            "author": await self.store.first_owner_username(package.id),
            "dist-tags": {"latest": latest} if latest else {},
            "versions": versions,
        })

    async def get_artifact(self, name: str, filename: str) -> bytes:
        """
        Fetch artifact bytes by tarball filename.

        Raises:
            BadRequestError: If filename is not <name>-<version>.tgz
            NotFoundError: If no such version exists
        """
        match = re.fullmatch(rf"{re.escape(name)}-(.+)\.tgz", filename)
        if not match:
            raise BadRequestError(f"Invalid tarball filename: {filename}", field="filename")

        data = await self.store.get_artifact(name, match.group(1))
        if data is None:
            raise NotFoundError("Artifact", filename)
        return data

    async def record_download(self, name: str) -> None:
        """Bump the download counter. Best effort: failures are only logged."""
        try:
            await self.store.increment_downloads(name)
        except SQLAlchemyError as e:
            logger.warning(f"Failed to record download for {name}: {e}")

    async def list_files(self, name: str) -> FileListing:
        """File names in the latest artifact plus small README/SKILL.md texts."""
        package = await self.store.get_package(name)
        if package is None or not package.latest_version:
            raise NotFoundError("Package", name)

        row = await self.store.get_version(package.id, package.latest_version)
        if row is None:
            raise NotFoundError("Package", name)

        return FileListing(
            files=list_archive(row.artifact),
            contents=read_archive_texts(row.artifact, _is_text_file, MAX_TEXT_FILE_BYTES),
        )

    # =========================================================================
    # Publish
    # =========================================================================

    async def publish_payload(self, payload: Any, user: Optional[UserDB]) -> PublishResult:
        """
        Handle a raw publish body: {manifest, artifactBase64, digest?}.

        Raises:
            UnauthorizedError: No valid credential
            ForbiddenError: Unverified publisher (when required)
            BadRequestError: Malformed body, manifest or base64
        """
        self._authorize_publisher(user)

        if not isinstance(payload, dict):
            raise BadRequestError("Publish body must be a JSON object")

        try:
            request = PublishRequest.model_validate(payload)
        except ValidationError as e:
            raise BadRequestError(describe_validation_error(e))

        try:
            artifact = base64.b64decode(request.artifact_base64, validate=True)
        except (binascii.Error, ValueError):
            raise BadRequestError("artifactBase64 is not valid base64", field="artifactBase64")

        return await self.publish(request.manifest, artifact, user, client_digest=request.digest)

    async def publish(
        self,
        manifest: Manifest,
        artifact: bytes,
        user: Optional[UserDB],
        client_digest: Optional[str] = None,
    ) -> PublishResult:
        """
        Publish a new immutable version.

        Raises:
            UnauthorizedError, ForbiddenError: Caller not allowed to publish
            BadRequestError: Empty artifact
            PayloadTooLargeError: Artifact over max_artifact_bytes
            ConflictError: Version already exists
        """
        self._authorize_publisher(user)

        if not artifact:
            raise BadRequestError("Artifact is required", field="artifactBase64")

        if len(artifact) > self.config.max_artifact_bytes:
            raise PayloadTooLargeError(len(artifact), self.config.max_artifact_bytes)

        digest = compute_digest(artifact)
        if client_digest and not digests_match(digest, client_digest):
            logger.warning(
                f"Client digest for {manifest.name}@{manifest.version} differs from computed digest",
                extra={"client_digest": client_digest, "digest": digest},
            )

        await self.store.publish_version(
            name=manifest.name,
            version=manifest.version,
            description=manifest.description,
            manifest=manifest.to_document(),
            artifact=artifact,
            digest=digest,
            user_id=user.id,
        )

        log_event(
            logger, "package_published",
            package=manifest.name, version=manifest.version,
            digest=digest, size=len(artifact), publisher=user.username,
        )
        return PublishResult(name=manifest.name, version=manifest.version, digest=digest)

    def _authorize_publisher(self, user: Optional[UserDB]) -> None:
        if user is None:
            raise UnauthorizedError("Authentication required. Run 'osm token set <token>' first.")
        if self.config.require_verified_publishers and not user.verified:
            raise ForbiddenError("Email must be verified before publishing", resource="publish")

    # =========================================================================
    # Listings
    # =========================================================================

    async def search(self, query: Optional[str]) -> PackageListing:
        """Ranked substring search; an empty query yields an empty listing."""
        query = (query or "").strip()
        if not query:
            return PackageListing(total=0, objects=[])

        total, rows = await self.store.search(query, self.config.search_limit)
        return PackageListing(total=total, objects=_summaries(rows))

    async def list_packages(self, page: int = 1, limit: int = 20) -> PackageListing:
        page = max(1, page)
        limit = min(max(1, limit), LISTING_LIMIT_MAX)
        total, rows = await self.store.list_packages(page, limit)
        return PackageListing(total=total, objects=_summaries(rows), page=page, limit=limit)

    async def recent(self) -> PackageListing:
        rows = await self.store.recent(FEATURED_LIMIT)
        return PackageListing(total=len(rows), objects=_summaries(rows))

    async def most_downloaded(self) -> PackageListing:
        rows = await self.store.most_downloaded(FEATURED_LIMIT)
        return PackageListing(total=len(rows), objects=_summaries(rows))

    async def mine(self, user: Optional[UserDB]) -> PackageListing:
        if user is None:
            raise UnauthorizedError()
        rows = await self.store.owned_by(user.id)
        return PackageListing(total=len(rows), objects=_summaries(rows))
