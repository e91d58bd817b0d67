# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Store - durable package/version/owner records.

Every method opens its own session. Version immutability is the
UNIQUE(package_id, version) constraint; a violation surfaces as
ConflictError, including for the losing side of a concurrent publish.
"""

import secrets
from datetime import datetime, UTC
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, exc as sa_exc, func, or_, select, update
from sqlalchemy.orm import defer

from osm.core.errors import ConflictError, ForbiddenError
from osm.core.logging import get_service_logger
from osm.models.versioning import latest_release
from osm.registry.database import (
    AuthTokenDB, Database, PackageDB, PackageOwnerDB, PackageVersionDB, UserDB
)

logger = get_service_logger("store")

_LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so they match literally."""
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


class RegistryStore:
    """Persistence operations over the registry tables."""

    def __init__(self, database: Database):
        self.database = database

    # =========================================================================
    # Identity
    # =========================================================================

    async def user_for_token(self, token: str) -> Optional[UserDB]:
        async with self.database.session() as session:
            result = await session.execute(
                select(AuthTokenDB).where(AuthTokenDB.token == token)
            )
            row = result.scalar_one_or_none()
            return row.user if row else None

    async def get_user(self, username: str) -> Optional[UserDB]:
        async with self.database.session() as session:
            result = await session.execute(select(UserDB).where(UserDB.username == username))
            return result.scalar_one_or_none()

    async def create_user(self, username: str, email: Optional[str] = None, verified: bool = False) -> UserDB:
        """
        Insert a user row.

        Raises:
            ConflictError: If the username is taken
        """
        async with self.database.session() as session:
            user = UserDB(username=username, email=email, verified=verified)
            session.add(user)
            try:
                await session.commit()
            except sa_exc.IntegrityError:
                await session.rollback()
                raise ConflictError(f"User already exists: {username}", resource="user")
            return user

    async def issue_token(self, user_id: str) -> str:
        """Create a new opaque bearer token for a user."""
        token = secrets.token_hex(24)
        async with self.database.session() as session:
            session.add(AuthTokenDB(token=token, user_id=user_id))
            await session.commit()
        return token

    # =========================================================================
    # Packages and versions
    # =========================================================================

    async def get_package(self, name: str) -> Optional[PackageDB]:
        async with self.database.session() as session:
            result = await session.execute(select(PackageDB).where(PackageDB.name == name))
            return result.scalar_one_or_none()

    async def list_versions(self, package_id: str) -> List[PackageVersionDB]:
        """Versions of a package in publish order, without artifact bytes."""
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageVersionDB)
                .options(defer(PackageVersionDB.artifact))
                .where(PackageVersionDB.package_id == package_id)
                .order_by(PackageVersionDB.created_at, PackageVersionDB.id)
            )
            return list(result.scalars().all())

    async def get_version(self, package_id: str, version: str) -> Optional[PackageVersionDB]:
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageVersionDB).where(
                    PackageVersionDB.package_id == package_id,
                    PackageVersionDB.version == version,
                )
            )
            return result.scalar_one_or_none()

    async def get_artifact(self, name: str, version: str) -> Optional[bytes]:
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageVersionDB.artifact)
                .join(PackageDB, PackageDB.id == PackageVersionDB.package_id)
                .where(PackageDB.name == name, PackageVersionDB.version == version)
            )
            return result.scalar_one_or_none()

    async def first_owner_username(self, package_id: str) -> Optional[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(UserDB.username)
                .join(PackageOwnerDB, PackageOwnerDB.user_id == UserDB.id)
                .where(PackageOwnerDB.package_id == package_id)
                .order_by(PackageOwnerDB.created_at)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def publish_version(
        self,
        *,
        name: str,
        version: str,
        description: str,
        manifest: Dict,
        artifact: bytes,
        digest: str,
        user_id: str,
    ) -> PackageVersionDB:
        """
        Record a new immutable version in one transaction.

        Creates the package (caller becomes sole owner) on first publish,
        then inserts the version, recomputes latest_version and updates
        the description.

        Raises:
            ForbiddenError: If the package exists and the caller is not an owner
            ConflictError: If the version (or, in a creation race, the name) exists
        """
        creating = False
        async with self.database.session() as session:
            try:
                async with session.begin():
                    result = await session.execute(select(PackageDB).where(PackageDB.name == name))
                    package = result.scalar_one_or_none()

                    if package is None:
                        creating = True
                        package = PackageDB(name=name, description=description)
                        session.add(package)
                        await session.flush()
                        session.add(PackageOwnerDB(package_id=package.id, user_id=user_id))
                        creating = False
                    else:
                        owner = await session.execute(
                            select(PackageOwnerDB.id).where(
                                PackageOwnerDB.package_id == package.id,
                                PackageOwnerDB.user_id == user_id,
                            )
                        )
                        if owner.first() is None:
                            raise ForbiddenError(
                                f"You do not have permission to publish {name}",
                                resource=name,
                            )

                    row = PackageVersionDB(
                        package_id=package.id,
                        version=version,
                        manifest=manifest,
                        artifact=artifact,
                        digest=digest,
                    )
                    session.add(row)
                    await session.flush()

                    versions = await session.execute(
                        select(PackageVersionDB.version).where(PackageVersionDB.package_id == package.id)
                    )
                    package.latest_version = latest_release(versions.scalars().all())
                    package.description = description
                    package.updated_at = datetime.now(UTC)
            except sa_exc.IntegrityError as e:
                logger.info(f"Publish of {name}@{version} rejected by constraint: {e.orig}")
                if creating:
                    raise ConflictError(
                        f"Package {name} was created concurrently; retry the publish",
                        resource=name,
                    )
                raise ConflictError(
                    f"Version {version} of {name} already exists. Bump the version to publish.",
                    resource=f"{name}@{version}",
                )

        return row

    async def increment_downloads(self, name: str) -> None:
        async with self.database.session() as session:
            await session.execute(
                update(PackageDB)
                .where(PackageDB.name == name)
                .values(downloads=PackageDB.downloads + 1)
            )
            await session.commit()

    # =========================================================================
    # Listings
    # =========================================================================

    async def search(self, query: str, limit: int) -> Tuple[int, List[PackageDB]]:
        """
        Case-insensitive substring search over name and description.

        Ranked exact name, name prefix, name substring, description-only;
        ties by downloads (desc) then name.
        """
        escaped = escape_like(query)
        contains = f"%{escaped}%"
        name_match = PackageDB.name.ilike(contains, escape=_LIKE_ESCAPE)
        condition = or_(name_match, PackageDB.description.ilike(contains, escape=_LIKE_ESCAPE))

        rank = case(
            (func.lower(PackageDB.name) == query.lower(), 0),
            (PackageDB.name.ilike(f"{escaped}%", escape=_LIKE_ESCAPE), 1),
            (name_match, 2),
            else_=3,
        )

        async with self.database.session() as session:
            total = await session.scalar(select(func.count()).select_from(PackageDB).where(condition))
            result = await session.execute(
                select(PackageDB)
                .where(condition)
                .order_by(rank, PackageDB.downloads.desc(), PackageDB.name)
                .limit(limit)
            )
            return total or 0, list(result.scalars().all())

    async def list_packages(self, page: int, limit: int) -> Tuple[int, List[PackageDB]]:
        async with self.database.session() as session:
            total = await session.scalar(select(func.count()).select_from(PackageDB))
            result = await session.execute(
                select(PackageDB)
                .order_by(PackageDB.name)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return total or 0, list(result.scalars().all())

    async def recent(self, limit: int = 10) -> List[PackageDB]:
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageDB).order_by(PackageDB.created_at.desc(), PackageDB.name).limit(limit)
            )
            return list(result.scalars().all())

    async def most_downloaded(self, limit: int = 10) -> List[PackageDB]:
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageDB).order_by(PackageDB.downloads.desc(), PackageDB.name).limit(limit)
            )
            return list(result.scalars().all())

    async def owned_by(self, user_id: str) -> List[PackageDB]:
        async with self.database.session() as session:
            result = await session.execute(
                select(PackageDB)
                .join(PackageOwnerDB, PackageOwnerDB.package_id == PackageDB.id)
                .where(PackageOwnerDB.user_id == user_id)
                .order_by(PackageDB.name)
            )
            return list(result.scalars().all())
