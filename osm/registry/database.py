# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from datetime import datetime, UTC
from uuid import uuid4

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, LargeBinary, String, Text, UniqueConstraint
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


def _uuid() -> str:
    return str(uuid4())


# Identity tables. Rows are provisioned by the account system (or the
# admin helper); the registry only reads them.

class UserDB(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_now)


class AuthTokenDB(Base):
    __tablename__ = "auth_tokens"

    id = Column(String, primary_key=True, default=_uuid)
    token = Column(String, nullable=False, unique=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_now)

    user = relationship("UserDB", lazy="joined")


# Package tables

class PackageDB(Base):
    __tablename__ = "packages"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    latest_version = Column(String, nullable=True)  # Display pointer, recomputed on publish
    downloads = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class PackageVersionDB(Base):
    __tablename__ = "package_versions"
    __table_args__ = (
        UniqueConstraint("package_id", "version", name="uq_package_version"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    package_id = Column(String, ForeignKey("packages.id"), nullable=False, index=True)
    version = Column(String, nullable=False)
    manifest = Column(JSON, nullable=False)
    artifact = Column(LargeBinary, nullable=False)
    digest = Column(String, nullable=False)  # sha256 hex of artifact
    created_at = Column(DateTime, default=_now)


class PackageOwnerDB(Base):
    __tablename__ = "package_owners"
    __table_args__ = (
        UniqueConstraint("package_id", "user_id", name="uq_package_owner"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    package_id = Column(String, ForeignKey("packages.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=_now)


class Database:
    """Async engine plus session factory for one database URL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=echo)
        self.session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self) -> None:
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.session_maker()
