# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Data Models

Defines the documents that cross the registry boundary (manifests,
metadata documents, publish payloads, listings) and the client-side
records built from them (resolved dependencies, lockfile, project
manifest). Both sides validate with these schemas.
"""

import re
from typing import List, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from osm.models.versioning import is_valid_range, is_valid_version

NAME_MAX_LENGTH = 64
DESCRIPTION_MAX_LENGTH = 1024
COMPATIBILITY_MAX_LENGTH = 500

NAME_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def name_error(name: object) -> Optional[str]:
    """
    Check a package name against the naming rules.

    Returns:
        Error message, or None if the name is valid
    """
    if not name or not isinstance(name, str):
        return "name is required"
    if len(name) > NAME_MAX_LENGTH:
        return f"name must be 1-{NAME_MAX_LENGTH} characters"
    if not NAME_PATTERN.match(name):
        return "name must be lowercase alphanumeric and hyphens, no leading/trailing hyphens"
    if "--" in name:
        return "name must not contain consecutive hyphens"
    return None


def description_error(description: object) -> Optional[str]:
    """Check a description; returns an error message or None."""
    if not description or not isinstance(description, str):
        return "description is required"
    if len(description) > DESCRIPTION_MAX_LENGTH:
        return f"description must be 1-{DESCRIPTION_MAX_LENGTH} characters"
    return None


def describe_validation_error(exc: ValidationError) -> str:
    """Render the first pydantic error as 'field.path: message'."""
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    message = err.get("msg", "invalid value").removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


class Manifest(BaseModel):
    """
    Package manifest as published.

    Unknown keys are rejected rather than carried along.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str
    version: str
    description: str
    dependencies: Dict[str, str] = Field(default_factory=dict)
    license: Optional[str] = None
    compatibility: Optional[str] = None
    metadata: Optional[Dict[str, Union[str, int, float]]] = None
    allowed_tools: Optional[List[str]] = Field(default=None, alias="allowed-tools")

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        error = name_error(value)
        if error:
            raise ValueError(error)
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not is_valid_version(value):
            raise ValueError(f"version must be a semantic version (got {value!r})")
        return value

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        error = description_error(value)
        if error:
            raise ValueError(error)
        return value

    @field_validator("compatibility")
    @classmethod
    def _check_compatibility(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) > COMPATIBILITY_MAX_LENGTH:
            raise ValueError(f"compatibility must be max {COMPATIBILITY_MAX_LENGTH} characters")
        return value

    @field_validator("dependencies")
    @classmethod
    def _check_dependencies(cls, value: Dict[str, str]) -> Dict[str, str]:
        for dep_name, dep_range in value.items():
            error = name_error(dep_name)
            if error:
                raise ValueError(f"dependency {dep_name!r}: {error}")
            if not is_valid_range(dep_range):
                raise ValueError(f"dependency {dep_name!r}: invalid version range {dep_range!r}")
        return value

    def to_document(self) -> Dict:
        """Manifest as stored and served (aliases, no empty optionals)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DistInfo(BaseModel):
    """Where to fetch a version's artifact and what its bytes must hash to"""
    digest: str
    tarball: str


class VersionDocument(Manifest):
    """One entry of a metadata document's version map"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    dist: DistInfo


class PackageDocument(BaseModel):
    """Metadata document served by GET /registry/{name}"""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    downloads: int = 0
    author: Optional[str] = None
    dist_tags: Dict[str, str] = Field(default_factory=dict, alias="dist-tags")
    versions: Dict[str, VersionDocument] = Field(default_factory=dict)

    @property
    def latest_tag(self) -> Optional[str]:
        return self.dist_tags.get("latest")

    def to_document(self) -> Dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class PublishRequest(BaseModel):
    """Body of POST /registry/publish"""
    model_config = ConfigDict(populate_by_name=True)

    manifest: Manifest
    artifact_base64: str = Field(alias="artifactBase64", min_length=1)
    digest: Optional[str] = None  # Informational only


class PublishResult(BaseModel):
    """Response of a successful publish"""
    ok: bool = True
    name: str
    version: str
    digest: str


class PackageSummary(BaseModel):
    """Package row in search results and listings"""
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str = ""
    latest_version: Optional[str] = None
    downloads: int = 0


class PackageListing(BaseModel):
    """Search/list response"""
    total: int
    objects: List[PackageSummary] = Field(default_factory=list)
    page: Optional[int] = None
    limit: Optional[int] = None


class FileListing(BaseModel):
    """Files inside the latest artifact plus small README/SKILL.md texts"""
    files: List[str] = Field(default_factory=list)
    contents: Dict[str, str] = Field(default_factory=dict)


class UserInfo(BaseModel):
    """Identity behind a bearer token"""
    username: str
    email: Optional[str] = None


class ResolvedDependency(BaseModel):
    """A node of the resolved dependency graph"""
    name: str
    version: str
    dependencies: Dict[str, str] = Field(default_factory=dict)
    dist: DistInfo

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"


class LockEntry(BaseModel):
    """Lockfile record for one installed package"""
    model_config = ConfigDict(populate_by_name=True)

    install_path: str = Field(alias="installPath")
    version: str
    resolved: str
    digest: str
    dependencies: Dict[str, str] = Field(default_factory=dict)


class Lockfile(BaseModel):
    """osm-lock.json"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    lockfile_version: int = Field(default=1, alias="lockfileVersion")
    packages: Dict[str, LockEntry] = Field(default_factory=dict)


class ProjectManifest(BaseModel):
    """osm.json; keys other than name/dependencies are left alone"""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    dependencies: Dict[str, str] = Field(default_factory=dict)

    @field_validator("dependencies")
    @classmethod
    def _check_dependencies(cls, value: Dict[str, str]) -> Dict[str, str]:
        for dep_name, dep_range in value.items():
            if not is_valid_range(dep_range):
                raise ValueError(f"dependency {dep_name!r}: invalid version range {dep_range!r}")
        return value
