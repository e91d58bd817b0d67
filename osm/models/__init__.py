# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Data models shared by the registry and the client.
"""

from osm.models.registry_models import (
    DistInfo,
    FileListing,
    LockEntry,
    Lockfile,
    Manifest,
    PackageDocument,
    PackageListing,
    PackageSummary,
    ProjectManifest,
    PublishRequest,
    PublishResult,
    ResolvedDependency,
    UserInfo,
    VersionDocument,
)

__all__ = [
    "DistInfo",
    "FileListing",
    "LockEntry",
    "Lockfile",
    "Manifest",
    "PackageDocument",
    "PackageListing",
    "PackageSummary",
    "ProjectManifest",
    "PublishRequest",
    "PublishResult",
    "ResolvedDependency",
    "UserInfo",
    "VersionDocument",
]
