# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Publisher - pack a package directory and send it to the registry.
"""

import base64
import logging
from pathlib import Path

from osm.artifacts.archive import pack_directory
from osm.artifacts.hashing import compute_digest
from osm.client.manifest import read_skill_manifest
from osm.client.registry_client import RegistryClient
from osm.core.errors import PayloadTooLargeError
from osm.core.logging import log_event
from osm.models.registry_models import PublishResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_PUBLISH_BYTES = 1 * 1024 * 1024


def publish_directory(
    client: RegistryClient,
    directory: Path,
    max_bytes: int = DEFAULT_MAX_PUBLISH_BYTES
) -> PublishResult:
    """
    Publish the package in directory.

    Args:
        client: Registry client carrying the bearer token
        directory: Package directory containing SKILL.md
        max_bytes: Client-side artifact size cap

    Raises:
        BadRequestError: Invalid SKILL.md
        PayloadTooLargeError: Artifact over max_bytes
    """
    manifest = read_skill_manifest(directory)
    artifact = pack_directory(directory)

    if len(artifact) > max_bytes:
        raise PayloadTooLargeError(len(artifact), max_bytes)

    digest = compute_digest(artifact)
    result = client.publish(
        manifest.to_document(),
        base64.b64encode(artifact).decode("ascii"),
        digest,
    )

    log_event(
        logger, "package_publish_sent",
        package=result.name, version=result.version, digest=result.digest, size=len(artifact),
    )
    return result
