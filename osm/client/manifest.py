# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Manifest readers.

- osm.json: the project manifest listing the dependencies to install
- SKILL.md: YAML frontmatter describing a package to publish
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from osm.core.errors import BadRequestError
from osm.models.registry_models import Manifest, ProjectManifest, describe_validation_error

MANIFEST_NAME = "osm.json"
SKILL_FILE = "SKILL.md"
DEFAULT_VERSION = "1.0.0"

_FRONTMATTER = re.compile(r"^---\r?\n(.*?)\r?\n---(?:\r?\n|$)(.*)", re.DOTALL)

# Frontmatter keys carried into the published manifest
_OPTIONAL_KEYS = ("license", "compatibility", "metadata", "allowed-tools", "dependencies")


def read_project_manifest(project_dir: Path, required: bool = True) -> Optional[ProjectManifest]:
    """
    Load osm.json from a project directory.

    Args:
        project_dir: Project root
        required: Raise if the file is missing (otherwise return None)

    Raises:
        BadRequestError: Missing (when required) or invalid manifest
    """
    path = Path(project_dir) / MANIFEST_NAME
    if not path.exists():
        if required:
            raise BadRequestError(f"No {MANIFEST_NAME} found in {project_dir}")
        return None

    try:
        return ProjectManifest.model_validate(json.loads(path.read_text()))
    except ValidationError as e:
        raise BadRequestError(f"Invalid {MANIFEST_NAME}: {describe_validation_error(e)}")
    except ValueError as e:
        raise BadRequestError(f"Invalid {MANIFEST_NAME}: {e}")


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a SKILL.md into (frontmatter, body).

    Raises:
        BadRequestError: No frontmatter block or invalid YAML
    """
    match = _FRONTMATTER.match(content)
    if not match:
        raise BadRequestError(f"{SKILL_FILE} must start with YAML frontmatter (--- ... ---)")

    try:
        frontmatter = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise BadRequestError(f"Invalid {SKILL_FILE} frontmatter: {e}")

    if not isinstance(frontmatter, dict):
        raise BadRequestError(f"{SKILL_FILE} frontmatter must be a mapping")
    return frontmatter, match.group(2)


def read_skill_manifest(directory: Path) -> Manifest:
    """
    Build and validate the publish manifest from a package's SKILL.md.

    The frontmatter name must equal the directory name. The version is
    taken from "version", then "metadata.version", then 1.0.0.

    Raises:
        BadRequestError: Missing SKILL.md or any validation failure
    """
    directory = Path(directory).resolve()
    skill_path = directory / SKILL_FILE
    if not skill_path.is_file():
        raise BadRequestError(f"{SKILL_FILE} not found in {directory}")

    frontmatter, _ = parse_frontmatter(skill_path.read_text(encoding="utf-8"))

    name = frontmatter.get("name")
    if name != directory.name:
        raise BadRequestError(
            f'name "{name}" must match the parent directory name "{directory.name}"',
            field="name",
        )

    metadata = frontmatter.get("metadata")
    version = frontmatter.get("version")
    if version is None and isinstance(metadata, dict):
        version = metadata.get("version")

    document = {
        "name": name,
        "version": str(version) if version is not None else DEFAULT_VERSION,
        "description": frontmatter.get("description"),
    }
    for key in _OPTIONAL_KEYS:
        if frontmatter.get(key):
            document[key] = frontmatter[key]

    try:
        return Manifest.model_validate(document)
    except ValidationError as e:
        raise BadRequestError(f"Invalid {SKILL_FILE}: {describe_validation_error(e)}")
