# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Lockfile reader/writer (osm-lock.json).
"""

import json
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from osm.core.errors import BadRequestError
from osm.models.registry_models import LockEntry, Lockfile, describe_validation_error

LOCKFILE_NAME = "osm-lock.json"
LOCKFILE_VERSION = 1


def lockfile_path(project_dir: Path) -> Path:
    return Path(project_dir) / LOCKFILE_NAME


def read_lockfile(project_dir: Path) -> Lockfile:
    """
    Load the project's lockfile; an absent file is an empty lockfile.

    Raises:
        BadRequestError: If the file is not a valid lockfile
    """
    path = lockfile_path(project_dir)
    if not path.exists():
        return Lockfile()

    try:
        return Lockfile.model_validate(json.loads(path.read_text()))
    except ValidationError as e:
        raise BadRequestError(f"Invalid {LOCKFILE_NAME}: {describe_validation_error(e)}")
    except ValueError as e:
        raise BadRequestError(f"Invalid {LOCKFILE_NAME}: {e}")


def write_lockfile(project_dir: Path, lockfile: Lockfile) -> Path:
    path = lockfile_path(project_dir)
    document = lockfile.model_dump(by_alias=True, exclude_none=True)
    path.write_text(json.dumps(document, indent=2) + "\n")
    return path


def merge_lockfile(
    project_dir: Path,
    entries: Dict[str, LockEntry],
    name: Optional[str] = None
) -> Lockfile:
    """
    Merge new entries into the existing lockfile and write it.

    Entries for other packages are kept; entries for the same package
    are replaced.
    """
    lockfile = read_lockfile(project_dir)
    packages = dict(lockfile.packages)
    packages.update(entries)

    merged = Lockfile(
        name=name if name is not None else lockfile.name,
        lockfile_version=LOCKFILE_VERSION,
        packages=packages,
    )
    write_lockfile(project_dir, merged)
    return merged


def remove_lock_entry(project_dir: Path, name: str) -> bool:
    """Drop a package from the lockfile; returns False if it was not locked."""
    lockfile = read_lockfile(project_dir)
    if name not in lockfile.packages:
        return False

    packages = {k: v for k, v in lockfile.packages.items() if k != name}
    write_lockfile(project_dir, lockfile.model_copy(update={"packages": packages}))
    return True
