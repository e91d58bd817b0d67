# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Semantic version helpers.

Ranges follow npm semantics (caret, tilde, x-ranges, comparator sets)
via semantic_version.NpmSpec. "latest", "*" and the empty string are
the latest sentinel.
"""

from typing import Iterable, List, Optional

import semantic_version

LATEST = "latest"
_LATEST_ALIASES = {"", LATEST, "*"}


def is_valid_version(version: str) -> bool:
    """True if version is a strict semantic version string."""
    return isinstance(version, str) and semantic_version.validate(version)


def is_latest(range_spec: Optional[str]) -> bool:
    """True if range_spec asks for the latest version."""
    return range_spec is None or range_spec.strip() in _LATEST_ALIASES


def parse_range(range_spec: str) -> semantic_version.NpmSpec:
    """
    Parse an npm-style range.

    Raises:
        ValueError: If the range cannot be parsed
    """
    return semantic_version.NpmSpec(range_spec.strip())


def is_valid_range(range_spec: str) -> bool:
    """True if range_spec is the latest sentinel or a parseable range."""
    if not isinstance(range_spec, str):
        return False
    if is_latest(range_spec):
        return True
    try:
        parse_range(range_spec)
    except ValueError:
        return False
    return True


def parse_versions(versions: Iterable[str]) -> List[semantic_version.Version]:
    """Parse version strings, skipping any that are not valid semver."""
    parsed = []
    for raw in versions:
        if is_valid_version(raw):
            parsed.append(semantic_version.Version(raw))
    return parsed


def latest_release(versions: Iterable[str]) -> Optional[str]:
    """
    Version the latest pointer should name: the highest version without a
    prerelease tag, or the highest prerelease when nothing else is published.
    """
    parsed = parse_versions(versions)
    if not parsed:
        return None
    releases = [v for v in parsed if not v.prerelease]
    return str(max(releases or parsed))


def satisfies(version: str, range_spec: str) -> bool:
    """True if version satisfies range_spec (latest matches anything)."""
    if is_latest(range_spec):
        return True
    if not is_valid_version(version):
        return False
    return parse_range(range_spec).match(semantic_version.Version(version))
