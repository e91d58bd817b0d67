# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dependency Resolver

Turns root requirements (name -> range) into the set of concrete
versions to install. Greedy, single pass: each name gets the highest
version satisfying the first range that reaches it; later ranges must
accept that choice or resolution fails. No backtracking.
"""

import logging
from typing import Dict, List, Optional, Tuple

from osm.core.errors import NotFoundError, ResolutionError
from osm.models.registry_models import PackageDocument, ResolvedDependency
from osm.models.versioning import is_latest, latest_release, parse_range, parse_versions, satisfies

logger = logging.getLogger(__name__)


def select_version(document: PackageDocument, range_spec: Optional[str]) -> str:
    """
    Pick the version of a package that a range resolves to.

    - latest / "*" / empty: dist-tags.latest if it names a published
      version, else the highest release (prereleases only when nothing else is published)
    - an exact published version: that version
    - otherwise: the highest version satisfying the npm-style range

    Raises:
        ResolutionError: No versions, unparseable range or no match
    """
    name = document.name
    requested = (range_spec or "").strip()
    display = requested or "latest"

    if not document.versions:
        raise ResolutionError(name, display, reason="package has no published versions")

    if is_latest(requested):
        tag = document.latest_tag
        if tag and tag in document.versions:
            return tag
        best = latest_release(document.versions)
        if best is None:
            raise ResolutionError(name, display, reason="no valid versions published")
        return best

    if requested in document.versions:
        return requested

    try:
        spec = parse_range(requested)
    except ValueError:
        raise ResolutionError(name, display, reason="invalid version range")

    best = spec.select(parse_versions(document.versions))
    if best is None:
        raise ResolutionError(name, display)
    return str(best)


class DependencyResolver:
    """
    Resolves a dependency graph against the registry.

    Metadata documents are fetched once per name and kept for the
    lifetime of the resolver.
    """

    def __init__(self, client):
        """
        Args:
            client: Anything with fetch_metadata(name) -> PackageDocument
        """
        self.client = client
        self._documents: Dict[str, PackageDocument] = {}

    def _document(self, name: str, range_spec: str) -> PackageDocument:
        if name not in self._documents:
            try:
                self._documents[name] = self.client.fetch_metadata(name)
            except NotFoundError as e:
                raise ResolutionError(name, range_spec or "latest", reason="package not found") from e
        return self._documents[name]

    def resolve(self, roots: Dict[str, str]) -> Dict[str, ResolvedDependency]:
        """
        Resolve roots and their transitive dependencies.

        Depth-first preorder with an explicit stack; each name@version is
        expanded once, so diamonds and cycles terminate.

        Args:
            roots: Package name -> version range

        Returns:
            "name@version" -> ResolvedDependency, in resolution order

        Raises:
            ResolutionError: A range cannot be satisfied, or a name is
                required at a range its already-selected version misses
        """
        resolved: Dict[str, ResolvedDependency] = {}
        selected: Dict[str, str] = {}

        # (name, range, requested by)
        stack: List[Tuple[str, str, Optional[str]]] = [
            (name, range_spec, None) for name, range_spec in reversed(list(roots.items()))
        ]

        while stack:
            name, range_spec, parent = stack.pop()

            if name in selected:
                existing = selected[name]
                try:
                    compatible = satisfies(existing, range_spec)
                except ValueError:
                    raise ResolutionError(name, range_spec, reason="invalid version range")
                if not compatible:
                    via = f" (required by {parent})" if parent else ""
                    raise ResolutionError(
                        name, range_spec,
                        reason=f"{name}@{existing} is already selected{via}",
                    )
                continue

            document = self._document(name, range_spec)
            version = select_version(document, range_spec)
            entry = document.versions[version]

            node = ResolvedDependency(
                name=name,
                version=version,
                dependencies=dict(entry.dependencies),
                dist=entry.dist,
            )
            resolved[node.key] = node
            selected[name] = version
            logger.debug(f"Resolved {name}@{range_spec or 'latest'} -> {version}")

            for dep_name, dep_range in reversed(list(node.dependencies.items())):
                stack.append((dep_name, dep_range, node.key))

        return resolved
