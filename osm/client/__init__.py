# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package client: registry API, resolution, caching, install and publish.
"""

from osm.client.cache import LocalCache
from osm.client.installer import Installer
from osm.client.publisher import publish_directory
from osm.client.registry_client import RegistryClient
from osm.client.resolver import DependencyResolver

__all__ = [
    "DependencyResolver",
    "Installer",
    "LocalCache",
    "RegistryClient",
    "publish_directory",
]
