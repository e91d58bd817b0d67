# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package registry: storage, service and HTTP surface.
"""

from osm.registry.server import create_app
from osm.registry.service import RegistryService
from osm.registry.store import RegistryStore

__all__ = ["create_app", "RegistryService", "RegistryStore"]
