# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
OSM - skill package registry and client.

- registry: authoritative version store and HTTP publish/fetch surface
- client: dependency resolution, verified download, cache, lockfile
- artifacts: digest and archive codecs shared by both sides
"""

__version__ = "1.0.0"
