# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Artifact codecs used on both sides of every transfer.
"""

from osm.artifacts.archive import extract_archive, list_archive, pack_directory
from osm.artifacts.hashing import compute_digest, digest_file, verify_digest

__all__ = [
    "compute_digest",
    "digest_file",
    "extract_archive",
    "list_archive",
    "pack_directory",
    "verify_digest",
]
