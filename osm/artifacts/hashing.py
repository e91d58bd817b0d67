# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Content Hasher / Verifier

SHA-256 over raw artifact bytes. The registry computes the digest at
publish time; the client checks downloaded and cached bytes against
the digest the registry's metadata promised.
"""

import hashlib
import hmac
from pathlib import Path
from typing import Optional, Union

from osm.core.errors import IntegrityError

DIGEST_ALGORITHM = "sha256"
_CHUNK_SIZE = 64 * 1024


def compute_digest(data: bytes) -> str:
    """Hex digest of data."""
    return hashlib.new(DIGEST_ALGORITHM, data).hexdigest()


def digest_file(path: Path) -> str:
    """Hex digest of a file's contents, read in chunks."""
    h = hashlib.new(DIGEST_ALGORITHM)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def digests_match(actual: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison; a missing side never matches."""
    if not actual or not expected:
        return False
    return hmac.compare_digest(actual.lower(), expected.lower())


def verify_digest(data: Union[bytes, Path], expected: str, subject: str = "artifact") -> str:
    """
    Check bytes, or a file's contents, against an expected digest.

    Args:
        data: Bytes to check, or the path of a file holding them
        expected: Digest the bytes must hash to
        subject: What the bytes are, for the error message

    Returns:
        The computed digest

    Raises:
        IntegrityError: If the digests differ
    """
    actual = digest_file(data) if isinstance(data, Path) else compute_digest(data)
    if not digests_match(actual, expected):
        raise IntegrityError(subject, expected, actual)
    return actual
