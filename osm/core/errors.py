# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Custom exceptions for OSM.

All exceptions inherit from OSMError for consistent error handling.
The registry maps them onto HTTP responses; the client maps HTTP
responses back onto them.
"""

from typing import Optional


class OSMError(Exception):
    """Base exception for all OSM errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        """
        Initialize OSM error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for API response."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details
        }


class BadRequestError(OSMError):
    """Malformed request, manifest or body."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize bad request error.

        Args:
            message: Validation error message
            field: Field that failed validation
            details: Additional error details
        """
        super().__init__(message, status_code=400, details=details)
        self.field = field


class UnauthorizedError(OSMError):
    """Missing or invalid credential."""

    def __init__(self, message: str = "Authentication required", details: Optional[dict] = None):
        super().__init__(message, status_code=401, details=details)


class ForbiddenError(OSMError):
    """Authenticated caller is not allowed to perform the operation."""

    def __init__(self, message: str = "Forbidden", resource: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize forbidden error.

        Args:
            message: Error message
            resource: Resource being accessed
            details: Additional error details
        """
        super().__init__(message, status_code=403, details=details)
        self.resource = resource


class NotFoundError(OSMError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        """
        Initialize not found error.

        Args:
            resource: Type of resource (e.g., "Package", "Artifact")
            identifier: Resource identifier
            details: Additional error details
        """
        message = f"{resource} not found: {identifier}"
        super().__init__(message, status_code=404, details=details)
        self.resource = resource
        self.identifier = identifier


class ConflictError(OSMError):
    """Resource conflict (immutable version already exists)."""

    def __init__(self, message: str, resource: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=409, details=details)
        self.resource = resource


class PayloadTooLargeError(OSMError):
    """Artifact exceeds the configured size cap."""

    def __init__(
        self,
        size: Optional[int] = None,
        limit: Optional[int] = None,
        details: Optional[dict] = None,
        message: Optional[str] = None
    ):
        """
        Initialize payload too large error.

        Args:
            size: Payload size in bytes
            limit: Maximum allowed size in bytes
            details: Additional error details
            message: Message to use as is (e.g. rebuilt from a registry response)
        """
        if message is None:
            message = (
                f"Skill package is too large ({(size or 0) // 1024} KB). "
                f"Maximum allowed size is {(limit or 0) // 1024} KB."
            )
        super().__init__(message, status_code=413, details=details)
        self.size = size
        self.limit = limit


class ResolutionError(OSMError):
    """No published version satisfies a requested range."""

    def __init__(self, package: str, range_spec: str, reason: Optional[str] = None, details: Optional[dict] = None):
        """
        Initialize resolution error.

        Args:
            package: Package name being resolved
            range_spec: Requested version range
            reason: Optional explanation appended to the message
            details: Additional error details
        """
        message = f"No version of {package} satisfies {range_spec}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, status_code=422, details=details)
        self.package = package
        self.range_spec = range_spec


class IntegrityError(OSMError):
    """Downloaded bytes do not match the registry digest."""

    def __init__(self, subject: str, expected: str, actual: str, details: Optional[dict] = None):
        message = f"Checksum mismatch for {subject}: expected {expected}, got {actual}"
        super().__init__(message, status_code=502, details=details)
        self.subject = subject
        self.expected = expected
        self.actual = actual


class NetworkError(OSMError):
    """Transport failure talking to the registry."""

    def __init__(self, message: str, url: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=503, details=details)
        self.url = url


class InstallError(OSMError):
    """A package could not be obtained from the network or the cache."""

    def __init__(self, package: str, version: str, message: str, details: Optional[dict] = None):
        super().__init__(message, status_code=500, details=details)
        self.package = package
        self.version = version


# Status code -> error class, used by the client to rebuild registry errors
STATUS_ERRORS = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    409: ConflictError,
    413: PayloadTooLargeError,
}
