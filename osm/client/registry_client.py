# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry API Client

Client for the registry HTTP surface: metadata documents, artifact
downloads, publishing and search. HTTP error statuses are mapped back
onto the OSMError hierarchy; transport failures become NetworkError.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from osm.core.errors import (
    BadRequestError, NetworkError, NotFoundError, OSMError, STATUS_ERRORS
)
from osm.models.registry_models import (
    FileListing,
    PackageDocument,
    PackageListing,
    PublishResult,
    UserInfo,
    describe_validation_error,
)

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class RegistryClient:
    """
    Client for registry operations.

    Handles:
    - Metadata document fetch and validation
    - Artifact download (streamed to disk)
    - Publishing with a bearer token
    - Search, listings and identity lookup
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 15.0,
        token: Optional[str] = None,
        http_client: Optional[httpx.Client] = None
    ):
        """
        Initialize registry client.

        Args:
            api_url: Registry base URL
            timeout: Request timeout in seconds
            token: Bearer token for authenticated calls
            http_client: Pre-built client (e.g. an in-process test client)
        """
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._owns_client = http_client is None
        self.client = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _headers(self, authenticated: bool = False) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"Could not reach registry at {url}: {e}", url=url)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return body.get("message") or body.get("detail") or str(body)
        return str(body)

    def _raise_for_error(
        self,
        response: httpx.Response,
        resource: str = "Resource",
        identifier: Optional[str] = None
    ) -> None:
        """Raise the OSMError matching an error response."""
        if response.is_success:
            return

        status = response.status_code
        message = self._error_message(response)
        url = str(response.request.url)

        if status == 404:
            raise NotFoundError(resource, identifier or url)
        if status in STATUS_ERRORS:
            raise STATUS_ERRORS[status](message=message)
        if status >= 500:
            raise NetworkError(f"Registry error {status}: {message}", url=url)
        raise OSMError(message, status_code=status)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise BadRequestError(f"Registry returned invalid JSON from {response.request.url}")

    # =========================================================================
    # Fetch
    # =========================================================================

    def fetch_metadata(self, name: str) -> PackageDocument:
        """
        Fetch and validate a package's metadata document.

        Raises:
            NotFoundError: Unknown package
            BadRequestError: Document has an invalid shape
            NetworkError: Transport failure
        """
        response = self._request("GET", self._url(f"/registry/{quote(name, safe='')}"), headers=self._headers())
        self._raise_for_error(response, "Package", name)

        try:
            return PackageDocument.model_validate(self._json(response))
        except ValidationError as e:
            raise BadRequestError(f"Invalid metadata document for {name}: {describe_validation_error(e)}")

    def download_artifact(self, url: str, dest: Path) -> int:
        """
        Stream an artifact to a file.

        Args:
            url: Tarball URL from the metadata document
            dest: File to write

        Returns:
            Number of bytes written
        """
        written = 0
        try:
            with self.client.stream("GET", url) as response:
                if not response.is_success:
                    response.read()
                    self._raise_for_error(response, "Artifact", url)
                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes(_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except httpx.TransportError as e:
            raise NetworkError(f"Download failed for {url}: {e}", url=url)

        logger.debug(f"Downloaded {url} ({written} bytes)")
        return written

    def list_files(self, name: str) -> FileListing:
        response = self._request("GET", self._url(f"/registry/{quote(name, safe='')}/files"), headers=self._headers())
        self._raise_for_error(response, "Package", name)
        return FileListing.model_validate(self._json(response))

    # =========================================================================
    # Publish
    # =========================================================================

    def publish(self, manifest: Dict[str, Any], artifact_base64: str, digest: str) -> PublishResult:
        """
        Publish a version.

        Args:
            manifest: Manifest document
            artifact_base64: Base64-encoded artifact
            digest: Locally computed digest (informational)
        """
        response = self._request(
            "POST",
            self._url("/registry/publish"),
            headers=self._headers(authenticated=True),
            json={"manifest": manifest, "artifactBase64": artifact_base64, "digest": digest},
        )
        self._raise_for_error(response, "Package", manifest.get("name"))
        return PublishResult.model_validate(self._json(response))

    # =========================================================================
    # Listings and identity
    # =========================================================================

    def search(self, query: str) -> PackageListing:
        response = self._request("GET", self._url("/registry/search"), params={"q": query}, headers=self._headers())
        self._raise_for_error(response)
        return PackageListing.model_validate(self._json(response))

    def list_packages(self, page: int = 1, limit: int = 20) -> PackageListing:
        response = self._request(
            "GET", self._url("/registry/list"),
            params={"page": page, "limit": limit}, headers=self._headers(),
        )
        self._raise_for_error(response)
        return PackageListing.model_validate(self._json(response))

    def whoami(self) -> UserInfo:
        response = self._request("GET", self._url("/auth/whoami"), headers=self._headers(authenticated=True))
        self._raise_for_error(response)
        return UserInfo.model_validate(self._json(response))
