# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit Tests for RegistryClient

Uses httpx.MockTransport for error mapping and the in-process registry
for the happy paths.
"""

import httpx
import pytest

from osm.client.registry_client import RegistryClient
from osm.core.errors import (
    BadRequestError, ConflictError, NetworkError, NotFoundError, OSMError, PayloadTooLargeError,
    UnauthorizedError,
)


def mock_client(handler) -> RegistryClient:
    return RegistryClient("http://registry.test", http_client=httpx.Client(transport=httpx.MockTransport(handler)))


class TestErrorMapping:
    """Test suite for HTTP status -> OSMError mapping"""

    def test_not_found(self):
        """Test 404 becomes NotFoundError naming the package"""
        client = mock_client(lambda request: httpx.Response(404, json={"message": "Package not found: demo"}))

        with pytest.raises(NotFoundError) as exc:
            client.fetch_metadata("demo")

        assert exc.value.identifier == "demo"

    def test_conflict_uses_body_message(self):
        """Test 409 carries the registry's message"""
        client = mock_client(lambda request: httpx.Response(409, json={"message": "Version 1.0.0 of demo already exists"}))

        with pytest.raises(ConflictError, match="already exists"):
            client.publish({"name": "demo"}, "ZGF0YQ==", "digest")

    def test_unauthorized(self):
        """Test 401 becomes UnauthorizedError"""
        client = mock_client(lambda request: httpx.Response(401, json={"message": "Authentication required"}))

        with pytest.raises(UnauthorizedError):
            client.whoami()

    def test_server_error_is_network_error(self):
        """Test 5xx is treated as a registry outage"""
        client = mock_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(NetworkError, match="500"):
            client.search("demo")

    def test_payload_too_large(self):
        """Test 413 becomes PayloadTooLargeError with the registry's message"""
        client = mock_client(lambda request: httpx.Response(413, json={"message": "Too big"}))

        with pytest.raises(PayloadTooLargeError) as exc:
            client.publish({"name": "demo"}, "ZGF0YQ==", "digest")

        assert exc.value.status_code == 413
        assert exc.value.message == "Too big"

    def test_other_status(self):
        """Test unmapped 4xx keeps its status"""
        client = mock_client(lambda request: httpx.Response(422, json={"message": "Unprocessable"}))

        with pytest.raises(OSMError) as exc:
            client.publish({"name": "demo"}, "ZGF0YQ==", "digest")

        assert type(exc.value) is OSMError
        assert exc.value.status_code == 422
        assert exc.value.message == "Unprocessable"

    def test_transport_failure(self):
        """Test connection errors become NetworkError"""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError, match="Could not reach registry"):
            mock_client(handler).fetch_metadata("demo")

    def test_download_transport_failure(self, tmp_dir):
        """Test download connection errors become NetworkError"""

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            mock_client(handler).download_artifact("http://registry.test/demo-1.0.0.tgz", tmp_dir / "demo.tgz")

    def test_invalid_metadata_document(self):
        """Test a malformed document is a BadRequestError"""
        client = mock_client(lambda request: httpx.Response(200, json={"name": "demo", "versions": {"1.0.0": {}}}))

        with pytest.raises(BadRequestError, match="Invalid metadata document"):
            client.fetch_metadata("demo")

    def test_bearer_header_only_when_authenticated(self):
        """Test the token is sent on publish but not on metadata fetch"""
        seen = []

        def handler(request):
            seen.append((request.url.path, request.headers.get("authorization")))
            if request.url.path == "/registry/publish":
                return httpx.Response(201, json={"ok": True, "name": "demo", "version": "1.0.0", "digest": "d"})
            return httpx.Response(200, json={"name": "demo"})

        client = RegistryClient(
            "http://registry.test", token="secret",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        client.fetch_metadata("demo")
        client.publish({"name": "demo"}, "ZGF0YQ==", "d")

        assert seen == [("/registry/demo", None), ("/registry/publish", "Bearer secret")]


class TestAgainstRegistry:
    """Test suite for RegistryClient against the in-process registry"""

    def test_fetch_and_download(self, tokens, publish, registry_client, tmp_dir):
        """Test metadata fetch and streamed download"""
        published = publish(tokens["alice"], "pdf-tools")
        client = registry_client()

        document = client.fetch_metadata("pdf-tools")
        dest = tmp_dir / "pdf-tools.tgz"
        written = client.download_artifact(document.versions["1.0.0"].dist.tarball, dest)

        assert written == len(published.artifact)
        assert dest.read_bytes() == published.artifact

    def test_download_missing_artifact(self, tokens, publish, registry_client, tmp_dir):
        """Test a 404 download is NotFoundError"""
        publish(tokens["alice"], "pdf-tools")

        with pytest.raises(NotFoundError):
            registry_client().download_artifact(
                "http://testserver/registry/pdf-tools/-/pdf-tools-9.0.0.tgz", tmp_dir / "x.tgz"
            )

    def test_search_and_whoami(self, tokens, publish, registry_client):
        """Test listing and identity calls"""
        publish(tokens["alice"], "pdf-tools")

        assert [p.name for p in registry_client().search("pdf").objects] == ["pdf-tools"]
        assert registry_client(tokens["alice"]).whoami().username == "alice"
        assert registry_client().list_packages().total == 1
        assert "SKILL.md" in registry_client().list_files("pdf-tools").files
