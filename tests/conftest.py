# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Provides pytest fixtures for a throwaway registry (file-backed SQLite in
a temporary directory), provisioned publishers, an in-process HTTP
client and helpers to build and publish skill packages.
"""

import base64
import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import pytest
import yaml
from fastapi.testclient import TestClient

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from osm.artifacts.archive import pack_directory
from osm.client.manifest import read_skill_manifest
from osm.client.registry_client import RegistryClient
from osm.core.config import Config
from osm.registry.admin import provision_user
from osm.registry.server import create_app


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# Filesystem / configuration
# ============================================================================

@pytest.fixture
def tmp_dir():
    """Temporary directory removed after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def config(tmp_dir) -> Config:
    """Configuration pointing every path at the temporary directory."""
    return Config(
        database_url=f"sqlite+aiosqlite:///{tmp_dir / 'registry.db'}",
        api_url="http://testserver",
        home=str(tmp_dir / "home"),
        log_format="text",
    )


# ============================================================================
# Registry
# ============================================================================

@pytest.fixture
def tokens(config) -> Dict[str, str]:
    """
    Bearer tokens for seeded users.

    alice and bob are verified publishers; mallory is unverified.
    """
    return {
        "alice": provision_user(config.database_url, "alice", email="alice@example.com"),
        "bob": provision_user(config.database_url, "bob", email="bob@example.com"),
        "mallory": provision_user(config.database_url, "mallory", verified=False),
    }


@pytest.fixture
def http(config, tokens):
    """In-process registry behind FastAPI's TestClient."""
    with TestClient(create_app(config)) as client:
        yield client


@pytest.fixture
def registry_client(http, config) -> Callable[[Optional[str]], RegistryClient]:
    """Factory for RegistryClient instances talking to the in-process registry."""

    def make(token: Optional[str] = None) -> RegistryClient:
        return RegistryClient(config.api_url, token=token, http_client=http)

    return make


# ============================================================================
# Packages
# ============================================================================

@pytest.fixture
def make_skill(tmp_dir) -> Callable[..., Path]:
    """
    Factory writing a skill package directory.

    The directory is named after the package (SKILL.md requires it) and
    nested under a per-version parent so several versions can coexist.
    """

    def make(
        name: str,
        version: str = "1.0.0",
        description: Optional[str] = None,
        dependencies: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Union[str, bytes]]] = None,
    ) -> Path:
        directory = tmp_dir / "src" / f"{name}-{version}" / name
        directory.mkdir(parents=True, exist_ok=True)

        frontmatter = {
            "name": name,
            "description": description or f"The {name} skill",
            "metadata": {"version": version},
        }
        if dependencies:
            frontmatter["dependencies"] = dependencies
        skill_md = f"---\n{yaml.safe_dump(frontmatter, sort_keys=False)}---\n\n# {name}\n"
        (directory / "SKILL.md").write_text(skill_md)

        for relative, content in (files or {}).items():
            path = directory / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content)
        return directory

    return make


@pytest.fixture
def publish(http, make_skill) -> Callable[..., object]:
    """
    Publish a freshly built package through the HTTP API.

    Returns the raw response; the packed artifact bytes are attached as
    response.artifact for digest comparisons.
    """

    def do_publish(token: Optional[str], name: str, version: str = "1.0.0", **kwargs):
        directory = make_skill(name, version, **kwargs)
        manifest = read_skill_manifest(directory)
        artifact = pack_directory(directory)
        headers = auth_header(token) if token else {}
        response = http.post(
            "/registry/publish",
            json={
                "manifest": manifest.to_document(),
                "artifactBase64": base64.b64encode(artifact).decode("ascii"),
            },
            headers=headers,
        )
        response.artifact = artifact
        return response

    return do_publish
