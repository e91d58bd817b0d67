# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
End-to-End Tests for Publish and Install

Publishes through the real client/publisher against the in-process
registry, then installs with the Installer: lockfile contents, cache
fallback when the network fails, and fatal corruption.
"""

import base64
import json
import os

import pytest

from conftest import auth_header
from osm.artifacts.archive import pack_directory
from osm.client.cache import LocalCache
from osm.client.installer import Installer
from osm.client.lockfile import LOCKFILE_NAME, read_lockfile
from osm.client.publisher import publish_directory
from osm.core.errors import (
    BadRequestError, ForbiddenError, InstallError, NetworkError, PayloadTooLargeError, ResolutionError,
    UnauthorizedError,
)


class OfflineClient:
    """Serves metadata from a real client but fails every download"""

    def __init__(self, client):
        self.client = client

    def fetch_metadata(self, name):
        return self.client.fetch_metadata(name)

    def download_artifact(self, url, dest):
        raise NetworkError(f"Could not reach registry at {url}", url=url)


@pytest.fixture
def project_dir(tmp_dir):
    path = tmp_dir / "project"
    path.mkdir()
    return path


@pytest.fixture
def installer_for(config, registry_client, project_dir):
    """Build an Installer for bob using config paths"""

    def make(client=None):
        return Installer.from_config(config, client or registry_client(), project_dir=project_dir)

    return make


class TestPublisher:
    """Test suite for publish_directory"""

    def test_publish_directory(self, http, tokens, registry_client, make_skill):
        """Test publishing a directory through the client"""
        directory = make_skill("pdf-tools", files={"run.py": "print('hi')\n"})

        with registry_client(tokens["alice"]) as client:
            result = publish_directory(client, directory)

        document = http.get("/registry/pdf-tools").json()
        assert result.version == "1.0.0"
        assert document["versions"]["1.0.0"]["dist"]["digest"] == result.digest

    def test_client_side_size_cap(self, tokens, registry_client, make_skill):
        """Test the client refuses artifacts over its cap before sending"""
        directory = make_skill("pdf-tools", files={"blob.bin": bytes(range(256)) * 64})

        with pytest.raises(PayloadTooLargeError):
            publish_directory(registry_client(tokens["alice"]), directory, max_bytes=64)

    def test_publish_without_token(self, tokens, registry_client, make_skill):
        """Test registry 401 surfaces as UnauthorizedError"""
        with pytest.raises(UnauthorizedError):
            publish_directory(registry_client(None), make_skill("pdf-tools"))

    def test_publish_as_non_owner(self, tokens, registry_client, make_skill):
        """Test registry 403 surfaces as ForbiddenError"""
        publish_directory(registry_client(tokens["alice"]), make_skill("pdf-tools"))

        with pytest.raises(ForbiddenError):
            publish_directory(registry_client(tokens["bob"]), make_skill("pdf-tools", "1.1.0"))


class TestInstall:
    """Test suite for Installer"""

    @pytest.fixture
    def published(self, tokens, registry_client, make_skill):
        """alice publishes base 1.0.0/1.1.0/2.0.0 and app 1.0.0 (base ^1.0.0)"""
        client = registry_client(tokens["alice"])
        results = {}
        for version in ("1.0.0", "1.1.0", "2.0.0"):
            directory = make_skill("base", version, files={"VERSION": version})
            results[f"base@{version}"] = publish_directory(client, directory)
        directory = make_skill("app", "1.0.0", dependencies={"base": "^1.0.0"}, files={"main.py": "run()\n"})
        results["app@1.0.0"] = publish_directory(client, directory)
        return results

    def test_install_latest_writes_lockfile(self, config, installer_for, project_dir, published):
        """Test install by name with latest: files, lockfile, cache"""
        entries = installer_for().install_package("app")

        assert set(entries) == {"app", "base"}
        assert (config.skills_dir / "app" / "main.py").read_text() == "run()\n"
        assert (config.skills_dir / "base" / "VERSION").read_text() == "1.1.0"

        lock = json.loads((project_dir / LOCKFILE_NAME).read_text())
        assert lock["lockfileVersion"] == 1
        app = lock["packages"]["app"]
        assert app["version"] == "1.0.0"
        assert app["digest"] == published["app@1.0.0"].digest
        assert app["resolved"] == "http://testserver/registry/app/-/app-1.0.0.tgz"
        assert app["dependencies"] == {"base": "^1.0.0"}
        assert app["installPath"] == str(config.skills_dir / "app")
        assert lock["packages"]["base"]["version"] == "1.1.0"

        cached = LocalCache(config.cache_dir).lookup("app", "1.0.0", published["app@1.0.0"].digest)
        assert cached is not None

    def test_install_from_project_manifest(self, config, installer_for, project_dir, published):
        """Test install() uses osm.json ranges and its name"""
        (project_dir / "osm.json").write_text(json.dumps({
            "name": "my-project",
            "dependencies": {"base": "^2.0.0"},
        }))

        installer_for().install()

        lockfile = read_lockfile(project_dir)
        assert lockfile.name == "my-project"
        assert lockfile.packages["base"].version == "2.0.0"
        assert (config.skills_dir / "base" / "VERSION").read_text() == "2.0.0"

    def test_install_replaces_existing_directory(self, config, installer_for, published):
        """Test stale files in the install directory are removed"""
        stale = config.skills_dir / "base" / "stale.txt"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")

        installer_for().install_package("base", "1.0.0")

        assert not stale.exists()
        assert (config.skills_dir / "base" / "VERSION").read_text() == "1.0.0"

    def test_install_keeps_other_lock_entries(self, installer_for, project_dir, published):
        """Test separate installs accumulate in the lockfile"""
        installer = installer_for()
        installer.install_package("base", "2.0.0")
        installer.install_package("app")

        packages = read_lockfile(project_dir).packages
        assert set(packages) == {"app", "base"}
        assert packages["base"].version == "1.1.0"

    def test_unsatisfiable_range(self, installer_for, project_dir, published):
        """Test resolution failures are fatal and write nothing"""
        with pytest.raises(ResolutionError, match="base"):
            installer_for().install_package("base", "^9.0.0")

        assert not (project_dir / LOCKFILE_NAME).exists()

    def test_network_failure_uses_cache(self, config, registry_client, installer_for, project_dir, published):
        """Test a download failure falls back to a valid cache entry"""
        installer_for().install_package("base", "1.0.0")
        (project_dir / LOCKFILE_NAME).unlink()

        offline = installer_for(OfflineClient(registry_client()))
        entries = offline.install_package("base", "1.0.0")

        assert entries["base"].digest == published["base@1.0.0"].digest
        assert (config.skills_dir / "base" / "VERSION").read_text() == "1.0.0"
        assert (project_dir / LOCKFILE_NAME).exists()

    def test_network_failure_without_cache(self, registry_client, installer_for, project_dir, published):
        """Test a download failure with no cache entry is fatal"""
        offline = installer_for(OfflineClient(registry_client()))

        with pytest.raises(InstallError) as exc:
            offline.install_package("base", "1.0.0")

        assert exc.value.package == "base"
        assert isinstance(exc.value.__cause__, NetworkError)
        assert not (project_dir / LOCKFILE_NAME).exists()

    def test_corrupted_cache_is_fatal(self, config, registry_client, installer_for, project_dir, published):
        """Test a cache entry whose bytes changed is not trusted"""
        installer_for().install_package("base", "1.0.0")
        lock_before = (project_dir / LOCKFILE_NAME).read_text()
        LocalCache(config.cache_dir).path_for("base", "1.0.0").write_bytes(b"corrupted")

        offline = installer_for(OfflineClient(registry_client()))
        with pytest.raises(InstallError):
            offline.install_package("base", "1.0.0")

        assert (project_dir / LOCKFILE_NAME).read_text() == lock_before

    def test_registry_digest_mismatch_falls_back(self, config, registry_client, installer_for, published):
        """Test bytes that do not match the registry digest are rejected"""

        class TamperingClient(OfflineClient):
            def download_artifact(self, url, dest):
                dest.write_bytes(b"tampered in transit")
                return len(b"tampered in transit")

        with pytest.raises(InstallError) as exc:
            installer_for(TamperingClient(registry_client())).install_package("base", "1.0.0")

        assert "Checksum mismatch" in exc.value.message
        assert not LocalCache(config.cache_dir).entry_dir("base", "1.0.0").exists()


class TestRemoveAndUpdate:
    """Test suite for remove and update"""

    def test_remove(self, config, tokens, registry_client, make_skill, installer_for, project_dir):
        """Test remove deletes the directory and the lock entry"""
        publish_directory(registry_client(tokens["alice"]), make_skill("base"))
        installer = installer_for()
        installer.install_package("base")

        assert installer.remove("base") is True
        assert not (config.skills_dir / "base").exists()
        assert "base" not in read_lockfile(project_dir).packages
        assert installer.remove("base") is False

    def test_update_picks_up_new_version(self, tokens, registry_client, make_skill, installer_for, project_dir):
        """Test update reinstalls locked packages at their newest version"""
        client = registry_client(tokens["alice"])
        publish_directory(client, make_skill("base", "1.0.0"))
        installer = installer_for()
        installer.install_package("base")

        publish_directory(client, make_skill("base", "1.2.0"))
        entries = installer.update()

        assert entries["base"].version == "1.2.0"
        assert read_lockfile(project_dir).packages["base"].version == "1.2.0"

    def test_update_respects_declared_range(self, tokens, registry_client, make_skill, installer_for, project_dir):
        """Test update stays inside the range from osm.json"""
        client = registry_client(tokens["alice"])
        for version in ("1.0.0", "1.3.0", "2.0.0"):
            publish_directory(client, make_skill("base", version))
        (project_dir / "osm.json").write_text(json.dumps({"dependencies": {"base": "~1.0.0"}}))
        installer = installer_for()
        installer.install()

        (project_dir / "osm.json").write_text(json.dumps({"dependencies": {"base": "^1.0.0"}}))
        installer.update(["base"])

        assert read_lockfile(project_dir).packages["base"].version == "1.3.0"

    def test_update_nothing_locked(self, installer_for):
        """Test update with an empty lockfile is a no-op"""
        assert installer_for().update() == {}

    @pytest.mark.parametrize("name", ["..", "../..", "base/../..", "/etc", ""])
    def test_remove_rejects_path_like_names(self, config, installer_for, project_dir, name):
        """Test remove refuses names that would escape the skills directory"""
        (config.skills_dir / "base").mkdir(parents=True)
        config.cache_dir.mkdir(parents=True)
        (config.cache_dir / "keep.txt").write_text("cached")

        with pytest.raises(BadRequestError, match="Invalid package name"):
            installer_for().remove(name)

        assert (config.cache_dir / "keep.txt").read_text() == "cached"
        assert (config.skills_dir / "base").is_dir()


class TestUnreadableArtifacts:
    """Test suite for artifacts that verify but cannot be extracted"""

    def test_truncated_artifact_is_bad_request(self, http, tokens, make_skill, installer_for, project_dir):
        """Test a published artifact cut short fails install with an OSMError"""
        directory = make_skill("broken", files={"blob.bin": os.urandom(8192)})
        truncated = pack_directory(directory)[:-200]
        response = http.post(
            "/registry/publish",
            json={
                "manifest": {"name": "broken", "version": "1.0.0", "description": "Cut short"},
                "artifactBase64": base64.b64encode(truncated).decode("ascii"),
            },
            headers=auth_header(tokens["alice"]),
        )
        assert response.status_code == 201

        with pytest.raises(BadRequestError, match="Invalid package archive"):
            installer_for().install_package("broken")

        assert not (project_dir / LOCKFILE_NAME).exists()

    def test_install_rejects_path_like_root(self, installer_for):
        """Test a root name that is not a package name is refused before resolution"""
        with pytest.raises(BadRequestError, match="Invalid package name"):
            installer_for().install({"../evil": "latest"})
