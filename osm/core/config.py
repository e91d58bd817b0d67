# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
OSM Configuration - Single source of truth.
YAML is king. Env vars for secrets and deployment overrides.

A Config is built once by the entry point and handed to every
component at construction time. There is no module-level instance.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable application configuration.
    All values from YAML. No hidden state.
    """

    # -- Registry server --
    database_url: str = "sqlite+aiosqlite:///./osm.db"
    service_host: str = "0.0.0.0"
    registry_port: int = 4000
    max_artifact_bytes: int = 5 * 1024 * 1024
    require_verified_publishers: bool = True
    search_limit: int = 100

    # -- Client --
    api_url: str = "http://localhost:4000"
    home: str = "~/.osm"
    http_timeout: float = 15.0
    max_publish_bytes: int = 1 * 1024 * 1024

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    # -- Derived paths (computed from home) --
    @property
    def home_path(self) -> Path:
        return Path(self.home).expanduser()

    @property
    def cache_dir(self) -> Path:
        return self.home_path / "cache"

    @property
    def skills_dir(self) -> Path:
        return self.home_path / "skills"

    @property
    def tokens_file(self) -> Path:
        return self.home_path / "auth.json"


# =============================================================================
# SECRETS - environment first, then the token file
# =============================================================================

def get_auth_token(config: Config) -> Optional[str]:
    """Bearer token for publishing. OSM_TOKEN wins over ~/.osm/auth.json."""
    token = os.getenv("OSM_TOKEN")
    if token:
        return token

    if not config.tokens_file.exists():
        return None

    data = json.loads(config.tokens_file.read_text())
    return data.get("token") or None


def save_auth_token(config: Config, token: str) -> Path:
    """Persist a bearer token to the token file."""
    config.tokens_file.parent.mkdir(parents=True, exist_ok=True)
    config.tokens_file.write_text(json.dumps({"token": token}, indent=2))
    return config.tokens_file


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML.
    Returns defaults (plus env overrides) if the file doesn't exist.
    """
    y = {}
    if path and Path(path).exists():
        with open(path) as f:
            y = yaml.safe_load(f) or {}

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    defaults = Config()

    return Config(
        # Registry
        database_url=os.getenv("OSM_DATABASE_URL") or get(y, "registry", "database_url") or defaults.database_url,
        service_host=get(y, "registry", "host") or defaults.service_host,
        registry_port=int(get(y, "registry", "port") or defaults.registry_port),
        max_artifact_bytes=int(get(y, "registry", "max_artifact_bytes") or defaults.max_artifact_bytes),
        require_verified_publishers=get(
            y, "registry", "require_verified_publishers", default=defaults.require_verified_publishers
        ),
        search_limit=int(get(y, "registry", "search_limit") or defaults.search_limit),

        # Client
        api_url=(os.getenv("OSM_API_URL") or get(y, "client", "api_url") or defaults.api_url).rstrip("/"),
        home=os.getenv("OSM_HOME") or get(y, "client", "home") or defaults.home,
        http_timeout=float(get(y, "client", "http_timeout") or defaults.http_timeout),
        max_publish_bytes=int(get(y, "client", "max_publish_bytes") or defaults.max_publish_bytes),

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or defaults.log_level,
        log_format=get(y, "logging", "format") or defaults.log_format,
    )
