# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities shared by the registry and the client.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
"""

from osm.core.config import Config, load_config
from osm.core.errors import OSMError, NotFoundError, BadRequestError
from osm.core.logging import setup_logging, get_service_logger

__all__ = [
    "Config",
    "load_config",
    "OSMError",
    "NotFoundError",
    "BadRequestError",
    "setup_logging",
    "get_service_logger",
]
