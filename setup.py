# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the OSM skill package registry and client
"""

from setuptools import setup, find_packages

setup(
    name="osm-registry",
    version="1.0.0",
    description="Package registry and client for versioned skill bundles",
    author="Jason Cafarelli",
    packages=find_packages(include=["osm", "osm.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
        "httpx>=0.24.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "semantic_version>=2.10.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "osm=osm.cli:main",
            "osm-registry=osm.registry.server:main",
        ],
    },
)
