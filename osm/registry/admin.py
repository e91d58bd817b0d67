# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Administrative helpers for the identity tables.

The account system normally owns users and tokens; these helpers let an
operator (or a test) provision a publisher directly.
"""

import asyncio
from typing import Optional

from osm.core.logging import get_service_logger, log_event
from osm.registry.database import Database
from osm.registry.store import RegistryStore

logger = get_service_logger("admin")


async def provision_user_async(
    database: Database,
    username: str,
    email: Optional[str] = None,
    verified: bool = True
) -> str:
    """
    Ensure a user exists and issue a fresh bearer token for it.

    Returns:
        The new token
    """
    await database.init()
    store = RegistryStore(database)

    user = await store.get_user(username)
    if user is None:
        user = await store.create_user(username, email=email, verified=verified)

    token = await store.issue_token(user.id)
    log_event(logger, "token_issued", username=username, verified=user.verified)
    return token


def provision_user(
    database_url: str,
    username: str,
    email: Optional[str] = None,
    verified: bool = True
) -> str:
    """Synchronous wrapper around provision_user_async for CLIs and fixtures."""

    async def _run() -> str:
        database = Database(database_url)
        try:
            return await provision_user_async(database, username, email=email, verified=verified)
        finally:
            await database.close()

    return asyncio.run(_run())
