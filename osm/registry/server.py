# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Server

FastAPI application serving the package registry. create_app() builds
an app around an explicit Config; main() is the osm-registry entry point.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from osm import __version__
from osm.core.config import Config, load_config
from osm.core.errors import BadRequestError, OSMError
from osm.core.logging import get_service_logger, setup_logging
from osm.registry.api import auth_router, router
from osm.registry.database import Database
from osm.registry.service import RegistryService
from osm.registry.store import RegistryStore

logger = get_service_logger("server")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the registry application.

    Args:
        config: Configuration (defaults plus env overrides when omitted)
    """
    config = config or load_config()
    database = Database(config.database_url)

    app = FastAPI(
        title="OSM Registry",
        description="Registry for versioned skill packages",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup():
        """Create tables and store the service in app.state for dependency injection."""
        await database.init()
        app.state.registry_service = RegistryService(RegistryStore(database), config)
        logger.info(f"Registry started (database: {config.database_url})")

    @app.on_event("shutdown")
    async def shutdown():
        await database.close()

    @app.exception_handler(OSMError)
    async def osm_error_handler(request: Request, exc: OSMError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        error = BadRequestError(message)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    app.include_router(router)
    app.include_router(auth_router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "osm-registry", "version": __version__}

    return app


def main():
    """Run the registry with uvicorn."""
    import uvicorn

    load_dotenv()
    config = load_config(os.getenv("OSM_CONFIG_PATH"))
    setup_logging(config.log_level, config.log_format)

    uvicorn.run(create_app(config), host=config.service_host, port=config.registry_port)


if __name__ == "__main__":
    main()
