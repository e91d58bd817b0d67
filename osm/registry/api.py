# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry API Routes

Handles the registry HTTP surface:
- Metadata documents and artifact downloads
- Publishing
- Search and listings
- Identity lookup

OSMError raised by the service is rendered by the application's
exception handler, so routes stay thin.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, Query, Request, Response

from osm.models.registry_models import FileListing, PackageListing, PublishResult, UserInfo
from osm.registry.database import UserDB
from osm.registry.service import RegistryService

router = APIRouter(prefix="/registry", tags=["registry"])
auth_router = APIRouter(prefix="/auth", tags=["auth"])

ARTIFACT_CACHE_CONTROL = "public, max-age=31536000, immutable"


def get_registry_service(request: Request) -> RegistryService:
    """Get the RegistryService created at startup."""
    return request.app.state.registry_service


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    service: RegistryService = Depends(get_registry_service)
) -> Optional[UserDB]:
    """User behind the bearer token, or None."""
    return await service.authenticate(authorization)


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


# Static paths are registered before /{name} so they are not shadowed.

@router.get("/search", response_model=PackageListing)
async def search_packages(
    q: str = Query(default=""),
    service: RegistryService = Depends(get_registry_service)
) -> PackageListing:
    """Search packages by name and description"""
    return await service.search(q)


@router.get("/list", response_model=PackageListing)
async def list_packages(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    service: RegistryService = Depends(get_registry_service)
) -> PackageListing:
    """List packages alphabetically, paginated"""
    return await service.list_packages(page=page, limit=limit)


@router.get("/skills/last10", response_model=PackageListing)
async def recent_packages(
    service: RegistryService = Depends(get_registry_service)
) -> PackageListing:
    """Most recently created packages"""
    return await service.recent()


@router.get("/skills/mostDownloaded", response_model=PackageListing)
async def most_downloaded_packages(
    service: RegistryService = Depends(get_registry_service)
) -> PackageListing:
    """Packages with the most downloads"""
    return await service.most_downloaded()


@router.get("/mine", response_model=PackageListing)
async def my_packages(
    user: Optional[UserDB] = Depends(get_current_user),
    service: RegistryService = Depends(get_registry_service)
) -> PackageListing:
    """Packages owned by the caller"""
    return await service.mine(user)


@router.post("/publish", status_code=201, response_model=PublishResult)
async def publish_package(
    payload: Any = Body(default=None),
    user: Optional[UserDB] = Depends(get_current_user),
    service: RegistryService = Depends(get_registry_service)
) -> PublishResult:
    """Publish a new immutable version"""
    return await service.publish_payload(payload, user)


@router.get("/{name}")
async def get_package_metadata(
    name: str,
    request: Request,
    service: RegistryService = Depends(get_registry_service)
) -> Dict[str, Any]:
    """Metadata document with every published version"""
    document = await service.get_metadata(name, _base_url(request))
    return document.to_document()


@router.get("/{name}/files", response_model=FileListing)
async def get_package_files(
    name: str,
    service: RegistryService = Depends(get_registry_service)
) -> FileListing:
    """Files in the latest version's artifact"""
    return await service.list_files(name)


@router.get("/{name}/-/{filename}")
async def download_artifact(
    name: str,
    filename: str,
    background_tasks: BackgroundTasks,
    service: RegistryService = Depends(get_registry_service)
) -> Response:
    """Artifact bytes; the download counter is bumped after the response"""
    data = await service.get_artifact(name, filename)
    background_tasks.add_task(service.record_download, name)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Cache-Control": ARTIFACT_CACHE_CONTROL},
    )


@auth_router.get("/whoami", response_model=UserInfo)
async def whoami(
    user: Optional[UserDB] = Depends(get_current_user),
    service: RegistryService = Depends(get_registry_service)
) -> UserInfo:
    """Identity behind the bearer token"""
    return await service.whoami(user)
