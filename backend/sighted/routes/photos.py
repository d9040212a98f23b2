"""
SightEd Backend — Google Photos Routes
========================================

What:  Library browsing and an image proxy so the web client can show and
       re-upload Photos images without CORS trouble.
How:   Every route takes the user's access token explicitly (query string or
       body); the server keeps no Google session. Photos API payloads are
       returned unchanged.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from sighted.schemas.common import ErrorResponse
from sighted.schemas.photos import MediaItemsRequest
from sighted.services.photos_service import PhotosService, get_photos_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Google Photos"])

PROXY_CACHE_CONTROL = "public, max-age=86400"

_ERRORS = {
    400: {"description": "Missing token or parameter", "model": ErrorResponse},
    401: {"description": "Token invalid or expired", "model": ErrorResponse},
    500: {"description": "Google Photos unreachable", "model": ErrorResponse},
}


def _attachment(filename: str) -> str:
    safe = filename.replace('"', "").replace("\r", "").replace("\n", "")
    return f'attachment; filename="{safe or "google-photo.jpg"}"'


@router.get("/google-photos/albums", responses=_ERRORS, summary="List the user's albums")
async def list_albums(
    token: Optional[str] = Query(default=None, description="Google OAuth access token"),
    photos: PhotosService = Depends(get_photos_service),
) -> dict:
    return await photos.list_albums(token)


@router.get("/google-photos/recent", responses=_ERRORS, summary="List the 50 most recent photos")
async def recent_photos(
    token: Optional[str] = Query(default=None, description="Google OAuth access token"),
    photos: PhotosService = Depends(get_photos_service),
) -> dict:
    return await photos.recent_media_items(token)


@router.post(
    "/google-photos/media-items",
    responses=_ERRORS,
    summary="List photos in an album, or the whole library",
)
async def media_items(
    body: MediaItemsRequest,
    photos: PhotosService = Depends(get_photos_service),
) -> dict:
    return await photos.list_media_items(body.token, album_id=body.albumId)


@router.get(
    "/proxy/google-photos",
    responses=_ERRORS,
    response_class=Response,
    summary="Download a Photos image by URL",
)
async def proxy_photo_url(
    url: Optional[str] = Query(default=None, description="Photos baseUrl"),
    token: Optional[str] = Query(default=None, description="Google OAuth access token"),
    photos: PhotosService = Depends(get_photos_service),
) -> Response:
    content, content_type = await photos.fetch_image(token, url or "")
    return Response(
        content=content,
        media_type=content_type,
        headers={
            "Content-Disposition": _attachment("google-photo.jpg"),
            "Cache-Control": PROXY_CACHE_CONTROL,
        },
    )


@router.get(
    "/proxy/google-photo",
    responses=_ERRORS,
    response_class=Response,
    summary="Download a Photos image by media item id",
)
async def proxy_photo_id(
    id: Optional[str] = Query(default=None, description="Photos media item id"),
    token: Optional[str] = Query(default=None, description="Google OAuth access token"),
    photos: PhotosService = Depends(get_photos_service),
) -> Response:
    content, content_type, filename = await photos.fetch_media_item_image(token, id or "")
    return Response(
        content=content,
        media_type=content_type,
        headers={
            "Content-Disposition": _attachment(filename),
            "Cache-Control": PROXY_CACHE_CONTROL,
        },
    )
