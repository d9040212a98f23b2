"""
SightEd Backend — Upload and Image Routes
===========================================

What:  POST /upload runs the full analysis workflow; the GET routes read
       stored analyses back.
Who:   The web client's upload page, results page and saved gallery.

Request Flow (POST /upload):
    1. Client sends multipart/form-data with an 'image' field
    2. The bytes are read into memory (bounded by the 5MB validation)
    3. AnalysisService: validate → Vision → Gemini → store → cache
    4. 200 with the analysis record and a confirmation message
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from sighted.exceptions import ValidationError
from sighted.schemas.analysis import (
    ImageAnalysis,
    ImageListResponse,
    SavedImagesResponse,
    UploadResponse,
)
from sighted.schemas.common import ErrorResponse
from sighted.services.analysis_service import AnalysisService, get_analysis_service
from sighted.storage import DocumentStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Images"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        400: {"description": "Missing, empty, oversize or non-image file", "model": ErrorResponse},
        429: {"description": "Vision or Gemini quota exceeded", "model": ErrorResponse},
        500: {"description": "Vision failure", "model": ErrorResponse},
    },
    summary="Analyze an uploaded photo",
    description=(
        "Upload one image (max 5MB) in the 'image' form field. Labels and landmarks "
        "are detected with Google Cloud Vision, then Gemini writes a description, "
        "three scientific facts and a three-question quiz. The result is stored and "
        "returned with its id."
    ),
)
async def upload_image(
    image: Optional[UploadFile] = File(default=None, description="Image file, max 5MB"),
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    if image is None:
        raise ValidationError(message="No image file provided", field="image")

    try:
        content = await image.read()
        logger.info(
            "Received upload: filename=%s, size=%d bytes",
            image.filename or "unknown",
            len(content),
        )
        return await service.analyze_upload(
            store,
            filename=image.filename,
            content=content,
            content_type=image.content_type,
            content_length=image.size,
        )
    finally:
        await image.close()


@router.get(
    "/image/{image_id}",
    response_model=ImageAnalysis,
    responses={404: {"description": "Unknown image id", "model": ErrorResponse}},
    summary="Get one analysis (cache first)",
)
async def get_image(
    image_id: str,
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    return await service.get_analysis(store, image_id)


@router.get(
    "/saved",
    response_model=SavedImagesResponse,
    summary="Page through stored analyses, newest first",
)
async def list_saved(
    page: int = Query(default=1, ge=1, description="1-based page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Items per page (max 100)"),
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    return await service.list_saved(store, page=page, limit=limit)


@router.get(
    "/api/images",
    response_model=ImageListResponse,
    summary="List every stored analysis",
)
async def list_images(
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    return await service.list_all(store)


@router.get(
    "/api/images/{image_id}",
    response_model=ImageAnalysis,
    responses={404: {"description": "Unknown image id", "model": ErrorResponse}},
    summary="Get one stored analysis",
)
async def get_stored_image(
    image_id: str,
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    return await service.get_analysis(store, image_id)
