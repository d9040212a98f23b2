"""
SightEd Backend — Quiz Routes
===============================

What:  Gemini-generated practice material for an existing analysis.
       POST /generate-quiz          → 5 fresh multiple-choice questions
       POST /generate-explanation   → why a given answer is correct
"""

from fastapi import APIRouter, Depends

from sighted.exceptions import ValidationError
from sighted.schemas.analysis import (
    ExplanationRequest,
    ExplanationResponse,
    QuizRequest,
    QuizResponse,
)
from sighted.schemas.common import ErrorResponse
from sighted.services.analysis_service import AnalysisService, get_analysis_service
from sighted.storage import DocumentStore, get_store

router = APIRouter(tags=["Quiz"])

_ERRORS = {
    400: {"description": "Missing or invalid parameters", "model": ErrorResponse},
    404: {"description": "Unknown image id", "model": ErrorResponse},
    429: {"description": "Gemini quota exceeded", "model": ErrorResponse},
    500: {"description": "Gemini failed or returned unusable output", "model": ErrorResponse},
}


@router.post(
    "/generate-quiz",
    response_model=QuizResponse,
    responses=_ERRORS,
    summary="Generate a 5-question quiz for an analysis",
)
async def generate_quiz(
    body: QuizRequest,
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    if not body.imageId:
        raise ValidationError(message="Image ID is required", field="imageId")
    return await service.generate_quiz(store, body.imageId)


@router.post(
    "/generate-explanation",
    response_model=ExplanationResponse,
    responses=_ERRORS,
    summary="Explain why an answer is correct",
)
async def generate_explanation(
    body: ExplanationRequest,
    store: DocumentStore = Depends(get_store),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    if not body.imageId or not body.question or not body.options or body.correctAnswer is None:
        raise ValidationError(
            message="Missing required parameters",
            context={"required": ["imageId", "question", "options", "correctAnswer"]},
        )
    return await service.generate_explanation(
        store,
        image_id=body.imageId,
        question=body.question,
        options=body.options,
        correct_answer=body.correctAnswer,
    )
