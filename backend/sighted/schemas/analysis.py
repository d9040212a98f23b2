"""
SightEd Backend — Image Analysis Schemas
==========================================

What:  Request and response models for uploads, saved analyses, quizzes and
       answer explanations.
Why camelCase field names: the stored documents and the web client already
use them (aiDescription, quickQuiz, correctAnswer, ...), so the API keeps one
spelling end to end.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Building blocks
# ══════════════════════════════════════════════════════════════════════════

class Label(BaseModel):
    description: str = Field(description="Detected label, e.g. 'Volcano'")
    score: float = Field(description="Detection confidence 0-1")


class GeoPoint(BaseModel):
    latitude: float
    longitude: float


class Landmark(BaseModel):
    description: str = Field(description="Detected landmark, e.g. 'Mount Fuji'")
    score: float = Field(description="Detection confidence 0-1")
    locations: List[GeoPoint] = Field(default_factory=list)


class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(description="Answer options, usually four (A-D)")
    correctAnswer: int = Field(description="0-based index into options")
    explanation: str = Field(default="", description="Why the correct answer is correct")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════

class ImageAnalysis(BaseModel):
    """
    What:  One stored analysis record.
    Who:   GET /image/{id}, GET /api/images/{id}, items of /saved and /api/images.
    """
    id: str = Field(description="Analysis id, 'img-<hex>'")
    fileName: str = Field(description="Original upload filename")
    contentType: Optional[str] = Field(default=None, description="Detected image MIME type")
    labels: List[Label] = Field(default_factory=list)
    landmarks: List[Landmark] = Field(default_factory=list)
    aiDescription: str = Field(default="", description="Educational scene description")
    scientificFacts: List[str] = Field(default_factory=list)
    quickQuiz: List[QuizQuestion] = Field(default_factory=list)
    createdAt: str = Field(description="Creation time (UTC ISO 8601)")


class UploadResponse(ImageAnalysis):
    message: str = Field(description="'Image analysis saved successfully'")


class SavedImagesResponse(BaseModel):
    images: List[ImageAnalysis]
    page: int
    limit: int
    total: int = Field(description="Number of stored analyses")


class ImageListResponse(BaseModel):
    images: List[ImageAnalysis]
    count: int


class QuizResponse(BaseModel):
    quiz: List[QuizQuestion]
    imageId: str


class ExplanationResponse(BaseModel):
    explanation: str


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════
# Fields are optional so a missing value reaches the service and is reported
# as a 400 with the usual error body instead of a 422.

class QuizRequest(BaseModel):
    imageId: Optional[str] = Field(default=None, description="Analysis id returned by /upload")


class ExplanationRequest(BaseModel):
    imageId: Optional[str] = None
    question: Optional[str] = None
    options: Optional[List[str]] = None
    correctAnswer: Optional[int] = Field(default=None, description="0-based index into options")
