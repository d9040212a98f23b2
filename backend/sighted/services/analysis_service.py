"""
SightEd Backend — Analysis Service (Business Logic Orchestrator)
==================================================================

What:  Coordinates the upload → validate → detect → generate → persist workflow
       and everything that reads analyses back (image lookup, saved listing,
       quiz and explanation generation).
Who:   Called by the upload and quiz route handlers.

Orchestration Flow (POST /upload):
    ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌──────────┐   ┌─────────┐
    │ Validate │──▶│  Vision  │──▶│  Gemini   │──▶│  Store   │──▶│  Cache  │
    │ (Pillow) │   │ labels + │   │ analysis  │   │ images/  │   │  (LRU)  │
    └──────────┘   │ landmarks│   └───────────┘   └──────────┘   └─────────┘
                   └──────────┘

    On failure:
    - Validation → ValidationError (400), nothing else runs
    - Vision quota → QuotaExceededError (429); other Vision errors → 500
    - Gemini quota → QuotaExceededError (429)
    - Any other Gemini failure → description falls back to the top label
      names, facts and quiz stay empty, the upload still succeeds
    - Store failure → logged; the record is cached and still returned, so
      GET /image/{id} keeps working in this process
"""

import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sighted.config import settings
from sighted.exceptions import (
    CircuitBreakerOpenError,
    LLMServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from sighted.services import insights
from sighted.services.file_service import FileService, file_service
from sighted.services.gemini_service import gemini_service
from sighted.services.llm_base import LLMService
from sighted.services.vision_service import VisionService, vision_service
from sighted.storage.base import DocumentStore

logger = logging.getLogger(__name__)

IMAGES = "images"
SAVED_MESSAGE = "Image analysis saved successfully"
IMAGE_NOT_FOUND_MESSAGE = "Image data not found. Please upload the image again."


def new_image_id() -> str:
    return f"img-{uuid.uuid4().hex}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ImageCache:
    """
    Bounded least-recently-used cache of analysis records.

    Both get() and put() mark the entry as most recently used; inserting past
    `max_size` evicts the least recently used record.
    """

    def __init__(self, max_size: int = 256):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    def get(self, image_id: str) -> Optional[Dict[str, Any]]:
        record = self._entries.get(image_id)
        if record is None:
            return None
        self._entries.move_to_end(image_id)
        return dict(record)

    def put(self, image_id: str, record: Dict[str, Any]) -> None:
        self._entries[image_id] = dict(record)
        self._entries.move_to_end(image_id)
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted %s from image cache", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, image_id: str) -> bool:
        return image_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class AnalysisService:
    """
    Business logic for image analyses.

    Dependencies are constructor arguments so tests can hand in fakes; the
    module-level `analysis_service` wires the real singletons.
    """

    def __init__(
        self,
        llm: LLMService,
        vision: VisionService,
        files: FileService,
        cache: Optional[ImageCache] = None,
    ):
        self.llm = llm
        self.vision = vision
        self.files = files
        self.cache = cache or ImageCache(settings.image_cache_size)

    async def analyze_upload(
        self,
        store: DocumentStore,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Runs the full upload workflow and returns the record plus `message`.

        Raises:
            ValidationError: Not an image, empty, or too large
            QuotaExceededError: Vision or Gemini quota exhausted
            VisionServiceError: Vision failed for another reason
        """
        mime_type = self.files.validate_upload(filename, content, content_type, content_length)

        labels, landmarks = await self.vision.detect(content)

        try:
            answer = await self.llm.generate_text(
                insights.build_analysis_prompt(labels, landmarks)
            )
            generated = insights.parse_analysis(answer)
        except (LLMServiceError, CircuitBreakerOpenError) as e:
            logger.warning("Gemini analysis unavailable, using label fallback: %s", e.message)
            generated = insights.AnalysisContent()

        description = generated.description or insights.fallback_description(labels)

        image_id = new_image_id()
        record = {
            "id": image_id,
            "fileName": filename or "upload",
            "contentType": mime_type,
            "labels": labels,
            "landmarks": landmarks,
            "aiDescription": description,
            "scientificFacts": generated.facts,
            "quickQuiz": generated.quiz,
            "createdAt": utc_now_iso(),
        }

        try:
            await store.set(IMAGES, image_id, record)
        except StorageError as e:
            logger.error("Analysis %s not persisted, serving from cache only: %s", image_id, e.message)

        self.cache.put(image_id, record)
        logger.info(
            "Analysis %s saved: %d labels, %d landmarks, %d facts, %d quiz questions",
            image_id,
            len(labels),
            len(landmarks),
            len(generated.facts),
            len(generated.quiz),
        )
        return {**record, "message": SAVED_MESSAGE}

    async def get_analysis(self, store: DocumentStore, image_id: str) -> Dict[str, Any]:
        """Cache first, then the store (populating the cache on a hit)."""
        cached = self.cache.get(image_id)
        if cached is not None:
            return cached

        record = await store.get(IMAGES, image_id)
        if record is None:
            raise NotFoundError(
                resource="image",
                resource_id=image_id,
                message=IMAGE_NOT_FOUND_MESSAGE,
            )
        self.cache.put(image_id, record)
        return record

    async def list_saved(
        self, store: DocumentStore, page: int = 1, limit: int = 10
    ) -> Dict[str, Any]:
        """Newest-first page of analyses: {images, page, limit, total}."""
        if page < 1 or limit < 1:
            raise ValidationError(
                message="page and limit must be positive integers",
                context={"page": page, "limit": limit},
            )
        total = await store.count(IMAGES)
        images = await store.list(
            IMAGES,
            order_by="createdAt",
            descending=True,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return {"images": images, "page": page, "limit": limit, "total": total}

    async def list_all(self, store: DocumentStore) -> Dict[str, Any]:
        images = await store.list(IMAGES, order_by="createdAt", descending=True)
        return {"images": images, "count": len(images)}

    async def generate_quiz(self, store: DocumentStore, image_id: str) -> Dict[str, Any]:
        """
        Generates a fresh 5-question quiz for a stored analysis.

        Raises:
            NotFoundError: Unknown image id (→ 404)
            QuotaExceededError: Gemini quota exhausted (→ 429)
            LLMServiceError: Gemini failed or returned no usable quiz (→ 500)
        """
        record = await self.get_analysis(store, image_id)
        answer = await self.llm.generate_text(insights.build_quiz_prompt(record))
        quiz = insights.parse_quiz(answer)
        logger.info("Generated %d quiz questions for %s", len(quiz), image_id)
        return {"quiz": quiz, "imageId": image_id}

    async def generate_explanation(
        self,
        store: DocumentStore,
        image_id: str,
        question: str,
        options: Sequence[str],
        correct_answer: int,
    ) -> Dict[str, str]:
        """Explains why options[correct_answer] is the right answer."""
        if not question or not question.strip():
            raise ValidationError(message="Missing required parameters", field="question")
        if not options:
            raise ValidationError(message="Missing required parameters", field="options")
        if not 0 <= correct_answer < len(options):
            raise ValidationError(
                message="correctAnswer must be the index of one of the options",
                field="correctAnswer",
                context={"option_count": len(options)},
            )

        record = await self.get_analysis(store, image_id)
        answer = await self.llm.generate_text(
            insights.build_explanation_prompt(record, question, list(options), correct_answer)
        )
        return {"explanation": answer.strip()}


analysis_service = AnalysisService(
    llm=gemini_service,
    vision=vision_service,
    files=file_service,
)


def get_analysis_service() -> AnalysisService:
    """FastAPI dependency; tests override it with app.dependency_overrides."""
    return analysis_service
