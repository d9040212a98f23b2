"""
SightEd Backend — Google Cloud Vision Service
===============================================

What:  Label and landmark detection for an uploaded photo.
How:   One batch_annotate_images request carrying LABEL_DETECTION and
       LANDMARK_DETECTION features, sent with the async Vision client.
       The client is created on first use so importing this module never
       needs credentials.

Output shapes (plain dicts, stored as-is in the analysis record):
    label:    {"description": "Volcano", "score": 0.97}
    landmark: {"description": "Mount Fuji", "score": 0.88,
               "locations": [{"latitude": 35.36, "longitude": 138.73}]}
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from google.api_core import exceptions as google_exceptions
from google.cloud import vision

from sighted.config import settings
from sighted.exceptions import QuotaExceededError, VisionServiceError
from sighted.services.gemini_service import is_quota_error

logger = logging.getLogger(__name__)


class VisionService:
    """Thin async wrapper over vision.ImageAnnotatorAsyncClient."""

    def __init__(self, client: Optional[vision.ImageAnnotatorAsyncClient] = None):
        self._client = client

    @property
    def client(self) -> vision.ImageAnnotatorAsyncClient:
        if self._client is None:
            if settings.google_application_credentials:
                self._client = vision.ImageAnnotatorAsyncClient.from_service_account_file(
                    settings.google_application_credentials
                )
            else:
                self._client = vision.ImageAnnotatorAsyncClient()
            logger.info("Google Vision client initialized")
        return self._client

    async def detect(
        self, content: bytes
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Runs label and landmark detection on raw image bytes.

        Returns:
            (labels, landmarks); either list may be empty.

        Raises:
            QuotaExceededError: Vision API quota exhausted (→ 429)
            VisionServiceError: Any other Vision failure (→ 500)
        """
        request = vision.AnnotateImageRequest(
            image=vision.Image(content=content),
            features=[
                vision.Feature(type_=vision.Feature.Type.LABEL_DETECTION),
                vision.Feature(type_=vision.Feature.Type.LANDMARK_DETECTION),
            ],
        )

        try:
            batch = await self.client.batch_annotate_images(requests=[request])
        except google_exceptions.GoogleAPICallError as e:
            raise self._translate(e) from e

        if not batch.responses:
            raise VisionServiceError(context={"reason": "empty response"})
        response = batch.responses[0]

        if response.error and response.error.message:
            raise self._translate(RuntimeError(response.error.message))

        labels = [
            {"description": label.description, "score": float(label.score)}
            for label in response.label_annotations
        ]
        landmarks = [
            {
                "description": landmark.description,
                "score": float(landmark.score),
                "locations": [
                    {
                        "latitude": location.lat_lng.latitude,
                        "longitude": location.lat_lng.longitude,
                    }
                    for location in landmark.locations
                ],
            }
            for landmark in response.landmark_annotations
        ]

        logger.info("Vision detected %d labels, %d landmarks", len(labels), len(landmarks))
        return labels, landmarks

    @staticmethod
    def _translate(error: BaseException) -> Exception:
        message = str(error)
        if is_quota_error(error):
            logger.warning("Vision quota exceeded: %s", message)
            return QuotaExceededError(message=message, service="vision")
        logger.error("Vision request failed: %s", message)
        return VisionServiceError(
            message="Failed to analyze image",
            context={"error_type": type(error).__name__},
        )


vision_service = VisionService()
