"""
SightEd Backend — Upload Validation Service
=============================================

What:  Validates an uploaded photo before it is sent to Cloud Vision.
Why:   Vision and Gemini calls cost quota; garbage should be rejected locally.
How:   Cheapest checks first:
           1. Non-empty content
           2. Size ≤ MAX_FILE_SIZE (5MB by default; Content-Length, then actual bytes)
           3. Declared content type is image/*
           4. Pillow can identify and verify the bytes as an image
       Every rejection is a ValidationError (HTTP 400).

Nothing is written to disk: the bytes go straight to Vision and only the
analysis result is persisted.
"""

import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from sighted.config import settings
from sighted.exceptions import ValidationError

logger = logging.getLogger(__name__)


class FileService:
    """Validation pipeline for multipart image uploads."""

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_not_empty(self, content: bytes) -> None:
        if not content:
            raise ValidationError(message="No image file provided", field="image")

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Rejects files above the configured maximum.

        Content-Length is checked first because it is known before the body
        is read; the actual byte count catches clients that misreport it.
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if content_length and content_length > self.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > self.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_content_type(self, content_type: Optional[str]) -> None:
        """The multipart part must declare an image/* type."""
        if not content_type or not content_type.lower().startswith("image/"):
            raise ValidationError(
                message="Only image files are allowed",
                field="image",
                context={"content_type": content_type},
            )

    def detect_image_type(self, content: bytes) -> str:
        """
        Identifies the image with Pillow and returns its MIME type.

        verify() walks the file structure without decoding pixels, so a
        truncated or renamed non-image file is rejected cheaply.
        """
        try:
            with Image.open(io.BytesIO(content)) as image:
                image_format = image.format
                image.verify()
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            SyntaxError,
            ValueError,
        ) as e:
            logger.info("Rejected upload that is not a readable image: %s", str(e))
            raise ValidationError(
                message="The uploaded file is not a valid image",
                field="image",
                context={"error_type": type(e).__name__},
            ) from e

        return Image.MIME.get(image_format or "", "application/octet-stream")

    def validate_upload(
        self,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
        content_length: Optional[int] = None,
    ) -> str:
        """
        Runs the full validation pipeline.

        Returns:
            MIME type detected from the image bytes (e.g. "image/png").
        """
        self.validate_not_empty(content)
        self.validate_size(content_length, len(content))
        self.validate_content_type(content_type)
        mime_type = self.detect_image_type(content)

        logger.info(
            "Upload validated: %s (%s, %d bytes)",
            filename or "<unnamed>",
            mime_type,
            len(content),
        )
        return mime_type


file_service = FileService()
