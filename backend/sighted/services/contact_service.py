"""
SightEd Backend — Contact Form Service
========================================

What:  Stores contact form submissions and lists them for the admin page.
Who:   /api/contact routes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sighted.exceptions import NotFoundError, ValidationError
from sighted.services.user_service import is_valid_email
from sighted.storage.base import DocumentStore

logger = logging.getLogger(__name__)

SUBMISSIONS = "contact-submissions"


class ContactService:
    """Create/list/mark-read over the `contact-submissions` collection."""

    async def submit(
        self,
        store: DocumentStore,
        name: Optional[str],
        email: Optional[str],
        subject: Optional[str],
        message: Optional[str],
    ) -> Dict[str, Any]:
        if not all(value and value.strip() for value in (name, email, subject, message)):
            raise ValidationError(
                message="Missing required fields",
                context={"required": ["name", "email", "subject", "message"]},
            )
        if not is_valid_email(email.strip()):
            raise ValidationError(message="Invalid email format", field="email")

        submission_id = await store.add(SUBMISSIONS, {
            "name": name.strip(),
            "email": email.strip(),
            "subject": subject.strip(),
            "message": message.strip(),
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "read": False,
        })
        logger.info("Contact form submission saved with ID: %s", submission_id)

        return {
            "success": True,
            "message": "Contact form submission received successfully",
            "id": submission_id,
        }

    async def list_submissions(self, store: DocumentStore) -> Dict[str, Any]:
        submissions = await store.list(SUBMISSIONS, order_by="createdAt", descending=True)
        return {"submissions": submissions}

    async def mark_read(self, store: DocumentStore, submission_id: str) -> Dict[str, Any]:
        """
        Flags a submission as read.

        Raises:
            NotFoundError: No submission with that id (→ 404)
        """
        existing = await store.get(SUBMISSIONS, submission_id)
        if existing is None:
            raise NotFoundError(resource="contact submission", resource_id=submission_id)
        updated = await store.update(SUBMISSIONS, submission_id, {"read": True})
        return {"success": True, "submission": updated}


contact_service = ContactService()
