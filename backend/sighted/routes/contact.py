"""
SightEd Backend — Contact Form Routes
=======================================

The listing and mark-read routes back the admin inbox page.
"""

from fastapi import APIRouter, Depends

from sighted.schemas.common import ErrorResponse
from sighted.schemas.contact import (
    ContactCreatedResponse,
    ContactListResponse,
    ContactReadResponse,
    ContactRequest,
)
from sighted.services.contact_service import contact_service
from sighted.storage import DocumentStore, get_store

router = APIRouter(prefix="/api/contact", tags=["Contact"])


@router.post(
    "",
    status_code=201,
    response_model=ContactCreatedResponse,
    responses={400: {"description": "Missing field or bad email", "model": ErrorResponse}},
    summary="Submit the contact form",
)
async def submit_contact(body: ContactRequest, store: DocumentStore = Depends(get_store)) -> dict:
    return await contact_service.submit(
        store,
        name=body.name,
        email=body.email,
        subject=body.subject,
        message=body.message,
    )


@router.get("", response_model=ContactListResponse, summary="List submissions, newest first")
async def list_contact(store: DocumentStore = Depends(get_store)) -> dict:
    return await contact_service.list_submissions(store)


@router.patch(
    "/{submission_id}/read",
    response_model=ContactReadResponse,
    responses={404: {"description": "Unknown submission", "model": ErrorResponse}},
    summary="Mark a submission as read",
)
async def mark_contact_read(
    submission_id: str, store: DocumentStore = Depends(get_store)
) -> dict:
    return await contact_service.mark_read(store, submission_id)
