"""
SightEd Backend — Contact Form Schemas
=========================================
"""

from typing import List, Optional

from pydantic import BaseModel


class ContactRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


class ContactSubmission(BaseModel):
    id: str
    name: str
    email: str
    subject: str
    message: str
    read: bool = False
    createdAt: str


class ContactCreatedResponse(BaseModel):
    success: bool
    message: str
    id: str


class ContactListResponse(BaseModel):
    submissions: List[ContactSubmission]


class ContactReadResponse(BaseModel):
    success: bool
    submission: ContactSubmission
