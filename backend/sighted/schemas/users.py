"""
SightEd Backend — Account Schemas
===================================
"""

from typing import Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, description="At least 6 characters")
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class PublicUser(BaseModel):
    """User fields safe to return; the password hash never appears here."""
    id: str
    email: str
    firstName: str
    lastName: str


class AuthResponse(BaseModel):
    success: bool
    message: str
    user: PublicUser
