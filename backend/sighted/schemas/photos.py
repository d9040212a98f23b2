"""
SightEd Backend — Google Photos / OAuth Schemas
=================================================

Album and media item payloads are passed through from the Photos Library
API unchanged, so only the request bodies and our own token payloads are
modelled here.
"""

from typing import Optional

from pydantic import BaseModel, Field


class MediaItemsRequest(BaseModel):
    token: Optional[str] = Field(default=None, description="Google OAuth access token")
    albumId: Optional[str] = Field(default=None, description="Album to list; whole library when omitted")


class RefreshTokenRequest(BaseModel):
    refreshToken: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int
    token_type: str = "Bearer"
    scope: str = ""
