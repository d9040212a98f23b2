"""
SightEd Backend — Google OAuth Service
========================================

What:  Authorization-code flow for read-only Google Photos access.
How:   Builds the consent URL, exchanges the returned code at Google's token
       endpoint and refreshes expired access tokens, all with httpx.

Consent parameters:
    scope                  photoslibrary.readonly
    access_type=offline    so Google issues a refresh token
    prompt="consent select_account"
    include_granted_scopes=true
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from sighted.config import settings
from sighted.exceptions import UpstreamAuthError, UpstreamServiceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = DEFAULT_EXPIRES_IN
    token_type: str = "Bearer"
    scope: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GoogleOAuthService:
    """Stateless client for Google's OAuth 2.0 endpoints."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.google_client_secret
        )
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self._transport = transport

    def build_auth_url(
        self,
        redirect_uri: Optional[str] = None,
        access_type: str = "offline",
        prompt: str = "consent select_account",
    ) -> str:
        if not self.client_id:
            logger.warning("GOOGLE_CLIENT_ID is not set; consent screen will reject the request")
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "response_type": "code",
            "scope": settings.google_photos_scope,
            "access_type": access_type,
            "prompt": prompt,
            "include_granted_scopes": "true",
        }
        return f"{settings.google_auth_url}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: Optional[str] = None) -> OAuthTokens:
        """
        Trades an authorization code for tokens.

        `redirect_uri` must be the one the consent URL was built with.

        Raises:
            ValidationError: Empty code (→ 400)
            UpstreamAuthError: Google rejected the code or sent no access token (→ 401)
            UpstreamServiceError: Token endpoint unreachable (→ 502)
        """
        if not code:
            raise ValidationError(message="Authorization code is missing", field="code")

        payload = await self._token_request({
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": redirect_uri or self.redirect_uri,
            "grant_type": "authorization_code",
        })
        tokens = self._tokens_from(payload)
        logger.info(
            "Exchanged authorization code (refresh token present: %s)",
            "yes" if tokens.refresh_token else "no",
        )
        return tokens

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Gets a new access token. Google usually omits the refresh token in
        this response, so the one passed in is carried over.
        """
        if not refresh_token:
            raise ValidationError(message="Refresh token is required", field="refreshToken")

        payload = await self._token_request({
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        })
        tokens = self._tokens_from(payload)
        if not tokens.refresh_token:
            tokens.refresh_token = refresh_token
        return tokens

    async def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=settings.photos_timeout, transport=self._transport
            ) as client:
                response = await client.post(settings.google_token_url, data=form)
        except httpx.HTTPError as e:
            logger.error("Token endpoint request failed: %s", str(e))
            raise UpstreamServiceError(
                message="Could not reach Google's token endpoint",
                status_code=502,
            ) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code != 200:
            reason = payload.get("error_description") or payload.get("error") or response.text[:200]
            logger.warning("Token endpoint returned %d: %s", response.status_code, reason)
            raise UpstreamAuthError(
                message=f"Failed to exchange authorization code for tokens: {reason}",
                context={"upstream_status": response.status_code},
            )
        return payload

    @staticmethod
    def _tokens_from(payload: Dict[str, Any]) -> OAuthTokens:
        access_token = payload.get("access_token")
        if not access_token:
            raise UpstreamAuthError(message="No access token received from Google OAuth")
        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return OAuthTokens(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in,
            token_type=payload.get("token_type", "Bearer"),
            scope=payload.get("scope", ""),
        )


google_oauth_service = GoogleOAuthService()


def get_google_oauth_service() -> GoogleOAuthService:
    return google_oauth_service
