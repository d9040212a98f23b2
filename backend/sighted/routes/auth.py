"""
SightEd Backend — Google OAuth Routes
=======================================

Two variants of the authorization-code flow:

    Redirect flow  (/auth/google → /auth/google/callback)
        The callback redirects the browser to {FRONTEND_URL}/oauth-callback
        with the tokens in the query string.

    Popup flow     (/auth/google-simple → /auth/google-simple/callback)
        The callback renders a small HTML page that hands the tokens to
        window.opener with postMessage and closes itself.
"""

import html
import json
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, RedirectResponse

from sighted.config import settings
from sighted.exceptions import SightEdError, UpstreamServiceError, ValidationError
from sighted.schemas.common import ErrorResponse
from sighted.schemas.photos import RefreshTokenRequest, TokenResponse
from sighted.services.google_oauth import (
    GoogleOAuthService,
    OAuthTokens,
    get_google_oauth_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Google OAuth"])

POPUP_SUCCESS_TYPE = "google-oauth-success"
POPUP_ERROR_TYPE = "google-oauth-error"


def _script_literal(value) -> str:
    """JSON literal that cannot close or comment out the surrounding <script>."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def _popup_page(title: str, message_payload: dict, body_text: str) -> str:
    """Small page that posts a message to the opening window, then closes."""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
<p>{html.escape(body_text)}</p>
<script>
  (function () {{
    var payload = {_script_literal(message_payload)};
    if (window.opener) {{
      window.opener.postMessage(payload, {_script_literal(settings.frontend_url)});
    }}
    window.close();
  }})();
</script>
</body>
</html>"""


def _error_status(error: SightEdError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, UpstreamServiceError):
        return error.status_code or 502
    return 401


@router.get("/google", summary="Start the redirect consent flow")
async def google_login(
    oauth: GoogleOAuthService = Depends(get_google_oauth_service),
) -> RedirectResponse:
    return RedirectResponse(oauth.build_auth_url(), status_code=302)


@router.get(
    "/google/callback",
    responses={
        400: {"description": "Missing authorization code", "model": ErrorResponse},
        401: {"description": "Google rejected the code", "model": ErrorResponse},
    },
    summary="Exchange the code and redirect back to the web client",
)
async def google_callback(
    code: Optional[str] = Query(default=None),
    oauth: GoogleOAuthService = Depends(get_google_oauth_service),
) -> RedirectResponse:
    tokens = await oauth.exchange_code(code or "")
    query = urlencode({
        "access_token": tokens.access_token,
        "refresh_token": tokens.refresh_token or "",
        "expires_in": tokens.expires_in,
    })
    return RedirectResponse(f"{settings.frontend_url}/oauth-callback?{query}", status_code=302)


@router.get("/google-simple", summary="Start the popup consent flow")
async def google_simple_login(
    oauth: GoogleOAuthService = Depends(get_google_oauth_service),
) -> RedirectResponse:
    url = oauth.build_auth_url(redirect_uri=settings.google_simple_redirect_uri)
    return RedirectResponse(url, status_code=302)


@router.get(
    "/google-simple/callback",
    response_class=HTMLResponse,
    summary="Exchange the code and hand tokens to the opener window",
)
async def google_simple_callback(
    code: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    oauth: GoogleOAuthService = Depends(get_google_oauth_service),
) -> HTMLResponse:
    if error:
        logger.warning("Consent screen returned error: %s", error)
        page = _popup_page(
            "Authentication failed",
            {"type": POPUP_ERROR_TYPE, "error": error},
            f"Authentication failed: {error}",
        )
        return HTMLResponse(page, status_code=400)

    try:
        tokens: OAuthTokens = await oauth.exchange_code(
            code or "", redirect_uri=settings.google_simple_redirect_uri
        )
    except SightEdError as e:
        page = _popup_page(
            "Authentication failed",
            {"type": POPUP_ERROR_TYPE, "error": e.message},
            f"Authentication failed: {e.message}",
        )
        return HTMLResponse(page, status_code=_error_status(e))

    page = _popup_page(
        "Authentication successful",
        {"type": POPUP_SUCCESS_TYPE, "tokens": tokens.to_dict()},
        "Authentication successful. You can close this window.",
    )
    return HTMLResponse(page)


@router.post(
    "/google/refresh",
    response_model=TokenResponse,
    responses={
        400: {"description": "Missing refresh token", "model": ErrorResponse},
        401: {"description": "Refresh token rejected", "model": ErrorResponse},
    },
    summary="Trade a refresh token for a new access token",
)
async def refresh_token(
    body: RefreshTokenRequest,
    oauth: GoogleOAuthService = Depends(get_google_oauth_service),
) -> dict:
    tokens = await oauth.refresh_access_token(body.refreshToken or "")
    return tokens.to_dict()
