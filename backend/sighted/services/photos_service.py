"""
SightEd Backend — Google Photos Library Service
=================================================

What:  Reads albums and media items from the Photos Library API and downloads
       image bytes for the proxy endpoints.
How:   httpx AsyncClient per call with `Authorization: Bearer <token>`.

Error mapping (shared by every call):
    401                    → UpstreamAuthError ("Token is invalid or expired")
    other non-2xx          → UpstreamServiceError(status passed through,
                             first 200 chars of the body as details)
    no response (network)  → UpstreamServiceError(500)

Image download policy:
    - "=w2048-h2048" is appended unless the URL already carries a "=w" size
    - 10s timeout per attempt
    - up to 3 attempts, fixed 1s wait, never retried after a 401
    - the by-id download (fetch_media_item_image) is a single attempt
"""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from sighted.config import settings
from sighted.exceptions import UpstreamAuthError, UpstreamServiceError, ValidationError

logger = logging.getLogger(__name__)

IMAGE_SIZE_SUFFIX = "=w2048-h2048"
DEFAULT_CONTENT_TYPE = "image/jpeg"
ALBUM_PAGE_SIZE = 100
RECENT_PAGE_SIZE = 50
ERROR_BODY_LIMIT = 200


def sized_image_url(url: str) -> str:
    return url if "=w" in url else f"{url}{IMAGE_SIZE_SUFFIX}"


def require_token(token: Optional[str]) -> str:
    if not token or not token.strip():
        raise ValidationError(message="Token is required", field="token")
    return token.strip()


class PhotosService:

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.photos_api_base_url).rstrip("/")
        self.timeout = timeout or settings.photos_timeout
        self.retry_attempts = retry_attempts or settings.proxy_retry_attempts
        self.retry_delay = settings.proxy_retry_delay if retry_delay is None else retry_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    @staticmethod
    def _check(response: httpx.Response, what: str) -> None:
        if response.status_code == 401:
            raise UpstreamAuthError(context={"details": response.text[:ERROR_BODY_LIMIT]})
        if response.is_error:
            raise UpstreamServiceError(
                message=f"Failed to fetch {what}: {response.status_code}",
                status_code=response.status_code,
                context={"details": response.text[:ERROR_BODY_LIMIT]},
            )

    async def _api_json(
        self,
        method: str,
        path: str,
        token: Optional[str],
        what: str,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {require_token(token)}"}
        try:
            async with self._client() as client:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=headers, **kwargs
                )
        except httpx.HTTPError as e:
            logger.error("Photos API %s %s failed: %s", method, path, str(e))
            raise UpstreamServiceError(
                message="No response received from Google Photos API",
                status_code=500,
            ) from e

        self._check(response, what)
        return response.json()

    # ── Library listing ───────────────────────────────────────────────────

    async def list_albums(self, token: Optional[str]) -> Dict[str, Any]:
        data = await self._api_json("GET", "/albums", token, "albums")
        logger.info("Fetched %d albums", len(data.get("albums") or []))
        return data

    async def list_media_items(
        self,
        token: Optional[str],
        album_id: Optional[str] = None,
        page_size: int = ALBUM_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """Album contents via mediaItems:search, or the whole library when no album is given."""
        if album_id:
            data = await self._api_json(
                "POST",
                "/mediaItems:search",
                token,
                "album photos",
                json={"albumId": album_id, "pageSize": page_size},
            )
        else:
            data = await self._api_json(
                "GET", "/mediaItems", token, "photos", params={"pageSize": page_size}
            )
        logger.info("Fetched %d media items", len(data.get("mediaItems") or []))
        return data

    async def recent_media_items(self, token: Optional[str]) -> Dict[str, Any]:
        return await self.list_media_items(token, page_size=RECENT_PAGE_SIZE)

    async def get_media_item(self, token: Optional[str], media_id: str) -> Dict[str, Any]:
        if not media_id:
            raise ValidationError(message="Photo ID is required", field="id")
        return await self._api_json("GET", f"/mediaItems/{media_id}", token, "photo")

    # ── Image download ────────────────────────────────────────────────────

    async def _download_once(self, token: str, url: str) -> Tuple[bytes, str]:
        headers = {"Authorization": f"Bearer {token}", "Accept": "image/*"}
        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Image download failed: %s", str(e))
            raise UpstreamServiceError(
                message="No response received from Google Photos API",
                status_code=500,
            ) from e

        if response.status_code == 401:
            raise UpstreamAuthError(
                context={
                    "details": "Your Google Photos authentication has expired. Please sign in again."
                }
            )
        self._check(response, "image")
        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        return response.content, content_type

    async def fetch_image(self, token: Optional[str], url: str) -> Tuple[bytes, str]:
        """
        Downloads a Photos image with the retry policy described above.

        Returns:
            (image bytes, content type)
        """
        token = require_token(token)
        if not url:
            raise ValidationError(message="URL is required", field="url")
        image_url = sized_image_url(url)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_not_exception_type((UpstreamAuthError, ValidationError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                content, content_type = await self._download_once(token, image_url)

        logger.info("Fetched image (%d bytes, %s)", len(content), content_type)
        return content, content_type

    async def fetch_media_item_image(
        self, token: Optional[str], media_id: str
    ) -> Tuple[bytes, str, str]:
        """
        Resolves a media item id to its baseUrl and downloads it.

        Returns:
            (image bytes, content type, filename)
        """
        item = await self.get_media_item(token, media_id)
        base_url = item.get("baseUrl")
        if not base_url:
            raise UpstreamServiceError(
                message="Invalid media item response",
                status_code=502,
                context={"media_id": media_id},
            )
        # Single attempt; only the URL proxy retries
        content, content_type = await self._download_once(
            require_token(token), sized_image_url(base_url)
        )
        return content, content_type, item.get("filename") or "google-photo.jpg"


photos_service = PhotosService()


def get_photos_service() -> PhotosService:
    """FastAPI dependency; tests override it with a PhotosService on a mock transport."""
    return photos_service
