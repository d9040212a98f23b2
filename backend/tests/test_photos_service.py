"""
SightEd Backend — Google Photos and OAuth Service Tests
=========================================================

What:  PhotosService and GoogleOAuthService against httpx.MockTransport,
       so no request leaves the process.
"""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from sighted.exceptions import UpstreamAuthError, UpstreamServiceError, ValidationError
from sighted.services.google_oauth import GoogleOAuthService
from sighted.services.photos_service import PhotosService, sized_image_url

BASE = "https://photos.test/v1"


def photos_with(handler, **kwargs) -> PhotosService:
    return PhotosService(
        base_url=BASE,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSizedImageUrl:

    def test_appends_size_suffix(self):
        assert sized_image_url("https://lh3.test/abc") == "https://lh3.test/abc=w2048-h2048"

    def test_keeps_existing_size(self):
        assert sized_image_url("https://lh3.test/abc=w400-h300") == "https://lh3.test/abc=w400-h300"


class TestLibraryListing:

    async def test_albums_pass_through_with_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            return httpx.Response(200, json={"albums": [{"id": "a1", "title": "Trip"}]})

        data = await photos_with(handler).list_albums("tok")
        assert data == {"albums": [{"id": "a1", "title": "Trip"}]}
        assert seen == {"auth": "Bearer tok", "path": "/v1/albums"}

    async def test_album_items_use_search(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/v1/mediaItems:search"
            assert json.loads(request.content) == {"albumId": "a1", "pageSize": 100}
            return httpx.Response(200, json={"mediaItems": [{"id": "m1"}]})

        data = await photos_with(handler).list_media_items("tok", album_id="a1")
        assert data["mediaItems"] == [{"id": "m1"}]

    async def test_recent_items_page_size(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.params["pageSize"] == "50"
            return httpx.Response(200, json={"mediaItems": []})

        await photos_with(handler).recent_media_items("tok")

    async def test_missing_token_never_calls_google(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(ValidationError, match="Token is required"):
            await photos_with(handler).list_albums(None)

    async def test_401_maps_to_upstream_auth_error(self):
        service = photos_with(lambda request: httpx.Response(401, json={"error": "expired"}))
        with pytest.raises(UpstreamAuthError):
            await service.list_albums("stale")

    async def test_other_status_is_passed_through(self):
        service = photos_with(lambda request: httpx.Response(403, text="x" * 500))
        with pytest.raises(UpstreamServiceError) as exc_info:
            await service.list_albums("tok")
        assert exc_info.value.status_code == 403

    async def test_network_failure_is_500(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route", request=request)

        with pytest.raises(UpstreamServiceError) as exc_info:
            await photos_with(handler).list_albums("tok")
        assert exc_info.value.status_code == 500


class TestImageProxy:

    async def test_fetch_image_retries_then_succeeds(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, content=b"jpeg-bytes", headers={"content-type": "image/webp"})

        content, content_type = await photos_with(handler).fetch_image("tok", "https://lh3.test/abc")
        assert content == b"jpeg-bytes"
        assert content_type == "image/webp"
        assert len(calls) == 3
        assert calls[0].endswith("=w2048-h2048")

    async def test_fetch_image_gives_up_after_attempts(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(UpstreamServiceError):
            await photos_with(handler, retry_attempts=2).fetch_image("tok", "https://lh3.test/abc")
        assert len(calls) == 2

    async def test_fetch_image_401_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401)

        with pytest.raises(UpstreamAuthError):
            await photos_with(handler).fetch_image("tok", "https://lh3.test/abc")
        assert len(calls) == 1

    async def test_default_content_type(self):
        service = photos_with(lambda request: httpx.Response(200, content=b"raw"))
        _, content_type = await service.fetch_image("tok", "https://lh3.test/abc")
        assert content_type == "image/jpeg"

    async def test_fetch_media_item_image(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/mediaItems/m1":
                return httpx.Response(
                    200, json={"id": "m1", "baseUrl": "https://lh3.test/m1", "filename": "IMG_1.jpg"}
                )
            return httpx.Response(200, content=b"img", headers={"content-type": "image/jpeg"})

        content, _, filename = await photos_with(handler).fetch_media_item_image("tok", "m1")
        assert content == b"img"
        assert filename == "IMG_1.jpg"

    async def test_media_item_download_is_not_retried(self):
        image_calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/mediaItems/m1":
                return httpx.Response(200, json={"id": "m1", "baseUrl": "https://lh3.test/m1"})
            image_calls.append(str(request.url))
            return httpx.Response(503)

        with pytest.raises(UpstreamServiceError) as exc_info:
            await photos_with(handler).fetch_media_item_image("tok", "m1")
        assert exc_info.value.status_code == 503
        assert image_calls == ["https://lh3.test/m1=w2048-h2048"]

    async def test_media_item_without_base_url(self):
        service = photos_with(lambda request: httpx.Response(200, json={"id": "m1"}))
        with pytest.raises(UpstreamServiceError) as exc_info:
            await service.fetch_media_item_image("tok", "m1")
        assert exc_info.value.status_code == 502


class TestGoogleOAuth:

    def oauth_with(self, handler) -> GoogleOAuthService:
        return GoogleOAuthService(
            client_id="cid",
            client_secret="secret",
            redirect_uri="http://localhost:5001/auth/google/callback",
            transport=httpx.MockTransport(handler),
        )

    def test_auth_url_parameters(self):
        url = self.oauth_with(lambda r: httpx.Response(500)).build_auth_url()
        query = parse_qs(urlparse(url).query)
        assert query["client_id"] == ["cid"]
        assert query["access_type"] == ["offline"]
        assert query["prompt"] == ["consent select_account"]
        assert query["include_granted_scopes"] == ["true"]
        assert query["scope"] == ["https://www.googleapis.com/auth/photoslibrary.readonly"]

    async def test_exchange_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            form = parse_qs(request.content.decode())
            assert form["grant_type"] == ["authorization_code"]
            assert form["code"] == ["abc"]
            return httpx.Response(200, json={
                "access_token": "at", "refresh_token": "rt", "expires_in": 3599,
            })

        tokens = await self.oauth_with(handler).exchange_code("abc")
        assert tokens.access_token == "at"
        assert tokens.refresh_token == "rt"
        assert tokens.expires_in == 3599

    async def test_exchange_rejected(self):
        service = self.oauth_with(
            lambda r: httpx.Response(400, json={"error": "invalid_grant"})
        )
        with pytest.raises(UpstreamAuthError, match="invalid_grant"):
            await service.exchange_code("used-code")

    async def test_exchange_without_access_token(self):
        service = self.oauth_with(lambda r: httpx.Response(200, json={"token_type": "Bearer"}))
        with pytest.raises(UpstreamAuthError):
            await service.exchange_code("abc")

    async def test_empty_code(self):
        with pytest.raises(ValidationError):
            await self.oauth_with(lambda r: httpx.Response(500)).exchange_code("")

    async def test_refresh_keeps_old_refresh_token(self):
        service = self.oauth_with(
            lambda r: httpx.Response(200, json={"access_token": "new", "expires_in": 3600})
        )
        tokens = await service.refresh_access_token("rt")
        assert tokens.access_token == "new"
        assert tokens.refresh_token == "rt"
