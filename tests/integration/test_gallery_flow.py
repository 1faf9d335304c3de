"""Integration tests for the full request path.

HTTP request -> FastAPI route -> GalleryFacade -> AlbumRepository ->
RequestCoalescer/CacheStore -> SignedTransport -> stub upstream.

Only the upstream is faked; everything in between is the real wiring.
"""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from photomirror.main import create_app
from photomirror.services.gallery import create_gallery_facade, get_gallery_facade
from tests.mocks.smugmug_responses import (
    IMAGE_METADATA_RESPONSE,
    SmugMugStub,
    make_images_page,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def facade(test_settings, transport):
    return create_gallery_facade(test_settings, transport=transport)


@pytest.fixture
def wired_app(test_settings, facade):
    app = create_app(settings=test_settings)
    app.dependency_overrides[get_gallery_facade] = lambda: facade

    yield app

    app.dependency_overrides.clear()


def client_for(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# =============================================================================
# Tests
# =============================================================================


@pytest.mark.integration
class TestGalleryFlow:
    @pytest.mark.asyncio
    async def test_album_pages_are_merged(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_albums([100, 100, 37], image_count=2)

        async with client_for(wired_app) as client:
            response = await client.get("/api/v1/albums")

        assert response.status_code == 200
        meta = response.json()["meta"]
        assert meta == {"total_albums": 237, "total_photos": 474}
        starts = [r.url.params["start"] for r in stub.calls("/user/nino!albums")]
        assert starts == ["1", "101", "201"]

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_albums([5])

        async with client_for(wired_app) as client:
            first = await client.get("/api/v1/albums")
            second = await client.get("/api/v1/albums")
            stats = await client.get("/api/v1/cache/stats")

        assert first.json() == second.json()
        assert len(stub.calls("/user/nino!albums")) == 1
        assert stats.json()["keys"] == ["albums:nino"]

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_upstream_call(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_json("/album/abc!images", make_images_page(["a", "b"]))

        async with client_for(wired_app) as client:
            responses = await asyncio.gather(
                *(client.get("/api/v1/albums/abc/images") for _ in range(10))
            )

        assert all(r.status_code == 200 for r in responses)
        assert all(r.json()["count"] == 2 for r in responses)
        assert len(stub.calls("/album/abc!images")) == 1

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_albums([3])

        async with client_for(wired_app) as client:
            await client.get("/api/v1/albums")
            cleared = await client.delete("/api/v1/cache")
            await client.get("/api/v1/albums")

        assert cleared.status_code == 200
        assert len(stub.calls("/user/nino!albums")) == 2

    @pytest.mark.asyncio
    async def test_exif_success_and_upstream_miss(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_json("/image/img1!metadata", IMAGE_METADATA_RESPONSE)

        async with client_for(wired_app) as client:
            found = await client.get("/api/v1/images/img1/exif")
            missing = await client.get("/api/v1/images/img2/exif")

        assert found.status_code == 200
        assert found.json()["lens"] == "RF70-200mm F2.8 L IS USM"
        assert missing.status_code == 404
        assert missing.json()["error"]["code"] == "EXIF_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_upstream_server_error_surfaces_as_502(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_json("/album/broken!images", None, status_code=500)

        async with client_for(wired_app) as client:
            response = await client.get("/api/v1/albums/broken/images")

        assert response.status_code == 502
        assert response.json()["error"]["details"]["upstream_status"] == 500
        assert len(stub.calls("/album/broken!images")) == 1

    @pytest.mark.asyncio
    async def test_lazy_gallery_makes_no_image_requests(
        self, wired_app, stub: SmugMugStub
    ) -> None:
        stub.add_albums([4], image_count=10)

        async with client_for(wired_app) as client:
            response = await client.get("/api/v1/gallery")

        data = response.json()
        assert data["total_images"] == 40
        assert data["eager"] is False
        assert not any(r.url.path.endswith("!images") for r in stub.requests)
