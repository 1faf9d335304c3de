"""Mock responses for SmugMug API v2 calls.

These mocks allow testing without making real SmugMug API calls. Payload
builders return the unwrapped ``Response`` value; ``envelope()`` wraps it the
way the API does. ``SmugMugStub`` serves them through ``httpx.MockTransport``.
"""

from collections.abc import Callable
from typing import Any

import httpx

API_ROOT = "https://api.smugmug.com/api/v2"

# =============================================================================
# Envelope
# =============================================================================


def envelope(response: Any, code: int = 200, message: str = "Ok") -> dict[str, Any]:
    """Wrap a payload in the {Response, Code, Message} envelope."""
    return {"Response": response, "Code": code, "Message": message}


# =============================================================================
# Users
# =============================================================================

AUTHUSER_RESPONSE: dict[str, Any] = {
    "User": {
        "NickName": "nino",
        "Name": "Nino Chavez",
        "Uris": {
            "UserAlbums": {"Uri": "/api/v2/user/nino!albums"},
        },
    }
}


# =============================================================================
# Albums
# =============================================================================


def make_album(index: int, image_count: int = 12) -> dict[str, Any]:
    """Raw Album payload."""
    key = f"album{index:04d}"
    return {
        "AlbumKey": key,
        "Name": f"Album {index}",
        "Description": f"Description {index}",
        "Keywords": "volleyball; 2024",
        "ImageCount": image_count,
        "Uris": {"AlbumImages": {"Uri": f"/api/v2/album/{key}!images"}},
    }


def make_albums_page(
    start: int,
    size: int,
    total: int,
    next_page: bool = True,
    image_count: int = 12,
) -> dict[str, Any]:
    """One page of an album collection."""
    pages: dict[str, Any] = {
        "Total": total,
        "Start": start,
        "Count": size,
        "RequestedCount": 100,
    }
    if next_page:
        pages["NextPage"] = f"/api/v2/user/nino!albums?start={start + 100}&count=100"
    return {
        "Album": [make_album(start + i, image_count) for i in range(size)],
        "Pages": pages,
    }


# =============================================================================
# Images
# =============================================================================


def make_image(
    key: str,
    largest: bool = True,
    size_details: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Raw AlbumImage payload.

    Args:
        key: Image key
        largest: Include the LargestImage expansion URI
        size_details: Inline ImageSizeDetails fields
    """
    uris: dict[str, Any] = {}
    if largest:
        uris["LargestImage"] = {"Uri": f"/api/v2/image/{key}-0!largestimage"}
    if size_details is not None:
        uris["ImageSizeDetails"] = {"ImageSizeDetails": size_details}
    return {
        "ImageKey": key,
        "Title": f"Title {key}",
        "Caption": "",
        "Keywords": "spike; attack",
        "FileName": f"{key}.jpg",
        "Format": "JPG",
        "OriginalWidth": 6000,
        "Width": 6000,
        "Height": 4000,
        "ArchivedUri": f"https://photos.smugmug.com/photos/i-{key}/0/O/i-{key}.jpg",
        "UploadKey": 9876543210,
        "Date": "2024-05-01T18:22:10+00:00",
        "Uris": uris,
    }


def largest_image_url(key: str) -> str:
    return f"https://photos.smugmug.com/photos/i-{key}/0/X5/i-{key}-X5.jpg"


def make_images_page(keys: list[str], with_expansions: bool = True) -> dict[str, Any]:
    """One page of album images, optionally with the Expansions map."""
    response: dict[str, Any] = {
        "AlbumImage": [make_image(key) for key in keys],
        "Pages": {"Total": len(keys), "Start": 1, "Count": len(keys)},
    }
    if with_expansions:
        response["Expansions"] = {
            f"/api/v2/image/{key}-0!largestimage": {
                "LargestImage": {
                    "Url": largest_image_url(key),
                    "Width": 6000,
                    "Height": 4000,
                }
            }
            for key in keys
        }
    return response


# =============================================================================
# Metadata
# =============================================================================

IMAGE_METADATA_RESPONSE: dict[str, Any] = {
    "ImageMetadata": {
        "ISO": 3200,
        "Aperture": 2.8,
        "FocalLength": "200 mm",
        "ExposureTime": "1/1000",
        "Make": "Canon",
        "Model": "Canon EOS R5",
        "LensModel": "RF70-200mm F2.8 L IS USM",
        "DateTimeOriginal": "2024-05-01 18:22:10",
    }
}


# =============================================================================
# Stub Upstream
# =============================================================================

Route = Callable[[httpx.Request], httpx.Response]


class SmugMugStub:
    """Path-routed fake SmugMug API for httpx.MockTransport.

    Records every request so tests can count upstream calls per path.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, endpoint: str, route: Route) -> None:
        self.routes[f"/api/v2{endpoint}"] = route

    def add_json(self, endpoint: str, response: Any, status_code: int = 200) -> None:
        self.add(
            endpoint,
            lambda request: httpx.Response(status_code, json=envelope(response)),
        )

    def add_albums(
        self,
        page_sizes: list[int],
        next_page_on_last: bool = False,
        image_count: int = 12,
    ) -> None:
        """Serve an album collection as pages of the given sizes."""
        total = sum(page_sizes)
        pages: dict[int, dict[str, Any]] = {}
        start = 1
        for index, size in enumerate(page_sizes):
            is_last = index == len(page_sizes) - 1
            pages[start] = make_albums_page(
                start,
                size,
                total,
                next_page=next_page_on_last or not is_last,
                image_count=image_count,
            )
            start += 100

        def route(request: httpx.Request) -> httpx.Response:
            page_start = int(request.url.params.get("start", "1"))
            page = pages.get(page_start, {"Album": [], "Pages": {"Total": total}})
            return httpx.Response(200, json=envelope(page))

        self.add("/user/nino!albums", route)

    def calls(self, endpoint: str) -> list[httpx.Request]:
        path = f"/api/v2{endpoint}"
        return [request for request in self.requests if request.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json=envelope(None, 404, "Not Found"))
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
