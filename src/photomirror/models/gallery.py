"""Gallery domain records (anti-corruption layer over SmugMug API shapes).

Records are rebuilt from raw API payloads on every cache miss and are never
persisted outside the in-memory cache. Treat cached instances as read-only;
use dataclasses.replace() to derive variants.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Image:
    """Canonical image record."""

    key: str
    title: str
    caption: str
    keywords: str
    file_name: str
    format: str
    width: int
    height: int
    archived_uri: str
    thumbnail_url: str
    large_image_url: str
    original_image_url: str
    upload_key: str
    date: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "key": self.key,
            "title": self.title,
            "caption": self.caption,
            "keywords": self.keywords,
            "file_name": self.file_name,
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "archived_uri": self.archived_uri,
            "thumbnail_url": self.thumbnail_url,
            "large_image_url": self.large_image_url,
            "original_image_url": self.original_image_url,
            "upload_key": self.upload_key,
            "date": self.date,
        }


@dataclass
class Album:
    """Canonical album record.

    ``images`` is empty unless the album was loaded eagerly or the caller
    filled it from list_album_images(); it is not part of the album identity.
    """

    key: str
    title: str
    description: str
    keywords: str
    images_endpoint: str
    total_image_count: int
    images: list[Image] = field(default_factory=list, compare=False)

    def to_dict(self, include_images: bool = True) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data: dict[str, Any] = {
            "key": self.key,
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "images_endpoint": self.images_endpoint,
            "total_image_count": self.total_image_count,
        }
        if include_images:
            data["images"] = [image.to_dict() for image in self.images]
        return data


@dataclass
class ExifFields:
    """Technical metadata for one image."""

    iso: int | None = None
    aperture: str | None = None
    focal_length: str | None = None
    exposure_time: str | None = None
    make: str | None = None
    model: str | None = None
    lens: str | None = None
    date_time: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "iso": self.iso,
            "aperture": self.aperture,
            "focal_length": self.focal_length,
            "exposure_time": self.exposure_time,
            "make": self.make,
            "model": self.model,
            "lens": self.lens,
            "date_time": self.date_time,
            "gps_latitude": self.gps_latitude,
            "gps_longitude": self.gps_longitude,
        }


@dataclass
class GalleryData:
    """Albums plus an image total for the landing page."""

    albums: list[Album]
    total_images: int

    @property
    def album_count(self) -> int:
        return len(self.albums)
