"""Gallery API schemas.

This module defines Pydantic models for album, image, EXIF and cache
endpoints. Domain dataclasses convert through ``model_validate`` (from
attributes).
"""

from pydantic import BaseModel, ConfigDict, Field

from photomirror.schemas.common import BaseSchema

# =============================================================================
# Images
# =============================================================================


class ImageResponse(BaseSchema):
    """Single image with resolved display URLs."""

    key: str = Field(..., description="SmugMug image key")
    title: str = Field("", description="Image title (falls back to file name)")
    caption: str = Field("", description="Image caption")
    keywords: str = Field("", description="Semicolon separated keywords")
    file_name: str = Field("", description="Original file name")
    format: str = Field("", description="File format (JPG, PNG, ...)")
    width: int = Field(0, ge=0, description="Original width in pixels")
    height: int = Field(0, ge=0, description="Original height in pixels")
    archived_uri: str = Field("", description="Permanent archived image URI")
    thumbnail_url: str = Field("", description="Thumbnail URL")
    large_image_url: str = Field("", description="Largest display URL")
    original_image_url: str = Field("", description="Original image URL")
    upload_key: str = Field("", description="Upload key")
    date: str = Field("", description="Upload date")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "key": "abc123",
                "title": "Sunset over the ridge",
                "caption": "",
                "keywords": "sunset; mountains",
                "file_name": "IMG_0042.jpg",
                "format": "JPG",
                "width": 6000,
                "height": 4000,
                "archived_uri": "https://photos.smugmug.com/photos/i-abc123/0/O/i-abc123.jpg",
                "thumbnail_url": "https://photos.smugmug.com/photos/i-abc123/0/O/i-abc123.jpg",
                "large_image_url": "https://photos.smugmug.com/photos/i-abc123/0/X5/i-abc123-X5.jpg",
                "original_image_url": "https://photos.smugmug.com/photos/i-abc123/0/O/i-abc123.jpg",
                "upload_key": "9876543210",
                "date": "2024-05-01T18:22:10+00:00",
            }
        }
    )


class AlbumImagesResponse(BaseModel):
    """Images of one album."""

    album_key: str = Field(..., description="SmugMug album key")
    images: list[ImageResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0, description="Number of images returned")


# =============================================================================
# Albums
# =============================================================================


class AlbumResponse(BaseSchema):
    """Album metadata; ``images`` is empty unless loaded eagerly."""

    key: str = Field(..., description="SmugMug album key")
    title: str = Field("", description="Album name")
    description: str = Field("", description="Album description")
    keywords: str = Field("", description="Album keywords")
    images_endpoint: str = Field(..., description="Upstream images URI")
    total_image_count: int = Field(0, ge=0, description="ImageCount reported upstream")
    images: list[ImageResponse] = Field(default_factory=list)


class AlbumListMeta(BaseModel):
    total_albums: int = Field(..., ge=0)
    total_photos: int = Field(..., ge=0)


class AlbumListResponse(BaseModel):
    """Album listing with totals."""

    albums: list[AlbumResponse] = Field(default_factory=list)
    meta: AlbumListMeta


class GalleryResponse(BaseModel):
    """Landing-page gallery data."""

    albums: list[AlbumResponse] = Field(default_factory=list)
    total_images: int = Field(..., ge=0)
    album_count: int = Field(..., ge=0)
    eager: bool = Field(False, description="Whether image lists were loaded")


# =============================================================================
# EXIF
# =============================================================================


class ExifResponse(BaseSchema):
    """Technical metadata for one image."""

    image_key: str = Field(..., description="SmugMug image key")
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


# =============================================================================
# Cache
# =============================================================================


class CacheStatsResponse(BaseSchema):
    """Cache statistics snapshot."""

    size: int = Field(..., ge=0)
    max_size: int = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0, le=1)
    keys: list[str] = Field(default_factory=list)
    oldest_entry: float = Field(0.0, description="Epoch seconds of the oldest entry")
    newest_entry: float = Field(0.0, description="Epoch seconds of the newest entry")
