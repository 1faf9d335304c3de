"""Repository package for PhotoMirror.

This module exports the upstream-backed album repository and its parsers.
"""

from photomirror.repositories.album import (
    AlbumRepository,
    ImageUrls,
    get_image_urls,
    has_image_size_details,
    has_largest_image,
    parse_album,
    parse_exif,
    parse_image,
)

__all__ = [
    "AlbumRepository",
    # Parsing
    "ImageUrls",
    "get_image_urls",
    "has_image_size_details",
    "has_largest_image",
    "parse_album",
    "parse_exif",
    "parse_image",
]
