"""Domain models for PhotoMirror.

This module exports the gallery records built from upstream API responses.
"""

from photomirror.models.gallery import Album, ExifFields, GalleryData, Image

__all__ = [
    "Album",
    "ExifFields",
    "GalleryData",
    "Image",
]
