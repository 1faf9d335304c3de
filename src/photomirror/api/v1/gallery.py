"""Gallery endpoints.

Read-only views over GalleryFacade: albums, album images, image EXIF, and
cache introspection/reset.
"""

from typing import Annotated

from fastapi import APIRouter, Path, Query, Response, status

from photomirror.core.exceptions import ExifNotFoundError
from photomirror.core.logging import get_logger
from photomirror.dependencies import GalleryFacadeDep
from photomirror.schemas.common import ErrorResponse, MessageResponse
from photomirror.schemas.gallery import (
    AlbumImagesResponse,
    AlbumListMeta,
    AlbumListResponse,
    AlbumResponse,
    CacheStatsResponse,
    ExifResponse,
    GalleryResponse,
    ImageResponse,
)

logger = get_logger(__name__)

router = APIRouter()

# Album lists are served from the edge for a day, stale for two more.
ALBUMS_CACHE_CONTROL = "public, s-maxage=86400, stale-while-revalidate=172800"

KEY_PATTERN = r"^[\w-]+$"

UPSTREAM_ERRORS = {
    502: {"model": ErrorResponse, "description": "Upstream service error"},
    503: {"model": ErrorResponse, "description": "Upstream rate limit exceeded"},
}


# =============================================================================
# Gallery / Albums
# =============================================================================


@router.get(
    "/gallery",
    response_model=GalleryResponse,
    status_code=status.HTTP_200_OK,
    summary="Gallery landing data",
    description="Albums with an image total. Image lists are only loaded with eager=true.",
    responses=UPSTREAM_ERRORS,
)
async def get_gallery(
    response: Response,
    facade: GalleryFacadeDep,
    eager: Annotated[
        bool, Query(description="Also load every album's images (expensive)")
    ] = False,
) -> GalleryResponse:
    if eager:
        gallery = await facade.fetch_gallery_data_eager()
    else:
        gallery = await facade.fetch_gallery_data()

    response.headers["Cache-Control"] = ALBUMS_CACHE_CONTROL
    return GalleryResponse(
        albums=[AlbumResponse.model_validate(album) for album in gallery.albums],
        total_images=gallery.total_images,
        album_count=gallery.album_count,
        eager=eager,
    )


@router.get(
    "/albums",
    response_model=AlbumListResponse,
    status_code=status.HTTP_200_OK,
    summary="List albums",
    description="All albums of the configured account, without images.",
    responses=UPSTREAM_ERRORS,
)
async def list_albums(
    response: Response, facade: GalleryFacadeDep
) -> AlbumListResponse:
    albums = await facade.fetch_albums()

    logger.info("list_albums_success", album_count=len(albums))

    response.headers["Cache-Control"] = ALBUMS_CACHE_CONTROL
    return AlbumListResponse(
        albums=[AlbumResponse.model_validate(album) for album in albums],
        meta=AlbumListMeta(
            total_albums=len(albums),
            total_photos=sum(album.total_image_count for album in albums),
        ),
    )


@router.get(
    "/albums/{album_key}/images",
    response_model=AlbumImagesResponse,
    status_code=status.HTTP_200_OK,
    summary="List album images",
    responses=UPSTREAM_ERRORS,
)
async def list_album_images(
    album_key: Annotated[str, Path(pattern=KEY_PATTERN, description="Album key")],
    facade: GalleryFacadeDep,
) -> AlbumImagesResponse:
    images = await facade.fetch_album_images(album_key)
    return AlbumImagesResponse(
        album_key=album_key,
        images=[ImageResponse.model_validate(image) for image in images],
        count=len(images),
    )


# =============================================================================
# EXIF
# =============================================================================


@router.get(
    "/images/{image_key}/exif",
    response_model=ExifResponse,
    status_code=status.HTTP_200_OK,
    summary="Get image EXIF",
    description="EXIF is best-effort: upstream failures surface as 404.",
    responses={404: {"model": ErrorResponse, "description": "EXIF not available"}},
)
async def get_image_exif(
    image_key: Annotated[str, Path(pattern=KEY_PATTERN, description="Image key")],
    facade: GalleryFacadeDep,
) -> ExifResponse:
    exif = await facade.fetch_image_exif(image_key)
    if exif is None:
        raise ExifNotFoundError(image_key)
    return ExifResponse(image_key=image_key, **exif.to_dict())


# =============================================================================
# Cache
# =============================================================================


@router.get(
    "/cache/stats",
    response_model=CacheStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Cache statistics",
)
async def get_cache_stats(facade: GalleryFacadeDep) -> CacheStatsResponse:
    return CacheStatsResponse.model_validate(facade.get_cache_stats())


@router.delete(
    "/cache",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Clear cache",
)
async def clear_cache(facade: GalleryFacadeDep) -> MessageResponse:
    facade.clear_cache()
    return MessageResponse(message="Cache cleared")
