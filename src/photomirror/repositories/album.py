"""Album repository: paginated SmugMug reads, normalization and caching.

Every read goes cache -> coalescer -> transport, keyed by the same cache key,
so concurrent callers for one resource share a single upstream fetch and a
single cache write.

Loading policy is lazy: list_albums() and load_gallery() never fetch image
lists. Images are fetched per album through list_album_images() when the
album is opened. Callers must not assume a freshly listed album has images.
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Any

import structlog

from photomirror.core.exceptions import CancellationError
from photomirror.models.gallery import Album, ExifFields, GalleryData, Image
from photomirror.services.cache import CacheStore, CacheTTL
from photomirror.services.coalescer import RequestCoalescer
from photomirror.services.transport import RequestOptions, SignedTransport

logger = structlog.get_logger(__name__)

# Query used for album image listings; LargestImage pre-resolves the best URL.
IMAGE_LIST_PARAMS = {
    "_expand": "LargestImage",
    "_sort": "DateUploaded",
    "_sortdirection": "Descending",
}


# -----------------------------------------------------------------------------
# Response Parsing (Anti-Corruption Layer)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ImageUrls:
    thumbnail: str
    large: str
    original: str


def _uris(raw: dict[str, Any]) -> dict[str, Any]:
    return raw.get("Uris") or {}


def has_largest_image(raw: dict[str, Any]) -> bool:
    """Check whether the LargestImage expansion is present."""
    return bool((_uris(raw).get("LargestImage") or {}).get("Uri"))


def has_image_size_details(raw: dict[str, Any]) -> bool:
    """Check whether the ImageSizeDetails expansion is present."""
    return bool((_uris(raw).get("ImageSizeDetails") or {}).get("ImageSizeDetails"))


def get_image_urls(
    raw: dict[str, Any],
    expansions: dict[str, Any] | None = None,
) -> ImageUrls:
    """Resolve thumbnail/large/original URLs through the fallback chain.

    1. LargestImage expansion (resolved through the Expansions map if given)
    2. ImageSizeDetails fields, large/x-large before original
    3. ArchivedUri for every size
    """
    archived = raw.get("ArchivedUri") or ""

    if has_largest_image(raw):
        largest_uri = raw["Uris"]["LargestImage"]["Uri"]
        expanded = (expansions or {}).get(largest_uri) or {}
        large = (expanded.get("LargestImage") or {}).get("Url") or largest_uri
        return ImageUrls(thumbnail=archived, large=large, original=archived)

    if has_image_size_details(raw):
        details = raw["Uris"]["ImageSizeDetails"]["ImageSizeDetails"]
        return ImageUrls(
            thumbnail=details.get("ThumbImageUrl")
            or details.get("TinyImageUrl")
            or archived,
            large=details.get("LargeImageUrl")
            or details.get("XLargeImageUrl")
            or archived,
            original=details.get("OriginalImageUrl") or archived,
        )

    return ImageUrls(thumbnail=archived, large=archived, original=archived)


def parse_album(raw: dict[str, Any]) -> Album:
    """Parse a raw Album payload to the canonical record."""
    key = raw.get("AlbumKey", "")
    images_endpoint = (_uris(raw).get("AlbumImages") or {}).get("Uri")
    return Album(
        key=key,
        title=raw.get("Name") or raw.get("Title") or "",
        description=raw.get("Description") or "",
        keywords=raw.get("Keywords") or "",
        images_endpoint=images_endpoint or f"/album/{key}!images",
        total_image_count=raw.get("ImageCount") or 0,
    )


def parse_image(
    raw: dict[str, Any],
    expansions: dict[str, Any] | None = None,
) -> Image:
    """Parse a raw AlbumImage payload to the canonical record.

    A missing LargestImage expansion degrades URLs to the fallback chain and
    is logged; it never raises.
    """
    key = raw.get("ImageKey", "")
    if not has_largest_image(raw):
        logger.warning(
            "image_expansion_missing",
            image_key=key,
            expansion="LargestImage",
        )

    urls = get_image_urls(raw, expansions)
    file_name = raw.get("FileName") or ""

    return Image(
        key=key,
        title=raw.get("Title") or file_name,
        caption=raw.get("Caption") or "",
        keywords=raw.get("Keywords") or "",
        file_name=file_name,
        format=raw.get("Format") or "",
        width=raw.get("Width") or 0,
        height=raw.get("Height") or 0,
        archived_uri=raw.get("ArchivedUri") or "",
        thumbnail_url=urls.thumbnail,
        large_image_url=urls.large,
        original_image_url=urls.original,
        upload_key=str(raw.get("UploadKey") or ""),
        date=raw.get("Date") or "",
    )


def parse_exif(raw: dict[str, Any]) -> ExifFields:
    """Parse an ImageMetadata payload."""
    aperture = raw.get("Aperture")
    return ExifFields(
        iso=raw.get("ISO"),
        aperture=str(aperture) if aperture is not None else None,
        focal_length=raw.get("FocalLength"),
        exposure_time=raw.get("ExposureTime"),
        make=raw.get("Make"),
        model=raw.get("Model"),
        lens=raw.get("Lens") or raw.get("LensModel"),
        date_time=raw.get("DateTime") or raw.get("DateTimeOriginal"),
        gps_latitude=raw.get("GPSLatitude"),
        gps_longitude=raw.get("GPSLongitude"),
    )


# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------


class AlbumRepository:
    """Reads albums, album images and EXIF from SmugMug.

    Usage:
        ```python
        repository = AlbumRepository(transport, cache, coalescer, username="nino")
        albums = await repository.list_albums()
        images = await repository.list_album_images(albums[0].key)
        ```
    """

    AUTHUSER_ENDPOINT = "/!authuser"

    def __init__(
        self,
        transport: SignedTransport,
        cache: CacheStore,
        coalescer: RequestCoalescer,
        *,
        username: str = "",
        page_size: int = 100,
        ttl_albums: float = CacheTTL.ALBUMS,
        ttl_images: float = CacheTTL.IMAGES,
        ttl_exif: float = CacheTTL.EXIF,
    ) -> None:
        """Initialize the repository.

        Args:
            transport: Signed transport for upstream reads
            cache: Shared cache store
            coalescer: Shared request coalescer
            username: Account nickname; resolved via !authuser when empty
            page_size: Items per page for start/count paging
            ttl_albums: Album list TTL in seconds
            ttl_images: Image list TTL in seconds
            ttl_exif: EXIF TTL in seconds
        """
        self.transport = transport
        self.cache = cache
        self.coalescer = coalescer
        self.username = username
        self.page_size = page_size
        self.ttl_albums = ttl_albums
        self.ttl_images = ttl_images
        self.ttl_exif = ttl_exif
        self._albums_endpoint: str | None = (
            f"/user/{username}!albums" if username else None
        )

    async def resolve_albums_endpoint(
        self, options: RequestOptions | None = None
    ) -> str:
        """Return the album-collection endpoint, asking !authuser if needed."""
        if self._albums_endpoint is not None:
            return self._albums_endpoint

        async def fetch_user() -> str:
            response = await self.transport.fetch(
                self.AUTHUSER_ENDPOINT, options=options
            )
            user = response["User"]
            nickname = user["NickName"]
            endpoint = (user.get("Uris", {}).get("UserAlbums") or {}).get("Uri")
            self.username = nickname
            self._albums_endpoint = endpoint or f"/user/{nickname}!albums"
            logger.info(
                "smugmug_user_resolved",
                username=nickname,
                albums_endpoint=self._albums_endpoint,
            )
            return self._albums_endpoint

        return await self.coalescer.coalesce("authuser", fetch_user)

    async def list_albums(self, options: RequestOptions | None = None) -> list[Album]:
        """Fetch every album for the account, following start/count pages.

        Returns:
            Albums without images (lazy policy)
        """
        endpoint = await self.resolve_albums_endpoint(options)
        cache_key = CacheStore.albums_key(self.username)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("albums_cache_hit", cache_key=cache_key)
            return list(cached)

        logger.debug("albums_cache_miss", cache_key=cache_key)

        async def produce() -> list[Album]:
            raw_albums, _ = await self._paginate(endpoint, ("Album",), {}, options)
            albums = [parse_album(raw) for raw in raw_albums]
            self.cache.set(cache_key, albums, self.ttl_albums)
            logger.info(
                "albums_loaded", username=self.username, album_count=len(albums)
            )
            return albums

        return list(await self.coalescer.coalesce(cache_key, produce))

    async def list_album_images(
        self,
        album_key: str,
        options: RequestOptions | None = None,
    ) -> list[Image]:
        """Fetch the images of one album with LargestImage expansion."""
        cache_key = CacheStore.images_key(album_key)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("images_cache_hit", cache_key=cache_key)
            return list(cached)

        logger.debug("images_cache_miss", cache_key=cache_key)

        async def produce() -> list[Image]:
            raw_images, expansions = await self._paginate(
                f"/album/{album_key}!images",
                ("AlbumImage", "Image"),
                IMAGE_LIST_PARAMS,
                options,
            )
            images = [parse_image(raw, expansions) for raw in raw_images]
            self.cache.set(cache_key, images, self.ttl_images)
            logger.info(
                "album_images_loaded", album_key=album_key, image_count=len(images)
            )
            return images

        return list(await self.coalescer.coalesce(cache_key, produce))

    async def get_image_exif(
        self,
        image_key: str,
        options: RequestOptions | None = None,
    ) -> ExifFields | None:
        """Fetch EXIF for one image.

        EXIF is enrichment: any failure is logged and None is returned.
        Failures are not cached, so the next call tries again. A caller
        cancel signal or deadline also yields None; native task
        cancellation propagates.
        """
        cache_key = CacheStore.exif_key(image_key)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        async def produce() -> ExifFields:
            response = await self.transport.fetch(
                f"/image/{image_key}!metadata", options=options
            )
            exif = parse_exif(response["ImageMetadata"])
            self.cache.set(cache_key, exif, self.ttl_exif)
            return exif

        try:
            return await self.coalescer.coalesce(cache_key, produce)
        except CancellationError:
            logger.info("image_exif_cancelled", image_key=image_key)
            return None
        except Exception as e:
            logger.warning(
                "image_exif_failed",
                image_key=image_key,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def load_gallery(
        self,
        eager: bool = False,
        options: RequestOptions | None = None,
    ) -> GalleryData:
        """Load the gallery landing data.

        Lazy (default): album metadata only, zero image requests; the total
        comes from each album's ImageCount.

        Eager: additionally fetches every album's images (one request per
        album, concurrently). Expensive for large accounts.
        """
        albums = await self.list_albums(options)

        if not eager:
            total = sum(album.total_image_count for album in albums)
            logger.info(
                "gallery_loaded",
                album_count=len(albums),
                total_images=total,
                mode="lazy",
            )
            return GalleryData(albums=albums, total_images=total)

        logger.warning("gallery_eager_load", album_count=len(albums))
        image_lists = await asyncio.gather(
            *(self.list_album_images(album.key, options) for album in albums)
        )
        loaded = [
            replace(album, images=images)
            for album, images in zip(albums, image_lists, strict=True)
        ]
        total = sum(len(images) for images in image_lists)
        logger.info(
            "gallery_loaded",
            album_count=len(loaded),
            total_images=total,
            mode="eager",
        )
        return GalleryData(albums=loaded, total_images=total)

    # -------------------------------------------------------------------------
    # Private Methods - Paging
    # -------------------------------------------------------------------------

    async def _paginate(
        self,
        endpoint: str,
        item_keys: tuple[str, ...],
        params: dict[str, str],
        options: RequestOptions | None,
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Walk a start/count collection to the end.

        Stops on the first page shorter than the page size, or when the
        response carries no Pages.NextPage hint, whichever comes first.

        Returns:
            Tuple of (raw items, merged Expansions map)
        """
        items: list[dict[str, Any]] = []
        expansions: dict[str, Any] = {}
        start = 1
        count = self.page_size

        while True:
            page_params = {**params, "start": str(start), "count": str(count)}
            response = await self.transport.fetch(endpoint, page_params, options) or {}

            page: list[dict[str, Any]] = []
            for item_key in item_keys:
                if response.get(item_key):
                    page = response[item_key]
                    break

            items.extend(page)
            expansions.update(response.get("Expansions") or {})
            logger.debug(
                "page_fetched",
                endpoint=endpoint,
                start=start,
                page_size=len(page),
                total_so_far=len(items),
            )

            next_page = (response.get("Pages") or {}).get("NextPage")
            if len(page) < count or not next_page:
                break
            start += count

        return items, expansions
