"""GalleryFacade - the single seam presentation code depends on.

Composes CacheStore, RequestCoalescer, SignedTransport and AlbumRepository
for one upstream account and delegates to them. No business logic lives here.
"""

from typing import Any

import structlog

from photomirror.config import Settings
from photomirror.models.gallery import Album, ExifFields, GalleryData, Image
from photomirror.repositories.album import AlbumRepository
from photomirror.services.cache import NEVER_EXPIRES, CacheStats, CacheStore
from photomirror.services.coalescer import RequestCoalescer
from photomirror.services.transport import RequestOptions, SignedTransport

logger = structlog.get_logger(__name__)


class GalleryFacade:
    """Public read surface over the gallery access layer.

    Usage:
        ```python
        facade = create_gallery_facade(get_settings())
        gallery = await facade.fetch_gallery_data()  # albums only
        images = await facade.fetch_album_images(gallery.albums[0].key)
        await facade.aclose()
        ```
    """

    def __init__(
        self,
        repository: AlbumRepository,
        cache: CacheStore,
        transport: SignedTransport,
    ) -> None:
        self.repository = repository
        self.cache = cache
        self.transport = transport

    async def fetch_albums(self, options: RequestOptions | None = None) -> list[Album]:
        return await self.repository.list_albums(options)

    async def fetch_album_images(
        self, album_key: str, options: RequestOptions | None = None
    ) -> list[Image]:
        return await self.repository.list_album_images(album_key, options)

    async def fetch_image_exif(
        self, image_key: str, options: RequestOptions | None = None
    ) -> ExifFields | None:
        return await self.repository.get_image_exif(image_key, options)

    async def fetch_gallery_data(
        self, options: RequestOptions | None = None
    ) -> GalleryData:
        """Albums only; images are fetched when an album is opened."""
        return await self.repository.load_gallery(eager=False, options=options)

    async def fetch_gallery_data_eager(
        self, options: RequestOptions | None = None
    ) -> GalleryData:
        """Albums with every image list loaded. One request per album."""
        return await self.repository.load_gallery(eager=True, options=options)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("cache_cleared")

    def get_cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def start(self, sweep_interval: float = CacheStore.DEFAULT_SWEEP_INTERVAL) -> None:
        """Start background cache maintenance (requires a running loop)."""
        self.cache.start_sweeper(sweep_interval)

    async def aclose(self) -> None:
        """Stop the cache sweeper and close the HTTP client."""
        await self.cache.stop_sweeper()
        await self.transport.close()

    async def __aenter__(self) -> "GalleryFacade":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_gallery_facade(
    settings: Settings,
    transport: SignedTransport | None = None,
) -> GalleryFacade:
    """Build a facade and its collaborators from settings.

    Args:
        settings: Application settings
        transport: Pre-built transport (tests inject one over MockTransport)

    Returns:
        A facade owning a fresh cache and coalescer
    """
    transport = transport or SignedTransport.from_settings(settings)
    cache = CacheStore(max_entries=settings.cache_max_entries)
    repository = AlbumRepository(
        transport,
        cache,
        RequestCoalescer(),
        username=settings.smugmug_username,
        page_size=settings.smugmug_page_size,
        ttl_albums=settings.cache_ttl_albums,
        ttl_images=settings.cache_ttl_images,
        ttl_exif=settings.cache_ttl_exif or NEVER_EXPIRES,
    )
    return GalleryFacade(repository, cache, transport)


# =============================================================================
# Dependency Injection
# =============================================================================

_gallery_facade: GalleryFacade | None = None


def set_gallery_facade(facade: GalleryFacade | None) -> None:
    """Set the global gallery facade during app startup."""
    global _gallery_facade
    _gallery_facade = facade


def get_gallery_facade() -> GalleryFacade:
    """FastAPI dependency for GalleryFacade."""
    if _gallery_facade is None:
        raise RuntimeError(
            "Gallery facade not initialized. Call set_gallery_facade first."
        )
    return _gallery_facade
