"""FastAPI dependency injection container.

This module provides dependency injection functions for use with FastAPI's
Depends() pattern. Dependencies can be swapped through
``app.dependency_overrides`` in tests.
"""

from typing import Annotated

from fastapi import Depends, Request

from photomirror.config import Settings, get_settings
from photomirror.services.gallery import GalleryFacade, get_gallery_facade


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with.

    create_app() stores its settings on app.state; fall back to the
    environment for apps assembled without it.
    """
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        return get_settings()
    return settings


# Type aliases for common dependency patterns
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
GalleryFacadeDep = Annotated[GalleryFacade, Depends(get_gallery_facade)]
