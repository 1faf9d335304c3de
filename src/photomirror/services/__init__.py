"""Services package for PhotoMirror.

This module exports the access-layer services. The facade lives in
photomirror.services.gallery and is imported from there, since it depends on
the repositories package.
"""

from photomirror.services.cache import (
    NEVER_EXPIRES,
    CacheEntry,
    CacheStats,
    CacheStore,
    CacheTTL,
)
from photomirror.services.coalescer import RequestCoalescer
from photomirror.services.oauth import OAuthCredentials, sign
from photomirror.services.transport import RequestOptions, SignedTransport

__all__ = [
    # Cache
    "NEVER_EXPIRES",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "CacheTTL",
    # Coalescing
    "RequestCoalescer",
    # Transport
    "OAuthCredentials",
    "RequestOptions",
    "SignedTransport",
    "sign",
]
