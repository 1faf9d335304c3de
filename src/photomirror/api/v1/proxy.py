"""Browser-safe upstream proxy.

Lets browser code reach a small, allow-listed part of the SmugMug API without
ever seeing the OAuth credentials. Requests are validated here, then signed
and sent by SignedTransport.
"""

import re
import time
from typing import Annotated, Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Query, status

from photomirror.core.exceptions import InvalidEndpointError, NotFoundError
from photomirror.core.logging import get_logger
from photomirror.dependencies import GalleryFacadeDep, SettingsDep
from photomirror.schemas.common import ErrorResponse

logger = get_logger(__name__)

router = APIRouter()

ENDPOINT_PATTERN = re.compile(
    r"/(user/[\w-]+!albums|album/[\w-]+!images|image/[\w-]+!(?:metadata|exif)|!authuser)"
    r"(\?[\w=&%-]+)?",
    re.ASCII,
)

ALLOWED_QUERY_PARAMS = frozenset(
    {
        "_expand",
        "_filter",
        "_filteruri",
        "count",
        "start",
        "_sort",
        "_sortdirection",
        "_verbosity",
    }
)


def validate_endpoint(endpoint: str) -> tuple[str, dict[str, str]]:
    """Check an endpoint against the allow-lists.

    Args:
        endpoint: Upstream path with optional query (e.g., "/album/abc!images?count=10")

    Returns:
        Tuple of (path, query params)

    Raises:
        InvalidEndpointError: If the path or a query parameter is not allowed
    """
    if not ENDPOINT_PATTERN.fullmatch(endpoint):
        raise InvalidEndpointError("Invalid endpoint pattern", endpoint=endpoint)

    if ".." in endpoint or "//" in endpoint:
        raise InvalidEndpointError("Path traversal detected", endpoint=endpoint)

    path, _, query = endpoint.partition("?")
    params = dict(parse_qsl(query, keep_blank_values=True))
    for key in params:
        if key not in ALLOWED_QUERY_PARAMS:
            raise InvalidEndpointError(
                f"Unauthorized query parameter: {key}", endpoint=endpoint
            )

    return path, params


@router.get(
    "/proxy",
    status_code=status.HTTP_200_OK,
    summary="Proxy an allow-listed SmugMug request",
    description="Signs and forwards a GET to an allow-listed SmugMug API v2 endpoint.",
    responses={
        403: {"model": ErrorResponse, "description": "Endpoint not allowed"},
        404: {"model": ErrorResponse, "description": "Proxy disabled"},
        502: {"model": ErrorResponse, "description": "Upstream service error"},
    },
)
async def proxy(
    endpoint: Annotated[str, Query(min_length=1, description="Upstream endpoint")],
    facade: GalleryFacadeDep,
    settings: SettingsDep,
) -> dict[str, Any]:
    if not settings.proxy_enabled:
        raise NotFoundError("Proxy endpoint disabled", code="PROXY_DISABLED")

    path, params = validate_endpoint(endpoint)

    start_time = time.perf_counter()
    try:
        payload = await facade.transport.fetch(path, params)
    except Exception as e:
        logger.warning(
            "proxy_request_failed",
            endpoint=endpoint,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            error_type=type(e).__name__,
        )
        raise

    logger.info(
        "proxy_request_completed",
        endpoint=endpoint,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )
    return {"Response": payload}
