"""Signed HTTP transport for the SmugMug API v2.

Issues OAuth 1.0a signed GET requests with bounded retry, unwraps the
{Response, Code, Message} envelope, and classifies failures:

- 401/403: AuthenticationError immediately (a retry would re-sign into the
  same rejected context)
- 429: retry with exponential backoff, RateLimitedError on exhaustion
- network error, timeout, malformed body: retry with backoff,
  TransportError on exhaustion
- any other non-2xx: UpstreamError immediately
- caller cancel signal or deadline: CancellationError immediately

A fresh timestamp and nonce are generated for every attempt.

See: https://api.smugmug.com/api/v2/doc
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar
from urllib.parse import urlsplit

import httpx
import structlog

from photomirror.config import Settings
from photomirror.core.exceptions import (
    AuthenticationError,
    CancellationError,
    ConfigurationError,
    RateLimitedError,
    TransportError,
    UpstreamError,
)
from photomirror.services.oauth import OAuthCredentials, new_nonce, new_timestamp, sign

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class RequestOptions:
    """Per-call options supplied by the caller.

    Attributes:
        cancel_event: Setting this event aborts the call (no retry)
        deadline: Overall budget in seconds for the call, retries included
    """

    cancel_event: asyncio.Event | None = None
    deadline: float | None = None

    @property
    def cancellable(self) -> bool:
        return self.cancel_event is not None or self.deadline is not None


class SignedTransport:
    """Async OAuth-signed client for the SmugMug API.

    Usage:
        ```python
        transport = SignedTransport.from_settings(settings)
        response = await transport.fetch("/user/nino!albums", {"count": "100"})
        await transport.close()
        ```
    """

    RATE_LIMIT_HEADER = "X-RateLimit-Remaining"

    def __init__(
        self,
        credentials: OAuthCredentials | None,
        *,
        base_url: str = "https://api.smugmug.com/api/v2",
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        rate_limit_warning_threshold: int = 100,
        user_agent: str = "PhotoMirror/0.1",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            credentials: OAuth key pairs; None makes every fetch fail fast
            base_url: API root that endpoints are appended to
            timeout: Per-attempt timeout in seconds
            max_attempts: Total attempts per call
            backoff_base: Retry delay is backoff_base * 2^attempt seconds
            rate_limit_warning_threshold: Low-water mark for remaining quota
            user_agent: User-Agent header value
            client: Pre-built httpx client (tests inject a MockTransport)
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.rate_limit_warning_threshold = rate_limit_warning_threshold
        self.user_agent = user_agent
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignedTransport":
        credentials = None
        if settings.has_credentials:
            credentials = OAuthCredentials(
                consumer_key=settings.smugmug_api_key.get_secret_value(),
                consumer_secret=settings.smugmug_api_secret.get_secret_value(),
                token=settings.smugmug_access_token.get_secret_value(),
                token_secret=settings.smugmug_access_token_secret.get_secret_value(),
            )
        return cls(
            credentials,
            base_url=settings.smugmug_base_url,
            timeout=settings.smugmug_timeout,
            max_attempts=settings.smugmug_max_attempts,
            backoff_base=settings.smugmug_backoff_base,
            rate_limit_warning_threshold=settings.smugmug_rate_limit_warning_threshold,
            user_agent=settings.smugmug_user_agent,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self.user_agent,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def build_url(self, endpoint: str) -> str:
        """Resolve an endpoint or an API-returned URI to an absolute URL.

        Accepts "/album/abc!images", "/api/v2/album/abc!images" (as found in
        Uris blocks) and absolute URLs.
        """
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        base = urlsplit(self.base_url)
        if base.path and endpoint.startswith(base.path + "/"):
            return f"{base.scheme}://{base.netloc}{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def fetch(
        self,
        endpoint: str,
        params: Mapping[str, str] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """GET an endpoint and return the unwrapped Response payload.

        Args:
            endpoint: API path (e.g., "/album/abc!images")
            params: Query parameters
            options: Cancellation signal and/or caller deadline

        Returns:
            The envelope's "Response" value

        Raises:
            AuthenticationError: On 401/403
            RateLimitedError: When every attempt was rate limited
            TransportError: When every attempt failed at the network level
            UpstreamError: On any other non-2xx status
            CancellationError: When the caller's signal or deadline fires
            ConfigurationError: When credentials are not configured
        """
        if self.credentials is None:
            raise ConfigurationError("Missing SmugMug API credentials")

        url = self.build_url(endpoint)
        query = {k: str(v) for k, v in (params or {}).items()}
        client = await self._get_client()
        started = asyncio.get_running_loop().time()
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            # Fresh (timestamp, nonce) per attempt, never reused across retries
            headers = sign(
                "GET",
                url,
                self.credentials,
                timestamp=new_timestamp(),
                nonce=new_nonce(),
                query=query,
            )
            headers["Accept"] = "application/json"

            try:
                response = await self._until_cancelled(
                    lambda: client.get(url, params=query, headers=headers),
                    options,
                    started,
                    endpoint,
                )
            except httpx.RequestError as e:
                timed_out = isinstance(e, httpx.TimeoutException)
                last_error = TransportError(
                    message=f"Request failed: {e!r}",
                    endpoint=endpoint,
                    attempts=attempt,
                    timeout=timed_out,
                )
                logger.warning(
                    "smugmug_request_failed",
                    endpoint=endpoint,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    timeout=timed_out,
                    error=str(e),
                )
            else:
                self._check_rate_limit(response)
                status = response.status_code

                if status in (401, 403):
                    logger.error(
                        "smugmug_auth_rejected", endpoint=endpoint, status=status
                    )
                    raise AuthenticationError(status, response.text, endpoint=endpoint)

                if status == 429:
                    last_error = RateLimitedError(attempt, endpoint=endpoint)
                    logger.warning(
                        "smugmug_rate_limited",
                        endpoint=endpoint,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                    )
                elif not response.is_success:
                    logger.error(
                        "smugmug_api_error",
                        endpoint=endpoint,
                        status=status,
                        body=response.text[:200],
                    )
                    raise UpstreamError(
                        status,
                        response.text,
                        endpoint=endpoint,
                        reason=response.reason_phrase,
                    )
                else:
                    try:
                        return response.json()["Response"]
                    except (ValueError, KeyError, TypeError) as e:
                        last_error = TransportError(
                            message=f"Malformed response: {e!r}",
                            endpoint=endpoint,
                            attempts=attempt,
                        )
                        logger.warning(
                            "smugmug_malformed_response",
                            endpoint=endpoint,
                            attempt=attempt,
                            error=str(e),
                        )

            if attempt < self.max_attempts:
                delay = self.backoff_base * (2**attempt)
                logger.info(
                    "smugmug_request_retry",
                    endpoint=endpoint,
                    attempt=attempt,
                    delay=delay,
                )
                await self._until_cancelled(
                    lambda: asyncio.sleep(delay), options, started, endpoint
                )

        if last_error is None:
            raise TransportError(
                message="No attempts made", endpoint=endpoint, attempts=0
            )
        raise last_error

    async def _until_cancelled(
        self,
        factory: Callable[[], Awaitable[T]],
        options: RequestOptions | None,
        started: float,
        endpoint: str,
    ) -> T:
        """Await factory() unless the caller's signal or deadline fires first."""
        if options is None or not options.cancellable:
            return await factory()

        remaining = None
        if options.deadline is not None:
            remaining = options.deadline - (asyncio.get_running_loop().time() - started)
            if remaining <= 0:
                raise CancellationError(
                    "Request deadline exceeded", details={"endpoint": endpoint}
                )
        if options.cancel_event is not None and options.cancel_event.is_set():
            raise CancellationError(details={"endpoint": endpoint})

        work = asyncio.ensure_future(factory())
        waiters: set[asyncio.Future[Any]] = {work}
        if options.cancel_event is not None:
            waiters.add(asyncio.ensure_future(options.cancel_event.wait()))

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if work in done:
            return work.result()

        logger.info("smugmug_request_cancelled", endpoint=endpoint)
        raise CancellationError(details={"endpoint": endpoint})

    def _check_rate_limit(self, response: httpx.Response) -> None:
        remaining = response.headers.get(self.RATE_LIMIT_HEADER)
        if remaining is None:
            return
        try:
            value = int(remaining)
        except ValueError:
            return
        if value < self.rate_limit_warning_threshold:
            logger.warning("smugmug_rate_limit_low", remaining=value)
