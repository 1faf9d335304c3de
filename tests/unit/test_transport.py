"""Tests for SignedTransport.

Uses httpx.MockTransport so no request leaves the process. Backoff is zero
unless a test needs a real delay.
"""

import asyncio
import re

import httpx
import pytest
from pydantic import SecretStr

from photomirror.core.exceptions import (
    AuthenticationError,
    CancellationError,
    ConfigurationError,
    ExternalServiceError,
    RateLimitedError,
    TransportError,
    UpstreamError,
)
from photomirror.services.oauth import OAuthCredentials
from photomirror.services.transport import RequestOptions, SignedTransport
from tests.mocks.smugmug_responses import API_ROOT, envelope

# =============================================================================
# Helpers
# =============================================================================


class Recorder:
    """MockTransport handler replaying a scripted list of outcomes.

    Each outcome is an httpx.Response or an exception instance to raise.
    The last outcome repeats once the script is exhausted.
    """

    def __init__(self, *outcomes: httpx.Response | Exception) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh instance per request; a Response is bound to one request
        return httpx.Response(
            outcome.status_code, headers=outcome.headers, content=outcome.content
        )


def ok(response: object) -> httpx.Response:
    return httpx.Response(200, json=envelope(response))


def make_transport(
    handler,
    credentials: OAuthCredentials | None,
    **kwargs,
) -> SignedTransport:
    kwargs.setdefault("backoff_base", 0)
    return SignedTransport(
        credentials,
        base_url=API_ROOT,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


def oauth_fields(request: httpx.Request) -> dict[str, str]:
    return dict(re.findall(r'(\w+)="([^"]*)"', request.headers["Authorization"]))


# =============================================================================
# URL Building
# =============================================================================


class TestBuildUrl:
    def test_plain_endpoint(self, credentials) -> None:
        transport = SignedTransport(credentials, base_url=API_ROOT)
        url = transport.build_url("/album/abc!images")
        assert url == f"{API_ROOT}/album/abc!images"

    def test_api_uri_from_response(self, credentials) -> None:
        transport = SignedTransport(credentials, base_url=API_ROOT)
        assert (
            transport.build_url("/api/v2/user/nino!albums")
            == "https://api.smugmug.com/api/v2/user/nino!albums"
        )

    def test_absolute_url_untouched(self, credentials) -> None:
        transport = SignedTransport(credentials, base_url=API_ROOT)
        url = "https://photos.smugmug.com/x.jpg"
        assert transport.build_url(url) == url


# =============================================================================
# Success Path
# =============================================================================


class TestFetchSuccess:
    @pytest.mark.asyncio
    async def test_unwraps_response_envelope(self, credentials) -> None:
        recorder = Recorder(ok({"Album": [{"AlbumKey": "a1"}]}))
        transport = make_transport(recorder, credentials)

        result = await transport.fetch("/user/nino!albums")

        assert result == {"Album": [{"AlbumKey": "a1"}]}
        await transport.close()

    @pytest.mark.asyncio
    async def test_request_is_signed_and_carries_params(self, credentials) -> None:
        recorder = Recorder(ok({}))
        transport = make_transport(recorder, credentials)

        await transport.fetch("/user/nino!albums", {"start": "1", "count": "100"})

        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.params["start"] == "1"
        assert request.url.params["count"] == "100"
        assert request.headers["Accept"] == "application/json"
        fields = oauth_fields(request)
        assert fields["oauth_consumer_key"] == "test-consumer-key"
        assert fields["oauth_token"] == "test-token"
        assert fields["oauth_signature_method"] == "HMAC-SHA1"
        assert "oauth_signature" in fields

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_without_request(self) -> None:
        recorder = Recorder(ok({}))
        transport = make_transport(recorder, None)

        with pytest.raises(ConfigurationError):
            await transport.fetch("/!authuser")

        assert recorder.requests == []


# =============================================================================
# Failure Classification
# =============================================================================


class TestFailureClassification:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failure_is_not_retried(self, credentials, status: int) -> None:
        recorder = Recorder(
            httpx.Response(status, text="oauth_problem=signature_invalid")
        )
        transport = make_transport(recorder, credentials)

        with pytest.raises(AuthenticationError) as exc_info:
            await transport.fetch("/!authuser")

        assert len(recorder.requests) == 1
        assert exc_info.value.upstream_status == status
        assert exc_info.value.message.startswith(f"Auth error: {status}")

    @pytest.mark.asyncio
    async def test_upstream_error_is_not_retried_and_body_truncated(
        self, credentials
    ) -> None:
        recorder = Recorder(httpx.Response(500, text="x" * 1000))
        transport = make_transport(recorder, credentials)

        with pytest.raises(UpstreamError) as exc_info:
            await transport.fetch("/album/abc!images")

        assert len(recorder.requests) == 1
        assert exc_info.value.upstream_status == 500
        assert len(exc_info.value.body) == 200
        assert exc_info.value.details["endpoint"] == "/album/abc!images"

    @pytest.mark.asyncio
    async def test_not_found_is_upstream_error(self, credentials) -> None:
        recorder = Recorder(httpx.Response(404, text="Not Found"))
        transport = make_transport(recorder, credentials)

        with pytest.raises(UpstreamError):
            await transport.fetch("/album/missing!images")

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_succeeds(self, credentials) -> None:
        recorder = Recorder(
            httpx.Response(429),
            httpx.Response(429),
            ok({"User": {"NickName": "nino"}}),
        )
        transport = make_transport(recorder, credentials)

        result = await transport.fetch("/!authuser")

        assert result == {"User": {"NickName": "nino"}}
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_budget(self, credentials) -> None:
        recorder = Recorder(httpx.Response(429))
        transport = make_transport(recorder, credentials, max_attempts=3)

        with pytest.raises(RateLimitedError) as exc_info:
            await transport.fetch("/!authuser")

        assert len(recorder.requests) == 3
        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    async def test_network_error_retried_then_raised(self, credentials) -> None:
        recorder = Recorder(httpx.ConnectError("connection refused"))
        transport = make_transport(recorder, credentials, max_attempts=2)

        with pytest.raises(TransportError) as exc_info:
            await transport.fetch("/!authuser")

        assert len(recorder.requests) == 2
        assert exc_info.value.timeout is False
        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_zero_attempt_budget_clamped_to_one(self, credentials) -> None:
        recorder = Recorder(httpx.ConnectError("connection refused"))
        transport = make_transport(recorder, credentials, max_attempts=0)

        with pytest.raises(TransportError) as exc_info:
            await transport.fetch("/!authuser")

        assert len(recorder.requests) == 1
        assert exc_info.value.attempts == 1

    @pytest.mark.asyncio
    async def test_exhausted_budget_without_attempts_is_transport_error(
        self, credentials
    ) -> None:
        recorder = Recorder(ok({"User": {}}))
        transport = make_transport(recorder, credentials)
        transport.max_attempts = 0

        with pytest.raises(TransportError) as exc_info:
            await transport.fetch("/!authuser")

        assert recorder.requests == []
        assert exc_info.value.attempts == 0

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self, credentials) -> None:
        recorder = Recorder(httpx.ReadTimeout("timed out"))
        transport = make_transport(recorder, credentials, max_attempts=1)

        with pytest.raises(TransportError) as exc_info:
            await transport.fetch("/!authuser")

        assert exc_info.value.timeout is True

    @pytest.mark.asyncio
    async def test_network_error_then_success(self, credentials) -> None:
        recorder = Recorder(httpx.ConnectError("reset"), ok({"ok": True}))
        transport = make_transport(recorder, credentials)

        assert await transport.fetch("/!authuser") == {"ok": True}
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_malformed_body_is_retried(self, credentials) -> None:
        recorder = Recorder(
            httpx.Response(200, text="<html>maintenance</html>"),
            ok({"ok": True}),
        )
        transport = make_transport(recorder, credentials)

        assert await transport.fetch("/!authuser") == {"ok": True}
        assert len(recorder.requests) == 2


# =============================================================================
# Nonce Freshness
# =============================================================================


class TestNonceFreshness:
    @pytest.mark.asyncio
    async def test_retries_never_reuse_timestamp_nonce_pair(self, credentials) -> None:
        recorder = Recorder(httpx.Response(429))
        transport = make_transport(recorder, credentials, max_attempts=5)

        with pytest.raises(RateLimitedError):
            await transport.fetch("/!authuser")

        pairs = [
            (oauth_fields(r)["oauth_timestamp"], oauth_fields(r)["oauth_nonce"])
            for r in recorder.requests
        ]
        assert len(pairs) == 5
        assert len(set(pairs)) == 5


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    @pytest.mark.asyncio
    async def test_already_cancelled_makes_no_request(self, credentials) -> None:
        recorder = Recorder(ok({}))
        transport = make_transport(recorder, credentials)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(CancellationError):
            await transport.fetch(
                "/!authuser", options=RequestOptions(cancel_event=cancel)
            )

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retrying(self, credentials) -> None:
        recorder = Recorder(httpx.Response(429))
        transport = make_transport(recorder, credentials, backoff_base=30)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        with pytest.raises(CancellationError):
            await asyncio.wait_for(
                transport.fetch(
                    "/!authuser", options=RequestOptions(cancel_event=cancel)
                ),
                timeout=5,
            )

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_deadline_aborts_slow_request(self, credentials) -> None:
        requests: list[httpx.Request] = []

        async def slow(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            await asyncio.sleep(10)
            return ok({})

        transport = make_transport(slow, credentials)

        with pytest.raises(CancellationError):
            await asyncio.wait_for(
                transport.fetch("/!authuser", options=RequestOptions(deadline=0.05)),
                timeout=5,
            )

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_cancellation_is_not_an_upstream_failure(self) -> None:
        assert not issubclass(CancellationError, ExternalServiceError)


# =============================================================================
# Construction
# =============================================================================


class TestFromSettings:
    def test_credentials_loaded_from_settings(self, test_settings) -> None:
        transport = SignedTransport.from_settings(test_settings)

        assert transport.credentials is not None
        assert transport.credentials.consumer_key == "test-consumer-key"
        assert transport.max_attempts == 3
        assert transport.backoff_base == 0

    def test_no_credentials_when_unset(self, test_settings) -> None:
        settings = test_settings.model_copy(
            update={"smugmug_access_token": SecretStr("")}
        )
        transport = SignedTransport.from_settings(settings)

        assert transport.credentials is None
