"""OAuth 1.0a request signing (HMAC-SHA1).

Signing is a pure function of the request, the credentials, a timestamp and
a nonce. The transport calls new_timestamp()/new_nonce() and sign() afresh for
every attempt, so no signing state survives between attempts.

See: https://oauth.net/core/1.0a/#signing_process
"""

import base64
import hashlib
import hmac
import itertools
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

# Process-wide counter appended to nonces; two nonces never share it.
_nonce_counter = itertools.count()


@dataclass(frozen=True)
class OAuthCredentials:
    """Consumer and access-token key pairs."""

    consumer_key: str
    consumer_secret: str
    token: str
    token_secret: str

    def __repr__(self) -> str:
        return f"OAuthCredentials(consumer_key={self.consumer_key!r}, token=***)"


def percent_encode(value: str) -> str:
    """RFC 3986 encoding as required by OAuth 1.0a (only unreserved kept)."""
    return quote(value, safe="~")


def new_timestamp() -> str:
    """Seconds since the epoch, as OAuth expects."""
    return str(int(time.time()))


def new_nonce() -> str:
    """Random 128-bit hex value plus a monotonic counter suffix."""
    return f"{secrets.token_hex(16)}{next(_nonce_counter)}"


def normalize_url(url: str) -> str:
    """Base string URI: lowercase scheme/host, no query, no default port."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if (scheme, parts.port) in (("http", 80), ("https", 443)):
        netloc = parts.hostname or netloc
    return urlunsplit((scheme, netloc, parts.path or "/", "", ""))


def normalize_parameters(params: list[tuple[str, str]]) -> str:
    """Encode, sort by name then value, and join parameters."""
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(
    method: str,
    url: str,
    params: list[tuple[str, str]],
) -> str:
    return "&".join(
        [
            method.upper(),
            percent_encode(normalize_url(url)),
            percent_encode(normalize_parameters(params)),
        ]
    )


def hmac_sha1_signature(base_string: str, credentials: OAuthCredentials) -> str:
    key = (
        f"{percent_encode(credentials.consumer_secret)}"
        f"&{percent_encode(credentials.token_secret)}"
    )
    digest = hmac.new(key.encode(), base_string.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def sign(
    method: str,
    url: str,
    credentials: OAuthCredentials,
    timestamp: str,
    nonce: str,
    query: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the Authorization header for one request attempt.

    Args:
        method: HTTP method
        url: Absolute request URL (a query string here is signed too)
        credentials: Consumer and token key pairs
        timestamp: oauth_timestamp for this attempt
        nonce: oauth_nonce for this attempt (never reused)
        query: Query parameters sent separately from the URL

    Returns:
        Headers dict containing the OAuth Authorization header
    """
    oauth_params = {
        "oauth_consumer_key": credentials.consumer_key,
        "oauth_nonce": nonce,
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_timestamp": timestamp,
        "oauth_token": credentials.token,
        "oauth_version": OAUTH_VERSION,
    }

    request_params = parse_qsl(urlsplit(url).query, keep_blank_values=True)
    request_params.extend((k, str(v)) for k, v in (query or {}).items())
    request_params.extend(oauth_params.items())

    base_string = signature_base_string(method, url, request_params)
    oauth_params["oauth_signature"] = hmac_sha1_signature(base_string, credentials)

    header = ", ".join(
        f'{percent_encode(k)}="{percent_encode(v)}"'
        for k, v in sorted(oauth_params.items())
    )
    return {"Authorization": f"OAuth {header}"}
