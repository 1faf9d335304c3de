"""Structlog setup for PhotoMirror.

Every upstream call carries OAuth 1.0a material (the Authorization header,
oauth_* parameters), and failures are logged with request context. The
processor chain therefore scrubs those values before any renderer sees them,
for structlog events and for records from foreign stdlib loggers (httpx,
uvicorn) alike.

Output is JSON in production or when LOG_FORMAT=json, a colored console
otherwise. Each entry carries the request correlation ID and
``service="photomirror"``.

Usage:
    from photomirror.core.logging import configure_logging, get_logger

    configure_logging(settings)

    logger = get_logger(__name__)
    logger.info("albums_loaded", album_count=42, username="nino")
"""

import logging
import re
import sys
from collections.abc import Mapping
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from photomirror.config import Settings

REDACTED = "[REDACTED]"

# oauth_problem and friends stay readable; they carry no secret
OAUTH_SECRET_PARAMS = (
    "oauth_consumer_key",
    "oauth_consumer_secret",
    "oauth_token",
    "oauth_token_secret",
    "oauth_signature",
    "oauth_nonce",
)
SENSITIVE_KEYS = frozenset(
    {"authorization", "proxy-authorization", *OAUTH_SECRET_PARAMS}
)

# oauth_signature="..." in headers, oauth_token=... in query strings
OAUTH_PARAM_RE = re.compile(
    r'\b(' + "|".join(OAUTH_SECRET_PARAMS) + r')(=)("?)[^"&,\s]*'
)

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)


# =============================================================================
# Correlation ID
# =============================================================================


def get_correlation_id() -> str | None:
    return correlation_id_ctx.get()


def set_correlation_id(correlation_id: str) -> None:
    """Bind the request ID for the current task (set by the HTTP middleware)."""
    correlation_id_ctx.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_ctx.set(None)


# =============================================================================
# Processors
# =============================================================================


def add_request_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach the service name and, inside a request, its correlation ID."""
    event_dict["service"] = "photomirror"
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def scrub_oauth_text(text: str) -> str:
    """Mask OAuth secret key=value pairs in a header or URL string."""
    return OAUTH_PARAM_RE.sub(rf"\1\2\3{REDACTED}", text)


def _is_sensitive(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    return key.lower() in SENSITIVE_KEYS


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return scrub_oauth_text(value)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if _is_sensitive(k) else _redact(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact(item) for item in value)
    return value


def redact_oauth_secrets(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask Authorization headers and OAuth secrets anywhere in the event.

    Sensitive keys are replaced outright; strings (including the event
    message and nested header mappings) have their OAuth secret values
    masked.
    """
    for key in list(event_dict):
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(event_dict[key])
    return event_dict


def build_shared_processors(json_logs: bool) -> list[Processor]:
    """Processors run for structlog events and foreign stdlib records.

    The console renderer formats exceptions itself, so tracebacks are only
    pre-rendered (and then scrubbed) for JSON output.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    processors.append(redact_oauth_secrets)
    return processors


# =============================================================================
# Setup
# =============================================================================


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog and stdlib logging through one redacting handler.

    Args:
        settings: Application settings. If None, uses get_settings().
    """
    if settings is None:
        from photomirror.config import get_settings

        settings = get_settings()

    log_level = getattr(logging, settings.log_level.value, logging.INFO)
    shared_processors = build_shared_processors(settings.use_json_logs)

    renderer: Processor
    if settings.use_json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs one INFO line per request URL; keep only its warnings
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
