import re
import logging
from typing import Optional

import httpx

lib_logger = logging.getLogger("antigravity_adapter")

# Where Antigravity and Google APIs say how long to back off
RETRY_AFTER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"quota will reset after\s*([\dhms.]+)",
        r"reset after\s*([\dhms.]+)",
        r"retry after\s*([\dhms.]+)",
        r'"retrydelay":\s*"([\d.]+)s?"',
        r"try again in\s*(\d+)\s*seconds?",
    )
]

# Go-style duration as printed by the upstream: 156h14m36.752463453s, 2h30m, 39s
DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+(?:\.\d+)?)s)?$")


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Whole seconds in a duration string or bare number. None when unparseable or zero."""
    value = (value or "").strip().lower().rstrip(".")
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        pass

    match = DURATION_RE.match(value)
    if not match or not any(match.groups()):
        return None
    hours, minutes, seconds = match.groups()
    total = int(hours or 0) * 3600 + int(minutes or 0) * 60 + int(float(seconds or 0))
    return total or None


def extract_retry_after_from_body(error_body: Optional[str]) -> Optional[int]:
    """Seconds until the upstream accepts requests again, if the error body says."""
    if not error_body:
        return None
    for pattern in RETRY_AFTER_PATTERNS:
        match = pattern.search(error_body)
        if match:
            seconds = parse_duration(match.group(1))
            if seconds is not None:
                return seconds
    return None


class AdapterError(Exception):
    """Base class for errors raised by the adapter."""

    pass


class ConfigLoadError(AdapterError):
    """Raised when configuration fails to load."""

    pass


class UpstreamTransportError(AdapterError):
    """
    Raised when the upstream could not be reached at all.

    Covers DNS resolution failure on both address families, refused
    connections and timeouts. Retryable by the caller's policy.

    Attributes:
        url: The upstream URL that was being requested
        original_exception: The underlying httpx exception
    """

    def __init__(self, url: str, original_exception: Exception, message: str = ""):
        self.url = url
        self.original_exception = original_exception
        self.message = message or f"Transport error contacting {url}: {original_exception}"
        super().__init__(self.message)


class UpstreamStatusError(AdapterError):
    """
    Raised when the upstream answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the upstream
        body: Raw response body (may be empty for streams)
        retry_after: Seconds until quota resets, when the body says so
    """

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        self.status_code = status_code
        self.body = body or ""
        self.url = url
        self.retry_after = extract_retry_after_from_body(self.body)
        snippet = self.body[:200] if self.body else ""
        self.message = f"Upstream returned HTTP {status_code}" + (
            f": {snippet}" if snippet else ""
        )
        super().__init__(self.message)


class EmptyResponseError(AdapterError):
    """
    Raised when the upstream returns an empty response after multiple retry attempts.

    Treated as a transient server-side issue (503 equivalent).
    """

    def __init__(self, model: str, message: str = ""):
        self.model = model
        self.message = (
            message or f"Empty response from antigravity/{model} after multiple retry attempts"
        )
        super().__init__(self.message)


class ClassifiedError:
    """A structured representation of a classified error."""

    def __init__(
        self,
        error_type: str,
        original_exception: Exception,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        self.error_type = error_type
        self.original_exception = original_exception
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE_ERROR_TYPES

    def __str__(self):
        parts = [
            f"type={self.error_type}",
            f"status={self.status_code}",
            f"retry_after={self.retry_after}",
            f"original_exc={self.original_exception}",
        ]
        return f"ClassifiedError({', '.join(parts)})"


RETRYABLE_ERROR_TYPES = frozenset(
    {
        "rate_limit",
        "quota_exceeded",
        "server_error",
        "api_connection",
    }
)


def _classify_status(
    e: Exception, status_code: int, body: str, retry_after: Optional[int]
) -> ClassifiedError:
    body = body.lower()
    if status_code == 401:
        return ClassifiedError("authentication", e, status_code)
    if status_code == 403:
        return ClassifiedError("forbidden", e, status_code)
    if status_code == 429:
        if "quota" in body or "resource_exhausted" in body:
            return ClassifiedError("quota_exceeded", e, status_code, retry_after)
        return ClassifiedError("rate_limit", e, status_code, retry_after)
    if 400 <= status_code < 500:
        return ClassifiedError("invalid_request", e, status_code)
    if status_code >= 500:
        return ClassifiedError("server_error", e, status_code)
    return ClassifiedError("unknown", e, status_code)


def classify_error(e: Exception) -> ClassifiedError:
    """
    Classifies an exception into a structured ClassifiedError object.

    Error types and their typical handling:
    - rate_limit (429): retry with backoff
    - quota_exceeded (429 + quota body): rotate credential
    - authentication (401) / forbidden (403): rotate credential
    - invalid_request (4xx): don't retry - client error in request
    - server_error (5xx, empty response): retry with backoff
    - api_connection (DNS, refused, timeout): retry with backoff
    - unknown: caller decides
    """
    if isinstance(e, UpstreamStatusError):
        return _classify_status(e, e.status_code, e.body, e.retry_after)

    if isinstance(e, httpx.HTTPStatusError):
        try:
            body = e.response.text
        except Exception:
            body = ""
        return _classify_status(
            e,
            e.response.status_code,
            body,
            extract_retry_after_from_body(body),
        )

    if isinstance(e, UpstreamTransportError):
        return ClassifiedError("api_connection", e)

    if isinstance(e, (httpx.TimeoutException, httpx.ConnectError, httpx.NetworkError)):
        return ClassifiedError("api_connection", e)

    if isinstance(e, EmptyResponseError):
        return ClassifiedError("server_error", e, 503)

    lib_logger.debug(f"Unclassified error: {type(e).__name__}: {e}")
    return ClassifiedError("unknown", e)
