"""Error taxonomy for the audit pipeline.

Only InvalidInputError and ConfigurationError reach the caller; the rest are
raised by the component that detects them and recovered at the stage boundary.
"""
from urllib.parse import urlparse


class AuditError(Exception):
    """Base class for all audit errors."""


class InvalidInputError(AuditError):
    """Malformed target URL or argument."""


class ConfigurationError(AuditError):
    """No usable rubric/category definitions."""


class FetchError(AuditError):
    """Navigation or content extraction failed for one page."""


class MeasurementError(AuditError):
    """Lab auditing run failed."""


class ExternalServiceError(AuditError):
    """robots.txt, sitemap or field-data fetch failed."""


def require_http_url(url: str) -> str:
    """Return url stripped if it is an absolute http(s) URL, else raise InvalidInputError."""
    if not isinstance(url, str):
        raise InvalidInputError(f"URL must be a string, got {type(url).__name__}")
    candidate = url.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid URL {url!r}: {exc}") from exc
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        raise InvalidInputError(f"Invalid URL {url!r}. Use http(s)://host/...")
    return candidate
