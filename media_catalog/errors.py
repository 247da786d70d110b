from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit


class CatalogError(RuntimeError):
    """Base class for media catalog failures."""


class ConfigurationError(CatalogError):
    """A required credential or endpoint is not configured."""


@dataclass(frozen=True)
class UpstreamError(CatalogError):
    operation: str
    url: str
    status_code: int
    message: str

    def __str__(self) -> str:
        safe_url = sanitize_url(self.url)
        body = sanitize_text(self.message)
        return (
            f"{type(self).__name__} {self.operation} {safe_url} "
            f"status={self.status_code} message={body}"
        )


class RequestTimeoutError(UpstreamError, TimeoutError):
    """The call exceeded its allotted time."""


class ParseError(CatalogError, ValueError):
    """Payload does not decode to the expected schema."""


class VerificationWarning(UserWarning):
    """Read-back of a freshly uploaded document failed."""


def sanitize_url(url: str) -> str:
    if not url:
        return ""
    redacted = re.sub(
        r"(?i)(api_key|token|sign|authorization)=([^&]+)",
        r"\1=***",
        url,
    )
    try:
        parts = urlsplit(redacted)
    except ValueError:
        return redacted
    if parts.scheme and parts.netloc:
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    return redacted


def sanitize_text(text: str) -> str:
    if not text:
        return ""
    return re.sub(
        r"(?i)(api_key|token|authorization)\s*[:=]\s*([\w\-]+)",
        r"\1=***",
        text,
    )
