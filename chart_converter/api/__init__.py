"""Network transports package — source fetch and blob upload.

WHY: The pipeline reads source payloads from the archive's origin and
publishes converted payloads through a webhook. This package keeps every
HTTP call behind two async classes.

HOW: Uses httpx.AsyncClient. Response data is parsed into the small
dataclasses defined in models.py.

RULES:
- All HTTP calls go through SourceFetcher / WebhookUploader
- Rate-limit signals surface as RateLimitedError, never as silent waits
"""

from chart_converter.api.client import (
    BaseUploader,
    FetchError,
    RateLimitedError,
    SourceFetcher,
    UploadError,
    WebhookUploader,
)

__all__ = [
    "BaseUploader",
    "FetchError",
    "RateLimitedError",
    "SourceFetcher",
    "UploadError",
    "WebhookUploader",
]
