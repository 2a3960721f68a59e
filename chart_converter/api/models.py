"""Upload transport response dataclasses.

WHY: The webhook returns a full message object; the pipeline only needs
the public URL of the stored attachment (and, on 429, how long to wait).
Typed dataclasses keep the parsing in one place.

RULES:
- UploadResult.url is attachments[0].url of the webhook message
- RateLimit.retry_after is in seconds, taken from the body first, then
  the Retry-After header
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class UploadResult:
    """A successfully stored blob."""

    message_id: Optional[str]
    url: str

    @classmethod
    def from_dict(cls, data: dict) -> UploadResult:
        """Parse the webhook message returned with ?wait=1.

        RULES:
        - attachments must be a non-empty list; the first one is ours
        - Raises KeyError/IndexError on any other shape (caller wraps it)
        """
        attachment = data["attachments"][0]
        return cls(message_id=data.get("id"), url=attachment["url"])


@dataclass
class RateLimit:
    """Parsed rate-limit signal from a 429 response."""

    retry_after: float

    @classmethod
    def from_response(cls, body: object, headers: Mapping[str, str]) -> Optional[RateLimit]:
        if isinstance(body, dict) and body.get("retry_after") is not None:
            return cls(retry_after=float(body["retry_after"]))
        header = headers.get("retry-after")
        if header is not None:
            try:
                return cls(retry_after=float(header))
            except ValueError:
                return None
        return None
