"""Async HTTP transports: source payload fetch and webhook blob upload.

WHY: The pipeline needs exactly two network operations — download a
source chart payload by URL, and store a converted payload somewhere
public and get its URL back. Both live behind small async classes so the
pipeline can be tested with fakes and httpx.MockTransport.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. SourceFetcher and
WebhookUploader are async context managers — enter to open the
connection pool, exit to close it. The uploader posts a multipart form
to the webhook with ?wait=1 so the response carries the stored
attachment's URL. An HTTP 429 becomes RateLimitedError carrying the
server's retry-after; the caller decides whether and when to retry.

RULES:
- Always use the async context manager (async with ... as client:)
- Relative source URLs resolve against SOURCE_BASE_URL
- Uploads send files[0] named by the content hash, plus content=<hash>
- 429 with a retry-after → RateLimitedError; any other failure → UploadError
- No retries happen here; pacing and retry policy belong to the dispatcher
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from chart_converter.api.models import RateLimit, UploadResult
from chart_converter.config import HTTP_TIMEOUT_S, SOURCE_BASE_URL, load_webhook_url


class FetchError(Exception):
    """Raised when a source payload cannot be downloaded.

    RULES:
    - status_code is None for network-level failures
    """

    def __init__(self, url: str, status_code: Optional[int], message: str) -> None:
        self.url = url
        self.status_code = status_code
        self.message = message
        super().__init__(f"Fetch of {url} failed ({status_code}): {message}")


class UploadError(Exception):
    """Raised when the upload transport fails for any reason except rate limiting."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Upload failed ({status_code}): {message}")


class RateLimitedError(Exception):
    """Raised when the transport explicitly asks the caller to wait.

    RULES:
    - retry_after is in seconds and must be honoured exactly
    """

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limited, retry after {retry_after}s")


class BaseUploader(ABC):
    """Stores a named binary blob and returns its public URL.

    To add a new transport (e.g. an object store):
    1. Subclass BaseUploader
    2. Implement upload(), raising RateLimitedError / UploadError
    3. Pass an instance to run_pipeline
    """

    async def __aenter__(self) -> BaseUploader:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        return None

    @abstractmethod
    async def upload(self, filename: str, data: bytes) -> str:
        """Upload data under filename and return the content URL."""


class SourceFetcher:
    """Downloads gzip source payloads from the archive's origin."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or SOURCE_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> SourceFetcher:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(HTTP_TIMEOUT_S, connect=30.0),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "SourceFetcher must be used as an async context manager: "
                "async with SourceFetcher() as fetcher: ..."
            )
        return self._client

    async def fetch(self, url: str) -> bytes:
        """Download a payload. Absolute URLs are used as-is.

        Raises:
            FetchError: On network failure or a non-2xx response.
        """
        client = self._ensure_client()
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise FetchError(url, None, str(exc)) from exc
        if not resp.is_success:
            raise FetchError(url, resp.status_code, resp.text[:200])
        return resp.content


class WebhookUploader(BaseUploader):
    """Stores blobs as attachments of messages posted to a webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._webhook_url = webhook_url or load_webhook_url()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> WebhookUploader:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(HTTP_TIMEOUT_S, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "WebhookUploader must be used as an async context manager: "
                "async with WebhookUploader() as uploader: ..."
            )
        return self._client

    async def upload(self, filename: str, data: bytes) -> str:
        """Post data as a webhook attachment and return its URL.

        Args:
            filename: Attachment file name (the content hash).
            data: The blob to store.

        Returns:
            The attachment URL reported by the webhook.

        Raises:
            RateLimitedError: On HTTP 429 with a retry-after value.
            UploadError: On any other failure.
        """
        client = self._ensure_client()
        try:
            resp = await client.post(
                self._webhook_url,
                params={"wait": "1"},
                data={"content": filename},
                files={"files[0]": (filename, data, "application/gzip")},
            )
        except httpx.HTTPError as exc:
            raise UploadError(None, str(exc)) from exc

        if resp.status_code == 429:
            rate_limit = RateLimit.from_response(_json_or_none(resp), resp.headers)
            if rate_limit is not None:
                raise RateLimitedError(rate_limit.retry_after)
            raise UploadError(429, "rate limited without retry-after")

        if resp.status_code not in (200, 201):
            raise UploadError(resp.status_code, resp.text[:200])

        try:
            return UploadResult.from_dict(resp.json()).url
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UploadError(resp.status_code, "unexpected response body") from exc


def _json_or_none(resp: httpx.Response) -> object:
    try:
        return resp.json()
    except ValueError:
        return None
