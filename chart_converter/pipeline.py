"""Batch conversion pipeline: convert archived charts and publish them.

WHY: Converting is CPU work, publishing is slow rate-limited I/O. Running
them as a producer and a consumer over a bounded queue keeps the upload
transport busy without converting the whole archive into memory first.
Failures are isolated to one chart so a single bad payload (or a flaky
upload) never stops the batch; whatever failed is picked up by the next
run because its converted record was never written.

HOW: Two coroutines joined with asyncio.gather:
  ChartConverter — producer. Reads the source chart list and the set of
                   already-converted names once, then fetches, converts
                   (in a worker thread) and enqueues each missing chart.
  Dispatcher     — consumer. Hashes each payload, skips unchanged ones,
                   uploads with request spacing and bounded rate-limit
                   retries, then atomically replaces the archive record.
The two share a DispatchBuffer: a FIFO plus a semaphore of free slots.
The producer reserves a slot before fetching, so nothing is fetched while
the buffer is full. The end of the stream is an EndOfStream marker, a
type distinct from ConvertedChart.

RULES:
- Any exception while converting one chart → logged, chart skipped
- RateLimitedError → sleep exactly retry_after, retry, at most max_retries times
- Any other upload failure, or retries exhausted → chart abandoned + alert
- The converted record is written only after a successful upload
- Requests are spaced at least min_interval seconds apart
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol, Union

from chart_converter.alerts import SlackAlerter
from chart_converter.api.client import BaseUploader, RateLimitedError
from chart_converter.config import QUEUE_CAPACITY, RATE_LIMIT_MAX_RETRIES, UPLOAD_MIN_INTERVAL_S
from chart_converter.core.converter import convert_payload
from chart_converter.store import CONVERTED_CHART_TYPE, ArchiveStore

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


@dataclass(frozen=True)
class ConvertedChart:
    """A converted, compressed chart waiting to be published."""

    name: str
    data: bytes


class EndOfStream:
    """Marks that the producer will enqueue nothing more."""

    def __repr__(self) -> str:
        return "EndOfStream()"


END_OF_STREAM = EndOfStream()

QueueItem = Union[ConvertedChart, EndOfStream]


@dataclass
class PipelineReport:
    """Per-run counters.

    RULES:
    - already_converted: source charts skipped because a record exists
    - converted / failed: producer outcomes
    - delivered / unchanged / abandoned: dispatcher outcomes
    """

    already_converted: int = 0
    converted: int = 0
    failed: int = 0
    delivered: int = 0
    unchanged: int = 0
    abandoned: int = 0


class RetriesExhaustedError(Exception):
    """Raised when the transport keeps rate limiting past the retry cap."""

    def __init__(self, attempts: int, retry_after: float) -> None:
        self.attempts = attempts
        self.retry_after = retry_after
        super().__init__(
            f"Still rate limited after {attempts} retries (last retry_after={retry_after}s)"
        )


def content_hash(data: bytes) -> str:
    """SHA-1 hex digest used as the blob name and archive hash."""
    return hashlib.sha1(data).hexdigest()


class DispatchBuffer:
    """FIFO of converted charts whose capacity is claimed before fetching.

    RULES:
    - reserve() blocks while `capacity` charts are waiting to be dispatched
    - put_chart() fills a reserved slot; get() frees it
    - release() returns a reserved slot that will not be filled
    - close() enqueues END_OF_STREAM without a reservation
    """

    def __init__(self, capacity: int = QUEUE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Buffer capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._items: asyncio.Queue = asyncio.Queue()
        self._slots = asyncio.Semaphore(capacity)

    async def reserve(self) -> None:
        await self._slots.acquire()

    def release(self) -> None:
        self._slots.release()

    def put_chart(self, chart: ConvertedChart) -> None:
        self._items.put_nowait(chart)

    def close(self) -> None:
        self._items.put_nowait(END_OF_STREAM)

    async def get(self) -> QueueItem:
        item = await self._items.get()
        if isinstance(item, ConvertedChart):
            self._slots.release()
        return item

    def qsize(self) -> int:
        return self._items.qsize()

    def empty(self) -> bool:
        return self._items.empty()


class ChartConverter:
    """Producer: converts every source chart without a converted record."""

    def __init__(
        self,
        store: ArchiveStore,
        fetcher: Fetcher,
        buffer: DispatchBuffer,
        report: PipelineReport,
        convert: Callable[[str, bytes], bytes] = convert_payload,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._buffer = buffer
        self._report = report
        self._convert = convert

    async def run(self) -> None:
        sources = self._store.source_charts()
        existing = self._store.converted_names()
        try:
            for position, record in enumerate(sources, start=1):
                if record.name in existing:
                    self._report.already_converted += 1
                    continue

                # blocks while the dispatcher is `capacity` charts behind
                await self._buffer.reserve()
                logger.info(
                    "Converter: started %s (%d/%d)", record.name, position, len(sources)
                )
                try:
                    payload = await self._fetcher.fetch(record.url)
                    data = await asyncio.to_thread(self._convert, record.name, payload)
                except Exception:
                    self._buffer.release()
                    logger.exception("Converter: failed to convert %s", record.name)
                    self._report.failed += 1
                    continue

                self._report.converted += 1
                logger.info("Converter: done %s (%d bytes)", record.name, len(data))
                self._buffer.put_chart(ConvertedChart(name=record.name, data=data))
        finally:
            self._buffer.close()


class Dispatcher:
    """Consumer: publishes converted charts and records them in the archive."""

    def __init__(
        self,
        store: ArchiveStore,
        uploader: BaseUploader,
        buffer: DispatchBuffer,
        report: PipelineReport,
        min_interval: float = UPLOAD_MIN_INTERVAL_S,
        max_retries: int = RATE_LIMIT_MAX_RETRIES,
        alerter: Optional[SlackAlerter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._uploader = uploader
        self._buffer = buffer
        self._report = report
        self._min_interval = min_interval
        self._max_retries = max_retries
        self._alerter = alerter
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: Optional[float] = None

    async def run(self) -> None:
        while True:
            item = await self._buffer.get()
            if isinstance(item, EndOfStream):
                logger.info("Sender: end of stream")
                return
            await self.dispatch(item)

    async def dispatch(self, chart: ConvertedChart) -> Optional[str]:
        """Publish one chart. Returns its URL, or None if skipped/abandoned."""
        file_hash = content_hash(chart.data)
        try:
            if self._store.has_file(chart.name, CONVERTED_CHART_TYPE, file_hash):
                logger.info("Sender: %s (%s) unchanged, skipping", chart.name, file_hash)
                self._report.unchanged += 1
                return None

            logger.info("Sender: sending %s", chart.name)
            url = await self._upload(file_hash, chart.data)
            self._store.replace_file(chart.name, CONVERTED_CHART_TYPE, file_hash, url)
        except Exception as exc:
            logger.exception("Sender: abandoning %s", chart.name)
            self._report.abandoned += 1
            await self._alert(f"Chart {chart.name} abandoned: {exc}")
            return None

        self._report.delivered += 1
        logger.info("Sender: %s (%s) -> %s", chart.name, file_hash, url)
        return url

    async def _upload(self, file_hash: str, data: bytes) -> str:
        retries = 0
        while True:
            await self._wait_for_slot()
            try:
                return await self._uploader.upload(file_hash, data)
            except RateLimitedError as exc:
                if retries >= self._max_retries:
                    raise RetriesExhaustedError(retries, exc.retry_after) from exc
                retries += 1
                logger.warning(
                    "Sender: rate limited, retrying in %ss (%d/%d)",
                    exc.retry_after, retries, self._max_retries,
                )
                await self._sleep(exc.retry_after)

    async def _wait_for_slot(self) -> None:
        """Sleep until min_interval has passed since the previous request."""
        if self._last_request_at is not None:
            elapsed = self._clock() - self._last_request_at
            if elapsed < self._min_interval:
                await self._sleep(self._min_interval - elapsed)
        self._last_request_at = self._clock()

    async def _alert(self, text: str) -> None:
        if self._alerter is not None:
            await self._alerter.send_async(text)


async def run_pipeline(
    store: ArchiveStore,
    fetcher: Fetcher,
    uploader: BaseUploader,
    queue_capacity: int = QUEUE_CAPACITY,
    alerter: Optional[SlackAlerter] = None,
    convert: Callable[[str, bytes], bytes] = convert_payload,
    **dispatcher_options,
) -> PipelineReport:
    """Run one batch: convert every pending chart and publish it.

    Args:
        store: Archive store (source list in, converted records out).
        fetcher: Downloads source payloads by URL.
        uploader: Publishes converted payloads.
        queue_capacity: Backpressure threshold between the two stages.
        alerter: Optional Slack alerter for abandoned charts.
        convert: The per-chart conversion function.
        **dispatcher_options: min_interval, max_retries, sleep, clock.

    Returns:
        Counters for this run.
    """
    buffer = DispatchBuffer(queue_capacity)
    report = PipelineReport()
    producer = ChartConverter(store, fetcher, buffer, report, convert=convert)
    consumer = Dispatcher(store, uploader, buffer, report, alerter=alerter, **dispatcher_options)
    await asyncio.gather(producer.run(), consumer.run())
    logger.info("Pipeline finished: %s", report)
    return report
