"""Reconciliation of Bitly click counts into the link stats table."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from bitly_stats.core.config import Settings, get_settings
from bitly_stats.core.exceptions import StatsSyncError
from bitly_stats.core.observability import get_request_id, record_link_outcome
from bitly_stats.schemas import Bitlink, StatsRecord, SyncResult
from bitly_stats.services.bitly_client import BitlyClient
from bitly_stats.services.record_store import RecordSink
from bitly_stats.services.url_decomposer import decompose

logger = structlog.get_logger()

# Position of the previous day's bucket in a link's daily click samples
YESTERDAY_INDEX = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def yesterday_cutoff(now: datetime) -> str:
    """Format the UTC day before ``now`` as YYYY-MM-DD."""
    return (now.astimezone(timezone.utc) - timedelta(days=1)).strftime("%Y-%m-%d")


class LinkStatsReconciler:
    """Collects yesterday's click count of every bitlink into a record sink.

    A run discovers the account's group, lists its bitlinks (first page only)
    and hands each link to a pool of workers draining a queue. A worker
    fetches the link's daily click samples and, if the previous-day bucket is
    dated yesterday (UTC), decomposes the long URL and inserts a StatsRecord.

    Per-link errors either abort the run (``link_error_policy="abort"``, the
    default) or are logged and counted (``"continue"``). Records inserted
    before an abort stay in place.

    Usage:
        reconciler = LinkStatsReconciler(client, store)
        result = await reconciler.run()
    """

    def __init__(
        self,
        client: BitlyClient,
        sink: RecordSink,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the reconciler.

        Args:
            client: Bitly API client.
            sink: Where qualifying records go (a RecordStore, or a
                SqlStatementWriter for dry runs).
            settings: Settings for the worker count and error policy.
            clock: Returns the current time; yesterday is derived from it.
        """
        settings = settings or get_settings()
        self._client = client
        self._sink = sink
        self._workers = settings.link_workers
        self._continue_on_error = settings.link_error_policy == "continue"
        self._clock = clock
        self._persisted = 0
        self._skipped = 0
        self._failed = 0

    async def run(self, yesterday: str | None = None) -> SyncResult:
        """Reconcile every link of the account once.

        Args:
            yesterday: Day to collect (YYYY-MM-DD). Defaults to the UTC day
                before the run started.

        Returns:
            SyncResult with the per-outcome link counts.

        Raises:
            RemoteError: If group or link discovery fails, or (abort policy)
                if fetching a link's clicks fails.
            MalformedURLError, StorageError: Abort policy only.
        """
        self._persisted = self._skipped = self._failed = 0
        # Fixed for the whole run
        yesterday = yesterday or yesterday_cutoff(self._clock())

        group_id = await self._client.list_group_id()
        links = await self._client.list_links(group_id)

        logger.info(
            "Reconciling bitlinks",
            group_id=group_id,
            links=len(links),
            yesterday=yesterday,
            workers=self._workers,
        )

        queue: asyncio.Queue[Bitlink] = asyncio.Queue()
        for link in links:
            queue.put_nowait(link)

        workers = [
            asyncio.create_task(self._worker(queue, yesterday))
            for _ in range(min(self._workers, len(links)))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        result = SyncResult(
            request_id=get_request_id(),
            yesterday=yesterday,
            links_total=len(links),
            persisted=self._persisted,
            skipped=self._skipped,
            failed=self._failed,
        )
        logger.info("Reconciliation complete", **result.model_dump(exclude={"request_id"}))
        return result

    async def _worker(self, queue: asyncio.Queue[Bitlink], yesterday: str) -> None:
        """Drain the queue until it is empty."""
        while True:
            try:
                link = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                await self.process_link(link, yesterday)
            except StatsSyncError as e:
                self._failed += 1
                record_link_outcome("failed")
                logger.error(
                    "Failed to reconcile bitlink",
                    link_id=link.id,
                    error=str(e),
                )
                if not self._continue_on_error:
                    raise
            finally:
                queue.task_done()

    async def process_link(self, link: Bitlink, yesterday: str) -> StatsRecord | None:
        """Fetch a link's clicks and persist yesterday's count if present.

        Returns:
            The persisted record, or None if the link was skipped.
        """
        samples = await self._client.get_click_samples(link.id)

        if len(samples) <= YESTERDAY_INDEX:
            self._skip(link, "not enough click samples", samples=len(samples))
            return None

        sample = samples[YESTERDAY_INDEX]
        if not sample.date.startswith(yesterday):
            self._skip(link, "no click data for yesterday", date=sample.date)
            return None

        parts = decompose(link.long_url)
        record = StatsRecord(
            **parts.model_dump(),
            date=sample.date,
            link=link.link,
            url=link.long_url,
            clicks=sample.clicks,
        )
        await self._sink.insert(record)

        self._persisted += 1
        record_link_outcome("persisted")
        logger.debug("Bitlink reconciled", link_id=link.id, date=record.date, clicks=record.clicks)
        return record

    def _skip(self, link: Bitlink, reason: str, **details) -> None:
        self._skipped += 1
        record_link_outcome("skipped")
        logger.debug("Bitlink skipped", link_id=link.id, reason=reason, **details)
