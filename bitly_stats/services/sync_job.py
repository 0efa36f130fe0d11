"""One full sync run: token, stats file round trip and reconciliation."""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from bitly_stats.core.config import Settings, get_settings
from bitly_stats.core.exceptions import StatsSyncError
from bitly_stats.core.observability import (
    get_tracer,
    record_sync_run,
    set_sync_running,
)
from bitly_stats.reconcilers import LinkStatsReconciler
from bitly_stats.schemas import SyncResult
from bitly_stats.services.bitly_client import BitlyClient
from bitly_stats.services.object_storage import S3ObjectStorage
from bitly_stats.services.record_store import RecordSink, RecordStore
from bitly_stats.services.secrets import SSMSecretStore

logger = structlog.get_logger()


@asynccontextmanager
async def stage(name: str) -> AsyncIterator[None]:
    """Tag errors raised inside a step of the run with the step's name."""
    logger.debug("Sync stage started", stage=name)
    try:
        yield
    except StatsSyncError as e:
        if e.stage is None:
            e.stage = name
        logger.error("Sync stage failed", stage=e.stage, error=str(e))
        raise


class SyncJob:
    """The stats sync job and its collaborators.

    Run order: read the API token, back up and download the stats file,
    reconcile every bitlink into it, then upload it again. A failed backup or
    download stops the run before the Bitly API is called. A failed upload is
    reported as an error, but the records written to the local file stay.

    Usage:
        job = SyncJob()
        result = await job.run(request_id="...")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        secrets: SSMSecretStore | None = None,
        storage: S3ObjectStorage | None = None,
        bitly_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the job.

        Args:
            settings: Job settings. Defaults to the environment settings.
            secrets: Secrets store for the API token.
            storage: Object storage holding the stats file.
            bitly_transport: Optional httpx transport for the Bitly client
                (used by tests).
        """
        self.settings = settings or get_settings()
        self._secrets = secrets or SSMSecretStore(self.settings)
        self._storage = storage or S3ObjectStorage(self.settings)
        self._bitly_transport = bitly_transport

    async def run(
        self,
        request_id: str | None = None,
        yesterday: str | None = None,
    ) -> SyncResult:
        """Run the job once.

        Raises:
            StatsSyncError: With ``stage`` set to the step that failed.
        """
        start_time = time.perf_counter()
        database_name = self.settings.database_name
        set_sync_running(True)
        logger.info("Processing sync request", request_id=request_id)

        with get_tracer().start_as_current_span("bitly_stats.sync") as span:
            span.set_attribute("sync.request_id", request_id or "")
            try:
                async with stage("secret"):
                    token = await self._secrets.get_parameter(self.settings.token_name, decrypt=True)

                async with stage("backup"):
                    await self._storage.backup(database_name)

                async with stage("download"):
                    path = await self._storage.download(database_name)

                async with stage("open_store"):
                    store = RecordStore.open(path, echo=self.settings.debug)

                try:
                    async with stage("reconcile"):
                        result = await self._reconcile(token, store, yesterday)
                finally:
                    await store.close()

                async with stage("upload"):
                    await self._storage.upload(path, database_name)
            except Exception:
                record_sync_run("failed", time.perf_counter() - start_time)
                raise
            finally:
                set_sync_running(False)

            span.set_attribute("sync.persisted", result.persisted)

        result.request_id = request_id
        record_sync_run("success", time.perf_counter() - start_time)
        logger.info(
            "Sync request complete",
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            **result.model_dump(),
        )
        return result

    async def dry_run(
        self,
        sink: RecordSink,
        request_id: str | None = None,
        yesterday: str | None = None,
    ) -> SyncResult:
        """Reconcile into ``sink`` without touching the stats file."""
        logger.info("Processing dry run", request_id=request_id)

        async with stage("secret"):
            token = await self._secrets.get_parameter(self.settings.token_name, decrypt=True)

        async with stage("reconcile"):
            result = await self._reconcile(token, sink, yesterday)

        result.request_id = request_id
        return result

    async def _reconcile(
        self,
        token: str,
        sink: RecordSink,
        yesterday: str | None,
    ) -> SyncResult:
        async with BitlyClient(token, self.settings, transport=self._bitly_transport) as client:
            reconciler = LinkStatsReconciler(client, sink, self.settings)
            return await reconciler.run(yesterday=yesterday)
