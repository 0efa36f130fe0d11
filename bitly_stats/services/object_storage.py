"""S3 backup, download and upload of the stats file."""

import asyncio
from pathlib import Path

import boto3
import structlog
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from bitly_stats.core.config import Settings, get_settings
from bitly_stats.core.exceptions import StorageError

logger = structlog.get_logger()


def backup_key(name: str) -> str:
    """Key of the backup copy of an object."""
    return f"{name}_bak"


class S3ObjectStorage:
    """Keeps the stats file in an S3 bucket between runs.

    The boto3 calls block, so they run in a worker thread.

    Usage:
        storage = S3ObjectStorage()
        await storage.backup("bitly-stats.db")
        path = await storage.download("bitly-stats.db")
        # ... append to the file ...
        await storage.upload(path, "bitly-stats.db")
    """

    def __init__(self, settings: Settings | None = None, client=None):
        """Initialize the storage.

        Args:
            settings: Settings for the region, bucket and temp folder.
            client: Optional boto3 S3 client (used by tests).
        """
        settings = settings or get_settings()
        self.bucket = settings.s3_bucket
        self.temp_folder = Path(settings.temp_folder)
        self._client = client or boto3.client("s3", region_name=settings.aws_region)

    async def backup(self, name: str) -> None:
        """Server-side copy of ``name`` to ``name_bak`` in the same bucket."""
        try:
            await asyncio.to_thread(
                self._client.copy_object,
                Bucket=self.bucket,
                CopySource={"Bucket": self.bucket, "Key": name},
                Key=backup_key(name),
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"cannot back up s3://{self.bucket}/{name}: {e}") from e

        logger.info("Stats file backed up", bucket=self.bucket, key=backup_key(name))

    async def download(self, name: str) -> Path:
        """Download ``name`` into the temp folder and return the local path."""
        path = self.temp_folder / name
        try:
            await asyncio.to_thread(
                self._client.download_file,
                self.bucket,
                name,
                str(path),
            )
        except (ClientError, BotoCoreError, Boto3Error, OSError) as e:
            raise StorageError(f"cannot download s3://{self.bucket}/{name}: {e}") from e

        logger.info("Stats file downloaded", bucket=self.bucket, key=name, path=str(path))
        return path

    async def upload(self, path: str | Path, name: str) -> None:
        """Upload a local file to ``name``, replacing the current object."""
        try:
            await asyncio.to_thread(
                self._client.upload_file,
                str(path),
                self.bucket,
                name,
            )
        except (ClientError, BotoCoreError, Boto3Error, OSError) as e:
            raise StorageError(f"cannot upload {path} to s3://{self.bucket}/{name}: {e}") from e

        logger.info("Stats file uploaded", bucket=self.bucket, key=name)
