"""Tests for the SSM secrets store and the S3 stats file storage."""

from pathlib import Path

import boto3
import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError
from botocore.stub import ANY, Stubber

from bitly_stats.core.exceptions import SecretNotFoundError, StorageError
from bitly_stats.services.object_storage import S3ObjectStorage, backup_key
from bitly_stats.services.secrets import SSMSecretStore


def aws_client(service: str):
    return boto3.client(
        service,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


class TestSSMSecretStore:
    @pytest.mark.asyncio
    async def test_get_parameter(self, settings):
        client = aws_client("ssm")
        with Stubber(client) as stubber:
            stubber.add_response(
                "get_parameter",
                {"Parameter": {"Name": "/bitly/apptoken", "Type": "SecureString", "Value": "tok"}},
                {"Name": "/bitly/apptoken", "WithDecryption": True},
            )
            store = SSMSecretStore(settings, client=client)
            assert await store.get_parameter("/bitly/apptoken", decrypt=True) == "tok"
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_missing_parameter(self, settings):
        client = aws_client("ssm")
        with Stubber(client) as stubber:
            stubber.add_client_error(
                "get_parameter",
                service_error_code="ParameterNotFound",
                http_status_code=400,
            )
            store = SSMSecretStore(settings, client=client)
            with pytest.raises(SecretNotFoundError, match="/bitly/apptoken"):
                await store.get_parameter("/bitly/apptoken")


class FakeTransferClient:
    """Stands in for the S3 client's managed transfer methods."""

    def __init__(self, content: bytes = b"", fail: Exception | None = None):
        self.content = content
        self.fail = fail
        self.downloads: list[tuple] = []
        self.uploads: list[tuple] = []

    def download_file(self, bucket, key, filename):
        if self.fail:
            raise self.fail
        self.downloads.append((bucket, key, filename))
        Path(filename).write_bytes(self.content)

    def upload_file(self, filename, bucket, key):
        if self.fail:
            raise self.fail
        self.uploads.append((filename, bucket, key, Path(filename).read_bytes()))


class TestS3ObjectStorage:
    def test_backup_key(self):
        assert backup_key("bitly-stats.db") == "bitly-stats.db_bak"

    @pytest.mark.asyncio
    async def test_backup_copies_in_place(self, settings):
        client = aws_client("s3")
        with Stubber(client) as stubber:
            stubber.add_response(
                "copy_object",
                {},
                {
                    "Bucket": "test-bucket",
                    "CopySource": ANY,
                    "Key": "bitly-stats.db_bak",
                },
            )
            storage = S3ObjectStorage(settings, client=client)
            await storage.backup("bitly-stats.db")
            stubber.assert_no_pending_responses()

    @pytest.mark.asyncio
    async def test_backup_failure(self, settings):
        client = aws_client("s3")
        with Stubber(client) as stubber:
            stubber.add_client_error("copy_object", service_error_code="NoSuchKey", http_status_code=404)
            storage = S3ObjectStorage(settings, client=client)
            with pytest.raises(StorageError, match="back up"):
                await storage.backup("bitly-stats.db")

    @pytest.mark.asyncio
    async def test_download_to_temp_folder(self, settings, tmp_path):
        settings = settings.model_copy(update={"temp_folder": str(tmp_path)})
        client = FakeTransferClient(content=b"SQLite format 3\x00")
        storage = S3ObjectStorage(settings, client=client)

        path = await storage.download("bitly-stats.db")

        assert path == tmp_path / "bitly-stats.db"
        assert path.read_bytes() == b"SQLite format 3\x00"
        assert client.downloads == [("test-bucket", "bitly-stats.db", str(path))]

    @pytest.mark.asyncio
    async def test_download_failure(self, settings, tmp_path):
        settings = settings.model_copy(update={"temp_folder": str(tmp_path)})
        error = ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        storage = S3ObjectStorage(settings, client=FakeTransferClient(fail=error))

        with pytest.raises(StorageError, match="download"):
            await storage.download("bitly-stats.db")

    @pytest.mark.asyncio
    async def test_upload(self, settings, tmp_path):
        path = tmp_path / "bitly-stats.db"
        path.write_bytes(b"data")
        client = FakeTransferClient()
        storage = S3ObjectStorage(settings, client=client)

        await storage.upload(path, "bitly-stats.db")

        assert client.uploads == [(str(path), "test-bucket", "bitly-stats.db", b"data")]

    @pytest.mark.asyncio
    async def test_upload_failure(self, settings, tmp_path):
        path = tmp_path / "bitly-stats.db"
        path.write_bytes(b"data")
        storage = S3ObjectStorage(
            settings,
            client=FakeTransferClient(fail=S3UploadFailedError("Access Denied")),
        )

        with pytest.raises(StorageError, match="upload"):
            await storage.upload(path, "bitly-stats.db")
