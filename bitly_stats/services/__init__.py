"""Stats sync services and external collaborators."""

from bitly_stats.services.bitly_client import BitlyClient, encode_link_id
from bitly_stats.services.object_storage import S3ObjectStorage
from bitly_stats.services.record_store import (
    RecordSink,
    RecordStore,
    SqlStatementWriter,
)
from bitly_stats.services.secrets import SSMSecretStore
from bitly_stats.services.url_decomposer import UTM_PARAMS, decompose

__all__ = [
    # Bitly API
    "BitlyClient",
    "encode_link_id",
    # URL decomposition
    "UTM_PARAMS",
    "decompose",
    # Record store
    "RecordSink",
    "RecordStore",
    "SqlStatementWriter",
    # AWS
    "S3ObjectStorage",
    "SSMSecretStore",
]
