"""Error types raised by the stats sync job."""


class StatsSyncError(Exception):
    """Base class for every failure the sync job reports.

    ``stage`` names the step of the run that failed (``secret``, ``backup``,
    ``download``, ``open_store``, ``reconcile``, ``upload``). It is set by the
    job runner when the error crosses a stage boundary.
    """

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage


class SecretNotFoundError(StatsSyncError):
    """The API token could not be read from the secrets store."""


class RemoteError(StatsSyncError):
    """A stats API call failed: transport error, non-200 status or bad body."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        stage: str | None = None,
    ):
        super().__init__(message, stage=stage)
        self.status_code = status_code


class NoDataError(RemoteError):
    """A response was well formed but held no entry where one was required."""


class MalformedURLError(StatsSyncError):
    """A link's long URL could not be parsed as an absolute URL."""


class StorageError(StatsSyncError):
    """Object storage or record store failure."""
