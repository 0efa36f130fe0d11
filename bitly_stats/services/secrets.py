"""Secrets lookup in AWS Systems Manager Parameter Store."""

import asyncio

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from bitly_stats.core.config import Settings, get_settings
from bitly_stats.core.exceptions import SecretNotFoundError

logger = structlog.get_logger()


class SSMSecretStore:
    """Read named parameters from SSM Parameter Store."""

    def __init__(self, settings: Settings | None = None, client=None):
        settings = settings or get_settings()
        self._client = client or boto3.client("ssm", region_name=settings.aws_region)

    async def get_parameter(self, name: str, decrypt: bool = True) -> str:
        """Get a parameter's value.

        Args:
            name: Parameter name, e.g. ``/bitly/apptoken``.
            decrypt: Decrypt SecureString parameters.

        Raises:
            SecretNotFoundError: If the parameter cannot be read.
        """
        try:
            response = await asyncio.to_thread(
                self._client.get_parameter,
                Name=name,
                WithDecryption=decrypt,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to read parameter", name=name, error=str(e))
            raise SecretNotFoundError(f"cannot read parameter {name}: {e}") from e

        logger.debug("Parameter read", name=name)
        return response["Parameter"]["Value"]
