"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    app_name: str = "Bitly Stats Sync"
    app_version: str = "0.1.0"
    debug: bool = False

    # AWS (region, bucket and temp folder also accept the legacy env names)
    aws_region: str = Field(
        default="us-west-2",
        validation_alias=AliasChoices("aws_region", "region"),
    )
    s3_bucket: str = Field(
        default="bitly-stats",
        validation_alias=AliasChoices("s3_bucket", "s3bucket"),
    )
    temp_folder: str = Field(
        default=".",
        validation_alias=AliasChoices("temp_folder", "tempfolder"),
    )
    database_name: str = "bitly-stats.db"
    token_name: str = "/bitly/apptoken"

    # Bitly API
    bitly_api_url: str = "https://api-ssl.bitly.com/v4"
    http_timeout: float = 10.0

    # Reconciliation
    link_workers: int = Field(default=1, ge=1)
    link_error_policy: Literal["abort", "continue"] = "abort"

    # Observability
    sentry_dsn: str = ""
    otlp_endpoint: str = ""
    pushgateway_url: str = ""


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
