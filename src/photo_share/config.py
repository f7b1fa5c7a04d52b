"""Application configuration."""

import os
import re
from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict

from photo_share.errors import ConfigurationError

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

_CLOUDINARY_URL_PATTERN = re.compile(r"cloudinary://(\d+):([^@]+)@(.+)")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    shared_password: str
    cloudinary_url: str | None = None
    cloudinary_cloud_name: str | None = None
    cloudinary_api_key: str | None = None
    cloudinary_api_secret: str | None = None
    upload_folder: str = "bwca"
    server_base_url: str = "http://localhost:3000"
    upload_timeout_seconds: float = 120.0
    max_concurrent_uploads: int = 2
    reconcile_delays: str = "1,3,5,10"
    refresh_interval_seconds: float = 30.0
    gallery_timezone: str = "America/Chicago"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


@dataclass(frozen=True)
class StorageCredentials:
    """Credentials for the hosted media storage service."""

    cloud_name: str
    api_key: str
    api_secret: str


def parse_cloudinary_url(raw: str) -> StorageCredentials:
    """Parse a cloudinary://<key>:<secret>@<cloud> connection string."""
    match = _CLOUDINARY_URL_PATTERN.fullmatch(raw.strip())
    if match is None:
        raise ConfigurationError("Invalid CLOUDINARY_URL format")
    api_key, api_secret, cloud_name = match.groups()
    return StorageCredentials(
        cloud_name=cloud_name, api_key=api_key, api_secret=api_secret
    )


def resolve_storage_credentials(settings: Settings) -> StorageCredentials:
    """Return storage credentials, preferring CLOUDINARY_URL over split vars."""
    if settings.cloudinary_url:
        return parse_cloudinary_url(settings.cloudinary_url)
    cloud_name = settings.cloudinary_cloud_name or ""
    api_key = settings.cloudinary_api_key or ""
    api_secret = settings.cloudinary_api_secret or ""
    if not cloud_name or not api_key or not api_secret:
        raise ConfigurationError("Missing Cloudinary credentials")
    return StorageCredentials(
        cloud_name=cloud_name, api_key=api_key, api_secret=api_secret
    )


def parse_reconcile_delays(raw: str | None) -> tuple[float, ...]:
    """Parse comma-separated reconciliation delays in seconds."""
    if raw is None:
        return ()
    delays: list[float] = []
    for chunk in raw.split(","):
        value = chunk.strip()
        if not value:
            continue
        try:
            delay = float(value)
        except ValueError:
            continue
        if delay >= 0:
            delays.append(delay)
    return tuple(sorted(delays))
