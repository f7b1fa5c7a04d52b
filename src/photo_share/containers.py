"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

from photo_share.adapters.cloudinary_client import (
    HttpxCloudinaryClient,
    HttpxCloudinaryUploader,
)
from photo_share.adapters.file_session_store import (
    JsonFileSessionStore,
    default_session_path,
)
from photo_share.adapters.gallery_api_client import HttpxGalleryApiClient
from photo_share.config import (
    Settings,
    StorageCredentials,
    parse_reconcile_delays,
    resolve_storage_credentials,
)
from photo_share.errors import ConfigurationError
from photo_share.services.auth import AuthService, SessionStore, UserSession
from photo_share.services.capture_time import CaptureTimeResolver
from photo_share.services.client import PhotoShareClient
from photo_share.services.listing import PhotoListingService, StorageClient
from photo_share.services.photo_store import PhotoStore
from photo_share.services.scheduler import UploadScheduler
from photo_share.services.signing import SigningService
from photo_share.services.uploads import SignedUploadClient

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds server-side dependencies.

    Storage-backed services are None when credentials are missing or invalid;
    ``configuration_error`` then says why, and routes needing them fail.
    """

    settings: Settings
    auth_service: AuthService
    storage_credentials: StorageCredentials | None
    storage_client: StorageClient | None
    signing_service: SigningService | None
    listing_service: PhotoListingService | None
    configuration_error: str | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server container."""
    resolved_settings = settings or Settings()
    auth_service = AuthService(password=resolved_settings.shared_password)
    try:
        credentials = resolve_storage_credentials(resolved_settings)
    except ConfigurationError as exc:
        _logger.warning("Storage is not configured: %s", exc)
        credentials = None
        configuration_error = str(exc)
    else:
        configuration_error = None

    storage_client = None
    signing_service = None
    listing_service = None
    if credentials is not None:
        storage_client = HttpxCloudinaryClient.create(credentials)
        signing_service = SigningService(
            credentials, default_folder=resolved_settings.upload_folder
        )
        listing_service = PhotoListingService(storage_client)

    async def close_resources() -> None:
        if storage_client is not None:
            await storage_client.close()

    return AppContainer(
        settings=resolved_settings,
        auth_service=auth_service,
        storage_credentials=credentials,
        storage_client=storage_client,
        signing_service=signing_service,
        listing_service=listing_service,
        configuration_error=configuration_error,
        close_resources=close_resources,
    )


@dataclass
class ClientContainer:
    """Holds a gallery client and the resources to release with it."""

    settings: Settings
    auth_service: AuthService
    client: PhotoShareClient
    close_resources: Callable[[], Awaitable[None]]


def build_client(
    settings: Settings | None = None,
    session_store: SessionStore | None = None,
    session_path: Path | None = None,
) -> ClientContainer:
    """Create the upload pipeline and photo store for one session."""
    resolved_settings = settings or Settings()
    tz = ZoneInfo(resolved_settings.gallery_timezone)
    store_backend = session_store or JsonFileSessionStore(
        session_path or default_session_path()
    )
    session = UserSession(store_backend)
    session.load()

    api_client = HttpxGalleryApiClient.create(resolved_settings.server_base_url)
    storage_uploader = HttpxCloudinaryUploader.create()
    uploader = SignedUploadClient(
        signing_client=api_client,
        storage_uploader=storage_uploader,
        folder=resolved_settings.upload_folder,
        timeout_seconds=resolved_settings.upload_timeout_seconds,
    )
    scheduler = UploadScheduler(
        uploader=uploader,
        max_concurrent=resolved_settings.max_concurrent_uploads,
    )
    store = PhotoStore(
        source=api_client,
        reconcile_delays=parse_reconcile_delays(resolved_settings.reconcile_delays),
        refresh_interval_seconds=resolved_settings.refresh_interval_seconds,
    )
    client = PhotoShareClient(
        session=session,
        resolver=CaptureTimeResolver(tz=tz),
        scheduler=scheduler,
        store=store,
        editor=api_client,
        tz=tz,
    )

    async def close_resources() -> None:
        await store.aclose()
        await api_client.close()
        await storage_uploader.close()

    return ClientContainer(
        settings=resolved_settings,
        auth_service=AuthService(password=resolved_settings.shared_password),
        client=client,
        close_resources=close_resources,
    )
