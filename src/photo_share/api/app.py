"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from photo_share.api.models import (
    DeleteRequest,
    LoginRequest,
    SignatureRequest,
    UpdatePhotoRequest,
)
from photo_share.app_logging import configure_logging
from photo_share.config import parse_cloudinary_url
from photo_share.containers import AppContainer
from photo_share.domain import uploads
from photo_share.errors import ConfigurationError
from photo_share.services.listing import PhotoListingService, StorageClient
from photo_share.services.signing import SigningService, build_context

_NO_STORE_HEADERS = {"Cache-Control": "no-store, max-age=0"}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if container.configuration_error:
            logger.warning(
                "Starting without storage access: %s", container.configuration_error
            )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/upload-signature")
    async def upload_signature(
        body: SignatureRequest, request: Request
    ) -> dict[str, object]:
        """Sign upload parameters for a direct client upload."""
        state_container: AppContainer = request.app.state.container
        signing_service = _require_signing(state_container)
        signed = signing_service.sign_upload(
            timestamp=body.timestamp, folder=body.folder, context=body.context
        )
        return {
            "success": True,
            "signature": signed.signature,
            "timestamp": signed.timestamp,
            "folder": signed.folder,
            "api_key": signed.api_key,
            "cloud_name": signed.cloud_name,
        }

    @app.get("/api/photos")
    async def list_photos(request: Request) -> JSONResponse:
        """Return every stored photo, never from cache."""
        state_container: AppContainer = request.app.state.container
        try:
            listing_service = _require_listing(state_container)
            photos = await listing_service.list_photos()
        except Exception as exc:
            logger.exception("Photo listing failed")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": str(exc), "photos": []},
                headers=_NO_STORE_HEADERS,
            )
        return JSONResponse(
            content={
                "success": True,
                "photos": [photo.to_dict() for photo in photos],
                "count": len(photos),
            },
            headers=_NO_STORE_HEADERS,
        )

    @app.delete("/api/delete")
    async def delete_photo(body: DeleteRequest, request: Request) -> JSONResponse:
        """Delete a photo from storage."""
        if not body.photo_id:
            return JSONResponse(
                status_code=400, content={"error": "No photo ID provided"}
            )
        state_container: AppContainer = request.app.state.container
        try:
            storage_client = _require_storage(state_container)
            result = await storage_client.destroy(body.photo_id)
        except Exception as exc:
            logger.exception("Delete failed", extra={"photo_id": body.photo_id})
            return JSONResponse(
                status_code=500, content={"error": f"Delete failed: {exc}"}
            )
        logger.info("Deleted photo %s", body.photo_id)
        return JSONResponse(
            content={"success": True, "photoId": body.photo_id, "result": result}
        )

    @app.put("/api/update-photo")
    async def update_photo(body: UpdatePhotoRequest, request: Request) -> JSONResponse:
        """Rewrite a photo's capture date, keeping its uploader."""
        if not body.photo_id or not body.new_date_time:
            return JSONResponse(
                status_code=400, content={"error": "Missing photoId or newDateTime"}
            )
        state_container: AppContainer = request.app.state.container
        context = build_context(body.new_date_time, body.uploaded_by)
        try:
            storage_client = _require_storage(state_container)
            await storage_client.explicit(body.photo_id, context)
        except Exception as exc:
            logger.exception("Update failed", extra={"photo_id": body.photo_id})
            return JSONResponse(
                status_code=500, content={"error": f"Update failed: {exc}"}
            )
        return JSONResponse(
            content={
                "success": True,
                "photoId": body.photo_id,
                "uploadedAt": body.new_date_time,
            }
        )

    @app.post("/api/upload")
    async def upload_photo(
        request: Request,
        file: UploadFile | None = File(default=None),  # noqa: B008
        photo_date: str | None = Form(default=None, alias="photoDate"),  # noqa: B008
        uploaded_by: str | None = Form(default=None, alias="uploadedBy"),  # noqa: B008
    ) -> JSONResponse:
        """Upload a file through the server instead of directly."""
        if file is None:
            return JSONResponse(status_code=400, content={"error": "No file provided"})
        state_container: AppContainer = request.app.state.container
        content = await file.read()
        upload_file = uploads.UploadFile(
            name=file.filename or "upload",
            content=content,
            last_modified=datetime.now(tz=UTC),
            content_type=file.content_type or "application/octet-stream",
        )
        context = build_context(photo_date, uploaded_by) if photo_date else None
        try:
            storage_client = _require_storage(state_container)
            result = await storage_client.upload(
                upload_file,
                folder=state_container.settings.upload_folder,
                context=context,
                timeout_seconds=state_container.settings.upload_timeout_seconds,
            )
        except Exception as exc:
            logger.exception("Server upload failed", extra={"upload_name": upload_file.name})
            return JSONResponse(
                status_code=500, content={"error": f"Upload failed: {exc}"}
            )
        return JSONResponse(
            content={
                "success": True,
                "imageUrl": result.url,
                "publicId": result.id,
                "filename": upload_file.name,
                "size": upload_file.size,
            }
        )

    @app.get("/api/storage-status")
    async def storage_status(request: Request) -> dict[str, object]:
        """Report which storage credentials are configured, without values."""
        state_container: AppContainer = request.app.state.container
        return _storage_status(state_container)

    @app.post("/api/login")
    async def login(body: LoginRequest, request: Request) -> JSONResponse:
        """Check a username and the shared password."""
        state_container: AppContainer = request.app.state.container
        user = state_container.auth_service.authenticate(body.username, body.password)
        if user is None:
            return JSONResponse(
                status_code=401,
                content={"success": False, "error": "Invalid username or password"},
            )
        return JSONResponse(content={"success": True, "user": user.to_dict()})

    return app


def _require_storage(container: AppContainer) -> StorageClient:
    if container.storage_client is None:
        raise ConfigurationError(container.configuration_error or "Storage not configured")
    return container.storage_client


def _require_signing(container: AppContainer) -> SigningService:
    if container.signing_service is None:
        raise ConfigurationError(
            container.configuration_error or "Missing Cloudinary API secret"
        )
    return container.signing_service


def _require_listing(container: AppContainer) -> PhotoListingService:
    if container.listing_service is None:
        raise ConfigurationError(container.configuration_error or "Storage not configured")
    return container.listing_service


def _storage_status(container: AppContainer) -> dict[str, object]:
    settings = container.settings
    has_credentials = bool(
        settings.cloudinary_cloud_name
        and settings.cloudinary_api_key
        and settings.cloudinary_api_secret
    )
    url_format: dict[str, object] | None = None
    if settings.cloudinary_url:
        raw = settings.cloudinary_url
        try:
            parse_cloudinary_url(raw)
            parses = True
        except ConfigurationError:
            parses = False
        url_format = {
            "startsWithCloudinary": raw.startswith("cloudinary://"),
            "containsAt": "@" in raw,
            "length": len(raw),
            "valid": parses,
        }
    return {
        "configured": container.storage_credentials is not None,
        "hasUrl": bool(settings.cloudinary_url),
        "hasCredentials": has_credentials,
        "urlFormat": url_format,
        "error": container.configuration_error,
    }
