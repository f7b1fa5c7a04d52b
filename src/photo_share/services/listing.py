"""Server-side photo listing backed by the storage service."""

import logging
from dataclasses import dataclass
from typing import Protocol

from photo_share.domain.photos import Photo
from photo_share.domain.uploads import UploadFile, UploadResult

_logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Interface for the storage service's admin API."""

    async def list_resources(self, next_cursor: str | None = None) -> dict[str, object]:
        """Return one page of stored resources."""

    async def destroy(self, public_id: str) -> dict[str, object]:
        """Delete a stored resource."""

    async def explicit(self, public_id: str, context: str) -> dict[str, object]:
        """Replace a stored resource's context metadata."""

    async def upload(
        self,
        file: UploadFile,
        folder: str,
        context: str | None,
        timeout_seconds: float,
    ) -> UploadResult:
        """Upload a file with a server-side signature."""


def is_valid_resource(resource: object) -> bool:
    """Return true for complete, live image records."""
    if not isinstance(resource, dict):
        return False
    if not resource.get("public_id") or not resource.get("secure_url"):
        return False
    if resource.get("resource_type", "image") != "image":
        return False
    if "bytes" in resource and not resource.get("bytes"):
        return False
    if resource.get("placeholder") or resource.get("error"):
        return False
    status = resource.get("status")
    return status is None or status == "active"


def resource_context(resource: dict[str, object]) -> dict[str, object]:
    """Return the custom context map, whichever shape the API used."""
    context = resource.get("context")
    if not isinstance(context, dict):
        return {}
    custom = context.get("custom")
    if isinstance(custom, dict):
        return custom
    return context


def resource_to_photo(resource: dict[str, object]) -> Photo:
    """Map a storage record to a photo, preferring context metadata."""
    context = resource_context(resource)
    public_id = str(resource["public_id"])
    photo_date = context.get("photo_date") or resource.get("created_at") or ""
    return Photo(
        id=public_id,
        url=str(resource["secure_url"]),
        title=str(resource.get("original_filename") or public_id),
        uploaded_by=str(context.get("uploaded_by") or "Unknown"),
        uploaded_at=str(photo_date),
    )


@dataclass
class PhotoListingService:
    """Builds the photo list from the storage service's resource listing."""

    client: StorageClient

    async def list_photos(self) -> list[Photo]:
        """Page through every stored resource and keep the valid images."""
        photos: list[Photo] = []
        seen: set[str] = set()
        cursor: str | None = None
        skipped = 0
        while True:
            page = await self.client.list_resources(next_cursor=cursor)
            resources = page.get("resources") or []
            for resource in resources:
                if not is_valid_resource(resource):
                    skipped += 1
                    continue
                photo = resource_to_photo(resource)
                if photo.id in seen:
                    continue
                seen.add(photo.id)
                photos.append(photo)
            cursor = page.get("next_cursor") or None
            if cursor is None:
                break
        if skipped:
            _logger.info("Skipped %s invalid storage records", skipped)
        return photos
