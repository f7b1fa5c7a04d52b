"""Client-side gallery session tying the upload pipeline to the photo store."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from typing import Protocol

from photo_share.domain.photos import Photo
from photo_share.domain.uploads import UploadFile, UploadResult, UploadStatus, UploadTask
from photo_share.domain.users import User
from photo_share.errors import NotAuthenticatedError, PermissionDeniedError
from photo_share.services import gallery
from photo_share.services.auth import UserSession
from photo_share.services.capture_time import CaptureTimeResolver
from photo_share.services.photo_store import PhotoStore
from photo_share.services.scheduler import UploadScheduler

_logger = logging.getLogger(__name__)


class PhotoEditor(Protocol):
    """Remote capture-date updates."""

    async def update_photo_date(
        self, photo_id: str, new_date_time: str, uploaded_by: str | None
    ) -> None:
        """Rewrite a photo's capture date metadata."""


@dataclass
class PhotoShareClient:
    """What one browsing session can do: upload, browse, delete and edit."""

    session: UserSession
    resolver: CaptureTimeResolver
    scheduler: UploadScheduler
    store: PhotoStore
    editor: PhotoEditor
    tz: tzinfo = UTC
    epoch: date | None = None
    lightbox: gallery.Lightbox = field(default_factory=gallery.Lightbox)

    def __post_init__(self) -> None:
        if self.scheduler.on_uploaded is None:
            self.scheduler.on_uploaded = self._handle_uploaded

    def submit(self, files: list[UploadFile]) -> list[UploadTask]:
        """Resolve capture times and queue files for upload."""
        user = self._require_user()
        tasks = []
        for file in files:
            photo_date = self.resolver.resolve(file)
            tasks.append(self.scheduler.enqueue(file, photo_date, user.display_name))
        _logger.info("Queued %s file(s) for %s", len(tasks), user.display_name)
        return tasks

    def retry(self, task_id: str) -> UploadTask:
        return self.scheduler.retry(task_id)

    def retry_failed(self) -> list[UploadTask]:
        return self.scheduler.retry_failed()

    async def remove_task(self, task_id: str) -> UploadTask:
        """Drop a finished task; a successful one is deleted from storage too."""
        task = self.scheduler.get(task_id)
        if task is None:
            raise KeyError(task_id)
        if task.status is UploadStatus.SUCCESS and task.photo_id:
            await self.store.delete_photo(task.photo_id)
        return self.scheduler.remove(task_id)

    async def delete_photo(self, photo_id: str) -> None:
        """Delete one of the current user's photos."""
        self._require_owner(photo_id)
        await self.store.delete_photo(photo_id)

    async def set_capture_time(self, photo_id: str, new_local: datetime) -> Photo:
        """Edit a photo's date and minute, keeping its seconds and milliseconds."""
        photo = self._require_owner(photo_id)
        new_value = gallery.edit_capture_time(photo.uploaded_at, new_local, self.tz)
        await self.editor.update_photo_date(photo_id, new_value, photo.uploaded_by)
        self.store.update_photo(photo_id, uploaded_at=new_value)
        return self.store.get(photo_id) or photo

    def day_filters(self) -> list[gallery.DayFilter]:
        epoch = self.epoch or gallery.default_epoch(datetime.now(tz=self.tz).date())
        return gallery.day_filters(self.store.photos, epoch, self.tz)

    def visible_photos(self, filter_key: str = gallery.ALL_PHOTOS) -> list[Photo]:
        return gallery.filter_photos(self.store.photos, filter_key, self.tz)

    def sections(self, filter_key: str = gallery.ALL_PHOTOS) -> list[gallery.DateSection]:
        return gallery.group_by_date(self.visible_photos(filter_key), self.tz)

    def open_lightbox(self, photo_id: str, filter_key: str = gallery.ALL_PHOTOS) -> Photo | None:
        self.lightbox.show(self.visible_photos(filter_key))
        return self.lightbox.open(photo_id)

    def _handle_uploaded(self, task: UploadTask, result: UploadResult) -> None:
        self.store.add_photo(
            Photo(
                id=result.id,
                url=result.url,
                title=task.file.name,
                uploaded_by=task.uploaded_by,
                uploaded_at=task.photo_date,
            )
        )

    def _require_user(self) -> User:
        if self.session.user is None:
            raise NotAuthenticatedError("Log in to upload photos")
        return self.session.user

    def _require_owner(self, photo_id: str) -> Photo:
        user = self.session.user
        if user is None:
            raise NotAuthenticatedError("Log in to change photos")
        photo = self.store.get(photo_id)
        if photo is None:
            raise KeyError(photo_id)
        if not gallery.can_modify(photo, user):
            raise PermissionDeniedError(
                f"{user.display_name} did not upload {photo.title}"
            )
        return photo
