"""Domain models for the upload pipeline."""

import mimetypes
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path


class UploadStatus(Enum):
    """Lifecycle states of an upload task."""

    QUEUED = "queued"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        """Return true for states that no longer hold an upload slot."""
        return self in {UploadStatus.SUCCESS, UploadStatus.ERROR}


@dataclass(frozen=True)
class UploadFile:
    """Raw image payload selected for upload."""

    name: str
    content: bytes
    last_modified: datetime
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_heic(self) -> bool:
        lowered = self.name.lower()
        return self.content_type in {"image/heic", "image/heif"} or lowered.endswith(
            (".heic", ".heif")
        )

    @classmethod
    def from_path(cls, path: Path) -> "UploadFile":
        """Read a file from disk, using its mtime as last-modified time."""
        stat = path.stat()
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
            content_type=content_type or "application/octet-stream",
        )


@dataclass(frozen=True)
class UploadResult:
    """Location and identifier assigned by the storage service."""

    url: str
    id: str


@dataclass(frozen=True)
class UploadSignature:
    """One-time upload authorization issued by the trusted origin."""

    signature: str
    timestamp: int
    api_key: str
    cloud_name: str
    folder: str


@dataclass(frozen=True)
class UploadTask:
    """One file moving through the upload pipeline."""

    id: str
    file: UploadFile
    photo_date: str
    uploaded_by: str
    status: UploadStatus = UploadStatus.QUEUED
    progress: int = 0
    error: str | None = None
    # Storage id once the upload succeeds; ``id`` stays the client-side task id.
    photo_id: str | None = None
    attempts: int = 0
