"""Signed direct-to-storage uploads."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from photo_share.domain.uploads import UploadFile, UploadResult, UploadSignature
from photo_share.services.signing import build_context

_logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class SigningClient(Protocol):
    """Interface to the trusted origin that signs uploads."""

    async def request_signature(
        self, timestamp: int, folder: str, context: str
    ) -> UploadSignature:
        """Return a one-time signature for the given upload parameters."""


class StorageUploader(Protocol):
    """Interface for the storage service's direct upload endpoint."""

    async def upload(
        self,
        file: UploadFile,
        signature: UploadSignature,
        context: str,
        timeout_seconds: float,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload one file and return its location and id."""


class Uploader(Protocol):
    """Anything that can move one file into storage."""

    async def upload(
        self,
        file: UploadFile,
        photo_date: str,
        uploaded_by: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload a file tagged with its capture date and uploader."""


@dataclass
class SignedUploadClient(Uploader):
    """Uploads a file with a fresh signature from the trusted origin."""

    signing_client: SigningClient
    storage_uploader: StorageUploader
    folder: str = "bwca"
    timeout_seconds: float = 120.0
    clock: Callable[[], float] = field(default=time.time)

    async def upload(
        self,
        file: UploadFile,
        photo_date: str,
        uploaded_by: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Sign, then upload; the signed context is sent unchanged."""
        context = build_context(photo_date, uploaded_by)
        timestamp = int(self.clock())
        signature = await self.signing_client.request_signature(
            timestamp=timestamp, folder=self.folder, context=context
        )
        _logger.info(
            "Uploading %s (%s bytes) to folder %s",
            file.name,
            file.size,
            signature.folder,
        )
        result = await self.storage_uploader.upload(
            file,
            signature,
            context,
            self.timeout_seconds,
            on_progress,
        )
        _logger.info("Uploaded %s as %s", file.name, result.id)
        return result
