"""Cloudinary REST API clients."""

import asyncio
import io
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from photo_share.config import StorageCredentials
from photo_share.domain.uploads import UploadFile, UploadResult, UploadSignature
from photo_share.errors import (
    StorageRejectedError,
    StorageServiceError,
    UploadNetworkError,
    UploadTimeoutError,
)
from photo_share.services.listing import StorageClient
from photo_share.services.signing import SigningService
from photo_share.services.uploads import ProgressCallback, StorageUploader

DEFAULT_API_BASE = "https://api.cloudinary.com/v1_1"
LISTING_PAGE_SIZE = 500


class _ProgressReader(io.BytesIO):
    """Byte stream that reports how much of the payload has been read."""

    def __init__(self, content: bytes, on_read: Callable[[int, int], None]) -> None:
        super().__init__(content)
        self._total = len(content)
        self._on_read = on_read

    def read(self, size: int | None = -1) -> bytes:
        chunk = super().read(size)
        if chunk:
            self._on_read(self.tell(), self._total)
        return chunk


def _error_message(response: httpx.Response) -> str:
    """Extract the service's error message from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}".strip()
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return f"HTTP {response.status_code}"


async def _post_upload(  # noqa: PLR0913
    http_client: httpx.AsyncClient,
    url: str,
    file: UploadFile,
    form: dict[str, object],
    timeout_seconds: float,
    on_progress: ProgressCallback | None,
) -> UploadResult:
    """Send a multipart upload and translate failures into upload errors."""

    def report(read: int, total: int) -> None:
        if on_progress is not None and total:
            on_progress(min(99, read * 100 // total))

    reader = _ProgressReader(file.content, report)
    data = {key: str(value) for key, value in form.items()}
    try:
        response = await asyncio.wait_for(
            http_client.post(
                url,
                data=data,
                files={"file": (file.name, reader, file.content_type)},
                timeout=timeout_seconds,
            ),
            timeout=timeout_seconds,
        )
    except (TimeoutError, httpx.TimeoutException) as exc:
        raise UploadTimeoutError(
            f"Upload timed out after {timeout_seconds:g}s"
        ) from exc
    except httpx.TransportError as exc:
        raise UploadNetworkError(f"Upload failed: {exc}") from exc

    if response.is_error:
        raise StorageRejectedError(
            _error_message(response), status_code=response.status_code
        )
    payload = response.json()
    secure_url = payload.get("secure_url")
    public_id = payload.get("public_id")
    if not secure_url or not public_id:
        raise StorageRejectedError(_error_message(response))
    if on_progress is not None:
        on_progress(100)
    return UploadResult(url=str(secure_url), id=str(public_id))


@dataclass
class HttpxCloudinaryUploader(StorageUploader):
    """Direct signed uploads from the client to the storage service."""

    http_client: httpx.AsyncClient
    api_base: str = DEFAULT_API_BASE

    @classmethod
    def create(cls, api_base: str = DEFAULT_API_BASE) -> "HttpxCloudinaryUploader":
        """Create an uploader with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(), api_base=api_base)

    async def upload(
        self,
        file: UploadFile,
        signature: UploadSignature,
        context: str,
        timeout_seconds: float,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload one file with a signature issued by the trusted origin."""
        url = f"{self.api_base}/{signature.cloud_name}/image/upload"
        form: dict[str, object] = {
            "api_key": signature.api_key,
            "timestamp": signature.timestamp,
            "signature": signature.signature,
            "folder": signature.folder,
            "context": context,
        }
        return await _post_upload(
            self.http_client, url, file, form, timeout_seconds, on_progress
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


@dataclass
class HttpxCloudinaryClient(StorageClient):
    """Server-side storage client holding the API secret."""

    credentials: StorageCredentials
    http_client: httpx.AsyncClient
    api_base: str = DEFAULT_API_BASE
    clock: Callable[[], float] = field(default=time.time)

    @classmethod
    def create(
        cls, credentials: StorageCredentials, api_base: str = DEFAULT_API_BASE
    ) -> "HttpxCloudinaryClient":
        """Create a storage client with a managed httpx session."""
        return cls(
            credentials=credentials,
            http_client=httpx.AsyncClient(),
            api_base=api_base,
        )

    @property
    def _signer(self) -> SigningService:
        return SigningService(self.credentials)

    def _url(self, path: str) -> str:
        return f"{self.api_base}/{self.credentials.cloud_name}/{path}"

    def _timestamp(self) -> int:
        return int(self.clock())

    async def list_resources(self, next_cursor: str | None = None) -> dict[str, object]:
        """Fetch one page of image resources with their context metadata."""
        params: dict[str, object] = {
            "max_results": LISTING_PAGE_SIZE,
            "context": "true",
        }
        if next_cursor:
            params["next_cursor"] = next_cursor
        try:
            response = await self.http_client.get(
                self._url("resources/image"),
                params=params,
                auth=(self.credentials.api_key, self.credentials.api_secret),
                headers={"Cache-Control": "no-cache"},
                timeout=15,
            )
        except httpx.HTTPError as exc:
            raise StorageServiceError(f"Listing request failed: {exc}") from exc
        if response.is_error:
            raise StorageServiceError(
                f"Cloudinary API error: {response.status_code} {_error_message(response)}"
            )
        return response.json()

    async def destroy(self, public_id: str) -> dict[str, object]:
        """Delete a stored image by its public id."""
        form = self._signer.signed_form(
            {"public_id": public_id, "timestamp": self._timestamp()}
        )
        payload = await self._post_admin("image/destroy", form)
        if payload.get("result") != "ok":
            raise StorageServiceError(
                f"Delete failed: {payload.get('result', 'unknown result')}"
            )
        return payload

    async def explicit(self, public_id: str, context: str) -> dict[str, object]:
        """Replace the context metadata of a stored image."""
        form = self._signer.signed_form(
            {
                "public_id": public_id,
                "type": "upload",
                "context": context,
                "timestamp": self._timestamp(),
            }
        )
        return await self._post_admin("image/explicit", form)

    async def upload(
        self,
        file: UploadFile,
        folder: str,
        context: str | None,
        timeout_seconds: float,
    ) -> UploadResult:
        """Upload a file on behalf of a client that posted it to the server."""
        params: dict[str, object] = {"timestamp": self._timestamp(), "folder": folder}
        if context:
            params["context"] = context
        form = self._signer.signed_form(params)
        return await _post_upload(
            self.http_client,
            self._url("image/upload"),
            file,
            form,
            timeout_seconds,
            None,
        )

    async def _post_admin(
        self, path: str, form: dict[str, object]
    ) -> dict[str, object]:
        data = {key: str(value) for key, value in form.items()}
        try:
            response = await self.http_client.post(self._url(path), data=data, timeout=15)
        except httpx.HTTPError as exc:
            raise StorageServiceError(f"Request to {path} failed: {exc}") from exc
        if response.is_error:
            raise StorageServiceError(_error_message(response))
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
