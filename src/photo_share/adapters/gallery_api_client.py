"""Client for the photo_share server routes."""

from dataclasses import dataclass

import httpx

from photo_share.domain.photos import Photo
from photo_share.domain.uploads import UploadSignature
from photo_share.errors import SignatureError, StorageServiceError
from photo_share.services.photo_store import PhotoSource
from photo_share.services.uploads import SigningClient


def _response_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {response.status_code}"


@dataclass
class HttpxGalleryApiClient(SigningClient, PhotoSource):
    """Talks to the trusted origin for signatures, listings and edits."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "HttpxGalleryApiClient":
        """Create an API client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def request_signature(
        self, timestamp: int, folder: str, context: str
    ) -> UploadSignature:
        """Ask the server to sign an upload."""
        try:
            response = await self.http_client.post(
                f"{self.base_url}/api/upload-signature",
                json={"timestamp": timestamp, "folder": folder, "context": context},
                timeout=10,
            )
        except httpx.HTTPError as exc:
            raise SignatureError(f"Signing service unreachable: {exc}") from exc
        if response.is_error:
            raise SignatureError(
                f"Failed to get upload signature: {_response_error(response)}"
            )
        payload = response.json()
        if not payload.get("signature"):
            raise SignatureError("Failed to get upload signature: empty signature")
        return UploadSignature(
            signature=str(payload["signature"]),
            timestamp=int(payload.get("timestamp", timestamp)),
            api_key=str(payload["api_key"]),
            cloud_name=str(payload["cloud_name"]),
            folder=str(payload.get("folder") or folder),
        )

    async def list_photos(self) -> list[Photo]:
        """Fetch the authoritative photo listing, bypassing caches."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/api/photos",
                headers={"Cache-Control": "no-cache", "Pragma": "no-cache"},
                timeout=20,
            )
        except httpx.HTTPError as exc:
            raise StorageServiceError(f"Listing request failed: {exc}") from exc
        if response.is_error:
            raise StorageServiceError(_response_error(response))
        payload = response.json()
        if not payload.get("success"):
            raise StorageServiceError(str(payload.get("error") or "Listing failed"))
        return [Photo.from_dict(item) for item in payload.get("photos", [])]

    async def delete_photo(self, photo_id: str) -> None:
        """Ask the server to delete a photo from storage."""
        try:
            response = await self.http_client.request(
                "DELETE",
                f"{self.base_url}/api/delete",
                json={"photoId": photo_id},
                timeout=15,
            )
        except httpx.HTTPError as exc:
            raise StorageServiceError(f"Delete request failed: {exc}") from exc
        if response.is_error or not response.json().get("success"):
            raise StorageServiceError(_response_error(response))

    async def update_photo_date(
        self, photo_id: str, new_date_time: str, uploaded_by: str | None
    ) -> None:
        """Ask the server to rewrite a photo's capture date metadata."""
        payload: dict[str, object] = {"photoId": photo_id, "newDateTime": new_date_time}
        if uploaded_by:
            payload["uploadedBy"] = uploaded_by
        try:
            response = await self.http_client.put(
                f"{self.base_url}/api/update-photo", json=payload, timeout=15
            )
        except httpx.HTTPError as exc:
            raise StorageServiceError(f"Update request failed: {exc}") from exc
        if response.is_error:
            raise StorageServiceError(_response_error(response))

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
