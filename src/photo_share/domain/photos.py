"""Domain models for stored photos."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Photo:
    """Represents one image held by the storage service."""

    id: str
    url: str
    title: str
    uploaded_by: str
    uploaded_at: str

    def to_dict(self) -> dict[str, str]:
        """Return the camelCase wire representation."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "uploadedBy": self.uploaded_by,
            "uploadedAt": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "Photo":
        """Build a photo from its camelCase wire representation."""
        photo_id = str(payload["id"])
        return cls(
            id=photo_id,
            url=str(payload["url"]),
            title=str(payload.get("title") or photo_id),
            uploaded_by=str(payload.get("uploadedBy") or "Unknown"),
            uploaded_at=str(payload.get("uploadedAt") or ""),
        )
