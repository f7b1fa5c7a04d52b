"""Pydantic models for the HTTP API payloads."""

from pydantic import BaseModel, Field


class SignatureRequest(BaseModel):
    """Upload signature request."""

    timestamp: int
    folder: str | None = None
    context: str | None = None


class DeleteRequest(BaseModel):
    """Photo deletion request."""

    photo_id: str | None = Field(default=None, alias="photoId")


class UpdatePhotoRequest(BaseModel):
    """Capture date update request."""

    photo_id: str | None = Field(default=None, alias="photoId")
    new_date_time: str | None = Field(default=None, alias="newDateTime")
    uploaded_by: str | None = Field(default=None, alias="uploadedBy")


class LoginRequest(BaseModel):
    """Credential check request."""

    username: str
    password: str
