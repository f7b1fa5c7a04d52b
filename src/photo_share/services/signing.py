"""Request signing for the storage service.

The storage service re-derives the signature from the submitted parameters,
so the string to sign must match its scheme exactly: parameters sorted by
name, joined as ``key=value`` with ``&``, secret appended, SHA-1 hex digest.
"""

import hashlib
from dataclasses import dataclass

from photo_share.config import StorageCredentials

# Parameters the service leaves out when it verifies a signature.
UNSIGNED_PARAMS = frozenset({"file", "api_key", "resource_type", "cloud_name"})

CONTEXT_DELIMITER = "|"


def string_to_sign(params: dict[str, object]) -> str:
    """Return the sorted ``key=value&...`` string for signable parameters."""
    signable = {
        key: value
        for key, value in params.items()
        if key not in UNSIGNED_PARAMS and value is not None and value != ""
    }
    return "&".join(f"{key}={signable[key]}" for key in sorted(signable))


def sign_params(params: dict[str, object], api_secret: str) -> str:
    """Return the hex signature for the given parameters."""
    payload = string_to_sign(params) + api_secret
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()  # noqa: S324


def build_context(photo_date: str, uploaded_by: str | None = None) -> str:
    """Build the ``photo_date=...|uploaded_by=...`` context string."""
    parts = [f"photo_date={photo_date}"]
    if uploaded_by:
        parts.append(f"uploaded_by={uploaded_by}")
    return CONTEXT_DELIMITER.join(parts)


def parse_context(raw: str) -> dict[str, str]:
    """Parse a context string back into its key/value pairs."""
    values: dict[str, str] = {}
    for chunk in raw.split(CONTEXT_DELIMITER):
        key, sep, value = chunk.partition("=")
        if sep and key.strip():
            values[key.strip()] = value
    return values


@dataclass(frozen=True)
class SignedParams:
    """Signature returned to an uploader."""

    signature: str
    timestamp: int
    folder: str
    api_key: str
    cloud_name: str


@dataclass
class SigningService:
    """Signs upload and admin requests with the storage secret."""

    credentials: StorageCredentials
    default_folder: str = "bwca"

    def sign_upload(
        self, timestamp: int, folder: str | None = None, context: str | None = None
    ) -> SignedParams:
        """Sign the parameters an uploader will send with its file."""
        resolved_folder = folder or self.default_folder
        params: dict[str, object] = {
            "timestamp": timestamp,
            "folder": resolved_folder,
        }
        if context:
            params["context"] = context
        return SignedParams(
            signature=sign_params(params, self.credentials.api_secret),
            timestamp=timestamp,
            folder=resolved_folder,
            api_key=self.credentials.api_key,
            cloud_name=self.credentials.cloud_name,
        )

    def signed_form(self, params: dict[str, object]) -> dict[str, object]:
        """Return params with ``api_key`` and ``signature`` added."""
        form = dict(params)
        form["signature"] = sign_params(params, self.credentials.api_secret)
        form["api_key"] = self.credentials.api_key
        return form
