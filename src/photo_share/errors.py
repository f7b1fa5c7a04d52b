"""Exception hierarchy for photo sharing operations."""


class PhotoShareError(Exception):
    """Base class for application errors."""


class ConfigurationError(PhotoShareError):
    """Storage credentials or other required settings are missing or invalid."""


class UploadError(PhotoShareError):
    """An upload attempt failed. Any upload error is user-retryable."""


class SignatureError(UploadError):
    """The trusted origin was unreachable or refused to sign the upload."""


class StorageRejectedError(UploadError):
    """The storage service rejected the upload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadNetworkError(UploadError):
    """The upload failed in transport before the service answered."""


class UploadTimeoutError(UploadNetworkError):
    """The upload exceeded its timeout and was aborted."""


class StorageServiceError(PhotoShareError):
    """A listing, deletion or update call to the storage service failed."""


class PhotoDeleteError(PhotoShareError):
    """A photo deletion failed and local state was rolled back."""

    def __init__(self, photo_id: str, message: str) -> None:
        super().__init__(message)
        self.photo_id = photo_id


class NotAuthenticatedError(PhotoShareError):
    """The operation needs a logged-in user."""


class PermissionDeniedError(PhotoShareError):
    """The current user may not modify the photo."""
