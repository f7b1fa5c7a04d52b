"""Tests for signed direct uploads."""

import asyncio
from dataclasses import dataclass, field

import pytest

from photo_share.domain.uploads import UploadFile, UploadResult, UploadSignature
from photo_share.errors import SignatureError
from photo_share.services.uploads import ProgressCallback, SignedUploadClient
from tests.conftest import make_upload_file


@dataclass
class FakeSigningClient:
    requests: list[tuple[int, str, str]] = field(default_factory=list)
    fail: bool = False

    async def request_signature(
        self, timestamp: int, folder: str, context: str
    ) -> UploadSignature:
        if self.fail:
            raise SignatureError("Failed to get upload signature: HTTP 500")
        self.requests.append((timestamp, folder, context))
        return UploadSignature(
            signature="sig",
            timestamp=timestamp,
            api_key="123456789",
            cloud_name="demo-cloud",
            folder=folder,
        )


@dataclass
class FakeStorageUploader:
    calls: list[tuple[str, UploadSignature, str, float]] = field(default_factory=list)

    async def upload(
        self,
        file: UploadFile,
        signature: UploadSignature,
        context: str,
        timeout_seconds: float,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        self.calls.append((file.name, signature, context, timeout_seconds))
        if on_progress is not None:
            on_progress(100)
        return UploadResult(url="https://res.example.com/bwca/a.jpg", id="bwca/a")


def test_upload_sends_the_signed_context_unchanged() -> None:
    signing = FakeSigningClient()
    storage = FakeStorageUploader()
    client = SignedUploadClient(
        signing_client=signing,
        storage_uploader=storage,
        folder="bwca",
        timeout_seconds=120.0,
        clock=lambda: 1700000000.9,
    )
    progress: list[int] = []

    result = asyncio.run(
        client.upload(
            make_upload_file("a.jpg"),
            "2025-09-01T10:00:00.000Z",
            "Deadeye",
            progress.append,
        )
    )

    expected_context = "photo_date=2025-09-01T10:00:00.000Z|uploaded_by=Deadeye"
    assert result.id == "bwca/a"
    assert signing.requests == [(1700000000, "bwca", expected_context)]
    name, signature, context, timeout = storage.calls[0]
    assert name == "a.jpg"
    assert signature.timestamp == 1700000000
    assert context == expected_context
    assert timeout == 120.0
    assert progress == [100]


def test_signature_failure_stops_before_upload() -> None:
    storage = FakeStorageUploader()
    client = SignedUploadClient(
        signing_client=FakeSigningClient(fail=True), storage_uploader=storage
    )

    with pytest.raises(SignatureError):
        asyncio.run(client.upload(make_upload_file(), "2025-09-01T10:00:00.000Z", "Deadeye"))

    assert storage.calls == []
