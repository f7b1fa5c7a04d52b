"""Tests for the command-line client."""

from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from photo_share import cli
from photo_share.config import Settings
from photo_share.containers import ClientContainer
from photo_share.domain.uploads import UploadFile, UploadResult
from photo_share.services.auth import AuthService, UserSession
from photo_share.services.capture_time import CaptureTimeResolver
from photo_share.services.client import PhotoShareClient
from photo_share.services.photo_store import PhotoStore
from photo_share.services.scheduler import UploadScheduler
from photo_share.services.uploads import ProgressCallback
from tests.conftest import (
    FakePhotoEditor,
    FakePhotoSource,
    FakeUploader,
    InMemorySessionStore,
    RecordingSleep,
    jpeg_with_exif,
    make_photo,
)


def _container(
    settings: Settings,
    session_store: InMemorySessionStore,
    source: FakePhotoSource | None = None,
    uploader: FakeUploader | None = None,
) -> ClientContainer:
    auth_service = AuthService(password=settings.shared_password)
    client = PhotoShareClient(
        session=UserSession(session_store),
        resolver=CaptureTimeResolver(now=lambda: datetime(2025, 10, 17, tzinfo=UTC)),
        scheduler=UploadScheduler(uploader=uploader or FakeUploader()),
        store=PhotoStore(source=source or FakePhotoSource(), sleep=RecordingSleep()),
        editor=FakePhotoEditor(),
        epoch=date(2025, 9, 1),
    )
    client.session.load()

    async def close_resources() -> None:
        await client.store.aclose()

    return ClientContainer(
        settings=settings,
        auth_service=auth_service,
        client=client,
        close_resources=close_resources,
    )


def _logged_in(session_store: InMemorySessionStore) -> InMemorySessionStore:
    session_store.payload = {"id": "1", "username": "deadeye", "displayName": "Deadeye"}
    return session_store


def test_collect_files_filters_extensions(tmp_path: Path) -> None:
    (tmp_path / "b.JPG").write_bytes(b"x")
    (tmp_path / "a.heic").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x")
    nested = tmp_path / "day2"
    nested.mkdir()
    (nested / "c.png").write_bytes(b"x")

    flat = cli.collect_files([tmp_path])
    deep = cli.collect_files([tmp_path], recursive=True)

    assert [path.name for path in flat] == ["a.heic", "b.JPG"]
    assert sorted(path.name for path in deep) == ["a.heic", "b.JPG", "c.png"]


def test_login_then_whoami(
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    parser = cli.build_parser()
    container = _container(settings, session_store)

    code = cli.run_command(container, parser.parse_args(["login", "Deadeye", "campfire"]))
    cli.run_command(container, parser.parse_args(["whoami"]))

    assert code == 0
    assert session_store.payload is not None
    assert "Logged in as Deadeye." in capsys.readouterr().out


def test_login_with_wrong_password_fails(
    settings: Settings, session_store: InMemorySessionStore
) -> None:
    container = _container(settings, session_store)

    code = cli.run_command(
        container, cli.build_parser().parse_args(["login", "deadeye", "nope"])
    )

    assert code == 1
    assert session_store.payload is None


def test_upload_reports_each_file(
    tmp_path: Path,
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    image = tmp_path / "IMG_0001.jpg"
    image.write_bytes(jpeg_with_exif(exif_ifd={36867: "2025:09:01 10:00:00"}))
    (tmp_path / "IMG_0002.jpg").write_bytes(b"broken")
    uploader = FakeUploader(fail_names={"IMG_0002.jpg"})
    container = _container(settings, _logged_in(session_store), uploader=uploader)

    code = cli.run_command(
        container, cli.build_parser().parse_args(["upload", str(tmp_path)])
    )

    out = capsys.readouterr().out
    assert code == 1
    assert "IMG_0001.jpg -> bwca/IMG_0001" in out
    assert "(Invalid image file)" in out
    assert "Uploaded 1 of 2 photo(s)." in out


def test_upload_retries_failures(
    tmp_path: Path, settings: Settings, session_store: InMemorySessionStore
) -> None:
    (tmp_path / "IMG_0001.jpg").write_bytes(b"x")

    class FlakyUploader(FakeUploader):
        async def upload(
            self,
            file: UploadFile,
            photo_date: str,
            uploaded_by: str,
            on_progress: ProgressCallback | None = None,
        ) -> UploadResult:
            try:
                return await super().upload(file, photo_date, uploaded_by, on_progress)
            finally:
                self.fail_names.discard(file.name)

    uploader = FlakyUploader(fail_names={"IMG_0001.jpg"})
    container = _container(settings, _logged_in(session_store), uploader=uploader)

    code = cli.run_command(
        container,
        cli.build_parser().parse_args(["upload", str(tmp_path), "--retries", "1"]),
    )

    assert code == 0
    assert uploader.started == ["IMG_0001.jpg", "IMG_0001.jpg"]


def test_upload_without_login_is_an_error(
    tmp_path: Path,
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    (tmp_path / "IMG_0001.jpg").write_bytes(b"x")
    container = _container(settings, session_store)

    code = cli.run_command(
        container, cli.build_parser().parse_args(["upload", str(tmp_path)])
    )

    assert code == 1
    assert "Log in to upload photos" in capsys.readouterr().out


def test_list_prints_day_filters_and_sections(
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    source = FakePhotoSource(
        photos=[
            make_photo("bwca/a", uploaded_at="2025-09-01T10:00:00.000Z"),
            make_photo("bwca/b", uploaded_at="2025-09-02T10:00:00.000Z"),
        ]
    )
    container = _container(settings, session_store, source=source)

    code = cli.run_command(container, cli.build_parser().parse_args(["list", "--day", "2"]))

    out = capsys.readouterr().out
    assert code == 0
    assert "Day 1 - Sep 1 (1)" in out
    assert "September 2, 2025 (1 photos)" in out
    assert "bwca/b.jpg" in out
    assert "bwca/a.jpg" not in out


def test_delete_unknown_photo(
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    container = _container(settings, _logged_in(session_store))

    code = cli.run_command(
        container, cli.build_parser().parse_args(["delete", "bwca/missing"])
    )

    assert code == 1
    assert "Unknown photo 'bwca/missing'." in capsys.readouterr().out


def test_set_date_rejects_bad_format(
    settings: Settings,
    session_store: InMemorySessionStore,
    capsys: pytest.CaptureFixture[str],
) -> None:
    source = FakePhotoSource(photos=[make_photo("bwca/a")])
    container = _container(settings, _logged_in(session_store), source=source)

    code = cli.run_command(
        container,
        cli.build_parser().parse_args(["set-date", "bwca/a", "Sept 3rd"]),
    )

    assert code == 2
    assert "Expected a date like" in capsys.readouterr().out
