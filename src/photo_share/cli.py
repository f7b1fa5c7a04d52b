"""Command-line gallery client."""

import argparse
import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from photo_share.app_logging import configure_logging
from photo_share.config import Settings
from photo_share.containers import ClientContainer, build_client
from photo_share.domain.uploads import UploadFile, UploadStatus, UploadTask
from photo_share.errors import PhotoShareError

SUPPORTED_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif"}
)
EDIT_FORMAT = "%Y-%m-%d %H:%M"


@dataclass(frozen=True)
class CliCommand:
    """Name and help text for one subcommand."""

    name: str
    help: str


class Command(Enum):
    """Subcommands, in the order they appear in --help."""

    LOGIN = CliCommand("login", "Log in with your username and the group password")
    LOGOUT = CliCommand("logout", "Forget the stored session")
    WHOAMI = CliCommand("whoami", "Show the logged-in user")
    UPLOAD = CliCommand("upload", "Upload photos or folders of photos")
    LIST = CliCommand("list", "List photos grouped by day")
    DELETE = CliCommand("delete", "Delete one of your photos")
    SET_DATE = CliCommand("set-date", "Change the capture date of one of your photos")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="photo-share", description=__doc__)
    parser.add_argument("--session-file", type=Path, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)
    parsers = {
        entry: subparsers.add_parser(entry.value.name, help=entry.value.help)
        for entry in Command
    }

    parsers[Command.LOGIN].add_argument("username")
    parsers[Command.LOGIN].add_argument("password")

    upload = parsers[Command.UPLOAD]
    upload.add_argument("paths", nargs="+", type=Path)
    upload.add_argument("-r", "--recursive", action="store_true")
    upload.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Retry failed uploads this many times after the first pass",
    )

    parsers[Command.LIST].add_argument(
        "--day", type=int, default=None, help="Only show photos from Day N"
    )
    parsers[Command.DELETE].add_argument("photo_id")

    set_date = parsers[Command.SET_DATE]
    set_date.add_argument("photo_id")
    set_date.add_argument("new_date", help='Local time as "YYYY-MM-DD HH:MM"')
    return parser


def collect_files(paths: Sequence[Path], recursive: bool = False) -> list[Path]:
    """Expand directories into supported image files, keeping argument order."""
    found: list[Path] = []
    for path in paths:
        if path.is_dir():
            candidates = path.rglob("*") if recursive else path.iterdir()
            found.extend(
                sorted(
                    item
                    for item in candidates
                    if item.is_file() and item.suffix.lower() in SUPPORTED_EXTENSIONS
                )
            )
        elif path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS:
            found.append(path)
    return found


def format_task(task: UploadTask) -> str:
    line = f"[{task.status.value:>9}] {task.file.name}"
    if task.status is UploadStatus.SUCCESS and task.photo_id:
        line += f" -> {task.photo_id}"
    if task.status is UploadStatus.ERROR and task.error:
        line += f" ({task.error})"
    return line


async def _upload(container: ClientContainer, args: argparse.Namespace) -> int:
    client = container.client
    paths = collect_files(args.paths, recursive=args.recursive)
    if not paths:
        print("No image files found.")
        return 1
    last_status: dict[str, UploadStatus] = {}

    def on_change(task: UploadTask) -> None:
        if last_status.get(task.id) is not task.status:
            last_status[task.id] = task.status
            print(format_task(task))

    client.scheduler.subscribe(on_change)
    client.submit([UploadFile.from_path(path) for path in paths])
    await client.scheduler.wait_idle()
    for _ in range(max(0, args.retries)):
        if not client.retry_failed():
            break
        await client.scheduler.wait_idle()

    failed = [task for task in client.scheduler.tasks if task.status is UploadStatus.ERROR]
    done = len(client.scheduler.tasks) - len(failed)
    print(f"Uploaded {done} of {len(client.scheduler.tasks)} photo(s).")
    return 1 if failed else 0


async def _list(container: ClientContainer, args: argparse.Namespace) -> int:
    client = container.client
    await client.store.load()
    filters = client.day_filters()
    filter_key = "all"
    if args.day is not None:
        matches = [item for item in filters if item.day_number == args.day]
        if not matches:
            print(f"No photos found for Day {args.day}.")
            return 0
        filter_key = matches[0].key
    for item in filters:
        print(item.label)
    for section in client.sections(filter_key):
        print(f"\n{section.heading} ({len(section.photos)} photos)")
        for photo in section.photos:
            print(f"  {photo.id}  {photo.title}  by {photo.uploaded_by}  {photo.uploaded_at}")
    return 0


async def _delete(container: ClientContainer, args: argparse.Namespace) -> int:
    client = container.client
    await client.store.load()
    await client.delete_photo(args.photo_id)
    print(f"Deleted {args.photo_id}.")
    return 0


async def _set_date(container: ClientContainer, args: argparse.Namespace) -> int:
    try:
        new_local = datetime.strptime(args.new_date, EDIT_FORMAT)
    except ValueError:
        print(f'Expected a date like "2025-09-01 10:00", got {args.new_date!r}.')
        return 2
    client = container.client
    await client.store.load()
    photo = await client.set_capture_time(args.photo_id, new_local)
    print(f"{photo.id} now dated {photo.uploaded_at}.")
    return 0


_ASYNC_HANDLERS = {
    Command.UPLOAD.value.name: _upload,
    Command.LIST.value.name: _list,
    Command.DELETE.value.name: _delete,
    Command.SET_DATE.value.name: _set_date,
}


async def _run_async(container: ClientContainer, args: argparse.Namespace) -> int:
    try:
        return await _ASYNC_HANDLERS[args.command](container, args)
    finally:
        await container.close_resources()


def run_command(container: ClientContainer, args: argparse.Namespace) -> int:
    """Execute a parsed command against a client container."""
    session = container.client.session
    if args.command == Command.LOGIN.value.name:
        if session.login(container.auth_service, args.username, args.password):
            print(f"Logged in as {session.user.display_name}.")
            return 0
        print("Invalid username or password.")
        return 1
    if args.command == Command.LOGOUT.value.name:
        session.logout()
        print("Logged out.")
        return 0
    if args.command == Command.WHOAMI.value.name:
        print(session.user.display_name if session.user else "Not logged in.")
        return 0
    try:
        return asyncio.run(_run_async(container, args))
    except KeyError as exc:
        print(f"Unknown photo {exc.args[0]!r}.")
        return 1
    except PhotoShareError as exc:
        print(f"Error: {exc}")
        return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``photo-share`` command."""
    args = build_parser().parse_args(argv)
    configure_logging(logging.INFO if args.verbose else logging.WARNING)
    try:
        settings = Settings()
    except ValidationError as exc:
        print(f"Configuration error: {exc}")
        return 2
    container = build_client(settings, session_path=args.session_file)
    return run_command(container, args)


if __name__ == "__main__":
    raise SystemExit(main())
