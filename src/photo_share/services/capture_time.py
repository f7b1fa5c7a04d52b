"""Best-guess original capture time for an image file."""

import io
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, tzinfo

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from photo_share.domain.uploads import UploadFile

register_heif_opener()

_logger = logging.getLogger(__name__)

EXIF_IFD_POINTER = 0x8769
TAG_DATETIME = 306
TAG_DATETIME_ORIGINAL = 36867
TAG_DATETIME_DIGITIZED = 36868

# Highest priority first.
CAPTURE_TIME_TAGS: tuple[int, ...] = (
    TAG_DATETIME_ORIGINAL,
    TAG_DATETIME_DIGITIZED,
    TAG_DATETIME,
)

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def format_iso_timestamp(value: datetime) -> str:
    """Format an aware datetime as UTC ISO-8601 with milliseconds."""
    text = value.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_iso_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_exif_datetime(raw: object) -> datetime | None:
    """Parse the fixed ``YYYY:MM:DD HH:MM:SS`` EXIF form into a naive datetime."""
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="ignore")
    if not isinstance(raw, str):
        return None
    text = raw.strip().strip("\x00").strip()
    if len(text) < 19:
        return None
    try:
        return datetime.strptime(text[:19], EXIF_DATETIME_FORMAT)
    except ValueError:
        return None


def read_capture_tags(content: bytes) -> dict[int, object]:
    """Return the capture-time tags found in the image, if any."""
    tags: dict[int, object] = {}
    with Image.open(io.BytesIO(content)) as image:
        exif = image.getexif()
        if not exif:
            return tags
        if TAG_DATETIME in exif:
            tags[TAG_DATETIME] = exif[TAG_DATETIME]
        exif_ifd = exif.get_ifd(EXIF_IFD_POINTER)
        for tag in (TAG_DATETIME_ORIGINAL, TAG_DATETIME_DIGITIZED):
            if tag in exif_ifd:
                tags[tag] = exif_ifd[tag]
    return tags


def pick_capture_datetime(tags: dict[int, object]) -> datetime | None:
    """Return the first parseable timestamp in tag priority order."""
    for tag in CAPTURE_TIME_TAGS:
        parsed = parse_exif_datetime(tags.get(tag))
        if parsed is not None:
            return parsed
    return None


@dataclass
class CaptureTimeResolver:
    """Resolves a capture timestamp from EXIF, falling back to file mtime.

    EXIF times carry no zone, so they are read as wall-clock time in ``tz``.
    A metadata date equal to today's date is treated as untrustworthy, since
    stripped or re-encoded files commonly carry the processing date.
    """

    tz: tzinfo = UTC
    now: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))
    tag_reader: Callable[[bytes], dict[int, object]] = field(default=read_capture_tags)

    def resolve(self, file: UploadFile) -> str:
        """Return an ISO-8601 capture timestamp; never raises."""
        return format_iso_timestamp(self.resolve_datetime(file))

    def resolve_datetime(self, file: UploadFile) -> datetime:
        captured = self._metadata_datetime(file)
        if captured is None:
            return self._last_modified(file)
        today = self.now().astimezone(self.tz).date()
        if captured.date() == today:
            _logger.info(
                "Metadata date of %s is today; using last-modified time", file.name
            )
            return self._last_modified(file)
        return captured

    def _metadata_datetime(self, file: UploadFile) -> datetime | None:
        try:
            tags = self.tag_reader(file.content)
        except UnidentifiedImageError:
            _logger.info("%s is not a readable image; using last-modified", file.name)
            return None
        except Exception as exc:
            _logger.info("No readable metadata in %s: %s", file.name, exc)
            return None
        naive = pick_capture_datetime(tags)
        if naive is None:
            return None
        return naive.replace(tzinfo=self.tz)

    def _last_modified(self, file: UploadFile) -> datetime:
        modified = file.last_modified
        if modified.tzinfo is None:
            modified = modified.replace(tzinfo=self.tz)
        return modified
