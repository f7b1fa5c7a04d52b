"""Gallery view helpers: day filters, date grouping and the lightbox."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo

from photo_share.domain.photos import Photo
from photo_share.domain.users import User
from photo_share.services.capture_time import format_iso_timestamp, parse_iso_timestamp

_logger = logging.getLogger(__name__)

ALL_PHOTOS = "all"
EPOCH_MONTH = 9
EPOCH_DAY = 1


@dataclass(frozen=True)
class DayFilter:
    """One filter tab."""

    key: str
    label: str
    count: int
    day: date | None = None
    day_number: int | None = None


@dataclass(frozen=True)
class DateSection:
    """Photos taken on one local calendar day."""

    day: date
    heading: str
    photos: list[Photo]


def photo_datetime(photo: Photo, tz: tzinfo) -> datetime | None:
    """Return the photo's capture time in ``tz``, or None when unparseable."""
    try:
        return parse_iso_timestamp(photo.uploaded_at).astimezone(tz)
    except ValueError:
        _logger.debug("Unparseable timestamp on %s: %r", photo.id, photo.uploaded_at)
        return None


def local_date(photo: Photo, tz: tzinfo) -> date | None:
    moment = photo_datetime(photo, tz)
    return moment.date() if moment is not None else None


def default_epoch(today: date) -> date:
    """Day 1 is September 1 of the current year."""
    return date(today.year, EPOCH_MONTH, EPOCH_DAY)


def day_number(day: date, epoch: date) -> int:
    return (day - epoch).days + 1


def sort_photos(photos: Iterable[Photo], tz: tzinfo) -> list[Photo]:
    """Sort chronologically; photos without a usable date go last."""

    def key(photo: Photo) -> tuple[int, datetime]:
        moment = photo_datetime(photo, tz)
        if moment is None:
            return (1, datetime.min.replace(tzinfo=tz))
        return (0, moment)

    return sorted(photos, key=key)


def format_short_date(day: date) -> str:
    return f"{day:%b} {day.day}"


def format_long_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


def day_filters(photos: list[Photo], epoch: date, tz: tzinfo) -> list[DayFilter]:
    """Build the filter tabs: all photos, then one per day, oldest first."""
    counts: dict[date, int] = {}
    for photo in photos:
        day = local_date(photo, tz)
        if day is not None:
            counts[day] = counts.get(day, 0) + 1
    filters = [DayFilter(key=ALL_PHOTOS, label="All Photos", count=len(photos))]
    for day in sorted(counts):
        number = day_number(day, epoch)
        prefix = f"Day {number} - " if number >= 1 else ""
        filters.append(
            DayFilter(
                key=day.isoformat(),
                label=f"{prefix}{format_short_date(day)} ({counts[day]})",
                count=counts[day],
                day=day,
                day_number=number if number >= 1 else None,
            )
        )
    return filters


def filter_photos(photos: list[Photo], key: str, tz: tzinfo) -> list[Photo]:
    """Return the photos matching a filter key, sorted chronologically."""
    if key == ALL_PHOTOS:
        return sort_photos(photos, tz)
    try:
        wanted = date.fromisoformat(key)
    except ValueError:
        return []
    return sort_photos((photo for photo in photos if local_date(photo, tz) == wanted), tz)


def group_by_date(photos: list[Photo], tz: tzinfo) -> list[DateSection]:
    """Group photos into chronological day sections."""
    sections: dict[date, list[Photo]] = {}
    for photo in sort_photos(photos, tz):
        day = local_date(photo, tz)
        if day is None:
            continue
        sections.setdefault(day, []).append(photo)
    return [
        DateSection(day=day, heading=format_long_date(day), photos=items)
        for day, items in sorted(sections.items())
    ]


def format_caption(photo: Photo, tz: tzinfo) -> str:
    """Lightbox caption, e.g. ``Deadeye - Sep 1, 2025 10:00``."""
    moment = photo_datetime(photo, tz)
    if moment is None:
        return photo.uploaded_by
    return f"{photo.uploaded_by} - {moment:%b} {moment.day}, {moment.year} {moment:%H:%M}"


def can_modify(photo: Photo, user: User | None) -> bool:
    """Only the uploader may delete a photo or edit its date."""
    return user is not None and user.display_name == photo.uploaded_by


def edit_capture_time(original: str, new_local: datetime, tz: tzinfo) -> str:
    """Apply a date+minute edit, keeping the original seconds and milliseconds."""
    try:
        source = parse_iso_timestamp(original).astimezone(tz)
        second, microsecond = source.second, source.microsecond
    except ValueError:
        second, microsecond = 0, 0
    edited = new_local.replace(second=second, microsecond=microsecond)
    if edited.tzinfo is None:
        edited = edited.replace(tzinfo=tz)
    return format_iso_timestamp(edited)


@dataclass
class Lightbox:
    """Full-screen viewer that steps through the filtered photo list."""

    photos: list[Photo] = field(default_factory=list)
    index: int | None = None

    @property
    def current(self) -> Photo | None:
        if self.index is None or not self.photos:
            return None
        return self.photos[self.index]

    @property
    def can_navigate(self) -> bool:
        return len(self.photos) > 1

    def show(self, photos: list[Photo]) -> None:
        """Swap the list, keeping the open photo when it is still present."""
        current = self.current
        self.photos = list(photos)
        if current is None:
            self.index = None
            return
        self.open(current.id)

    def open(self, photo_id: str) -> Photo | None:
        for position, photo in enumerate(self.photos):
            if photo.id == photo_id:
                self.index = position
                return photo
        self.index = None
        return None

    def close(self) -> None:
        self.index = None

    def next(self) -> Photo | None:
        if self.index is None or not self.photos:
            return None
        self.index = (self.index + 1) % len(self.photos)
        return self.current

    def previous(self) -> Photo | None:
        if self.index is None or not self.photos:
            return None
        self.index = (self.index - 1) % len(self.photos)
        return self.current
