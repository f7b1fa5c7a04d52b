"""In-session photo collection with optimistic updates and reconciliation.

The store holds the visible photo list and the tombstone set. The remote
listing is authoritative once it catches up, but it can lag a finished upload
or deletion by several seconds, so every load merges instead of replacing:

* photos only known locally are kept until the listing reports them;
* tombstoned ids are dropped even while the listing still reports them.

Both structures are replaced whole on every change, never mutated in place.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from photo_share.domain.photos import Photo
from photo_share.errors import PhotoDeleteError

_logger = logging.getLogger(__name__)

DEFAULT_RECONCILE_DELAYS: tuple[float, ...] = (1.0, 3.0, 5.0, 10.0)

Listener = Callable[[], None]


class PhotoSource(Protocol):
    """Authoritative remote photo collection."""

    async def list_photos(self) -> list[Photo]:
        """Return the current remote listing."""

    async def delete_photo(self, photo_id: str) -> None:
        """Delete a photo remotely, raising on failure."""


def merge_photos(
    remote: Iterable[Photo],
    local: Iterable[Photo],
    tombstones: frozenset[str] = frozenset(),
) -> list[Photo]:
    """Merge a remote listing with the local list.

    Remote entries come first, followed by local entries the listing has not
    caught up with. Tombstoned ids are removed and ids are unique in the
    result (first occurrence wins).
    """
    remote_list = list(remote)
    remote_ids = {photo.id for photo in remote_list}
    local_only = [photo for photo in local if photo.id not in remote_ids]
    merged: list[Photo] = []
    seen: set[str] = set()
    for photo in [*remote_list, *local_only]:
        if photo.id in tombstones or photo.id in seen:
            continue
        seen.add(photo.id)
        merged.append(photo)
    return merged


@dataclass
class PhotoStore:
    """Single source of truth for the session's photo collection."""

    source: PhotoSource
    reconcile_delays: tuple[float, ...] = DEFAULT_RECONCILE_DELAYS
    refresh_interval_seconds: float = 30.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)
    _photos: tuple[Photo, ...] = field(default=(), init=False)
    _tombstones: frozenset[str] = field(default=frozenset(), init=False)
    _is_loading: bool = field(default=True, init=False)
    _visible: bool = field(default=True, init=False)
    _listeners: tuple[Listener, ...] = field(default=(), init=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    @property
    def photos(self) -> list[Photo]:
        return list(self._photos)

    @property
    def tombstones(self) -> frozenset[str]:
        return self._tombstones

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    def get(self, photo_id: str) -> Photo | None:
        for photo in self._photos:
            if photo.id == photo_id:
                return photo
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a function that removes it."""
        self._listeners = (*self._listeners, listener)

        def unsubscribe() -> None:
            self._listeners = tuple(item for item in self._listeners if item is not listener)

        return unsubscribe

    async def load(self) -> list[Photo]:
        """Fetch the remote listing and merge it into the visible list.

        A failed fetch is logged and leaves the list unchanged.
        """
        self._is_loading = True
        self._notify()
        try:
            remote = await self.source.list_photos()
        except Exception:
            _logger.exception("Failed to load photos")
        else:
            self._photos = tuple(merge_photos(remote, self._photos, self._tombstones))
            _logger.info("Loaded %s photos", len(self._photos))
        finally:
            self._is_loading = False
            self._notify()
        return self.photos

    async def refresh(self) -> list[Photo]:
        """Reload immediately."""
        return await self.load()

    def add_photo(self, photo: Photo) -> None:
        """Prepend a photo now and reconcile with the listing later."""
        if photo.id in self._tombstones:
            _logger.warning("Ignoring add of deleted photo %s", photo.id)
            return
        self._photos = (photo, *(item for item in self._photos if item.id != photo.id))
        self._notify()
        if self.reconcile_delays:
            self._spawn(self._reconcile(self.reconcile_delays))

    def update_photo(self, photo_id: str, **changes: Any) -> bool:
        """Shallow-merge fields into one photo; return whether it was found."""
        found = False
        updated: list[Photo] = []
        for photo in self._photos:
            if photo.id == photo_id:
                found = True
                photo = dataclasses.replace(photo, **changes)  # noqa: PLW2901
            updated.append(photo)
        if found:
            self._photos = tuple(updated)
            self._notify()
        return found

    async def delete_photo(self, photo_id: str) -> None:
        """Hide a photo immediately, then delete it remotely.

        On failure the tombstone is lifted, the photo is put back, the
        listing is reloaded and ``PhotoDeleteError`` is raised.
        """
        removed = self.get(photo_id)
        self._tombstones = self._tombstones | {photo_id}
        self._photos = tuple(photo for photo in self._photos if photo.id != photo_id)
        self._notify()
        try:
            await self.source.delete_photo(photo_id)
        except Exception as exc:
            _logger.exception("Failed to delete photo %s", photo_id)
            self._tombstones = self._tombstones - {photo_id}
            if removed is not None:
                self._photos = (removed, *self._photos)
            await self.load()
            raise PhotoDeleteError(photo_id, f"Failed to delete photo: {exc}") from exc
        _logger.info("Deleted photo %s", photo_id)

    def set_visible(self, visible: bool) -> None:
        """Track viewer visibility; regaining it triggers a reload."""
        was_visible = self._visible
        self._visible = visible
        if visible and not was_visible:
            self._spawn(self.load())

    def start_background_refresh(self) -> asyncio.Task:
        """Reload on a fixed interval while visible."""
        return self._spawn(self._refresh_loop())

    async def aclose(self) -> None:
        """Cancel scheduled reconciliation and refresh tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_settled(self) -> None:
        """Wait for every scheduled pass to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    async def _reconcile(self, delays: tuple[float, ...]) -> None:
        elapsed = 0.0
        for delay in sorted(delays):
            await self.sleep(max(0.0, delay - elapsed))
            elapsed = delay
            await self.load()

    async def _refresh_loop(self) -> None:
        while True:
            await self.sleep(self.refresh_interval_seconds)
            if self._visible:
                await self.load()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener()
            except Exception:
                _logger.exception("Photo listener failed")
