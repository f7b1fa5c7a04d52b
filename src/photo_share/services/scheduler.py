"""Bounded-concurrency upload queue with manual retry."""

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from photo_share.domain.uploads import UploadFile, UploadResult, UploadStatus, UploadTask
from photo_share.errors import UploadError
from photo_share.services.uploads import Uploader

_logger = logging.getLogger(__name__)

TaskListener = Callable[[UploadTask], None]
UploadedCallback = Callable[[UploadTask, UploadResult], None]


def _new_task_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class UploadScheduler:
    """Admits queued uploads in FIFO order, at most ``max_concurrent`` at once.

    The uploading set is replaced copy-on-write; a finishing upload leaves it
    before the next admission check. Failed tasks stay failed until
    ``retry`` or ``retry_failed`` puts them back at the end of the queue.
    """

    uploader: Uploader
    max_concurrent: int = 2
    on_uploaded: UploadedCallback | None = None
    _tasks: dict[str, UploadTask] = field(default_factory=dict, init=False)
    _queue: tuple[str, ...] = field(default=(), init=False)
    _uploading: frozenset[str] = field(default=frozenset(), init=False)
    _listeners: tuple[TaskListener, ...] = field(default=(), init=False)
    _running: set[asyncio.Task] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

    @property
    def tasks(self) -> list[UploadTask]:
        return list(self._tasks.values())

    @property
    def uploading(self) -> frozenset[str]:
        return self._uploading

    @property
    def queued(self) -> tuple[str, ...]:
        return self._queue

    def get(self, task_id: str) -> UploadTask | None:
        return self._tasks.get(task_id)

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """Register a listener called on every task transition."""
        self._listeners = (*self._listeners, listener)

        def unsubscribe() -> None:
            self._listeners = tuple(item for item in self._listeners if item is not listener)

        return unsubscribe

    def enqueue(self, file: UploadFile, photo_date: str, uploaded_by: str) -> UploadTask:
        """Queue a file for upload and admit it if a slot is free."""
        task = UploadTask(
            id=_new_task_id(),
            file=file,
            photo_date=photo_date,
            uploaded_by=uploaded_by,
        )
        self._tasks = {**self._tasks, task.id: task}
        self._queue = (*self._queue, task.id)
        self._emit(task)
        self._admit()
        return self._tasks[task.id]

    def retry(self, task_id: str) -> UploadTask:
        """Move a failed task back to the end of the queue."""
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)
        if task.status is not UploadStatus.ERROR:
            raise ValueError(f"Task {task_id} is {task.status.value}, not error")
        self._transition(task_id, status=UploadStatus.QUEUED, progress=0, error=None)
        self._queue = (*self._queue, task_id)
        self._admit()
        return self._tasks[task_id]

    def retry_failed(self) -> list[UploadTask]:
        """Retry every failed task in the order they were enqueued."""
        failed = [task.id for task in self._tasks.values() if task.status is UploadStatus.ERROR]
        return [self.retry(task_id) for task_id in failed]

    def remove(self, task_id: str) -> UploadTask:
        """Forget a finished task and return it."""
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)
        if not task.status.is_terminal:
            raise ValueError(f"Task {task_id} is still {task.status.value}")
        self._tasks = {key: value for key, value in self._tasks.items() if key != task_id}
        return task

    async def wait_idle(self) -> None:
        """Wait until nothing is queued or uploading."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
            await asyncio.sleep(0)

    def _admit(self) -> None:
        while self._queue and len(self._uploading) < self.max_concurrent:
            task_id, *rest = self._queue
            self._queue = tuple(rest)
            self._uploading = self._uploading | {task_id}
            task = self._transition(
                task_id,
                status=UploadStatus.UPLOADING,
                progress=0,
                attempts=self._tasks[task_id].attempts + 1,
            )
            runner = asyncio.get_running_loop().create_task(self._run(task))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    async def _run(self, task: UploadTask) -> None:
        def on_progress(value: int) -> None:
            current = self._tasks.get(task.id)
            if current is None or current.status is not UploadStatus.UPLOADING:
                return
            clamped = max(current.progress, min(100, int(value)))
            if clamped != current.progress:
                self._transition(task.id, progress=clamped)

        try:
            result = await self.uploader.upload(
                task.file, task.photo_date, task.uploaded_by, on_progress
            )
        except UploadError as exc:
            _logger.warning("Upload of %s failed: %s", task.file.name, exc)
            self._finish(task.id, status=UploadStatus.ERROR, error=str(exc))
        except Exception as exc:
            _logger.exception("Unexpected upload failure for %s", task.file.name)
            self._finish(task.id, status=UploadStatus.ERROR, error=str(exc) or type(exc).__name__)
        else:
            finished = self._finish(
                task.id,
                status=UploadStatus.SUCCESS,
                progress=100,
                photo_id=result.id,
            )
            if self.on_uploaded is not None:
                try:
                    self.on_uploaded(finished, result)
                except Exception:
                    _logger.exception("Upload callback failed for %s", task.id)

    def _finish(self, task_id: str, **changes: Any) -> UploadTask:
        self._uploading = self._uploading - {task_id}
        task = self._transition(task_id, **changes)
        self._admit()
        return task

    def _transition(self, task_id: str, **changes: Any) -> UploadTask:
        task = dataclasses.replace(self._tasks[task_id], **changes)
        self._tasks = {**self._tasks, task_id: task}
        self._emit(task)
        return task

    def _emit(self, task: UploadTask) -> None:
        for listener in self._listeners:
            try:
                listener(task)
            except Exception:
                _logger.exception("Task listener failed for %s", task.id)
