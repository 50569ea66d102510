"""Background task queue for paru operations.

Tasks are kept in insertion order inside :class:`TaskQueue`. A single
scheduler thread in :class:`TaskWorker` claims queued tasks and runs each one
on its own thread, never exceeding ``max_parallel_tasks`` at a time. Every
mutation notifies the registered listeners so the UI can redraw; listeners are
called from whichever thread made the change.
"""

from __future__ import annotations

import copy
import enum
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import paru
from logger import get_logger
from runner import (
    PasswordFn,
    TaskCanceledError,
    TaskError,
    TaskFailedError,
    build_runner,
)
from settings import Settings, settings as default_settings
from utils import send_notification

log = get_logger("task_queue")

__all__ = [
    "Task",
    "TaskCanceledError",
    "TaskError",
    "TaskFailedError",
    "TaskQueue",
    "TaskStatus",
    "TaskType",
    "TaskWorker",
    "default_executor",
]

SYSTEM_TARGET = "system"

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)%")
_STEP_RE = re.compile(r"\((\d+)/(\d+)\)")

_PHASES = [
    (("resolving dependencies",), "Resolving dependencies"),
    (("checking keys",), "Checking keys"),
    (("checking package integrity",), "Verifying package integrity"),
    (("loading package files",), "Loading package files"),
    (("checking for file conflicts",), "Checking file conflicts"),
    (("downloading", "retrieving"), "Downloading"),
    (("building", "makepkg"), "Building"),
    (("installing", "upgrading"), "Installing"),
    (("removing",), "Removing"),
]


class TaskType(enum.Enum):
    INSTALL = "install"
    REMOVE = "remove"
    UPDATE = "update"
    UPDATE_PACKAGE = "update_package"
    CLEAN_CACHE = "clean_cache"
    REMOVE_ORPHANS = "remove_orphans"

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()


class TaskStatus(enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.CANCELED, TaskStatus.FAILED)


def _now() -> int:
    return int(time.time())


@dataclass
class Task:
    id: int
    task_type: TaskType
    package_name: str
    status: TaskStatus = TaskStatus.QUEUED
    error: Optional[str] = None
    output: List[str] = field(default_factory=list)
    progress: Optional[float] = None
    phase: Optional[str] = None
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.status.is_finished

    def duration(self, now: Optional[int] = None) -> Optional[int]:
        if self.started_at is None:
            return None
        end = self.finished_at if self.finished_at is not None else (now or _now())
        return max(end - self.started_at, 0)

    @property
    def title(self) -> str:
        if self.package_name == SYSTEM_TARGET:
            return self.task_type.label
        return f"{self.task_type.label} {self.package_name}"


def parse_progress(line: str) -> Optional[float]:
    """Extract a 0..1 progress value from ``45%`` or ``(1/4)`` style output."""
    match = _PERCENT_RE.search(line)
    if match:
        return min(max(float(match.group(1)) / 100.0, 0.0), 1.0)

    match = _STEP_RE.search(line)
    if match:
        current, total = int(match.group(1)), int(match.group(2))
        if total > 0:
            return min(max(current / total, 0.0), 1.0)
    return None


def parse_phase(line: str) -> Optional[str]:
    lower = line.lower()
    for needles, phase in _PHASES:
        if any(n in lower for n in needles):
            return phase
    return None


class TaskQueue:
    """Thread-safe ordered list of tasks."""

    def __init__(self, settings: Optional[Settings] = None):
        self._config = settings or default_settings
        self._tasks: List[Task] = []
        self._next_id = 0
        self._lock = threading.Lock()
        self._cancel_requested: set[int] = set()
        self._listeners: List[Callable[[], None]] = []
        self._wakeup = threading.Event()

    # ---- listeners ----

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                log.exception("Task queue listener failed")

    # ---- lookup ----

    def _find(self, task_id: int) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def get_tasks(self) -> List[Task]:
        with self._lock:
            return copy.deepcopy(self._tasks)

    def get_task(self, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._find(task_id)
            return copy.deepcopy(task) if task else None

    def running_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks if t.status == TaskStatus.RUNNING)

    def has_running_task(self) -> bool:
        return self.running_count() > 0

    # ---- mutation ----

    def add_task(self, task_type: TaskType, package_name: str = SYSTEM_TARGET) -> int:
        with self._lock:
            task_id = self._next_id
            self._next_id += 1
            self._tasks.append(Task(id=task_id, task_type=task_type, package_name=package_name))
        log.info("Queued task %d: %s %s", task_id, task_type.value, package_name)
        self.wake()
        self._notify()
        return task_id

    def claim_next_queued_task(self) -> Optional[Task]:
        """Atomically mark the first queued task as running and return a copy."""
        with self._lock:
            task = next((t for t in self._tasks if t.status == TaskStatus.QUEUED), None)
            if task is None:
                return None
            task.status = TaskStatus.RUNNING
            task.started_at = _now()
            task.finished_at = None
            task.phase = "Preparing"
            claimed = copy.deepcopy(task)
        self._notify()
        return claimed

    def update_task_status(self, task_id: int, status: TaskStatus, error: Optional[str] = None) -> None:
        with self._lock:
            task = self._find(task_id)
            if task is not None:
                if status == TaskStatus.RUNNING:
                    task.started_at = _now()
                    task.phase = "Preparing"
                    task.finished_at = None
                elif status.is_finished:
                    task.finished_at = _now()
                task.status = status
                task.error = error if status == TaskStatus.FAILED else None
        self._notify()

    def append_output(self, task_id: int, line: str) -> None:
        limit = self._config.output_lines_limit()
        with self._lock:
            task = self._find(task_id)
            if task is not None:
                progress = parse_progress(line)
                if progress is not None:
                    task.progress = progress
                phase = parse_phase(line)
                if phase is not None:
                    task.phase = phase
                task.output.append(line)
                if len(task.output) > limit:
                    del task.output[: len(task.output) - limit]
        self._notify()

    def clear_completed(self) -> None:
        with self._lock:
            self._tasks = [t for t in self._tasks if not t.is_finished]
        self._notify()

    def cancel_queued_task(self, task_id: int) -> bool:
        with self._lock:
            before = len(self._tasks)
            self._tasks = [
                t for t in self._tasks
                if not (t.id == task_id and t.status == TaskStatus.QUEUED)
            ]
            changed = len(self._tasks) != before
        if changed:
            self._notify()
        return changed

    def _queued_index(self, task_id: int) -> Optional[int]:
        for idx, task in enumerate(self._tasks):
            if task.id == task_id and task.status == TaskStatus.QUEUED:
                return idx
        return None

    def move_queued_task_up(self, task_id: int) -> bool:
        with self._lock:
            idx = self._queued_index(task_id)
            if idx is None:
                return False
            prev_idx = next(
                (i for i in range(idx - 1, -1, -1) if self._tasks[i].status == TaskStatus.QUEUED),
                None,
            )
            if prev_idx is None:
                return False
            self._tasks[idx], self._tasks[prev_idx] = self._tasks[prev_idx], self._tasks[idx]
        self._notify()
        return True

    def move_queued_task_down(self, task_id: int) -> bool:
        with self._lock:
            idx = self._queued_index(task_id)
            if idx is None:
                return False
            next_idx = next(
                (i for i in range(idx + 1, len(self._tasks)) if self._tasks[i].status == TaskStatus.QUEUED),
                None,
            )
            if next_idx is None:
                return False
            self._tasks[idx], self._tasks[next_idx] = self._tasks[next_idx], self._tasks[idx]
        self._notify()
        return True

    def run_queued_task_now(self, task_id: int) -> bool:
        """Move a queued task in front of every other queued task."""
        with self._lock:
            idx = self._queued_index(task_id)
            if idx is None:
                return False
            first = next(i for i, t in enumerate(self._tasks) if t.status == TaskStatus.QUEUED)
            if idx == first:
                return False
            task = self._tasks.pop(idx)
            self._tasks.insert(first, task)
        self._notify()
        return True

    def request_cancel(self, task_id: int) -> bool:
        with self._lock:
            task = self._find(task_id)
            if task is None or task.status != TaskStatus.RUNNING:
                return False
            self._cancel_requested.add(task_id)
        log.info("Cancellation requested for task %d", task_id)
        self.append_output(task_id, "Cancellation requested...")
        return True

    def is_cancel_requested(self, task_id: int) -> bool:
        with self._lock:
            return task_id in self._cancel_requested

    def take_cancel_request(self, task_id: int) -> bool:
        with self._lock:
            if task_id in self._cancel_requested:
                self._cancel_requested.discard(task_id)
                return True
            return False

    def auto_clear(self, minutes: int, now: Optional[int] = None) -> bool:
        """Drop finished tasks older than *minutes*; 0 disables the cleanup."""
        if minutes <= 0:
            return False
        cutoff = (now or _now()) - minutes * 60
        with self._lock:
            before = len(self._tasks)
            self._tasks = [
                t for t in self._tasks
                if not t.is_finished or t.finished_at is None or t.finished_at >= cutoff
            ]
            changed = len(self._tasks) != before
        if changed:
            self._notify()
        return changed

    def retry_failed_task(self, task_id: int) -> Optional[int]:
        with self._lock:
            task = self._find(task_id)
            if task is None or task.status != TaskStatus.FAILED:
                return None
            task_type, package_name = task.task_type, task.package_name
        return self.add_task(task_type, package_name)

    # ---- worker support ----

    def wake(self) -> None:
        """Let a waiting scheduler look for work immediately."""
        self._wakeup.set()

    def wait_for_work(self, timeout: float) -> None:
        self._wakeup.wait(timeout)
        self._wakeup.clear()


Executor = Callable[[Task, Callable[[str], None], Callable[[], bool], Optional[PasswordFn]], None]


def task_command(task: Task, config: Settings) -> list[str]:
    """Map a task onto its paru command line."""
    if task.task_type == TaskType.INSTALL:
        return paru.install_command(task.package_name)
    if task.task_type == TaskType.REMOVE:
        return paru.remove_command(task.package_name)
    if task.task_type == TaskType.UPDATE:
        return paru.update_system_command(
            config.get("default_update_scope"),
            config.ignored_update_names(),
        )
    if task.task_type == TaskType.UPDATE_PACKAGE:
        return paru.update_package_command(task.package_name)
    if task.task_type == TaskType.CLEAN_CACHE:
        return paru.clean_cache_command()
    if task.task_type == TaskType.REMOVE_ORPHANS:
        return paru.remove_orphans_command()
    raise TaskFailedError(f"Unsupported task type: {task.task_type}")


def default_executor(
    task: Task,
    on_output: Callable[[str], None],
    cancel_requested: Callable[[], bool],
    password_provider: Optional[PasswordFn] = None,
    settings: Optional[Settings] = None,
) -> None:
    config = settings or default_settings
    argv = task_command(task, config)
    log.info("Starting %s", task.title)
    try:
        build_runner(config).run(argv, on_output, cancel_requested, password_provider)
    except TaskError as exc:
        log.error("%s failed: %s", task.title, exc)
        raise
    log.info("%s completed successfully", task.title)


class TaskWorker:
    """Scheduler thread that dispatches queued tasks."""

    BUSY_WAIT = 0.5
    IDLE_WAIT = 1.0

    def __init__(
        self,
        queue: TaskQueue,
        executor: Optional[Executor] = None,
        settings: Optional[Settings] = None,
        password_provider: Optional[PasswordFn] = None,
        notify: Callable[..., None] = send_notification,
    ):
        self.queue = queue
        self.config = settings or default_settings
        self.executor = executor or (
            lambda task, out, cancel, pw: default_executor(task, out, cancel, pw, self.config)
        )
        self.password_provider = password_provider
        self._notify = notify
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="parut-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self.queue.wake()
        if self._thread:
            self._thread.join(timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.queue.auto_clear(self.config.auto_clear_minutes())

            if self.queue.running_count() >= self.config.max_parallel():
                self._stop.wait(self.BUSY_WAIT)
                continue

            task = self.queue.claim_next_queued_task()
            if task is None:
                self.queue.wait_for_work(self.IDLE_WAIT)
                continue

            threading.Thread(
                target=self._execute,
                args=(task,),
                name=f"parut-task-{task.id}",
                daemon=True,
            ).start()

    def _execute(self, task: Task) -> None:
        queue = self.queue
        try:
            self.executor(
                task,
                lambda line: queue.append_output(task.id, line),
                lambda: queue.is_cancel_requested(task.id),
                self.password_provider,
            )
        except Exception as exc:
            if queue.take_cancel_request(task.id) or isinstance(exc, TaskCanceledError):
                queue.update_task_status(task.id, TaskStatus.CANCELED)
                return
            if not isinstance(exc, TaskError):
                log.exception("Unexpected error while running task %d", task.id)
            queue.update_task_status(task.id, TaskStatus.FAILED, str(exc))
            if self.config.get("notify_on_task_failed"):
                self._notify(
                    "Parut Task Failed",
                    f"{task.title}: {exc}",
                    self.config.get("notifications_enabled"),
                )
        else:
            queue.take_cancel_request(task.id)
            queue.update_task_status(task.id, TaskStatus.COMPLETED)
            if self.config.get("notify_on_task_complete"):
                self._notify(
                    "Parut Task Completed",
                    task.title,
                    self.config.get("notifications_enabled"),
                )
        finally:
            # Wake the scheduler so the next task starts without waiting.
            queue.wake()
