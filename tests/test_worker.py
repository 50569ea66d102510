import threading
import time

import pytest

from task_queue import (
    TaskCanceledError,
    TaskFailedError,
    TaskQueue,
    TaskStatus,
    TaskType,
    TaskWorker,
)


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def wait_for_status(queue, task_id, status, timeout=5.0):
    return wait_until(lambda: queue.get_task(task_id).status == status, timeout)


class Notifications:
    def __init__(self):
        self.sent = []

    def __call__(self, title, body, enabled=True):
        self.sent.append((title, body, enabled))


@pytest.fixture
def queue(config):
    return TaskQueue(config)


@pytest.fixture
def notifications():
    return Notifications()


@pytest.fixture
def make_worker(queue, config, notifications):
    workers = []

    def _make(executor, password_provider=None):
        worker = TaskWorker(
            queue,
            executor=executor,
            settings=config,
            password_provider=password_provider,
            notify=notifications,
        )
        workers.append(worker)
        worker.start()
        return worker

    yield _make
    for worker in workers:
        worker.stop(timeout=2)


def test_successful_task_completes_and_records_output(queue, config, notifications, make_worker):
    config.set("notify_on_task_complete", True)

    def executor(task, on_output, cancel_requested, password_provider):
        on_output("resolving dependencies...")
        on_output("(1/1) installing foo")

    make_worker(executor)
    task_id = queue.add_task(TaskType.INSTALL, "foo")

    assert wait_for_status(queue, task_id, TaskStatus.COMPLETED)
    task = queue.get_task(task_id)
    assert task.output == ["resolving dependencies...", "(1/1) installing foo"]
    assert task.phase == "Installing"
    assert task.finished_at is not None
    assert wait_until(lambda: notifications.sent)
    assert notifications.sent[0][:2] == ("Parut Task Completed", "Install foo")


def test_failing_task_is_marked_failed_and_notifies(queue, config, notifications, make_worker):
    config.set("notifications_enabled", False)

    def executor(task, on_output, cancel_requested, password_provider):
        raise TaskFailedError("paru exited with code 1")

    make_worker(executor)
    task_id = queue.add_task(TaskType.REMOVE, "foo")

    assert wait_for_status(queue, task_id, TaskStatus.FAILED)
    assert queue.get_task(task_id).error == "paru exited with code 1"
    assert wait_until(lambda: notifications.sent)
    assert notifications.sent[0] == ("Parut Task Failed", "Remove foo: paru exited with code 1", False)


def test_unexpected_exception_fails_task(queue, make_worker):
    def executor(task, on_output, cancel_requested, password_provider):
        raise ValueError("bad value")

    make_worker(executor)
    task_id = queue.add_task(TaskType.INSTALL, "foo")

    assert wait_for_status(queue, task_id, TaskStatus.FAILED)
    assert queue.get_task(task_id).error == "bad value"


def test_cancel_running_task(queue, make_worker):
    started = threading.Event()

    def executor(task, on_output, cancel_requested, password_provider):
        started.set()
        while not cancel_requested():
            time.sleep(0.01)
        raise TaskCanceledError("canceled")

    make_worker(executor)
    task_id = queue.add_task(TaskType.UPDATE)

    assert started.wait(5)
    assert queue.request_cancel(task_id)
    assert wait_for_status(queue, task_id, TaskStatus.CANCELED)
    assert queue.get_task(task_id).error is None
    assert not queue.is_cancel_requested(task_id)


def test_tasks_run_one_at_a_time_by_default(queue, make_worker):
    active = []
    peak = []
    lock = threading.Lock()

    def executor(task, on_output, cancel_requested, password_provider):
        with lock:
            active.append(task.id)
            peak.append(len(active))
        time.sleep(0.05)
        with lock:
            active.remove(task.id)

    make_worker(executor)
    ids = [queue.add_task(TaskType.INSTALL, name) for name in ("a", "b", "c")]

    for task_id in ids:
        assert wait_for_status(queue, task_id, TaskStatus.COMPLETED)
    assert max(peak) == 1


def test_parallel_limit_allows_concurrent_tasks(queue, config, make_worker):
    config.set("max_parallel_tasks", 2)
    release = threading.Event()

    def executor(task, on_output, cancel_requested, password_provider):
        release.wait(5)

    make_worker(executor)
    ids = [queue.add_task(TaskType.INSTALL, name) for name in ("a", "b", "c")]

    assert wait_until(lambda: queue.running_count() == 2)
    assert queue.get_task(ids[2]).status == TaskStatus.QUEUED
    release.set()
    for task_id in ids:
        assert wait_for_status(queue, task_id, TaskStatus.COMPLETED)


def test_password_provider_is_passed_to_executor(queue, make_worker):
    seen = []

    def provider(prompt):
        return "secret"

    def executor(task, on_output, cancel_requested, password_provider):
        seen.append(password_provider("Password:"))

    make_worker(executor, password_provider=provider)
    task_id = queue.add_task(TaskType.CLEAN_CACHE)

    assert wait_for_status(queue, task_id, TaskStatus.COMPLETED)
    assert seen == ["secret"]


def test_stop_ends_scheduler_thread(queue, config, notifications):
    worker = TaskWorker(queue, executor=lambda *args: None, settings=config, notify=notifications)
    worker.start()
    assert worker.is_running()

    worker.stop(timeout=3)

    assert not worker.is_running()
