import time

import pytest

from task_queue import (
    SYSTEM_TARGET,
    TaskQueue,
    TaskStatus,
    TaskType,
    parse_phase,
    parse_progress,
    task_command,
)


@pytest.fixture
def queue(config):
    return TaskQueue(config)


def _statuses(queue):
    return [(t.package_name, t.status) for t in queue.get_tasks()]


def test_add_task_assigns_increasing_ids_and_notifies(queue):
    calls = []
    queue.add_listener(lambda: calls.append(1))

    first = queue.add_task(TaskType.INSTALL, "foo")
    second = queue.add_task(TaskType.UPDATE)

    assert second == first + 1
    assert [t.status for t in queue.get_tasks()] == [TaskStatus.QUEUED, TaskStatus.QUEUED]
    assert queue.get_task(second).package_name == SYSTEM_TARGET
    assert len(calls) == 2


def test_remove_listener_stops_notifications(queue):
    calls = []
    listener = lambda: calls.append(1)  # noqa: E731
    queue.add_listener(listener)
    queue.remove_listener(listener)

    queue.add_task(TaskType.INSTALL, "foo")

    assert calls == []


def test_failing_listener_does_not_break_queue(queue):
    def broken():
        raise RuntimeError("boom")

    queue.add_listener(broken)

    assert queue.add_task(TaskType.INSTALL, "foo") == 0


def test_get_tasks_returns_copies(queue):
    task_id = queue.add_task(TaskType.INSTALL, "foo")

    queue.get_tasks()[0].status = TaskStatus.FAILED

    assert queue.get_task(task_id).status == TaskStatus.QUEUED


def test_claim_next_queued_task_is_fifo(queue):
    queue.add_task(TaskType.INSTALL, "a")
    queue.add_task(TaskType.INSTALL, "b")

    claimed = queue.claim_next_queued_task()

    assert claimed.package_name == "a"
    assert claimed.status == TaskStatus.RUNNING
    assert claimed.started_at is not None
    assert claimed.phase == "Preparing"
    assert queue.running_count() == 1
    assert queue.claim_next_queued_task().package_name == "b"
    assert queue.claim_next_queued_task() is None


def test_update_task_status_sets_timestamps_and_error(queue):
    task_id = queue.add_task(TaskType.REMOVE, "foo")
    queue.claim_next_queued_task()

    queue.update_task_status(task_id, TaskStatus.FAILED, "exit 1")
    task = queue.get_task(task_id)
    assert task.error == "exit 1"
    assert task.finished_at is not None
    assert task.is_finished

    queue.update_task_status(task_id, TaskStatus.COMPLETED, "ignored")
    assert queue.get_task(task_id).error is None


def test_append_output_tracks_progress_phase_and_limit(queue, config):
    config.set("task_output_lines_limit", 50)
    task_id = queue.add_task(TaskType.INSTALL, "foo")

    queue.append_output(task_id, ":: Retrieving packages...")
    queue.append_output(task_id, "(2/4) installing foo")
    task = queue.get_task(task_id)
    assert task.phase == "Installing"
    assert task.progress == pytest.approx(0.5)

    for i in range(60):
        queue.append_output(task_id, f"line {i}")
    task = queue.get_task(task_id)
    assert len(task.output) == 50
    assert task.output[-1] == "line 59"


def test_clear_completed_keeps_active_tasks(queue):
    done = queue.add_task(TaskType.INSTALL, "done")
    queue.add_task(TaskType.INSTALL, "waiting")
    queue.claim_next_queued_task()
    queue.update_task_status(done, TaskStatus.COMPLETED)

    queue.clear_completed()

    assert _statuses(queue) == [("waiting", TaskStatus.QUEUED)]


def test_cancel_queued_task_only_removes_queued(queue):
    running = queue.add_task(TaskType.INSTALL, "running")
    waiting = queue.add_task(TaskType.INSTALL, "waiting")
    queue.claim_next_queued_task()

    assert not queue.cancel_queued_task(running)
    assert queue.cancel_queued_task(waiting)
    assert not queue.cancel_queued_task(waiting)
    assert _statuses(queue) == [("running", TaskStatus.RUNNING)]


def test_move_queued_tasks_skips_non_queued(queue):
    running = queue.add_task(TaskType.INSTALL, "running")
    a = queue.add_task(TaskType.INSTALL, "a")
    b = queue.add_task(TaskType.INSTALL, "b")
    queue.claim_next_queued_task()

    assert not queue.move_queued_task_up(running)
    assert not queue.move_queued_task_up(a)
    assert queue.move_queued_task_up(b)
    assert [t.package_name for t in queue.get_tasks()] == ["running", "b", "a"]

    assert not queue.move_queued_task_down(a)
    assert queue.move_queued_task_down(b)
    assert [t.package_name for t in queue.get_tasks()] == ["running", "a", "b"]


def test_run_queued_task_now(queue):
    queue.add_task(TaskType.INSTALL, "a")
    queue.add_task(TaskType.INSTALL, "b")
    c = queue.add_task(TaskType.INSTALL, "c")

    assert queue.run_queued_task_now(c)
    assert [t.package_name for t in queue.get_tasks()] == ["c", "a", "b"]
    assert not queue.run_queued_task_now(c)
    assert queue.claim_next_queued_task().package_name == "c"


def test_request_cancel_only_for_running(queue):
    task_id = queue.add_task(TaskType.INSTALL, "foo")
    assert not queue.request_cancel(task_id)

    queue.claim_next_queued_task()
    assert queue.request_cancel(task_id)
    assert queue.is_cancel_requested(task_id)
    assert queue.get_task(task_id).output[-1] == "Cancellation requested..."

    assert queue.take_cancel_request(task_id)
    assert not queue.take_cancel_request(task_id)
    assert not queue.is_cancel_requested(task_id)


def test_auto_clear_drops_old_finished_tasks(queue):
    old = queue.add_task(TaskType.INSTALL, "old")
    queue.add_task(TaskType.INSTALL, "queued")
    queue.update_task_status(old, TaskStatus.COMPLETED)
    finished_at = queue.get_task(old).finished_at

    assert not queue.auto_clear(0)
    assert not queue.auto_clear(5, now=finished_at + 60)
    assert queue.auto_clear(5, now=finished_at + 5 * 60 + 1)
    assert _statuses(queue) == [("queued", TaskStatus.QUEUED)]


def test_retry_failed_task_queues_a_copy(queue):
    task_id = queue.add_task(TaskType.UPDATE_PACKAGE, "foo")
    assert queue.retry_failed_task(task_id) is None

    queue.claim_next_queued_task()
    queue.update_task_status(task_id, TaskStatus.FAILED, "boom")
    new_id = queue.retry_failed_task(task_id)

    retried = queue.get_task(new_id)
    assert retried.status == TaskStatus.QUEUED
    assert retried.task_type == TaskType.UPDATE_PACKAGE
    assert retried.package_name == "foo"


def test_wake_releases_waiting_scheduler(queue):
    queue.wake()

    start = time.monotonic()
    queue.wait_for_work(5)

    assert time.monotonic() - start < 1


def test_task_title_and_duration(queue):
    task_id = queue.add_task(TaskType.UPDATE_PACKAGE, "foo")
    system_id = queue.add_task(TaskType.CLEAN_CACHE)

    assert queue.get_task(task_id).title == "Update Package foo"
    assert queue.get_task(system_id).title == "Clean Cache"
    assert queue.get_task(task_id).duration() is None

    queue.claim_next_queued_task()
    task = queue.get_task(task_id)
    assert task.duration(now=task.started_at + 42) == 42


@pytest.mark.parametrize("line, expected", [
    ("downloading foo  45%", 0.45),
    ("(3/4) checking keys", 0.75),
    ("total 150%", 1.0),
    ("(0/0) nothing", None),
    ("plain output", None),
])
def test_parse_progress(line, expected):
    result = parse_progress(line)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)


@pytest.mark.parametrize("line, expected", [
    ("resolving dependencies...", "Resolving dependencies"),
    (":: Retrieving packages...", "Downloading"),
    ("==> Making package: foo (makepkg)", "Building"),
    ("(1/1) upgrading foo", "Installing"),
    ("(1/1) removing foo", "Removing"),
    ("nothing interesting", None),
])
def test_parse_phase(line, expected):
    assert parse_phase(line) == expected


def test_task_command_mapping(queue, config):
    config.set("default_update_scope", "aur-only")
    config.set("ignored_updates", ["linux"])
    queue.add_task(TaskType.UPDATE)
    queue.add_task(TaskType.REMOVE, "foo")
    update, remove = queue.get_tasks()

    assert task_command(update, config) == ["paru", "-Syu", "--noconfirm", "--aur", "--ignore", "linux"]
    assert task_command(remove, config) == ["paru", "-Rns", "--noconfirm", "foo"]
