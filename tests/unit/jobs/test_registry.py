"""Tests for the task registry."""

import threading

import pytest

from mediaforge.domain.enums import JobKind, TaskStatus
from mediaforge.jobs.exceptions import InvalidTransitionError
from mediaforge.jobs.registry import TaskRegistry


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


def _set_status(status: TaskStatus):
    def mutate(record):
        record.status = status

    return mutate


class TestCreate:
    def test_new_task_is_queued(self, registry):
        task_id = registry.create(JobKind.FETCH, "https://example.com/v")
        snapshot = registry.get(task_id)
        assert snapshot.status is TaskStatus.QUEUED
        assert snapshot.kind is JobKind.FETCH
        assert snapshot.progress == 0.0
        assert snapshot.attempt == 0
        assert snapshot.completed_at is None

    def test_ids_are_unique(self, registry):
        ids = {registry.create(JobKind.FETCH, "x") for _ in range(50)}
        assert len(ids) == 50
        assert len(registry) == 50


class TestUpdate:
    def test_applies_mutator(self, registry):
        task_id = registry.create(JobKind.TRANSCODE, "clip.mkv")
        snapshot = registry.update(task_id, _set_status(TaskStatus.PROCESSING))
        assert snapshot.status is TaskStatus.PROCESSING
        assert registry.get(task_id).status is TaskStatus.PROCESSING

    def test_unknown_task(self, registry):
        assert registry.update("missing", _set_status(TaskStatus.FAILED)) is None

    def test_forbidden_transition_leaves_record_unchanged(self, registry):
        task_id = registry.create(JobKind.TRANSCODE, "clip.mkv")
        registry.update(task_id, _set_status(TaskStatus.PROCESSING))

        def pause_and_touch(record):
            record.status = TaskStatus.PAUSED
            record.progress = 77.0

        with pytest.raises(InvalidTransitionError):
            registry.update(task_id, pause_and_touch)
        snapshot = registry.get(task_id)
        assert snapshot.status is TaskStatus.PROCESSING
        assert snapshot.progress == 0.0

    def test_terminal_records_are_frozen(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")
        registry.update(task_id, _set_status(TaskStatus.CANCELLED))
        snapshot = registry.update(task_id, _set_status(TaskStatus.DOWNLOADING))
        assert snapshot.status is TaskStatus.CANCELLED

    def test_terminal_sets_completed_at(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")
        registry.update(task_id, _set_status(TaskStatus.DOWNLOADING))
        snapshot = registry.update(task_id, _set_status(TaskStatus.COMPLETED))
        assert snapshot.completed_at is not None
        assert snapshot.completed_at == snapshot.updated_at

    def test_kind_is_immutable(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")

        def change_kind(record):
            record.kind = JobKind.TRANSCODE

        with pytest.raises(ValueError):
            registry.update(task_id, change_kind)
        assert registry.get(task_id).kind is JobKind.FETCH

    def test_snapshots_do_not_alias_state(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")
        before = registry.get(task_id)
        registry.update(task_id, lambda r: setattr(r, "progress", 50.0))
        assert before.progress == 0.0

    def test_concurrent_updates_are_serialized(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")

        def bump(record):
            record.attempt += 1

        def worker():
            for _ in range(200):
                registry.update(task_id, bump)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert registry.get(task_id).attempt == 1600


class TestRemoveAndQueries:
    def test_remove_is_idempotent(self, registry):
        task_id = registry.create(JobKind.FETCH, "x")
        assert registry.remove(task_id) is True
        assert registry.remove(task_id) is False
        assert task_id not in registry
        assert registry.get(task_id) is None

    def test_list_and_count(self, registry):
        a = registry.create(JobKind.FETCH, "a")
        registry.create(JobKind.FETCH, "b")
        registry.create(JobKind.TRANSCODE, "c")
        registry.update(a, _set_status(TaskStatus.DOWNLOADING))

        assert len(registry.list()) == 3
        fetch_counts = registry.count_by_status(JobKind.FETCH)
        assert fetch_counts[TaskStatus.QUEUED] == 1
        assert fetch_counts[TaskStatus.DOWNLOADING] == 1
        assert registry.count_by_status()[TaskStatus.QUEUED] == 2

    def test_clear(self, registry):
        registry.create(JobKind.FETCH, "a")
        registry.clear()
        assert len(registry) == 0
