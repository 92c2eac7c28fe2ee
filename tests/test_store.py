from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import make_agenda, make_task
from taskboard.domain.entities import AttachmentEntity
from taskboard.domain.enums import AttachmentKind, TaskStatus
from taskboard.services.store import TaskStore


def _link(attachment_id: int, task_id: int = 1) -> AttachmentEntity:
    return AttachmentEntity(
        id=attachment_id, task_id=task_id, kind=AttachmentKind.LINK,
        name="Docs", url="https://example.com",
    )


def test_optimistic_values_are_visible_but_not_confirmed():
    store = TaskStore()
    store.load([make_task(1, status=TaskStatus.IN_PROGRESS, progress=10)])

    store.apply_optimistic(1, progress=40)

    assert store.get(1).progress == 40
    assert store.confirmed_value(1, "progress") == 10
    assert store.pending_value(1, "progress") == 40


def test_status_and_progress_change_in_one_notification():
    store = TaskStore()
    store.load([make_task(1)])
    seen = []
    store.subscribe(lambda s: seen.append((s.get(1).status, s.get(1).progress)))

    store.apply_optimistic(1, status=TaskStatus.IN_PROGRESS, progress=25)

    assert seen == [(TaskStatus.IN_PROGRESS, 25)]


def test_only_status_and_progress_are_optimistic():
    store = TaskStore()
    store.load([make_task(1)])
    with pytest.raises(ValueError):
        store.apply_optimistic(1, title="Renamed")
    with pytest.raises(KeyError):
        store.apply_optimistic(99, progress=10)


def test_optimistic_value_equal_to_confirmed_adds_no_overlay():
    store = TaskStore()
    store.load([make_task(1, progress=10)])
    store.apply_optimistic(1, progress=10)
    assert not store.has_pending(1)


def test_returning_to_confirmed_value_keeps_overlay_until_settled():
    store = TaskStore()
    store.load([make_task(1, progress=10)])
    store.apply_optimistic(1, progress=30)
    store.apply_optimistic(1, progress=10)

    assert store.pending_value(1, "progress") == 10
    store.commit(1, "progress", 30)
    assert store.get(1).progress == 10

    assert store.rollback(1, "progress", expected=10) is True
    assert store.get(1).progress == 30
    assert not store.has_pending(1)


def test_refresh_keeps_unconfirmed_edits():
    store = TaskStore()
    store.load([make_task(1, progress=10)])
    store.apply_optimistic(1, progress=60)

    store.load([make_task(1, progress=20, title="Renamed")])

    task = store.get(1)
    assert task.progress == 60
    assert task.title == "Renamed"
    assert store.confirmed_value(1, "progress") == 20


def test_refresh_drops_edits_of_vanished_tasks():
    store = TaskStore()
    store.load([make_task(1), make_task(2)])
    store.apply_optimistic(2, progress=50)

    store.load([make_task(1)])

    assert 2 not in store
    assert not store.has_pending(2)


def test_commit_keeps_newer_optimistic_value():
    store = TaskStore()
    store.load([make_task(1, progress=0)])
    store.apply_optimistic(1, progress=40)
    store.apply_optimistic(1, progress=70)

    store.commit(1, "progress", 40)

    assert store.confirmed_value(1, "progress") == 40
    assert store.get(1).progress == 70


def test_commit_of_latest_value_clears_overlay():
    store = TaskStore()
    store.load([make_task(1, progress=0)])
    store.apply_optimistic(1, progress=40)
    store.commit(1, "progress", 40)
    assert not store.has_pending(1)
    assert store.get(1).progress == 40


def test_rollback_restores_confirmed_value():
    store = TaskStore()
    store.load([make_task(1, progress=10)])
    store.apply_optimistic(1, progress=40)

    assert store.rollback(1, "progress", expected=40) is True
    assert store.get(1).progress == 10


def test_rollback_of_superseded_value_is_refused():
    store = TaskStore()
    store.load([make_task(1, progress=10)])
    store.apply_optimistic(1, progress=40)
    store.apply_optimistic(1, progress=70)

    assert store.rollback(1, "progress", expected=40) is False
    assert store.get(1).progress == 70


def test_rollback_touches_one_field_only():
    store = TaskStore()
    store.load([make_task(1)])
    store.apply_optimistic(1, status=TaskStatus.IN_PROGRESS, progress=25)

    store.rollback(1, "status")

    assert store.get(1).status == TaskStatus.NEW
    assert store.get(1).progress == 25


def test_columns_exclude_agenda_items():
    store = TaskStore()
    store.load([make_task(1), make_agenda(2)])
    assert [task.id for task in store.column(TaskStatus.NEW)] == [1]
    assert [task.id for task in store.agenda()] == [2]


def test_refresh_keeps_loaded_attachment_list_when_counts_match():
    store = TaskStore()
    store.load([make_task(1)])
    store.set_attachments(1, [_link(5)])

    store.load([make_task(1, links_count=1)])

    assert [item.id for item in store.get(1).attachments] == [5]


def test_refresh_drops_attachment_list_when_counts_moved():
    store = TaskStore()
    store.load([make_task(1)])
    store.set_attachments(1, [_link(5)])

    store.load([make_task(1, links_count=2)])

    assert store.get(1).attachments is None
    assert store.get(1).links_count == 2


def test_attachment_changes_update_counts():
    store = TaskStore()
    store.load([make_task(1)])
    store.set_attachments(1, [_link(5)])

    store.add_attachment(1, replace(_link(6), kind=AttachmentKind.FILE, url=None))
    assert (store.get(1).links_count, store.get(1).files_count) == (1, 1)

    store.remove_attachment(1, 5)
    assert (store.get(1).links_count, store.get(1).files_count) == (0, 1)


def test_unsubscribe_stops_notifications():
    store = TaskStore()
    calls = []
    unsubscribe = store.subscribe(calls.append)
    store.load([make_task(1)])
    unsubscribe()
    store.remove(1)
    assert len(calls) == 1
