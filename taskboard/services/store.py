from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable

from taskboard.domain.entities import AttachmentEntity, TaskEntity
from taskboard.domain.enums import TaskStatus

logger = logging.getLogger(__name__)

OPTIMISTIC_FIELDS = frozenset({"status", "progress"})

Listener = Callable[["TaskStore"], None]


class TaskStore:
    """In-memory collection of the tasks shown on the board.

    The store keeps two layers per task: the last state confirmed by the
    backend and a small overlay of optimistic field values that are still
    waiting for confirmation. What the UI sees is the confirmed state with
    the overlay applied. A refresh replaces the confirmed layer only, so
    edits in flight stay visible until they are committed or rolled back.
    """

    def __init__(self) -> None:
        self._confirmed: dict[int, TaskEntity] = {}
        self._pending: dict[int, dict[str, Any]] = {}
        self._visible: dict[int, TaskEntity] = {}
        self._listeners: list[Listener] = []
        self.version = 0

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._visible

    def __len__(self) -> int:
        return len(self._visible)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Reads

    def get(self, task_id: int) -> TaskEntity | None:
        return self._visible.get(task_id)

    def tasks(self) -> list[TaskEntity]:
        return list(self._visible.values())

    def column(self, status: TaskStatus) -> list[TaskEntity]:
        return [
            task for task in self._visible.values()
            if task.is_workflow and task.status == status
        ]

    def agenda(self) -> list[TaskEntity]:
        return [task for task in self._visible.values() if not task.is_workflow]

    def confirmed_value(self, task_id: int, field: str) -> Any:
        return getattr(self._confirmed[task_id], field)

    def pending_value(self, task_id: int, field: str, default: Any = None) -> Any:
        return self._pending.get(task_id, {}).get(field, default)

    def has_pending(self, task_id: int) -> bool:
        return bool(self._pending.get(task_id))

    # Confirmed state

    def load(self, tasks: Iterable[TaskEntity]) -> None:
        previous = self._confirmed
        self._confirmed = {}
        for task in tasks:
            old = previous.get(task.id)
            if old is not None and task.attachments is None and old.attachments is not None:
                # List endpoints only carry counts; keep a loaded detail list.
                if (old.links_count, old.files_count) == (task.links_count, task.files_count):
                    task = replace(task, attachments=old.attachments)
            self._confirmed[task.id] = task
        self._pending = {
            task_id: fields for task_id, fields in self._pending.items()
            if task_id in self._confirmed
        }
        self._visible = {task_id: self._compose(task_id) for task_id in self._confirmed}
        self._changed()

    def upsert(self, task: TaskEntity) -> None:
        self._confirmed[task.id] = task
        self._visible[task.id] = self._compose(task.id)
        self._changed()

    def remove(self, task_id: int) -> None:
        self._confirmed.pop(task_id, None)
        self._pending.pop(task_id, None)
        if self._visible.pop(task_id, None) is not None:
            self._changed()

    # Optimistic overlay

    def apply_optimistic(self, task_id: int, **changes: Any) -> TaskEntity:
        unknown = set(changes) - OPTIMISTIC_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited optimistically: {sorted(unknown)}")
        if task_id not in self._confirmed:
            raise KeyError(task_id)
        overlay = self._pending.setdefault(task_id, {})
        confirmed = self._confirmed[task_id]
        for field, value in changes.items():
            # Only commit or rollback drops an overlay, never a later intent.
            if field in overlay or getattr(confirmed, field) != value:
                overlay[field] = value
        if not overlay:
            self._pending.pop(task_id, None)
        self._visible[task_id] = self._compose(task_id)
        self._changed()
        return self._visible[task_id]

    def commit(self, task_id: int, field: str, value: Any) -> None:
        if task_id not in self._confirmed:
            return
        self._confirmed[task_id] = replace(self._confirmed[task_id], **{field: value})
        overlay = self._pending.get(task_id, {})
        if field in overlay and overlay[field] == value:
            del overlay[field]
            if not overlay:
                self._pending.pop(task_id, None)
        self._visible[task_id] = self._compose(task_id)
        self._changed()

    def rollback(self, task_id: int, field: str, expected: Any = None) -> bool:
        overlay = self._pending.get(task_id)
        if not overlay or field not in overlay:
            return False
        if expected is not None and overlay[field] != expected:
            logger.debug("Skip rollback of %s on task %s: superseded", field, task_id)
            return False
        del overlay[field]
        if not overlay:
            self._pending.pop(task_id, None)
        self._visible[task_id] = self._compose(task_id)
        self._changed()
        return True

    # Attachments (confirmed only, never optimistic)

    def set_attachments(self, task_id: int, attachments: Iterable[AttachmentEntity]) -> None:
        self._update_confirmed(task_id, lambda task: task.with_attachments(attachments))

    def add_attachment(self, task_id: int, attachment: AttachmentEntity) -> None:
        self._update_confirmed(task_id, lambda task: task.with_attachment_added(attachment))

    def remove_attachment(self, task_id: int, attachment_id: int) -> None:
        self._update_confirmed(task_id, lambda task: task.with_attachment_removed(attachment_id))

    def _update_confirmed(self, task_id: int, update: Callable[[TaskEntity], TaskEntity]) -> None:
        task = self._confirmed.get(task_id)
        if task is None:
            return
        self._confirmed[task_id] = update(task)
        self._visible[task_id] = self._compose(task_id)
        self._changed()

    def _compose(self, task_id: int) -> TaskEntity:
        task = self._confirmed[task_id]
        overlay = self._pending.get(task_id)
        return replace(task, **overlay) if overlay else task

    def _changed(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            listener(self)
