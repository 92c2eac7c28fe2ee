from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from taskboard.domain.enums import TaskStatus
from taskboard.domain.errors import NotDraggable
from taskboard.domain.policy import compute_transition
from taskboard.infra.api import TaskApi
from taskboard.services.progress import ProgressCoordinator
from taskboard.services.runtime import Executor, Notifier, error_message
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)

PREVIEW_EXCERPT = 120


class DragState(StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    OVER_TARGET = "over_target"
    DROPPED = "dropped"


@dataclass(frozen=True)
class DragPayload:
    task_id: int
    origin_status: TaskStatus


@dataclass(frozen=True)
class DragPreview:
    title: str
    excerpt: str
    due_date: date | None


class _MoveTicket:
    """Collects the outcome of the calls issued by one drop."""

    def __init__(self, notifier: Notifier, expected: int) -> None:
        self._notifier = notifier
        self._remaining = expected
        self._errors: list[str] = []

    def settle(self, error: Exception | None) -> None:
        if error is not None:
            message = error_message(error)
            if message not in self._errors:
                self._errors.append(message)
        self._remaining -= 1
        if self._remaining == 0:
            for message in self._errors:
                self._notifier.error(message)


class DragTransfer:
    """State machine for one drag gesture plus the move it commits."""

    def __init__(
        self,
        store: TaskStore,
        api: TaskApi,
        executor: Executor,
        coordinator: ProgressCoordinator,
        notifier: Notifier,
    ) -> None:
        self._store = store
        self._api = api
        self._executor = executor
        self._coordinator = coordinator
        self._notifier = notifier
        self.state = DragState.IDLE
        self.payload: DragPayload | None = None
        self.candidate: TaskStatus | None = None

    def begin(self, task_id: int) -> bool:
        task = self._store.get(task_id)
        if task is None or not task.is_workflow:
            return False
        self.payload = DragPayload(task_id, task.status)
        self.candidate = None
        self.state = DragState.DRAGGING
        return True

    def hover(self, status: TaskStatus | None) -> None:
        if self.state == DragState.IDLE:
            return
        self.candidate = TaskStatus(status) if status is not None else None
        self.state = DragState.OVER_TARGET if status is not None else DragState.DRAGGING

    def drop(self) -> bool:
        if self.state == DragState.IDLE or self.payload is None:
            return False
        payload, target = self.payload, self.candidate
        self.state = DragState.DROPPED
        try:
            if target is None or target == payload.origin_status:
                return False
            return self.move(payload.task_id, target)
        finally:
            self._reset()

    def cancel(self) -> None:
        self._reset()

    def preview(self) -> DragPreview | None:
        if self.payload is None:
            return None
        task = self._store.get(self.payload.task_id)
        if task is None:
            return None
        return DragPreview(
            title=task.title,
            excerpt=(task.description or "")[:PREVIEW_EXCERPT],
            due_date=task.due_date,
        )

    def move(self, task_id: int, target_status: TaskStatus) -> bool:
        task = self._store.get(task_id)
        if task is None or task.status == target_status:
            return False
        try:
            new_status, new_progress = compute_transition(task, target_status)
        except NotDraggable:
            return False

        progress_changed = new_progress != task.progress
        changes = {"status": new_status}
        if progress_changed:
            changes["progress"] = new_progress
        self._store.apply_optimistic(task_id, **changes)
        logger.info("Move task %s: %s -> %s", task_id, task.status, new_status)

        ticket = _MoveTicket(self._notifier, 2 if progress_changed else 1)
        self._executor.submit(
            lambda: self._api.update_task_status(task_id, new_status),
            lambda _result: self._status_confirmed(task_id, new_status, ticket),
            lambda exc: self._status_failed(task_id, new_status, ticket, exc),
        )
        if progress_changed:
            self._coordinator.confirm_applied(task_id, ticket.settle)
        return True

    def _status_confirmed(self, task_id: int, status: TaskStatus, ticket: _MoveTicket) -> None:
        self._store.commit(task_id, "status", status)
        ticket.settle(None)

    def _status_failed(
        self, task_id: int, status: TaskStatus, ticket: _MoveTicket, exc: Exception
    ) -> None:
        if self._store.rollback(task_id, "status", expected=status):
            logger.warning("Status update for task %s failed: %s", task_id, exc)
            ticket.settle(exc)
        else:
            ticket.settle(None)

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.payload = None
        self.candidate = None
