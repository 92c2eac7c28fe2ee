from __future__ import annotations

import logging
from datetime import date, time, timedelta
from pathlib import Path

from taskboard.domain.entities import TaskEntity
from taskboard.domain.enums import TaskStatus
from taskboard.domain.filters import TaskFilters
from taskboard.infra.api import TaskApi
from taskboard.services.attachments import AttachmentSynchronizer, ConfirmRemoval
from taskboard.services.drag import DragTransfer
from taskboard.services.progress import DEFAULT_DEBOUNCE_MS, ProgressCoordinator
from taskboard.services.runtime import Executor, Notifier, Scheduler, error_message
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)


class BoardService:
    """Owns the Store and the engine components of one board view."""

    def __init__(
        self,
        api: TaskApi,
        scheduler: Scheduler,
        executor: Executor,
        notifier: Notifier,
        confirm_removal: ConfirmRemoval,
        user_id: int | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        store: TaskStore | None = None,
    ) -> None:
        self._api = api
        self._executor = executor
        self._notifier = notifier
        self.user_id = user_id
        self.filters = TaskFilters()
        self.store = store if store is not None else TaskStore()
        self.progress = ProgressCoordinator(
            self.store, api, scheduler, executor, notifier, debounce_ms=debounce_ms
        )
        self.drag = DragTransfer(self.store, api, executor, self.progress, notifier)
        self.attachments = AttachmentSynchronizer(
            self.store, api, executor, notifier, confirm_removal, request_refresh=self.refresh
        )
        self._refresh_seq = 0
        self.loading = False

    def refresh(self) -> None:
        self._refresh_seq += 1
        seq = self._refresh_seq
        self.loading = True
        # The backend only narrows by type; the rest is filtered client-side.
        remote_filters = TaskFilters(item_type=self.filters.item_type)
        self._executor.submit(
            lambda: self._api.fetch_tasks(remote_filters),
            lambda tasks: self._loaded(seq, tasks),
            lambda exc: self._load_failed(seq, exc),
        )

    def set_filters(self, filters: TaskFilters) -> None:
        refetch = filters.item_type != self.filters.item_type
        self.filters = filters
        if refetch:
            self.refresh()

    def visible_tasks(self) -> list[TaskEntity]:
        return [task for task in self.store.tasks() if self.filters.matches(task, self.user_id)]

    def column(self, status: TaskStatus) -> list[TaskEntity]:
        return [
            task for task in self.visible_tasks()
            if task.is_workflow and task.status == status
        ]

    def agenda(self) -> list[TaskEntity]:
        items = [task for task in self.visible_tasks() if not task.is_workflow]
        return sorted(items, key=lambda task: (task.due_date or date.max, task.start_time or time.min))

    # Thin forwards used by the UI

    def move_task(self, task_id: int, status: TaskStatus) -> bool:
        return self.drag.move(task_id, status)

    def submit_progress(self, task_id: int, value: int, immediate: bool = False) -> bool:
        return self.progress.submit_progress(task_id, value, immediate)

    def add_link(self, task_id: int, url: str, name: str | None = None) -> bool:
        return self.attachments.add_link(task_id, url, name)

    def add_file(self, task_id: int, path: str | Path) -> bool:
        return self.attachments.add_file(task_id, path)

    def remove_attachment(self, task_id: int, attachment_id: int) -> bool:
        return self.attachments.remove(task_id, attachment_id)

    def open_task(self, task_id: int) -> None:
        self.attachments.open(task_id)

    def delete_task(self, task_id: int) -> None:
        self._executor.submit(
            lambda: self._api.delete_task(task_id),
            lambda _result: self._deleted(task_id),
            lambda exc: self._failed("delete", task_id, exc),
        )

    def get_metrics(self, today: date | None = None) -> dict[str, int]:
        today = today or date.today()
        week_end = today + timedelta(days=6 - today.weekday())
        workflow = [task for task in self.store.tasks() if task.is_workflow]
        open_tasks = [task for task in workflow if task.status != TaskStatus.DONE]
        return {
            "active": len(open_tasks),
            "done": sum(1 for task in workflow if task.status == TaskStatus.DONE),
            "pending_review": sum(1 for task in workflow if task.status == TaskStatus.IN_REVIEW),
            "due_this_week": sum(
                1 for task in open_tasks
                if task.due_date is not None and today <= task.due_date <= week_end
            ),
        }

    def shutdown(self) -> None:
        self.progress.shutdown()
        self.drag.cancel()

    def _loaded(self, seq: int, tasks: list[TaskEntity]) -> None:
        if seq != self._refresh_seq:
            logger.debug("Drop superseded task list (%s)", seq)
            return
        self.loading = False
        self.store.load(tasks)

    def _load_failed(self, seq: int, exc: Exception) -> None:
        if seq != self._refresh_seq:
            return
        self.loading = False
        self._failed("load", None, exc)

    def _deleted(self, task_id: int) -> None:
        self.progress.cancel(task_id)
        self.store.remove(task_id)

    def _failed(self, action: str, task_id: int | None, exc: Exception) -> None:
        logger.warning("Failed to %s task %s: %s", action, task_id, exc)
        self._notifier.error(error_message(exc))
