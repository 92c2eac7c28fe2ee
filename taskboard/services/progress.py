"""Debounced, per-task serialised confirmation of progress edits.

Every task being edited has one ``ProgressEntry``. The entry holds the
debounce timer, whether a remote update is outstanding, and the last value
the backend confirmed. At most one update per task is in flight; intents
arriving meanwhile only touch the Store and mark a follow-up, which is
reconciled once the outstanding call settles. The entry is dropped as soon
as the shown progress matches the backend again with nothing scheduled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from taskboard.domain.enums import TaskStatus
from taskboard.domain.errors import ConfirmationCancelled
from taskboard.infra.api import TaskApi
from taskboard.services.runtime import Executor, Notifier, Scheduler, TimerHandle, error_message
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 500

Settled = Callable[[Exception | None], None]


@dataclass
class ProgressEntry:
    last_confirmed: int
    timer: TimerHandle | None = None
    in_flight: bool = False
    in_flight_value: int | None = None
    follow_up: bool = False
    follow_up_immediate: bool = False
    generation: int = 0
    waiters: list[Settled] = field(default_factory=list)


class ProgressCoordinator:
    def __init__(
        self,
        store: TaskStore,
        api: TaskApi,
        scheduler: Scheduler,
        executor: Executor,
        notifier: Notifier,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self._store = store
        self._api = api
        self._scheduler = scheduler
        self._executor = executor
        self._notifier = notifier
        self._debounce_ms = debounce_ms
        self._entries: dict[int, ProgressEntry] = {}
        self._generations = 0

    def entry(self, task_id: int) -> ProgressEntry | None:
        return self._entries.get(task_id)

    def submit_progress(self, task_id: int, value: int, immediate: bool = False) -> bool:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
            raise ValueError(f"Progress must be an integer between 0 and 100, got {value!r}")
        task = self._store.get(task_id)
        if task is None or not task.is_workflow or task.status != TaskStatus.IN_PROGRESS:
            logger.debug("Ignore progress intent for task %s", task_id)
            return False

        entry = self._entry_for(task_id)
        self._store.apply_optimistic(task_id, progress=value)
        self._cancel_timer(entry)
        if immediate:
            self._confirm(task_id, entry, immediate=True)
        else:
            self._start_timer(task_id, entry)
        return True

    def confirm_applied(self, task_id: int, on_settled: Settled | None = None) -> None:
        """Confirm the progress already shown in the Store right away."""
        if task_id not in self._store:
            if on_settled:
                on_settled(None)
            return
        entry = self._entry_for(task_id)
        if on_settled:
            entry.waiters.append(on_settled)
        self._cancel_timer(entry)
        self._confirm(task_id, entry, immediate=True)

    def cancel(self, task_id: int) -> None:
        entry = self._entries.pop(task_id, None)
        if entry is None:
            return
        self._cancel_timer(entry)
        self._flush(entry.waiters, None)
        entry.waiters = []

    def shutdown(self) -> None:
        for task_id in list(self._entries):
            self.cancel(task_id)

    def _entry_for(self, task_id: int) -> ProgressEntry:
        entry = self._entries.get(task_id)
        if entry is None:
            self._generations += 1
            entry = ProgressEntry(
                last_confirmed=self._store.confirmed_value(task_id, "progress"),
                generation=self._generations,
            )
            self._entries[task_id] = entry
        return entry

    def _start_timer(self, task_id: int, entry: ProgressEntry) -> None:
        entry.timer = self._scheduler.call_later(
            self._debounce_ms, lambda: self._on_timer(task_id, entry.generation)
        )

    @staticmethod
    def _cancel_timer(entry: ProgressEntry) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None

    def _on_timer(self, task_id: int, generation: int) -> None:
        entry = self._entries.get(task_id)
        if entry is None or entry.generation != generation:
            return
        entry.timer = None
        self._confirm(task_id, entry, immediate=False)

    def _confirm(self, task_id: int, entry: ProgressEntry, immediate: bool) -> None:
        task = self._store.get(task_id)
        if task is None:
            self.cancel(task_id)
            return
        if entry.in_flight:
            entry.follow_up = True
            entry.follow_up_immediate = entry.follow_up_immediate or immediate
            return

        value = task.progress
        entry.last_confirmed = self._store.confirmed_value(task_id, "progress")
        waiters, entry.waiters = entry.waiters, []
        if value == entry.last_confirmed:
            self._release(task_id, entry, value)
            self._flush(waiters, None)
            return

        entry.in_flight = True
        entry.in_flight_value = value
        generation = entry.generation
        logger.debug("Confirm progress %s for task %s", value, task_id)
        self._executor.submit(
            lambda: self._api.update_task(task_id, {"progress": value}),
            lambda _result: self._on_success(task_id, generation, value, waiters),
            lambda exc: self._on_error(task_id, generation, value, waiters, exc),
        )

    def _on_success(self, task_id: int, generation: int, value: int, waiters: list[Settled]) -> None:
        entry = self._settling(task_id, generation)
        if entry is None:
            return
        entry.last_confirmed = value
        self._store.commit(task_id, "progress", value)
        self._flush(waiters, None)
        self._reconcile(task_id, entry)

    def _on_error(
        self,
        task_id: int,
        generation: int,
        value: int,
        waiters: list[Settled],
        exc: Exception,
    ) -> None:
        entry = self._settling(task_id, generation)
        if entry is None:
            return
        if isinstance(exc, ConfirmationCancelled):
            logger.debug("Progress confirmation for task %s cancelled", task_id)
            self._flush(waiters, None)
        elif self._store.rollback(task_id, "progress", expected=value):
            logger.warning("Progress update for task %s failed: %s", task_id, exc)
            if waiters:
                self._flush(waiters, exc)
            else:
                self._notifier.error(error_message(exc))
        else:
            logger.debug("Discard stale progress result for task %s", task_id)
            self._flush(waiters, None)
        self._reconcile(task_id, entry)

    def _settling(self, task_id: int, generation: int) -> ProgressEntry | None:
        entry = self._entries.get(task_id)
        if entry is None or entry.generation != generation:
            logger.debug("Drop progress result for abandoned task %s", task_id)
            return None
        entry.in_flight = False
        entry.in_flight_value = None
        return entry

    def _reconcile(self, task_id: int, entry: ProgressEntry) -> None:
        immediate = entry.follow_up_immediate
        entry.follow_up = False
        entry.follow_up_immediate = False
        if entry.timer is not None:
            return
        task = self._store.get(task_id)
        if task is not None:
            entry.last_confirmed = self._store.confirmed_value(task_id, "progress")
        if task is None or task.progress == entry.last_confirmed:
            waiters, entry.waiters = entry.waiters, []
            self._release(task_id, entry, entry.last_confirmed if task is not None else None)
            self._flush(waiters, None)
            return
        if immediate:
            self._confirm(task_id, entry, immediate=True)
        else:
            self._start_timer(task_id, entry)

    def _release(self, task_id: int, entry: ProgressEntry, value: int | None) -> None:
        """Forget a task whose shown progress matches the backend again."""
        if value is not None:
            self._store.rollback(task_id, "progress", expected=value)
        if self._entries.get(task_id) is entry and entry.timer is None and not entry.in_flight:
            del self._entries[task_id]

    @staticmethod
    def _flush(waiters: list[Settled], error: Exception | None) -> None:
        for waiter in waiters:
            waiter(error)
