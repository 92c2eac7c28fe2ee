from __future__ import annotations

from dataclasses import replace
from itertools import count

import pytest

from taskboard.domain.entities import AttachmentEntity, TaskEntity
from taskboard.domain.enums import TaskStatus, TaskType
from taskboard.services.board_service import BoardService
from taskboard.services.store import TaskStore


def make_task(task_id: int = 1, **fields) -> TaskEntity:
    fields.setdefault("title", f"Task {task_id}")
    return TaskEntity(id=task_id, **fields)


def make_agenda(task_id: int = 100, **fields) -> TaskEntity:
    return make_task(task_id, type=TaskType.AGENDA, **fields)


class FakeTaskApi:
    def __init__(self) -> None:
        self.tasks: dict[int, TaskEntity] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, list[Exception]] = {}
        self._attachment_ids = count(1)

    def seed(self, *tasks: TaskEntity) -> None:
        for task in tasks:
            self.tasks[task.id] = task

    def fail(self, method: str, exc: Exception) -> None:
        self.failures.setdefault(method, []).append(exc)

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    def fetch_tasks(self, filters):
        self._record("fetch_tasks", filters)
        return [replace(task, attachments=None) for task in self.tasks.values()]

    def get_task(self, task_id):
        self._record("get_task", task_id)
        task = self.tasks[task_id]
        return task if task.attachments is not None else task.with_attachments(())

    def update_task_status(self, task_id, status):
        self._record("update_task_status", task_id, status)
        self.tasks[task_id] = replace(self.tasks[task_id], status=status)
        return self.tasks[task_id]

    def update_task(self, task_id, fields):
        self._record("update_task", task_id, dict(fields))
        self.tasks[task_id] = replace(self.tasks[task_id], **fields)
        return self.tasks[task_id]

    def delete_task(self, task_id):
        self._record("delete_task", task_id)
        self.tasks.pop(task_id, None)

    def add_attachment(self, task_id, draft):
        self._record("add_attachment", task_id, draft)
        attachment = AttachmentEntity(
            id=next(self._attachment_ids),
            task_id=task_id,
            kind=draft.kind,
            name=draft.name,
            url=draft.url,
            path=f"tasks/{task_id}/{draft.name}" if draft.path else None,
            size=draft.size,
        )
        self.tasks[task_id] = self.tasks[task_id].with_attachment_added(attachment)
        return attachment

    def remove_attachment(self, task_id, attachment_id):
        self._record("remove_attachment", task_id, attachment_id)
        self.tasks[task_id] = self.tasks[task_id].with_attachment_removed(attachment_id)


class ManualTimer:
    def __init__(self, due: int, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Timers on a virtual clock, fired by ``advance``."""

    def __init__(self) -> None:
        self.now = 0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay_ms, callback) -> ManualTimer:
        timer = ManualTimer(self.now + delay_ms, callback)
        self.timers.append(timer)
        return timer

    def active(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = [t for t in self.active() if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target


class ManualExecutor:
    """Queues background calls; tests decide when each one completes."""

    def __init__(self) -> None:
        self.pending: list[tuple] = []

    def submit(self, fn, on_success, on_error) -> None:
        self.pending.append((fn, on_success, on_error))

    def run_next(self) -> None:
        fn, on_success, on_error = self.pending.pop(0)
        try:
            result = fn()
        except Exception as exc:  # noqa: BLE001
            on_error(exc)
        else:
            on_success(result)

    def run_all(self) -> None:
        while self.pending:
            self.run_next()


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def error(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def api() -> FakeTaskApi:
    return FakeTaskApi()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> TaskStore:
    return TaskStore()


@pytest.fixture
def confirmations() -> list:
    return []


@pytest.fixture
def service(api, scheduler, executor, notifier, store, confirmations) -> BoardService:
    def confirm(attachment):
        confirmations.append(attachment)
        return True

    return BoardService(
        api,
        scheduler=scheduler,
        executor=executor,
        notifier=notifier,
        confirm_removal=confirm,
        user_id=7,
        store=store,
    )


@pytest.fixture
def board(api, store, service):
    """Seed tasks on the fake backend and load them into the store."""

    def load(*tasks: TaskEntity) -> BoardService:
        api.seed(*tasks)
        store.load(tasks)
        return service

    return load
