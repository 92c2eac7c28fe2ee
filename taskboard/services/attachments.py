from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from taskboard.domain.drafts import AttachmentDraft
from taskboard.domain.entities import AttachmentEntity
from taskboard.domain.errors import TaskboardError
from taskboard.infra.api import TaskApi
from taskboard.services.runtime import Executor, Notifier, error_message
from taskboard.services.store import TaskStore

logger = logging.getLogger(__name__)

ConfirmRemoval = Callable[[AttachmentEntity], bool]


class AttachmentSynchronizer:
    """Adds and removes attachments of an open task.

    Nothing here is optimistic: ids and storage paths come from the backend,
    so the Store only changes after the backend acknowledged the operation.
    """

    def __init__(
        self,
        store: TaskStore,
        api: TaskApi,
        executor: Executor,
        notifier: Notifier,
        confirm_removal: ConfirmRemoval,
        request_refresh: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._api = api
        self._executor = executor
        self._notifier = notifier
        self._confirm_removal = confirm_removal
        self._request_refresh = request_refresh

    def open(self, task_id: int) -> None:
        self._executor.submit(
            lambda: self._api.get_task(task_id),
            lambda task: self._store.set_attachments(task_id, task.attachments or ()),
            lambda exc: self._fail("load attachments of", task_id, exc),
        )

    def add_link(self, task_id: int, url: str, name: str | None = None) -> bool:
        return self.add(task_id, AttachmentDraft.link(url, name))

    def add_file(self, task_id: int, path: str | Path) -> bool:
        try:
            draft = AttachmentDraft.file(path)
        except TaskboardError as exc:
            self._notifier.error(error_message(exc))
            return False
        return self.add(task_id, draft)

    def add(self, task_id: int, draft: AttachmentDraft) -> bool:
        if task_id not in self._store:
            return False
        try:
            draft.validate()
        except TaskboardError as exc:
            self._notifier.error(error_message(exc))
            return False
        self._executor.submit(
            lambda: self._api.add_attachment(task_id, draft),
            lambda attachment: self._added(task_id, attachment),
            lambda exc: self._fail("add attachment to", task_id, exc),
        )
        return True

    def remove(self, task_id: int, attachment_id: int) -> bool:
        task = self._store.get(task_id)
        attachment = task.find_attachment(attachment_id) if task else None
        if attachment is None:
            return False
        if not self._confirm_removal(attachment):
            return False
        self._executor.submit(
            lambda: self._api.remove_attachment(task_id, attachment_id),
            lambda _result: self._removed(task_id, attachment_id),
            lambda exc: self._fail("remove attachment from", task_id, exc),
        )
        return True

    def _added(self, task_id: int, attachment: AttachmentEntity) -> None:
        self._store.add_attachment(task_id, attachment)
        self._refresh()

    def _removed(self, task_id: int, attachment_id: int) -> None:
        self._store.remove_attachment(task_id, attachment_id)
        self._refresh()

    def _refresh(self) -> None:
        if self._request_refresh is not None:
            self._request_refresh()

    def _fail(self, action: str, task_id: int, exc: Exception) -> None:
        logger.warning("Failed to %s task %s: %s", action, task_id, exc)
        self._notifier.error(error_message(exc))
