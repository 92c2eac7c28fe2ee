from __future__ import annotations

from typing import Any, Protocol

from taskboard.domain.drafts import AttachmentDraft
from taskboard.domain.entities import AttachmentEntity, TaskEntity
from taskboard.domain.enums import TaskStatus
from taskboard.domain.filters import TaskFilters


class TaskApi(Protocol):
    """Remote source of truth for tasks.

    Every method blocks and is called from a worker thread. Failures are
    reported as ``TransportError`` or ``ApplicationError``.
    """

    def fetch_tasks(self, filters: TaskFilters) -> list[TaskEntity]: ...

    def get_task(self, task_id: int) -> TaskEntity: ...

    def update_task_status(self, task_id: int, status: TaskStatus) -> TaskEntity: ...

    def update_task(self, task_id: int, fields: dict[str, Any]) -> TaskEntity: ...

    def delete_task(self, task_id: int) -> None: ...

    def add_attachment(self, task_id: int, draft: AttachmentDraft) -> AttachmentEntity: ...

    def remove_attachment(self, task_id: int, attachment_id: int) -> None: ...
