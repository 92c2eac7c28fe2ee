from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from typing import Optional

from taskboard.domain.enums import AttachmentKind, TaskPriority, TaskStatus, TaskType


@dataclass(frozen=True)
class UserRef:
    id: int
    name: str
    avatar: str | None = None

    @property
    def initial(self) -> str:
        return self.name[:1].upper() if self.name else "?"


@dataclass(frozen=True)
class AttachmentEntity:
    id: int
    task_id: int
    kind: AttachmentKind
    name: str
    url: str | None = None
    path: str | None = None
    mime_type: str | None = None
    size: int | None = None
    created_by: int | None = None
    created_at: Optional[datetime] = None

    @property
    def is_link(self) -> bool:
        return self.kind == AttachmentKind.LINK


@dataclass(frozen=True)
class TaskEntity:
    id: int
    title: str
    type: TaskType = TaskType.REGULAR
    description: str = ""
    due_date: Optional[date] = None
    status: TaskStatus = TaskStatus.NEW
    progress: int = 0
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_users: tuple[UserRef, ...] = ()
    created_by: int | None = None
    assigned_to: int | None = None
    links_count: int = 0
    files_count: int = 0
    attachments: tuple[AttachmentEntity, ...] | None = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    meeting_link: str | None = None
    created_at: Optional[datetime] = None

    @property
    def is_workflow(self) -> bool:
        return self.type == TaskType.REGULAR

    def with_attachments(self, attachments) -> TaskEntity:
        attachments = tuple(attachments)
        links = sum(1 for item in attachments if item.kind == AttachmentKind.LINK)
        return replace(
            self,
            attachments=attachments,
            links_count=links,
            files_count=len(attachments) - links,
        )

    def with_attachment_added(self, attachment: AttachmentEntity) -> TaskEntity:
        if self.attachments is not None:
            return self.with_attachments(self.attachments + (attachment,))
        if attachment.kind == AttachmentKind.LINK:
            return replace(self, links_count=self.links_count + 1)
        return replace(self, files_count=self.files_count + 1)

    def with_attachment_removed(self, attachment_id: int) -> TaskEntity:
        if self.attachments is None:
            return self
        remaining = [item for item in self.attachments if item.id != attachment_id]
        return self.with_attachments(remaining)

    def find_attachment(self, attachment_id: int) -> AttachmentEntity | None:
        return next(
            (item for item in self.attachments or () if item.id == attachment_id),
            None,
        )
