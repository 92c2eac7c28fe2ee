from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    NEW = "baru"
    IN_PROGRESS = "proses"
    IN_REVIEW = "review"
    DONE = "selesai"


BOARD_ORDER = (
    TaskStatus.NEW,
    TaskStatus.IN_PROGRESS,
    TaskStatus.IN_REVIEW,
    TaskStatus.DONE,
)


class TaskPriority(StrEnum):
    HIGH = "tinggi"
    MEDIUM = "sedang"
    LOW = "rendah"


class TaskType(StrEnum):
    REGULAR = "tugas"
    AGENDA = "agenda"


class AttachmentKind(StrEnum):
    FILE = "file"
    LINK = "link"


class TaskScope(StrEnum):
    ALL = "all"
    ASSIGNED_TO_ME = "assigned_to_me"
    CREATED_BY_ME = "created_by_me"
    PERSONAL = "personal"
