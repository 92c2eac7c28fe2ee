"""Progress inference applied when a card changes column.

The rule is a convenience: it never lowers progress and never refuses a
target column, so skipping stages (new -> done) or moving backwards is
allowed.
"""
from __future__ import annotations

from taskboard.domain.entities import TaskEntity
from taskboard.domain.enums import TaskStatus
from taskboard.domain.errors import NotDraggable

IN_PROGRESS_START = 25
IN_REVIEW_FLOOR = 75
DONE_PROGRESS = 100


def compute_transition(task: TaskEntity, target_status: TaskStatus) -> tuple[TaskStatus, int]:
    if not task.is_workflow:
        raise NotDraggable(task.id)
    target_status = TaskStatus(target_status)

    progress = task.progress
    if target_status == TaskStatus.IN_PROGRESS and progress == 0:
        progress = IN_PROGRESS_START
    elif target_status == TaskStatus.IN_REVIEW and progress < IN_REVIEW_FLOOR:
        progress = IN_REVIEW_FLOOR
    elif target_status == TaskStatus.DONE:
        progress = DONE_PROGRESS
    return target_status, progress
