from __future__ import annotations

from dataclasses import dataclass

from taskboard.domain.entities import TaskEntity
from taskboard.domain.enums import TaskPriority, TaskScope, TaskStatus, TaskType


@dataclass(frozen=True)
class TaskFilters:
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    item_type: TaskType | None = None
    scope: TaskScope = TaskScope.ALL
    search: str | None = None

    def to_query(self) -> dict[str, str]:
        query: dict[str, str] = {}
        if self.status:
            query["status"] = self.status.value
        if self.priority:
            query["priority"] = self.priority.value
        if self.item_type:
            query["item_type"] = self.item_type.value
        if self.scope != TaskScope.ALL:
            query["type"] = self.scope.value
        if self.search:
            query["search"] = self.search
        return query

    def matches(self, task: TaskEntity, user_id: int | None = None) -> bool:
        if self.search:
            needle = self.search.lower()
            haystack = f"{task.title}\n{task.description or ''}".lower()
            if needle not in haystack:
                return False
        if self.item_type and task.type != self.item_type:
            return False
        # Workflow filters only narrow regular tasks; agenda items have no status.
        if task.is_workflow:
            if self.status and task.status != self.status:
                return False
            if self.priority and task.priority != self.priority:
                return False
        if self.scope == TaskScope.ASSIGNED_TO_ME:
            return task.assigned_to == user_id or any(
                user.id == user_id for user in task.assigned_users
            )
        if self.scope == TaskScope.CREATED_BY_ME:
            return task.created_by == user_id
        if self.scope == TaskScope.PERSONAL:
            return task.created_by == user_id and task.assigned_to is None
        return True
