from __future__ import annotations

import shutil
import uuid
from pathlib import Path
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import selectinload, sessionmaker

from taskboard.domain.drafts import AttachmentDraft
from taskboard.domain.entities import AttachmentEntity, TaskEntity, UserRef
from taskboard.domain.enums import (
    AttachmentKind,
    TaskPriority,
    TaskScope,
    TaskStatus,
    TaskType,
)
from taskboard.domain.errors import ApplicationError, TransportError
from taskboard.domain.filters import TaskFilters

from .models import TaskAssigneeModel, TaskAttachmentModel, TaskModel

EDITABLE_FIELDS = {"title", "description", "due_date", "progress", "priority", "status"}


def _to_attachment(model: TaskAttachmentModel) -> AttachmentEntity:
    return AttachmentEntity(
        id=model.id,
        task_id=model.task_id,
        kind=AttachmentKind(model.type),
        name=model.name,
        url=model.url,
        path=model.path,
        mime_type=model.mime_type,
        size=model.size,
        created_by=model.created_by,
        created_at=model.created_at,
    )


def _to_entity(model: TaskModel, with_attachments: bool = False) -> TaskEntity:
    task_type = TaskType(model.type)
    attachments = [_to_attachment(item) for item in model.attachments]
    links = sum(1 for item in attachments if item.kind == AttachmentKind.LINK)
    task = TaskEntity(
        id=model.id,
        title=model.title,
        type=task_type,
        description=model.description or "",
        due_date=model.due_date,
        status=TaskStatus(model.status),
        progress=model.progress,
        priority=TaskPriority(model.priority),
        assigned_users=tuple(
            UserRef(id=item.user_id, name=item.name, avatar=item.avatar)
            for item in model.assignees
        ),
        created_by=model.created_by,
        assigned_to=model.assigned_to,
        links_count=links,
        files_count=len(attachments) - links,
        start_time=model.start_time if task_type == TaskType.AGENDA else None,
        end_time=model.end_time if task_type == TaskType.AGENDA else None,
        meeting_link=model.meeting_link if task_type == TaskType.AGENDA else None,
        created_at=model.created_at,
    )
    return task.with_attachments(attachments) if with_attachments else task


def _apply_filters(stmt, filters: TaskFilters, user_id: int | None) -> object:
    if filters.status:
        stmt = stmt.where(TaskModel.status == filters.status.value)
    if filters.priority:
        stmt = stmt.where(TaskModel.priority == filters.priority.value)
    if filters.item_type:
        stmt = stmt.where(TaskModel.type == filters.item_type.value)

    if user_id is not None:
        assigned = TaskModel.assignees.any(TaskAssigneeModel.user_id == user_id)
        if filters.scope == TaskScope.ASSIGNED_TO_ME:
            stmt = stmt.where(or_(TaskModel.assigned_to == user_id, assigned))
        elif filters.scope == TaskScope.CREATED_BY_ME:
            stmt = stmt.where(TaskModel.created_by == user_id)
        elif filters.scope == TaskScope.PERSONAL:
            stmt = stmt.where(TaskModel.created_by == user_id, TaskModel.assigned_to.is_(None))
        else:
            stmt = stmt.where(
                or_(TaskModel.created_by == user_id, TaskModel.assigned_to == user_id, assigned)
            )

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskModel.title.ilike(pattern),
                TaskModel.description.ilike(pattern),
            )
        )
    return stmt


class SqlTaskApi:
    """TaskApi backed directly by the task database."""

    def __init__(
        self,
        session_factory: sessionmaker,
        user_id: int | None = None,
        storage_dir: Path | None = None,
    ) -> None:
        self._sessions = session_factory
        self._user_id = user_id
        self._storage_dir = storage_dir or Path("storage")

    def fetch_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        with self._session() as session:
            stmt = select(TaskModel).options(
                selectinload(TaskModel.attachments), selectinload(TaskModel.assignees)
            )
            stmt = _apply_filters(stmt, filters, self._user_id)
            stmt = stmt.order_by(TaskModel.created_at.desc(), TaskModel.id.desc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def get_task(self, task_id: int) -> TaskEntity:
        with self._session() as session:
            return _to_entity(self._load(session, task_id), with_attachments=True)

    def update_task_status(self, task_id: int, status: TaskStatus) -> TaskEntity:
        return self.update_task(task_id, {"status": status})

    def update_task(self, task_id: int, fields: dict[str, Any]) -> TaskEntity:
        data = self._normalize(fields)
        with self._session() as session:
            task = self._load(session, task_id)
            for key, value in data.items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_entity(task)

    def delete_task(self, task_id: int) -> None:
        with self._session() as session:
            task = self._load(session, task_id)
            paths = [item.path for item in task.attachments if item.path]
            session.delete(task)
            session.commit()
        for path in paths:
            (self._storage_dir / path).unlink(missing_ok=True)

    def add_attachment(self, task_id: int, draft: AttachmentDraft) -> AttachmentEntity:
        draft.validate()
        with self._session() as session:
            self._load(session, task_id)
            record = TaskAttachmentModel(
                task_id=task_id,
                type=draft.kind.value,
                name=draft.name,
                created_by=self._user_id,
            )
            if draft.kind == AttachmentKind.LINK:
                record.url = draft.url
            else:
                record.path = self._store_file(task_id, draft)
                record.mime_type = draft.mime_type
                record.size = draft.size
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_attachment(record)

    def remove_attachment(self, task_id: int, attachment_id: int) -> None:
        with self._session() as session:
            record = session.get(TaskAttachmentModel, attachment_id)
            if record is None or record.task_id != task_id:
                raise ApplicationError("Attachment not found.", 404)
            path = record.path
            session.delete(record)
            session.commit()
        if path:
            (self._storage_dir / path).unlink(missing_ok=True)

    def _session(self):
        return _GuardedSession(self._sessions)

    @staticmethod
    def _load(session, task_id: int) -> TaskModel:
        task = session.get(TaskModel, task_id)
        if task is None:
            raise ApplicationError("Task not found.", 404)
        return task

    @staticmethod
    def _normalize(fields: dict[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ApplicationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", 422)
        data = dict(fields)
        if "status" in data:
            try:
                data["status"] = TaskStatus(data["status"]).value
            except ValueError:
                raise ApplicationError("Invalid status.", 422) from None
        if "priority" in data:
            try:
                data["priority"] = TaskPriority(data["priority"]).value
            except ValueError:
                raise ApplicationError("Invalid priority.", 422) from None
        if "progress" in data:
            progress = data["progress"]
            if isinstance(progress, bool) or not isinstance(progress, int) or not 0 <= progress <= 100:
                raise ApplicationError("Progress must be between 0 and 100.", 422)
        if "title" in data and not str(data["title"]).strip():
            raise ApplicationError("Title is required.", 422)
        return data

    def _store_file(self, task_id: int, draft: AttachmentDraft) -> str:
        relative = Path("tasks") / str(task_id) / f"{uuid.uuid4().hex}_{draft.name}"
        target = self._storage_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(draft.path, target)
        return relative.as_posix()


class _GuardedSession:
    """Session context that reports database outages as transport errors."""

    def __init__(self, factory: sessionmaker) -> None:
        self._session = factory()

    def __enter__(self):
        return self._session

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._session.close()
        if exc is None or isinstance(exc, ApplicationError):
            return False
        if isinstance(exc, OperationalError):
            raise TransportError("The task database is unavailable.") from exc
        if isinstance(exc, SQLAlchemyError):
            raise ApplicationError(str(exc.__cause__ or exc)) from exc
        return False
