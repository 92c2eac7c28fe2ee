from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Column, Date, DateTime, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    type = Column(String(20), nullable=False, default="tugas", index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    meeting_link = Column(String(2048), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    priority = Column(String(20), nullable=False, default="sedang")
    status = Column(String(20), nullable=False, default="baru", index=True)
    created_by = Column(Integer, nullable=True)
    assigned_to = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    attachments = relationship(
        "TaskAttachmentModel",
        cascade="all, delete-orphan",
        order_by="TaskAttachmentModel.id",
    )
    assignees = relationship(
        "TaskAssigneeModel",
        cascade="all, delete-orphan",
        order_by="TaskAssigneeModel.id",
    )


class TaskAssigneeModel(Base):
    __tablename__ = "task_assignees"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False, default="")
    avatar = Column(String(2048), nullable=True)


class TaskAttachmentModel(Base):
    __tablename__ = "task_attachments"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)
    name = Column(String(255), nullable=False)
    path = Column(String(1024), nullable=True)
    url = Column(String(2048), nullable=True)
    mime_type = Column(String(255), nullable=True)
    size = Column(BigInteger, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
