from __future__ import annotations

import html

from PySide6.QtCore import QByteArray, QMimeData, QSize, Qt
from PySide6.QtGui import QDrag, QPixmap
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QProgressBar,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from taskboard.domain.entities import TaskEntity
from taskboard.domain.enums import TaskPriority, TaskStatus
from taskboard.services.drag import DragPreview, DragTransfer

STATUS_LABELS = {
    TaskStatus.NEW: "New",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.IN_REVIEW: "Review",
    TaskStatus.DONE: "Done",
}

PRIORITY_LABELS = {
    TaskPriority.HIGH: "High",
    TaskPriority.MEDIUM: "Medium",
    TaskPriority.LOW: "Low",
}

PRIORITY_COLORS = {
    TaskPriority.HIGH: "#E24A4A",
    TaskPriority.MEDIUM: "#E0B25B",
    TaskPriority.LOW: "#7CC4A1",
}

MAX_AVATARS = 3
EXCERPT_LENGTH = 90
CARD_SPACING = 6
PREVIEW_WIDTH = 240
TASK_MIME = "application/x-taskboard-task"


class TaskCardWidget(QWidget):
    def __init__(self, task: TaskEntity):
        super().__init__()
        self.task = task

        self.setObjectName("TaskCard")
        self.setAttribute(Qt.WA_StyledBackground, True)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Fixed)
        self.setMinimumHeight(72)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(4)

        title = QLabel(task.title.strip() or "Untitled")
        title.setProperty("class", "task-title")
        title.setWordWrap(True)
        title.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Preferred)

        priority = QLabel(PRIORITY_LABELS.get(task.priority, "Unknown"))
        priority.setProperty("class", "task-priority")
        priority.setStyleSheet(
            f"background-color: {PRIORITY_COLORS.get(task.priority, '#9CA3AF')};"
        )
        priority.setSizePolicy(QSizePolicy.Fixed, QSizePolicy.Fixed)

        header = QHBoxLayout()
        header.setSpacing(8)
        header.addWidget(title, 1)
        header.addWidget(priority, 0, Qt.AlignTop)
        layout.addLayout(header)

        if task.description:
            excerpt = task.description.strip()
            if len(excerpt) > EXCERPT_LENGTH:
                excerpt = excerpt[:EXCERPT_LENGTH].rstrip() + "…"
            description = QLabel(excerpt)
            description.setProperty("class", "task-meta")
            description.setWordWrap(True)
            layout.addWidget(description)

        progress = QProgressBar()
        progress.setRange(0, 100)
        progress.setValue(task.progress)
        progress.setFormat("%p%")
        progress.setMaximumHeight(12)
        layout.addWidget(progress)

        meta = QLabel(self._meta_text(task))
        meta.setProperty("class", "task-meta")
        meta.setWordWrap(True)
        layout.addWidget(meta)

    @staticmethod
    def _meta_text(task: TaskEntity) -> str:
        parts = []
        if task.due_date:
            parts.append(task.due_date.strftime("%d %b %Y"))
        if task.assigned_users:
            initials = " ".join(user.initial for user in task.assigned_users[:MAX_AVATARS])
            extra = len(task.assigned_users) - MAX_AVATARS
            parts.append(initials + (f" +{extra}" if extra > 0 else ""))
        if task.links_count:
            parts.append(f"Links: {task.links_count}")
        if task.files_count:
            parts.append(f"Files: {task.files_count}")
        return " | ".join(parts) if parts else "No details"


class KanbanListWidget(QListWidget):
    """One board column: a drag source and a drop target."""

    def __init__(self, status: TaskStatus, drag: DragTransfer, parent=None):
        super().__init__(parent)
        self.status = status
        self._drag = drag
        self.setAcceptDrops(True)
        self.setDragEnabled(True)
        self.setDragDropMode(QAbstractItemView.DragDrop)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        self.setVerticalScrollMode(QAbstractItemView.ScrollPerPixel)
        self.setSpacing(CARD_SPACING)

    def add_card(self, task: TaskEntity) -> None:
        item = QListWidgetItem()
        item.setData(Qt.UserRole, task.id)
        self.addItem(item)
        self.setItemWidget(item, TaskCardWidget(task))

    def fit_cards(self) -> None:
        width = self.viewport().width() - 2 * CARD_SPACING
        for index in range(self.count()):
            item = self.item(index)
            card = self.itemWidget(item)
            if card is not None:
                card.setFixedWidth(width)
                card.adjustSize()
                item.setSizeHint(QSize(width, card.sizeHint().height()))

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self.fit_cards()

    def startDrag(self, supportedActions) -> None:  # type: ignore[override]
        item = self.currentItem()
        task_id = item.data(Qt.UserRole) if item else None
        if task_id is None or not self._drag.begin(task_id):
            return
        mime = QMimeData()
        mime.setData(TASK_MIME, QByteArray(str(task_id).encode()))
        drag = QDrag(self)
        drag.setMimeData(mime)
        preview = self._drag.preview()
        if preview is not None:
            drag.setPixmap(_preview_pixmap(preview))
        drag.exec(Qt.MoveAction)
        # Released outside every column: nothing was dropped.
        self._drag.cancel()

    def dragEnterEvent(self, event) -> None:  # type: ignore[override]
        if event.mimeData().hasFormat(TASK_MIME):
            self._drag.hover(self.status)
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event) -> None:  # type: ignore[override]
        if event.mimeData().hasFormat(TASK_MIME):
            event.acceptProposedAction()

    def dragLeaveEvent(self, event) -> None:  # type: ignore[override]
        self._drag.hover(None)
        super().dragLeaveEvent(event)

    def dropEvent(self, event) -> None:  # type: ignore[override]
        if not event.mimeData().hasFormat(TASK_MIME):
            event.ignore()
            return
        self._drag.hover(self.status)
        self._drag.drop()
        # The board re-renders from the Store; Qt must not move the item itself.
        event.setDropAction(Qt.IgnoreAction)
        event.accept()


def _preview_pixmap(preview: DragPreview) -> QPixmap:
    card = QLabel()
    card.setObjectName("DragPreview")
    card.setWordWrap(True)
    card.setFixedWidth(PREVIEW_WIDTH)
    lines = [f"<b>{html.escape(preview.title)}</b>"]
    if preview.excerpt:
        lines.append(html.escape(preview.excerpt))
    if preview.due_date:
        lines.append(preview.due_date.strftime("%d %b %Y"))
    card.setText("<br>".join(lines))
    card.adjustSize()
    return card.grab()
