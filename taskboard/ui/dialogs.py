from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog,
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSlider,
    QVBoxLayout,
)

from taskboard.domain.entities import TaskEntity
from taskboard.domain.enums import TaskStatus
from taskboard.services.board_service import BoardService
from taskboard.services.store import TaskStore

from .widgets import PRIORITY_LABELS, STATUS_LABELS

PROGRESS_PRESETS = (0, 25, 50, 75, 100)


class TaskDetailDialog(QDialog):
    def __init__(self, service: BoardService, task_id: int, parent=None):
        super().__init__(parent)
        self.service = service
        self.task_id = task_id
        self.setWindowTitle("Task")
        self.setObjectName("TaskDetailDialog")
        self.resize(520, 560)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(12)

        self.title_label = QLabel()
        self.title_label.setProperty("class", "panel-title")
        self.title_label.setWordWrap(True)
        self.meta_label = QLabel()
        self.meta_label.setProperty("class", "task-meta")
        self.meta_label.setWordWrap(True)
        self.description_label = QLabel()
        self.description_label.setWordWrap(True)

        layout.addWidget(self.title_label)
        layout.addWidget(self.meta_label)
        layout.addWidget(self.description_label)
        layout.addWidget(self._build_progress_panel())
        layout.addWidget(self._build_attachment_panel(), 1)

        self._unsubscribe = service.store.subscribe(self._on_store_changed)
        self._render()
        service.open_task(task_id)

    def _build_progress_panel(self) -> QFrame:
        frame = QFrame()
        frame.setObjectName("ProgressPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(0, 0, 0, 0)

        row = QHBoxLayout()
        self.progress_value = QLabel("0%")
        self.progress_slider = QSlider(Qt.Horizontal)
        self.progress_slider.setRange(0, 100)
        self.progress_slider.valueChanged.connect(self._on_slider_changed)
        row.addWidget(self.progress_slider, 1)
        row.addWidget(self.progress_value)
        layout.addLayout(row)

        presets = QHBoxLayout()
        self.preset_buttons: list[QPushButton] = []
        for value in PROGRESS_PRESETS:
            button = QPushButton(f"{value}%")
            button.setProperty("variant", "secondary")
            button.clicked.connect(lambda _checked=False, v=value: self._on_preset(v))
            presets.addWidget(button)
            self.preset_buttons.append(button)
        layout.addLayout(presets)

        self.progress_hint = QLabel("Progress can be edited while the task is in progress.")
        self.progress_hint.setProperty("class", "task-meta")
        layout.addWidget(self.progress_hint)
        return frame

    def _build_attachment_panel(self) -> QFrame:
        frame = QFrame()
        frame.setObjectName("AttachmentPanel")
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(0, 0, 0, 0)

        self.attachments_title = QLabel("Attachments")
        self.attachments_title.setProperty("class", "sidebar-title")
        layout.addWidget(self.attachments_title)

        self.attachment_list = QListWidget()
        self.attachment_list.setObjectName("AttachmentList")
        layout.addWidget(self.attachment_list, 1)

        link_row = QHBoxLayout()
        self.link_url = QLineEdit()
        self.link_url.setPlaceholderText("https://")
        self.link_name = QLineEdit()
        self.link_name.setPlaceholderText("Name (optional)")
        add_link = QPushButton("Add link")
        add_link.clicked.connect(self._add_link)
        link_row.addWidget(self.link_url, 2)
        link_row.addWidget(self.link_name, 1)
        link_row.addWidget(add_link)
        layout.addLayout(link_row)

        buttons = QHBoxLayout()
        upload = QPushButton("Upload file")
        upload.setProperty("variant", "secondary")
        upload.clicked.connect(self._add_file)
        remove = QPushButton("Remove selected")
        remove.setProperty("variant", "ghost")
        remove.clicked.connect(self._remove_selected)
        buttons.addWidget(upload)
        buttons.addStretch()
        buttons.addWidget(remove)
        layout.addLayout(buttons)
        return frame

    def _on_store_changed(self, store: TaskStore) -> None:
        if self.task_id not in store:
            self.reject()
            return
        self._render()

    def _render(self) -> None:
        task = self.service.store.get(self.task_id)
        if task is None:
            return
        self.title_label.setText(task.title)
        self.meta_label.setText(self._meta_text(task))
        self.description_label.setText(task.description or "No description")

        editable = task.is_workflow and task.status == TaskStatus.IN_PROGRESS
        if not self.progress_slider.isSliderDown():
            self.progress_slider.blockSignals(True)
            self.progress_slider.setValue(task.progress)
            self.progress_slider.blockSignals(False)
        self.progress_value.setText(f"{task.progress}%")
        self.progress_slider.setEnabled(editable)
        for button in self.preset_buttons:
            button.setEnabled(editable)
        self.progress_hint.setVisible(task.is_workflow and not editable)

        self.attachments_title.setText(
            f"Attachments (links: {task.links_count}, files: {task.files_count})"
        )
        self.attachment_list.clear()
        for attachment in task.attachments or ():
            label = attachment.name
            if attachment.is_link:
                label = f"🔗 {attachment.name} ({attachment.url})"
            elif attachment.size:
                label = f"📄 {attachment.name} ({attachment.size // 1024} KB)"
            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, attachment.id)
            self.attachment_list.addItem(item)

    @staticmethod
    def _meta_text(task: TaskEntity) -> str:
        if not task.is_workflow:
            parts = ["Agenda"]
            if task.due_date:
                parts.append(task.due_date.strftime("%d %b %Y"))
            if task.start_time and task.end_time:
                parts.append(f"{task.start_time:%H:%M}-{task.end_time:%H:%M}")
            if task.meeting_link:
                parts.append(task.meeting_link)
            return " | ".join(parts)
        parts = [STATUS_LABELS[task.status], PRIORITY_LABELS[task.priority]]
        if task.due_date:
            parts.append(f"Due {task.due_date.strftime('%d %b %Y')}")
        if task.assigned_users:
            parts.append(", ".join(user.name for user in task.assigned_users))
        return " | ".join(parts)

    def _on_slider_changed(self, value: int) -> None:
        self.progress_value.setText(f"{value}%")
        self.service.submit_progress(self.task_id, value, immediate=False)

    def _on_preset(self, value: int) -> None:
        self.service.submit_progress(self.task_id, value, immediate=True)

    def _add_link(self) -> None:
        if self.service.add_link(self.task_id, self.link_url.text(), self.link_name.text()):
            self.link_url.clear()
            self.link_name.clear()

    def _add_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(self, "Upload file")
        if path:
            self.service.add_file(self.task_id, path)

    def _remove_selected(self) -> None:
        item = self.attachment_list.currentItem()
        if item is None:
            return
        self.service.remove_attachment(self.task_id, item.data(Qt.UserRole))

    def done(self, result: int) -> None:  # type: ignore[override]
        self._unsubscribe()
        super().done(result)
