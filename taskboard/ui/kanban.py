from __future__ import annotations

from PySide6.QtCore import Qt, QTimer
from PySide6.QtWidgets import (
    QComboBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMenu,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from taskboard.domain.enums import BOARD_ORDER, TaskPriority, TaskScope, TaskStatus, TaskType
from taskboard.domain.filters import TaskFilters
from taskboard.services.board_service import BoardService
from taskboard.services.store import TaskStore

from .dialogs import TaskDetailDialog
from .widgets import PRIORITY_LABELS, STATUS_LABELS, KanbanListWidget

SCOPE_OPTIONS = [
    ("All tasks", TaskScope.ALL),
    ("Assigned to me", TaskScope.ASSIGNED_TO_ME),
    ("Created by me", TaskScope.CREATED_BY_ME),
]

TYPE_OPTIONS = [
    ("Tasks and agenda", None),
    ("Tasks", TaskType.REGULAR),
    ("Agenda", TaskType.AGENDA),
]


class KanbanWindow(QWidget):
    def __init__(self, service: BoardService, parent=None):
        super().__init__(parent)
        self.service = service
        self.setWindowTitle("Task Board")
        self.resize(1320, 760)
        self._render_pending = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)
        layout.addLayout(self._build_toolbar())

        self.metrics_label = QLabel("")
        self.metrics_label.setProperty("class", "stats-badge")
        layout.addWidget(self.metrics_label)

        board = QHBoxLayout()
        board.setSpacing(12)
        self.columns: dict[TaskStatus, KanbanListWidget] = {}
        self.column_titles: dict[TaskStatus, QLabel] = {}
        for status in BOARD_ORDER:
            column = QVBoxLayout()
            label = QLabel(STATUS_LABELS[status])
            label.setProperty("class", "panel-title")
            list_widget = KanbanListWidget(status, service.drag)
            list_widget.setObjectName("KanbanList")
            list_widget.itemDoubleClicked.connect(self.open_task)
            list_widget.setContextMenuPolicy(Qt.CustomContextMenu)
            list_widget.customContextMenuRequested.connect(
                lambda pos, widget=list_widget: self._show_card_menu(widget, pos)
            )
            column.addWidget(label)
            column.addWidget(list_widget)
            board.addLayout(column, 1)
            self.columns[status] = list_widget
            self.column_titles[status] = label

        agenda_column = QVBoxLayout()
        agenda_title = QLabel("Agenda")
        agenda_title.setProperty("class", "panel-title")
        self.agenda_list = QListWidget()
        self.agenda_list.setObjectName("AgendaList")
        self.agenda_list.itemDoubleClicked.connect(self.open_task)
        agenda_column.addWidget(agenda_title)
        agenda_column.addWidget(self.agenda_list)
        board.addLayout(agenda_column, 1)
        layout.addLayout(board, 1)

        service.store.subscribe(self._on_store_changed)
        self.render()
        service.refresh()

    def _build_toolbar(self) -> QHBoxLayout:
        toolbar = QHBoxLayout()
        toolbar.setSpacing(8)

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search tasks")
        self.search_input.textChanged.connect(self._on_filters_changed)

        self.status_filter = QComboBox()
        self.status_filter.addItem("All statuses", None)
        for status in BOARD_ORDER:
            self.status_filter.addItem(STATUS_LABELS[status], status)

        self.priority_filter = QComboBox()
        self.priority_filter.addItem("All priorities", None)
        for priority in TaskPriority:
            self.priority_filter.addItem(PRIORITY_LABELS[priority], priority)

        self.scope_filter = QComboBox()
        for label, scope in SCOPE_OPTIONS:
            self.scope_filter.addItem(label, scope)

        self.type_filter = QComboBox()
        for label, item_type in TYPE_OPTIONS:
            self.type_filter.addItem(label, item_type)

        for combo in (self.status_filter, self.priority_filter, self.scope_filter, self.type_filter):
            combo.currentIndexChanged.connect(self._on_filters_changed)

        refresh = QPushButton("Refresh")
        refresh.setProperty("variant", "secondary")
        refresh.clicked.connect(self.service.refresh)

        toolbar.addWidget(self.search_input, 2)
        toolbar.addWidget(self.status_filter)
        toolbar.addWidget(self.priority_filter)
        toolbar.addWidget(self.scope_filter)
        toolbar.addWidget(self.type_filter)
        toolbar.addWidget(refresh)
        return toolbar

    def _on_filters_changed(self, *_args) -> None:
        self.service.set_filters(
            TaskFilters(
                status=self.status_filter.currentData(),
                priority=self.priority_filter.currentData(),
                item_type=self.type_filter.currentData(),
                scope=self.scope_filter.currentData(),
                search=self.search_input.text().strip() or None,
            )
        )
        self.render()

    def _on_store_changed(self, _store: TaskStore) -> None:
        # Store changes can arrive in the middle of a drag; render afterwards.
        if not self._render_pending:
            self._render_pending = True
            QTimer.singleShot(0, self.render)

    def render(self) -> None:
        self._render_pending = False
        for status, list_widget in self.columns.items():
            tasks = self.service.column(status)
            self.column_titles[status].setText(f"{STATUS_LABELS[status]} ({len(tasks)})")
            list_widget.clear()
            for task in tasks:
                list_widget.add_card(task)
            list_widget.fit_cards()

        self.agenda_list.clear()
        for task in self.service.agenda():
            parts = [task.title]
            if task.due_date:
                parts.append(task.due_date.strftime("%d %b %Y"))
            if task.start_time:
                parts.append(f"{task.start_time:%H:%M}")
            item = QListWidgetItem(" | ".join(parts))
            item.setData(Qt.UserRole, task.id)
            self.agenda_list.addItem(item)

        metrics = self.service.get_metrics()
        self.metrics_label.setText(
            f"Active: {metrics['active']} | Done: {metrics['done']} | "
            f"In review: {metrics['pending_review']} | Due this week: {metrics['due_this_week']}"
        )

    def open_task(self, item: QListWidgetItem) -> None:
        task_id = item.data(Qt.UserRole)
        if task_id is None:
            return
        dialog = TaskDetailDialog(self.service, task_id, self)
        dialog.exec()

    def _show_card_menu(self, list_widget: KanbanListWidget, pos) -> None:
        item = list_widget.itemAt(pos)
        if item is None:
            return
        task_id = item.data(Qt.UserRole)
        menu = QMenu(self)
        for status in BOARD_ORDER:
            if status != list_widget.status:
                action = menu.addAction(f"Move to {STATUS_LABELS[status]}")
                action.triggered.connect(
                    lambda _checked=False, s=status: self.service.move_task(task_id, s)
                )
        menu.addSeparator()
        delete_action = menu.addAction("Delete")
        delete_action.triggered.connect(lambda: self._delete_task(task_id))
        menu.exec(list_widget.viewport().mapToGlobal(pos))

    def _delete_task(self, task_id: int) -> None:
        confirm = QMessageBox.question(self, "Delete task", "Delete this task permanently?")
        if confirm == QMessageBox.Yes:
            self.service.delete_task(task_id)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self.service.shutdown()
        super().closeEvent(event)
