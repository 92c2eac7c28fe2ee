from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtGui import QColor, QFont, QPalette
from PySide6.QtWidgets import QApplication, QMessageBox, QStyleFactory

from taskboard.config import BACKEND_SQL, PROJECT_ROOT, SETTINGS
from taskboard.infra.logging import setup_logging
from taskboard.infra.qt_runtime import DialogNotifier, QtExecutor, QtScheduler, confirm_removal_dialog
from taskboard.services.board_service import BoardService
from taskboard.ui.kanban import KanbanWindow


def _apply_dark_palette(app: QApplication) -> None:
    palette = QPalette()
    palette.setColor(QPalette.Window, QColor("#0F172A"))
    palette.setColor(QPalette.WindowText, QColor("#E6EDF3"))
    palette.setColor(QPalette.Base, QColor("#111827"))
    palette.setColor(QPalette.AlternateBase, QColor("#1B2230"))
    palette.setColor(QPalette.Text, QColor("#E6EDF3"))
    palette.setColor(QPalette.Button, QColor("#202A3B"))
    palette.setColor(QPalette.ButtonText, QColor("#E6EDF3"))
    palette.setColor(QPalette.Highlight, QColor("#2563EB"))
    palette.setColor(QPalette.HighlightedText, QColor("#FFFFFF"))
    app.setPalette(palette)


def load_styles(app: QApplication) -> None:
    for path in (
        Path(__file__).resolve().parent / "ui" / "styles.qss",
        PROJECT_ROOT / "taskboard" / "ui" / "styles.qss",
    ):
        if path.exists():
            app.setStyleSheet(path.read_text(encoding="utf-8"))
            return


def _build_api():
    if SETTINGS.backend == BACKEND_SQL:
        from taskboard.infra.db import create_session_factory, init_db
        from taskboard.infra.repository import SqlTaskApi

        sessions = create_session_factory(SETTINGS.database_url)
        init_db(sessions)
        return SqlTaskApi(sessions, user_id=SETTINGS.current_user_id, storage_dir=PROJECT_ROOT / "storage")

    from taskboard.infra.http_api import HttpTaskApi

    return HttpTaskApi(SETTINGS)


def main() -> None:
    setup_logging()
    app = QApplication(sys.argv)
    try:
        SETTINGS.check()
        api = _build_api()
    except Exception as exc:  # noqa: BLE001
        QMessageBox.critical(None, "Configuration error", str(exc))
        return

    app.setStyle(QStyleFactory.create("Fusion"))
    _apply_dark_palette(app)
    app.setFont(QFont("Segoe UI", 10))
    load_styles(app)

    notifier = DialogNotifier()
    window: KanbanWindow | None = None
    service = BoardService(
        api,
        scheduler=QtScheduler(app),
        executor=QtExecutor(parent=app),
        notifier=notifier,
        confirm_removal=confirm_removal_dialog(lambda: window),
        user_id=SETTINGS.current_user_id,
        debounce_ms=SETTINGS.progress_debounce_ms,
    )
    window = KanbanWindow(service)
    notifier.parent = window
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
