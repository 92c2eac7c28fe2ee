"""Qt implementations of the engine's scheduler, executor and notifier."""
from __future__ import annotations

import itertools
import logging
from typing import Any, Callable

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal
from PySide6.QtWidgets import QMessageBox, QWidget

from taskboard.domain.entities import AttachmentEntity

logger = logging.getLogger(__name__)


class QtTimerHandle:
    def __init__(self, delay_ms: int, callback: Callable[[], None], parent: QObject | None) -> None:
        self._callback = callback
        self._timer: QTimer | None = QTimer(parent)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._fire)
        self._timer.start(delay_ms)

    def _fire(self) -> None:
        self._release()
        self._callback()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._release()

    def _release(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.deleteLater()


class QtScheduler:
    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> QtTimerHandle:
        return QtTimerHandle(delay_ms, callback, self._parent)


class _Job(QRunnable):
    def __init__(self, fn: Callable[[], Any], executor: QtExecutor, token: int) -> None:
        super().__init__()
        self._fn = fn
        self._executor = executor
        self._token = token

    def run(self) -> None:
        try:
            result = self._fn()
        except Exception as exc:  # noqa: BLE001
            self._executor.failed.emit(self._token, exc)
        else:
            self._executor.finished.emit(self._token, result)


class QtExecutor(QObject):
    """Runs calls on a thread pool and delivers callbacks on the GUI thread."""

    finished = Signal(int, object)
    failed = Signal(int, object)

    def __init__(self, pool: QThreadPool | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._pool = pool or QThreadPool.globalInstance()
        self._callbacks: dict[int, tuple[Callable, Callable]] = {}
        self._tokens = itertools.count(1)
        self.finished.connect(self._on_finished)
        self.failed.connect(self._on_failed)

    def submit(
        self,
        fn: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        token = next(self._tokens)
        self._callbacks[token] = (on_success, on_error)
        self._pool.start(_Job(fn, self, token))

    def _on_finished(self, token: int, result: object) -> None:
        on_success, _ = self._callbacks.pop(token)
        on_success(result)

    def _on_failed(self, token: int, exc: object) -> None:
        _, on_error = self._callbacks.pop(token)
        on_error(exc)


class DialogNotifier:
    def __init__(self, parent: QWidget | None = None) -> None:
        self.parent = parent

    def error(self, message: str) -> None:
        logger.info("Show error: %s", message)
        QMessageBox.warning(self.parent, "Error", message)


def confirm_removal_dialog(parent_getter: Callable[[], QWidget | None]):
    def confirm(attachment: AttachmentEntity) -> bool:
        answer = QMessageBox.question(
            parent_getter(),
            "Remove attachment",
            f"Remove '{attachment.name}'? This cannot be undone.",
        )
        return answer == QMessageBox.Yes

    return confirm
