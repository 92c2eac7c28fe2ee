"""Seams between the engine and the event loop that drives it.

The engine is single-threaded: every Store mutation and every callback below
runs on the UI thread. Only the function handed to ``Executor.submit`` runs
elsewhere.
"""
from __future__ import annotations

from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class Executor(Protocol):
    def submit(
        self,
        fn: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> None: ...


class Notifier(Protocol):
    def error(self, message: str) -> None: ...


def error_message(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
