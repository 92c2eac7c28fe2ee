from __future__ import annotations


class TaskboardError(Exception):
    """Base class for every error raised by the workflow engine."""


class IllegalOperation(TaskboardError):
    """A gesture the board ignores without telling the user."""


class NotDraggable(IllegalOperation):
    def __init__(self, task_id) -> None:
        super().__init__(f"Task {task_id} does not take part in the workflow")
        self.task_id = task_id


class TaskApiError(TaskboardError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(TaskApiError):
    """Network failure or timeout; the request never got an answer."""


class ApplicationError(TaskApiError):
    """The backend answered and refused the request."""


class AttachmentRejected(ApplicationError):
    pass


class ConfirmationCancelled(TaskboardError):
    """Raised into a confirmation callback when the user abandoned the edit."""
