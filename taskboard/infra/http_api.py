from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from taskboard.config import SETTINGS, Settings
from taskboard.domain.drafts import AttachmentDraft
from taskboard.domain.entities import AttachmentEntity, TaskEntity, UserRef
from taskboard.domain.enums import AttachmentKind, TaskPriority, TaskStatus, TaskType
from taskboard.domain.errors import ApplicationError, TransportError
from taskboard.domain.filters import TaskFilters

logger = logging.getLogger(__name__)

UNREACHABLE = "Cannot reach the server. Check that the backend is running."

STATUS_MESSAGES = {
    401: "Session expired. Please sign in again.",
    403: "You are not allowed to perform this action.",
    404: "The requested item was not found.",
    409: "A conflict occurred. Please try again.",
    422: "The submitted data is not valid.",
    429: "Too many requests. Please wait a moment.",
    500: "The server ran into an error. Please try again later.",
}

# Only requests that never reached the server are retried for POST.
RETRY_METHODS = frozenset({"GET", "PUT", "PATCH", "DELETE"})


def build_session(settings: Settings) -> requests.Session:
    retry = Retry(
        total=settings.max_retries,
        connect=settings.max_retries,
        read=settings.max_retries,
        status=0,
        other=0,
        allowed_methods=RETRY_METHODS,
        backoff_factor=settings.retry_backoff,
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({
        "Accept": "application/json",
        "X-Requested-With": "XMLHttpRequest",
    })
    if settings.api_token:
        session.headers["Authorization"] = f"Bearer {settings.api_token}"
    return session


class HttpTaskApi:
    def __init__(self, settings: Settings = SETTINGS, session: requests.Session | None = None) -> None:
        self._base_url = settings.api_base_url.rstrip("/")
        self._timeout = settings.request_timeout
        self._session = session or build_session(settings)

    def fetch_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        data = self._request("GET", "/tasks", params=filters.to_query())
        return [parse_task(item) for item in data or []]

    def get_task(self, task_id: int) -> TaskEntity:
        return parse_task(self._request("GET", f"/tasks/{task_id}"))

    def update_task_status(self, task_id: int, status: TaskStatus) -> TaskEntity:
        data = self._request("PATCH", f"/tasks/{task_id}/status", json={"status": status.value})
        return parse_task(data)

    def update_task(self, task_id: int, fields: dict[str, Any]) -> TaskEntity:
        payload = {key: _to_wire(value) for key, value in fields.items()}
        return parse_task(self._request("PUT", f"/tasks/{task_id}", json=payload))

    def delete_task(self, task_id: int) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    def add_attachment(self, task_id: int, draft: AttachmentDraft) -> AttachmentEntity:
        if draft.kind == AttachmentKind.LINK:
            data = self._request(
                "POST",
                f"/tasks/{task_id}/attachments/link",
                json={"url": draft.url, "name": draft.name},
            )
        else:
            with open(draft.path, "rb") as handle:
                data = self._request(
                    "POST",
                    f"/tasks/{task_id}/attachments/file",
                    files={"file": (draft.name, handle, draft.mime_type or "application/octet-stream")},
                )
        return parse_attachment(data)

    def remove_attachment(self, task_id: int, attachment_id: int) -> None:
        self._request("DELETE", f"/tasks/{task_id}/attachments/{attachment_id}")

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(UNREACHABLE) from exc
        except requests.RequestException as exc:
            raise TransportError(str(exc) or UNREACHABLE) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.status_code >= 400:
            raise ApplicationError(_error_message(response.status_code, body), response.status_code)
        if body.get("success") is False:
            raise ApplicationError(body.get("message") or "Request failed.", response.status_code)
        return body.get("data")


def _error_message(status_code: int, body: dict) -> str:
    if status_code == 422 and isinstance(body.get("errors"), dict):
        first = next(iter(body["errors"].values()), None)
        if first:
            return first[0] if isinstance(first, list) else str(first)
    if body.get("message"):
        return body["message"]
    if status_code >= 500:
        return STATUS_MESSAGES[500]
    return STATUS_MESSAGES.get(status_code, f"Request failed with status {status_code}.")


def _to_wire(value: Any) -> Any:
    if isinstance(value, (TaskStatus, TaskPriority, TaskType)):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%d %b %Y"):
        try:
            return datetime.strptime(value[:10] if fmt == "%Y-%m-%d" else value, fmt).date()
        except ValueError:
            continue
    logger.debug("Unrecognised date %r", value)
    return None


def parse_time(value: str | None) -> time | None:
    if not value:
        return None
    try:
        return datetime.strptime(value[:5], "%H:%M").time()
    except ValueError:
        return None


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_attachment(data: dict) -> AttachmentEntity:
    return AttachmentEntity(
        id=data["id"],
        task_id=data.get("task_id"),
        kind=AttachmentKind(data.get("type", AttachmentKind.FILE.value)),
        name=data.get("name") or "",
        url=data.get("url"),
        path=data.get("path"),
        mime_type=data.get("mime_type"),
        size=data.get("size"),
        created_by=data.get("created_by"),
        created_at=parse_datetime(data.get("created_at")),
    )


def parse_task(data: dict) -> TaskEntity:
    task_type = TaskType(data.get("type") or TaskType.REGULAR.value)
    users = tuple(
        UserRef(id=user["id"], name=user.get("name") or "", avatar=user.get("avatar"))
        for user in data.get("assignedUsers") or []
    )
    fields: dict[str, Any] = {
        "id": data["id"],
        "title": data.get("title") or "",
        "type": task_type,
        "description": data.get("description") or "",
        "due_date": parse_date(data.get("dueDate") or data.get("due_date")),
        "assigned_users": users,
        "created_by": data.get("createdBy"),
        "assigned_to": data.get("assignedTo"),
        "links_count": data.get("linksCount") or 0,
        "files_count": data.get("attachmentsCount") or 0,
        "created_at": parse_datetime(data.get("createdAt") or data.get("created_at")),
    }
    if task_type == TaskType.REGULAR:
        if data.get("status"):
            fields["status"] = TaskStatus(data["status"])
        if data.get("priority"):
            fields["priority"] = TaskPriority(data["priority"])
        fields["progress"] = int(data.get("progress") or 0)
    else:
        fields["start_time"] = parse_time(data.get("startTime"))
        fields["end_time"] = parse_time(data.get("endTime"))
        fields["meeting_link"] = data.get("meetingLink")

    task = TaskEntity(**fields)
    if data.get("attachments") is not None:
        task = task.with_attachments(parse_attachment(item) for item in data["attachments"])
    return task
