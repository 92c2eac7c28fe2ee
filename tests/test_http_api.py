from __future__ import annotations

from datetime import date, time
from unittest import mock

import pytest
import requests

from taskboard.config import Settings
from taskboard.domain.drafts import AttachmentDraft
from taskboard.domain.enums import AttachmentKind, TaskPriority, TaskStatus, TaskType
from taskboard.domain.errors import ApplicationError, TransportError
from taskboard.domain.filters import TaskFilters
from taskboard.infra.http_api import UNREACHABLE, HttpTaskApi, build_session, parse_task

SETTINGS = Settings(api_base_url="https://tasks.example.com/api/", api_token="secret", request_timeout=5)

TASK_JSON = {
    "id": 3,
    "title": "Quarterly report",
    "type": "tugas",
    "description": "Collect numbers",
    "dueDate": "12 Nov 2025",
    "status": "proses",
    "priority": "tinggi",
    "progress": 40,
    "assignedUsers": [{"id": 7, "name": "Rina", "avatar": None}],
    "linksCount": 2,
    "attachmentsCount": 1,
    "createdBy": 1,
    "assignedTo": 7,
}


def _response(status_code=200, body=None):
    response = mock.Mock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return HttpTaskApi(SETTINGS, session=session)


def test_fetch_tasks_sends_filters_and_parses_cards(client, session):
    session.request.return_value = _response(body={"success": True, "data": [TASK_JSON]})

    tasks = client.fetch_tasks(TaskFilters(priority=TaskPriority.HIGH, search="report"))

    session.request.assert_called_once_with(
        "GET",
        "https://tasks.example.com/api/tasks",
        timeout=5,
        params={"priority": "tinggi", "search": "report"},
    )
    task = tasks[0]
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.priority == TaskPriority.HIGH
    assert task.progress == 40
    assert task.due_date == date(2025, 11, 12)
    assert task.assigned_users[0].name == "Rina"
    assert (task.links_count, task.files_count) == (2, 1)
    assert task.attachments is None


def test_agenda_items_carry_times_and_meeting_link():
    task = parse_task({
        "id": 9,
        "title": "Weekly sync",
        "type": "agenda",
        "dueDate": "2025-11-14",
        "startTime": "09:30",
        "endTime": "10:15:00",
        "meetingLink": "https://meet.example.com/abc",
    })
    assert task.type == TaskType.AGENDA
    assert not task.is_workflow
    assert (task.start_time, task.end_time) == (time(9, 30), time(10, 15))
    assert task.meeting_link == "https://meet.example.com/abc"
    assert task.due_date == date(2025, 11, 14)


def test_detail_with_attachments_recomputes_counts(client, session):
    body = dict(TASK_JSON, attachments=[
        {"id": 1, "task_id": 3, "type": "link", "name": "Spec", "url": "https://example.com"},
        {"id": 2, "task_id": 3, "type": "file", "name": "a.pdf", "path": "tasks/3/a.pdf", "size": 10},
    ])
    session.request.return_value = _response(body={"success": True, "data": body})

    task = client.get_task(3)

    assert [item.kind for item in task.attachments] == [AttachmentKind.LINK, AttachmentKind.FILE]
    assert (task.links_count, task.files_count) == (1, 1)


def test_status_update_uses_patch(client, session):
    session.request.return_value = _response(body={"success": True, "data": dict(TASK_JSON, status="review")})

    task = client.update_task_status(3, TaskStatus.IN_REVIEW)

    session.request.assert_called_once_with(
        "PATCH",
        "https://tasks.example.com/api/tasks/3/status",
        timeout=5,
        json={"status": "review"},
    )
    assert task.status == TaskStatus.IN_REVIEW


def test_progress_update_uses_put(client, session):
    session.request.return_value = _response(body={"success": True, "data": dict(TASK_JSON, progress=60)})

    client.update_task(3, {"progress": 60})

    assert session.request.call_args.args == ("PUT", "https://tasks.example.com/api/tasks/3")
    assert session.request.call_args.kwargs["json"] == {"progress": 60}


def test_link_attachment_is_posted_as_json(client, session):
    session.request.return_value = _response(body={
        "success": True,
        "data": {"id": 11, "task_id": 3, "type": "link", "name": "Docs", "url": "https://example.com"},
    })

    attachment = client.add_attachment(3, AttachmentDraft.link("https://example.com", "Docs"))

    assert session.request.call_args.args == ("POST", "https://tasks.example.com/api/tasks/3/attachments/link")
    assert session.request.call_args.kwargs["json"] == {"url": "https://example.com", "name": "Docs"}
    assert attachment.id == 11
    assert attachment.is_link


def test_file_attachment_is_uploaded_as_multipart(client, session, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")
    session.request.return_value = _response(body={
        "success": True,
        "data": {"id": 12, "task_id": 3, "type": "file", "name": "notes.txt", "size": 5},
    })

    attachment = client.add_attachment(3, AttachmentDraft.file(path))

    name, _handle, mime_type = session.request.call_args.kwargs["files"]["file"]
    assert (name, mime_type) == ("notes.txt", "text/plain")
    assert attachment.size == 5


def test_validation_error_reports_first_message(client, session):
    session.request.return_value = _response(422, {
        "message": "The given data was invalid.",
        "errors": {"progress": ["The progress must not be greater than 100."]},
    })

    with pytest.raises(ApplicationError) as info:
        client.update_task(3, {"progress": 120})

    assert info.value.status_code == 422
    assert info.value.message == "The progress must not be greater than 100."


@pytest.mark.parametrize("status_code, message", [
    (403, "You are not allowed to perform this action."),
    (404, "The requested item was not found."),
    (503, "The server ran into an error. Please try again later."),
])
def test_http_errors_map_to_messages(client, session, status_code, message):
    session.request.return_value = _response(status_code)
    with pytest.raises(ApplicationError) as info:
        client.delete_task(3)
    assert info.value.message == message


def test_unsuccessful_envelope_is_an_error(client, session):
    session.request.return_value = _response(body={"success": False, "message": "Task is locked"})
    with pytest.raises(ApplicationError, match="Task is locked"):
        client.update_task_status(3, TaskStatus.DONE)


def test_network_failure_is_a_transport_error(client, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(TransportError) as info:
        client.fetch_tasks(TaskFilters())
    assert info.value.message == UNREACHABLE


def test_session_retries_idempotent_calls_and_sends_token():
    session = build_session(SETTINGS)

    retry = session.get_adapter("https://tasks.example.com").max_retries
    assert retry.total == 3
    assert "POST" not in retry.allowed_methods
    assert retry.status == 0
    assert session.headers["Authorization"] == "Bearer secret"
