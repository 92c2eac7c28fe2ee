from __future__ import annotations

import pytest

from conftest import make_task
from taskboard.domain.drafts import MAX_FILE_SIZE, AttachmentDraft
from taskboard.domain.entities import AttachmentEntity
from taskboard.domain.enums import AttachmentKind
from taskboard.domain.errors import ApplicationError, AttachmentRejected
from taskboard.services.attachments import AttachmentSynchronizer


def _attachment(attachment_id: int, kind=AttachmentKind.LINK) -> AttachmentEntity:
    return AttachmentEntity(
        id=attachment_id,
        task_id=1,
        kind=kind,
        name=f"item-{attachment_id}",
        url="https://example.com/doc" if kind == AttachmentKind.LINK else None,
    )


@pytest.fixture
def opened(api, store, executor, service):
    """A task whose detail view loaded one link and one file."""
    task = make_task(1).with_attachments([_attachment(5), _attachment(6, AttachmentKind.FILE)])
    api.seed(task)
    store.load([make_task(1, links_count=1, files_count=1)])
    service.open_task(1)
    executor.run_all()
    return service


def test_open_loads_the_attachment_list(opened, store):
    task = store.get(1)
    assert [item.id for item in task.attachments] == [5, 6]
    assert (task.links_count, task.files_count) == (1, 1)


def test_link_is_added_only_after_acknowledgement(opened, api, executor, store):
    assert opened.add_link(1, "https://docs.example.org/guide") is True
    assert store.get(1).links_count == 1

    executor.run_all()

    task = store.get(1)
    assert task.links_count == 2
    assert task.attachments[-1].name == "docs.example.org"
    assert len(api.calls_to("fetch_tasks")) == 1


def test_refresh_after_add_keeps_the_loaded_list(opened, executor, store):
    opened.add_link(1, "https://example.com", "Board")
    executor.run_all()
    assert [item.name for item in store.get(1).attachments][-1] == "Board"


@pytest.mark.parametrize("url", ["", "ftp://example.com/file", "example.com", "https://" + "a" * 2050])
def test_invalid_links_are_rejected_before_any_call(opened, executor, notifier, url):
    assert opened.add_link(1, url) is False
    assert executor.pending == []
    assert len(notifier.messages) == 1


def test_file_upload_reads_size_and_type(opened, api, executor, store, tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4 test")

    assert opened.add_file(1, path) is True
    executor.run_all()

    draft = api.calls_to("add_attachment")[0][2]
    assert draft.name == "report.pdf"
    assert draft.size == path.stat().st_size
    assert draft.mime_type == "application/pdf"
    assert store.get(1).files_count == 2


def test_disallowed_extension_is_rejected(opened, executor, notifier, tmp_path):
    path = tmp_path / "setup.exe"
    path.write_bytes(b"MZ")
    assert opened.add_file(1, path) is False
    assert executor.pending == []
    assert notifier.messages == ["Files of type '.exe' are not accepted."]


def test_missing_file_is_rejected(opened, notifier, tmp_path):
    assert opened.add_file(1, tmp_path / "gone.pdf") is False
    assert notifier.messages[0].startswith("File not found")


def test_oversized_file_is_rejected():
    draft = AttachmentDraft(kind=AttachmentKind.FILE, name="big.zip", size=MAX_FILE_SIZE + 1)
    with pytest.raises(AttachmentRejected):
        draft.validate()


def test_add_failure_leaves_list_untouched(opened, api, executor, store, notifier):
    api.fail("add_attachment", ApplicationError("The file may not be greater than 10 MB.", 422))

    opened.add_link(1, "https://example.com")
    executor.run_all()

    assert store.get(1).links_count == 1
    assert notifier.messages == ["The file may not be greater than 10 MB."]
    assert api.calls_to("fetch_tasks") == []


def test_remove_asks_for_confirmation(opened, executor, store, confirmations):
    assert opened.remove_attachment(1, 5) is True
    assert [item.id for item in confirmations] == [5]
    assert store.get(1).links_count == 1

    executor.run_all()

    task = store.get(1)
    assert [item.id for item in task.attachments] == [6]
    assert (task.links_count, task.files_count) == (0, 1)


def test_declined_removal_does_nothing(api, executor, notifier, store):
    store.load([make_task(1).with_attachments([_attachment(5)])])
    synchronizer = AttachmentSynchronizer(
        store, api, executor, notifier, confirm_removal=lambda attachment: False
    )

    assert synchronizer.remove(1, 5) is False
    assert executor.pending == []
    assert store.get(1).links_count == 1


def test_unknown_attachment_is_not_removed(opened, executor, confirmations):
    assert opened.remove_attachment(1, 404) is False
    assert confirmations == []
    assert executor.pending == []


def test_remove_failure_keeps_the_attachment(opened, api, executor, store, notifier):
    api.fail("remove_attachment", ApplicationError("Attachment not found.", 404))

    opened.remove_attachment(1, 5)
    executor.run_all()

    assert [item.id for item in store.get(1).attachments] == [5, 6]
    assert notifier.messages == ["Attachment not found."]


def test_add_then_remove_restores_the_counts(opened, api, executor, store):
    opened.add_link(1, "https://docs.example.org/guide")
    executor.run_all()
    added = store.get(1).attachments[-1]
    assert (store.get(1).links_count, store.get(1).files_count) == (2, 1)

    assert opened.remove_attachment(1, added.id) is True
    executor.run_all()

    task = store.get(1)
    assert [item.id for item in task.attachments] == [5, 6]
    assert (task.links_count, task.files_count) == (1, 1)
    assert api.calls_to("remove_attachment") == [("remove_attachment", 1, added.id)]
