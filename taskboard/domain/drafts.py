from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from taskboard.domain.enums import AttachmentKind
from taskboard.domain.errors import AttachmentRejected

MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_URL_LENGTH = 2048
MAX_NAME_LENGTH = 255
ALLOWED_EXTENSIONS = frozenset({
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    "txt", "jpg", "jpeg", "png", "gif", "zip", "rar",
})


@dataclass(frozen=True)
class AttachmentDraft:
    """A file or link waiting to be sent to the backend."""

    kind: AttachmentKind
    name: str
    url: str | None = None
    path: Path | None = None
    mime_type: str | None = None
    size: int | None = None

    @classmethod
    def link(cls, url: str, name: str | None = None) -> AttachmentDraft:
        url = (url or "").strip()
        name = (name or "").strip() or urlparse(url).hostname or "Link"
        return cls(kind=AttachmentKind.LINK, name=name, url=url)

    @classmethod
    def file(cls, path: str | Path) -> AttachmentDraft:
        path = Path(path)
        if not path.is_file():
            raise AttachmentRejected(f"File not found: {path}")
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            kind=AttachmentKind.FILE,
            name=path.name,
            path=path,
            mime_type=mime_type,
            size=path.stat().st_size,
        )

    def validate(self) -> None:
        if len(self.name) > MAX_NAME_LENGTH:
            raise AttachmentRejected(f"Name must be at most {MAX_NAME_LENGTH} characters.")
        if self.kind == AttachmentKind.LINK:
            self._validate_link()
        else:
            self._validate_file()

    def _validate_link(self) -> None:
        if not self.url:
            raise AttachmentRejected("A link needs a URL.")
        if len(self.url) > MAX_URL_LENGTH:
            raise AttachmentRejected(f"URL must be at most {MAX_URL_LENGTH} characters.")
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise AttachmentRejected("URL must start with http:// or https://.")

    def _validate_file(self) -> None:
        extension = self.name.rsplit(".", 1)[-1].lower() if "." in self.name else ""
        if extension not in ALLOWED_EXTENSIONS:
            raise AttachmentRejected(f"Files of type '.{extension}' are not accepted.")
        if self.size is not None and self.size > MAX_FILE_SIZE:
            raise AttachmentRejected("File is larger than 10 MB.")
