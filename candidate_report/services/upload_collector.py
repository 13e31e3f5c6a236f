from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Sequence

from candidate_report.parsing.extract import extract_for_role
from candidate_report.parsing.signatures import check_extension_for_role
from candidate_report.schemas.report import (
    FILE_ROLES,
    SINGLETON_ROLES,
    FileRole,
    FileStatus,
    UploadedFileOut,
)

logger = logging.getLogger(__name__)

Extractor = Callable[[str, str, bytes], str]
ChangeListener = Callable[[], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadedFile:
    role: FileRole
    filename: str
    content: bytes | None
    size_bytes: int
    file_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    uploaded_at: datetime = field(default_factory=_utc_now)
    status: FileStatus = "pending"
    extracted_text: str | None = None
    error_detail: str | None = None

    def mark_failed(self, detail: str) -> None:
        self.status = "failed"
        self.error_detail = detail
        self.extracted_text = None
        self.content = None

    def mark_extracted(self, text: str) -> None:
        self.status = "extracted"
        self.extracted_text = text
        self.error_detail = None
        self.content = None


class UploadCollector:
    """Tracks the files of one submission and fans their extraction out on the event loop.

    Interview data and job description are singleton roles: adding one replaces the
    previous file of that role. Résumés accumulate. Every mutation bumps ``revision``
    and notifies change listeners so stale reports can be dropped.
    """

    def __init__(
        self,
        *,
        extractor: Extractor = extract_for_role,
        max_upload_bytes: int | None = None,
    ):
        self._extractor = extractor
        self._max_upload_bytes = max_upload_bytes
        self._files: list[UploadedFile] = []
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[ChangeListener] = []
        self.revision = 0

    @property
    def files(self) -> list[UploadedFile]:
        return list(self._files)

    def files_by_role(self, role: FileRole) -> list[UploadedFile]:
        return [f for f in self._files if f.role == role]

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def add_files(self, role: FileRole, files: Sequence[tuple[str, bytes]]) -> list[UploadedFile]:
        """Register files under ``role`` and start extracting them without waiting."""
        if role not in FILE_ROLES:
            raise ValueError(f"Unknown file role '{role}'.")
        if not files:
            raise ValueError("No files were provided.")
        if role in SINGLETON_ROLES:
            if len(files) > 1:
                raise ValueError(f"Only one {role} file can be uploaded.")
            for previous in self.files_by_role(role):
                self._evict(previous)

        added: list[UploadedFile] = []
        for filename, content in files:
            uploaded = UploadedFile(
                role=role,
                filename=filename or "uploaded-file",
                content=content,
                size_bytes=len(content),
            )
            self._files.append(uploaded)
            added.append(uploaded)

            rejection = self._upload_rejection(uploaded)
            if rejection:
                uploaded.mark_failed(rejection)
                logger.info("upload_rejected role=%s file=%s reason=%s", role, uploaded.filename, rejection)
                continue
            self._tasks[uploaded.file_id] = asyncio.create_task(self._extract(uploaded))

        self._changed()
        return added

    def remove_file(self, index: int) -> UploadedFile:
        if not 0 <= index < len(self._files):
            raise IndexError(f"No file at index {index}.")
        removed = self._files[index]
        self._evict(removed)
        self._changed()
        return removed

    def clear(self) -> None:
        for uploaded in list(self._files):
            self._evict(uploaded)
        self._changed()

    async def wait_settled(self) -> None:
        """Suspend until every dispatched extraction has settled, including ones added meanwhile."""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            # asyncio.wait does not cancel the extractions if the waiter is cancelled
            await asyncio.wait(pending)

    def statuses(self) -> list[UploadedFileOut]:
        return [
            UploadedFileOut(
                index=index,
                role=f.role,
                filename=f.filename,
                size_bytes=f.size_bytes,
                status=f.status,
                error_detail=f.error_detail,
                extracted_chars=len(f.extracted_text) if f.extracted_text is not None else None,
                uploaded_at=f.uploaded_at,
            )
            for index, f in enumerate(self._files)
        ]

    def _upload_rejection(self, uploaded: UploadedFile) -> str | None:
        try:
            check_extension_for_role(role=uploaded.role, filename=uploaded.filename)
        except ValueError as exc:
            return str(exc)
        if self._max_upload_bytes is not None and uploaded.size_bytes > self._max_upload_bytes:
            return f"File too large. Maximum allowed size is {self._max_upload_bytes // (1024 * 1024)} MB."
        return None

    async def _extract(self, uploaded: UploadedFile) -> None:
        uploaded.status = "extracting"
        content = uploaded.content or b""
        try:
            text = await asyncio.to_thread(self._extractor, uploaded.role, uploaded.filename, content)
        except Exception as exc:  # noqa: BLE001
            uploaded.mark_failed(str(exc) or exc.__class__.__name__)
            logger.warning(
                "file_extraction_failed role=%s file=%s: %s", uploaded.role, uploaded.filename, uploaded.error_detail
            )
        else:
            uploaded.mark_extracted(text)
            logger.info(
                "file_extracted role=%s file=%s chars=%s", uploaded.role, uploaded.filename, len(text)
            )
        finally:
            self._tasks.pop(uploaded.file_id, None)

    def _evict(self, uploaded: UploadedFile) -> None:
        task = self._tasks.pop(uploaded.file_id, None)
        if task is not None and not task.done():
            task.cancel()
        self._files = [f for f in self._files if f is not uploaded]
        uploaded.content = None

    def _changed(self) -> None:
        self.revision += 1
        for listener in list(self._listeners):
            listener()
