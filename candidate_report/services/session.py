from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime, timezone

from candidate_report.ai.errors import ReportServiceError
from candidate_report.parsing.extract import extract_for_role
from candidate_report.schemas.report import AnalysisPayload, GeneratedReport
from candidate_report.services.errors import SubmissionInProgressError, ValidationError
from candidate_report.services.prompt import AssembledPrompt, assemble
from candidate_report.services.report_client import ReportClient
from candidate_report.services.upload_collector import Extractor, UploadCollector
from candidate_report.services.validator import validate

logger = logging.getLogger(__name__)


class ReportSession:
    """One user's submission: its files, the latest report and at most one generation in flight."""

    def __init__(self, session_id: str, client: ReportClient, collector: UploadCollector):
        self.session_id = session_id
        self.collector = collector
        self.created_at = datetime.now(timezone.utc)
        self.report: GeneratedReport | None = None
        self.last_error: ValidationError | ReportServiceError | None = None
        self._client = client
        self._generation: asyncio.Task[GeneratedReport] | None = None
        self._generation_is_manual = False
        self._scheduled: asyncio.Task[None] | None = None
        self._scheduled_delay_s: float | None = None
        self._closed = False
        self._last_active = time.monotonic()
        collector.add_listener(self._on_inputs_changed)

    @property
    def generating(self) -> bool:
        return self._generation is not None and not self._generation.done()

    @property
    def scheduled(self) -> bool:
        return self._scheduled is not None and not self._scheduled.done()

    def touch(self) -> None:
        self._last_active = time.monotonic()

    def idle_for(self, now: float | None = None) -> float:
        return (now if now is not None else time.monotonic()) - self._last_active

    async def build_prompt(self) -> tuple[AnalysisPayload, AssembledPrompt]:
        payload = await validate(self.collector)
        return payload, assemble(payload)

    async def generate(self) -> GeneratedReport:
        """Run one submission now. A second call while one is in flight is rejected."""
        if self.generating:
            raise SubmissionInProgressError()
        task = asyncio.create_task(self._run_generation())
        self._generation = task
        self._generation_is_manual = True
        return await task

    def schedule(self, delay_s: float) -> None:
        """Debounced generation: replaces any pending or running scheduled generation."""
        self._cancel_scheduled()
        self._scheduled_delay_s = delay_s
        self._scheduled = asyncio.create_task(self._run_scheduled(delay_s))

    async def close(self) -> None:
        self._closed = True
        self._cancel_scheduled()
        if self.generating and self._generation is not None:
            self._generation.cancel()
            await asyncio.wait([self._generation])
        self.collector.clear()
        self.report = None

    async def _run_generation(self) -> GeneratedReport:
        revision = self.collector.revision
        self.report = None
        self.last_error = None
        try:
            payload, prompt = await self.build_prompt()
            report = await self._client.submit(prompt)
        except (ValidationError, ReportServiceError) as exc:
            self.last_error = exc
            raise
        if self.collector.revision == revision:
            self.report = report
        else:
            logger.info("report_discarded_stale session=%s", self.session_id)
        logger.info(
            "report_generated session=%s candidates=%s stored=%s",
            self.session_id,
            len(payload.candidates),
            self.report is report,
        )
        return report

    async def _run_scheduled(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        while self.generating and self._generation is not None:
            running = self._generation
            # a manual submission has a caller waiting on it; let it finish
            if not self._generation_is_manual:
                running.cancel()
            await asyncio.wait([running])
        task = asyncio.create_task(self._run_generation())
        self._generation = task
        self._generation_is_manual = False
        try:
            await task
        except (ValidationError, ReportServiceError) as exc:
            logger.info("scheduled_generation_failed session=%s kind=%s", self.session_id, _error_kind(exc))

    def _cancel_scheduled(self) -> None:
        if self._scheduled is not None and not self._scheduled.done():
            self._scheduled.cancel()
        self._scheduled = None

    def _on_inputs_changed(self) -> None:
        self.report = None
        if self._closed:
            return
        if self.scheduled and self._scheduled_delay_s is not None:
            self.schedule(self._scheduled_delay_s)


def _error_kind(exc: ValidationError | ReportServiceError) -> str:
    return exc.kind if isinstance(exc, ValidationError) else exc.code


class SessionStore:
    """In-memory sessions; nothing survives a restart."""

    def __init__(
        self,
        client: ReportClient,
        *,
        max_upload_bytes: int | None = None,
        idle_ttl_s: float = 3600,
        extractor: Extractor = extract_for_role,
    ):
        self._client = client
        self._max_upload_bytes = max_upload_bytes
        self._idle_ttl_s = idle_ttl_s
        self._extractor = extractor
        self._sessions: dict[str, ReportSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> ReportSession:
        session_id = secrets.token_urlsafe(18)
        collector = UploadCollector(extractor=self._extractor, max_upload_bytes=self._max_upload_bytes)
        session = ReportSession(session_id, self._client, collector)
        self._sessions[session_id] = session
        logger.info("session_created session=%s", session_id)
        return session

    def get(self, session_id: str) -> ReportSession:
        session = self._sessions[session_id]
        session.touch()
        return session

    async def discard(self, session_id: str) -> None:
        session = self._sessions.pop(session_id)
        await session.close()
        logger.info("session_discarded session=%s", session_id)

    async def purge_idle(self, now: float | None = None) -> int:
        expired = [
            sid
            for sid, session in self._sessions.items()
            if session.idle_for(now) > self._idle_ttl_s and not session.generating
        ]
        for sid in expired:
            await self.discard(sid)
        return len(expired)

    async def close_all(self) -> None:
        for sid in list(self._sessions):
            await self.discard(sid)
