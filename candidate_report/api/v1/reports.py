from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse

from candidate_report.ai.errors import (
    AuthError,
    RateLimitError,
    ReportServiceError,
    ReportTimeoutError,
    TransientServiceError,
)
from candidate_report.core.config import settings
from candidate_report.schemas.report import (
    FileListResponse,
    FileRole,
    GeneratedReport,
    PromptPreviewResponse,
    ScheduleResponse,
    SessionCreateResponse,
)
from candidate_report.services.errors import SubmissionInProgressError, ValidationError
from candidate_report.services.prompt import assemble_markdown_brief
from candidate_report.services.session import ReportSession, SessionStore

router = APIRouter()

_READ_CHUNK_BYTES = 1024 * 64
MAX_SCHEDULE_DELAY_MS = 60_000


def _store(request: Request) -> SessionStore:
    return request.app.state.sessions


def _session(session_id: str, store: SessionStore = Depends(_store)) -> ReportSession:
    try:
        return store.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found or expired.") from exc


def _report_error_status(exc: ReportServiceError) -> int:
    if isinstance(exc, AuthError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, RateLimitError):
        return status.HTTP_429_TOO_MANY_REQUESTS
    if isinstance(exc, ReportTimeoutError):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, TransientServiceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_502_BAD_GATEWAY


def _raise_validation_error(exc: ValidationError) -> None:
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=exc.to_out().model_dump(mode="json"),
    ) from exc


def _raise_report_error(exc: ReportServiceError) -> None:
    raise HTTPException(
        status_code=_report_error_status(exc),
        detail={"kind": exc.code, "message": exc.user_message},
    ) from exc


def _file_list(session: ReportSession) -> FileListResponse:
    return FileListResponse(
        session_id=session.session_id,
        files=session.collector.statuses(),
        has_report=session.report is not None,
    )


async def _read_upload(upload: UploadFile, limit: int) -> bytes:
    # stop one chunk past the limit; the collector rejects oversize files
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await upload.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        chunks.append(chunk)
        if total > limit:
            break
    return b"".join(chunks)


@router.post("/sessions", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(store: SessionStore = Depends(_store)):
    session = store.create()
    return SessionCreateResponse(session_id=session.session_id, created_at=session.created_at)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, store: SessionStore = Depends(_store)):
    try:
        await store.discard(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found or expired.") from exc


@router.post("/sessions/{session_id}/files/{role}", response_model=FileListResponse)
async def upload_files(
    role: FileRole,
    files: list[UploadFile] = File(...),
    session: ReportSession = Depends(_session),
):
    received: list[tuple[str, bytes]] = []
    for upload in files:
        received.append((upload.filename or "uploaded-file", await _read_upload(upload, settings.max_upload_bytes)))
    try:
        session.collector.add_files(role, received)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _file_list(session)


@router.get("/sessions/{session_id}/files", response_model=FileListResponse)
async def list_files(session: ReportSession = Depends(_session)):
    return _file_list(session)


@router.delete("/sessions/{session_id}/files/{index}", response_model=FileListResponse)
async def remove_file(index: int, session: ReportSession = Depends(_session)):
    try:
        session.collector.remove_file(index)
    except IndexError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _file_list(session)


@router.get("/sessions/{session_id}/prompt", response_model=PromptPreviewResponse)
async def preview_prompt(session: ReportSession = Depends(_session)):
    try:
        payload, prompt = await session.build_prompt()
    except ValidationError as exc:
        _raise_validation_error(exc)
    return PromptPreviewResponse(
        system=prompt.system,
        user=prompt.user,
        fingerprint=prompt.fingerprint,
        markdown_brief=assemble_markdown_brief(payload),
        candidate_count=len(payload.candidates),
    )


@router.post("/sessions/{session_id}/report", response_model=GeneratedReport)
async def generate_report(session: ReportSession = Depends(_session)):
    try:
        return await session.generate()
    except SubmissionInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValidationError as exc:
        _raise_validation_error(exc)
    except ReportServiceError as exc:
        _raise_report_error(exc)


@router.post(
    "/sessions/{session_id}/report/schedule",
    response_model=ScheduleResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def schedule_report(
    delay_ms: int = Query(default=500, ge=0, le=MAX_SCHEDULE_DELAY_MS),
    session: ReportSession = Depends(_session),
):
    session.schedule(delay_ms / 1000)
    return ScheduleResponse(session_id=session.session_id, delay_ms=delay_ms)


@router.get("/sessions/{session_id}/report", response_model=GeneratedReport)
async def get_report(session: ReportSession = Depends(_session)):
    if session.report is not None:
        return session.report
    body: dict = {"detail": "No report has been generated for the current files.", "generating": session.generating}
    error = session.last_error
    if isinstance(error, ValidationError):
        body["last_error"] = error.to_out().model_dump(mode="json")
    elif isinstance(error, ReportServiceError):
        body["last_error"] = {"kind": error.code, "message": error.user_message}
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=body)
