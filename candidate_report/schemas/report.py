from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

FileRole = Literal["interview-data", "job-description", "resume"]
FileStatus = Literal["pending", "extracting", "extracted", "failed"]
ValidationErrorKind = Literal[
    "MissingRole",
    "ExtractionIncomplete",
    "EmptyContent",
    "MalformedRecord",
    "UnmatchedResume",
]

FILE_ROLES: tuple[FileRole, ...] = ("interview-data", "job-description", "resume")
SINGLETON_ROLES: frozenset[str] = frozenset({"interview-data", "job-description"})


class CandidateRecord(BaseModel):
    interview_id: int
    candidate_name: str = Field(min_length=1)
    job_title_applied_for: str = Field(min_length=1)
    key_skills_mentioned: list[str] = Field(default_factory=list)
    relevant_experience_years: int = Field(ge=0)
    additional_experience_shared: str = ""
    preparedness_score: int = Field(ge=0, le=10)
    values_alignment_score: int = Field(ge=0, le=10)
    language_proficiency_score: int = Field(ge=0, le=10)
    final_recommendation: bool

    @field_validator("candidate_name", "job_title_applied_for", "additional_experience_shared")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return value.strip()


class AnalysisPayload(BaseModel):
    candidates: list[CandidateRecord] = Field(min_length=1)
    job_description_text: str = Field(min_length=1)
    resume_texts: list[str] = Field(min_length=1)

    @model_validator(mode="after")
    def _resumes_align_with_candidates(self) -> "AnalysisPayload":
        if len(self.resume_texts) != len(self.candidates):
            raise ValueError("resume_texts must be index-aligned with candidates")
        if not self.job_description_text.strip():
            raise ValueError("job_description_text must not be blank")
        return self


class GeneratedReport(BaseModel):
    raw_text: str
    received_at: datetime
    source_request_id: str | None = None
    model: str
    prompt_fingerprint: str


class UploadedFileOut(BaseModel):
    index: int
    role: FileRole
    filename: str
    size_bytes: int
    status: FileStatus
    error_detail: str | None = None
    extracted_chars: int | None = None
    uploaded_at: datetime


class FileListResponse(BaseModel):
    session_id: str
    files: list[UploadedFileOut] = Field(default_factory=list)
    has_report: bool = False


class SessionCreateResponse(BaseModel):
    session_id: str
    created_at: datetime


class ValidationErrorOut(BaseModel):
    kind: ValidationErrorKind
    message: str
    record_index: int | None = None
    filenames: list[str] = Field(default_factory=list)


class PromptPreviewResponse(BaseModel):
    system: str
    user: str
    fingerprint: str
    markdown_brief: str
    candidate_count: int


class ScheduleResponse(BaseModel):
    session_id: str
    delay_ms: int
    status: Literal["scheduled"] = "scheduled"
