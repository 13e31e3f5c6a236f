from __future__ import annotations

import logging
import re
from pathlib import PurePath

from candidate_report.parsing.extract import collapse_whitespace
from candidate_report.schemas.report import AnalysisPayload, CandidateRecord
from candidate_report.services.errors import ValidationError
from candidate_report.services.records import parse_candidate_records
from candidate_report.services.upload_collector import UploadCollector, UploadedFile

logger = logging.getLogger(__name__)

_NAME_SEPARATORS_RE = re.compile(r"[\s_\-.]+")


def normalize_candidate_name(value: str) -> str:
    """Join key shared by CSV names and résumé file stems: trimmed, case-folded, separators unified."""
    return _NAME_SEPARATORS_RE.sub(" ", (value or "")).strip().casefold()


def resume_name_key(filename: str) -> str:
    return normalize_candidate_name(PurePath(filename or "").stem)


def _check_roles(collector: UploadCollector) -> tuple[UploadedFile, UploadedFile, list[UploadedFile]]:
    interview = collector.files_by_role("interview-data")
    job = collector.files_by_role("job-description")
    resumes = collector.files_by_role("resume")

    if not interview:
        raise ValidationError("MissingRole", "Please upload the interview data CSV.")
    if not job:
        raise ValidationError("MissingRole", "Please upload a job description.")
    if not resumes:
        raise ValidationError("MissingRole", "Please upload at least one candidate resume.")
    return interview[-1], job[-1], resumes


def _check_extracted(files: list[UploadedFile]) -> None:
    incomplete = [f for f in files if f.status != "extracted" or f.extracted_text is None]
    if not incomplete:
        return
    details = "; ".join(
        f"{f.filename}: {f.error_detail or f.status}" for f in incomplete
    )
    raise ValidationError(
        "ExtractionIncomplete",
        f"Some files could not be read: {details}",
        filenames=[f.filename for f in incomplete],
    )


def _check_not_empty(files: list[UploadedFile]) -> None:
    empty = [f for f in files if not collapse_whitespace(f.extracted_text or "")]
    if empty:
        raise ValidationError(
            "EmptyContent",
            "No text content could be extracted from: " + ", ".join(f.filename for f in empty),
            filenames=[f.filename for f in empty],
        )


def join_resumes(candidates: list[CandidateRecord], resumes: list[UploadedFile]) -> list[str]:
    """Résumé texts index-aligned with ``candidates``, matched by file stem against candidate name."""
    by_key: dict[str, UploadedFile] = {}
    duplicates: list[str] = []
    for resume in resumes:
        key = resume_name_key(resume.filename)
        if key in by_key:
            duplicates.append(resume.filename)
            continue
        by_key[key] = resume
    if duplicates:
        raise ValidationError(
            "UnmatchedResume",
            "More than one resume maps to the same candidate: " + ", ".join(duplicates),
            filenames=duplicates,
        )

    first_row: dict[str, int] = {}
    for index, candidate in enumerate(candidates):
        key = normalize_candidate_name(candidate.candidate_name)
        if key in first_row:
            raise ValidationError(
                "UnmatchedResume",
                f"Rows {first_row[key] + 1} and {index + 1} name the same candidate "
                f"('{candidate.candidate_name}'); each resume can match only one row.",
                record_index=index,
            )
        first_row[key] = index

    aligned: list[str] = []
    missing: list[str] = []
    matched_keys: set[str] = set()
    for candidate in candidates:
        key = normalize_candidate_name(candidate.candidate_name)
        resume = by_key.get(key)
        if resume is None:
            missing.append(candidate.candidate_name)
            continue
        matched_keys.add(key)
        aligned.append(collapse_whitespace(resume.extracted_text or ""))

    unmatched = [resume.filename for key, resume in by_key.items() if key not in matched_keys]
    if missing or unmatched:
        parts: list[str] = []
        if missing:
            parts.append("no resume for candidate(s): " + ", ".join(missing))
        if unmatched:
            parts.append("no candidate row for resume(s): " + ", ".join(unmatched))
        raise ValidationError(
            "UnmatchedResume",
            "Resumes must be named after the candidate (e.g. 'Jane Doe.pdf'); " + "; ".join(parts) + ".",
            filenames=unmatched,
        )
    return aligned


async def validate(collector: UploadCollector) -> AnalysisPayload:
    """Turn a settled file set into an AnalysisPayload or raise ValidationError."""
    interview, job, resumes = _check_roles(collector)
    await collector.wait_settled()

    # the file set may have changed while extractions were settling
    interview, job, resumes = _check_roles(collector)
    required = [interview, job, *resumes]
    _check_extracted(required)
    _check_not_empty(required)

    candidates = parse_candidate_records(interview.extracted_text or "")
    resume_texts = join_resumes(candidates, resumes)
    payload = AnalysisPayload(
        candidates=candidates,
        job_description_text=collapse_whitespace(job.extracted_text or ""),
        resume_texts=resume_texts,
    )
    logger.info(
        "payload_validated candidates=%s resumes=%s jd_chars=%s",
        len(payload.candidates),
        len(payload.resume_texts),
        len(payload.job_description_text),
    )
    return payload
