from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from candidate_report.parsing.extract import ExtractionError, parse_csv_rows
from candidate_report.schemas.report import CandidateRecord
from candidate_report.services.errors import ValidationError

# canonical column -> accepted header spellings (after _normalize_header)
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "interview_id": ("interview_id", "interviewid"),
    "candidate_name": ("candidate_name", "name"),
    "job_title_applied_for": ("job_title_applied_for", "role", "job_title"),
    "key_skills_mentioned": ("key_skills_mentioned", "key_skills", "skills"),
    "relevant_experience_years": ("relevant_experience_years", "experience_years", "years_experience"),
    "additional_experience_shared": ("additional_experience_shared", "additional_experience"),
    "preparedness_score": ("preparedness_score",),
    "values_alignment_score": ("values_alignment_score",),
    "language_proficiency_score": ("language_proficiency_score",),
    "final_recommendation": ("final_recommendation", "recommendation"),
}
REQUIRED_COLUMNS = (
    "interview_id",
    "candidate_name",
    "job_title_applied_for",
    "key_skills_mentioned",
    "relevant_experience_years",
    "additional_experience_shared",
    "preparedness_score",
    "values_alignment_score",
    "language_proficiency_score",
    "final_recommendation",
)
SCORE_COLUMNS = ("preparedness_score", "values_alignment_score", "language_proficiency_score")
# required columns whose cells may be left empty
BLANK_ALLOWED_COLUMNS = ("key_skills_mentioned", "additional_experience_shared")
NESTED_JSON_COLUMN = "interviewdata"

_TRUE_VALUES = {"true", "yes", "y", "1", "recommended"}
_FALSE_VALUES = {"false", "no", "n", "0", "not recommended", "not_recommended"}
_INT_RE = re.compile(r"^[+-]?\d+(?:\.0+)?$")


def _normalize_header(name: str) -> str:
    return re.sub(r"[\s\-]+", "_", (name or "").strip().lower())


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _malformed(index: int, message: str) -> ValidationError:
    return ValidationError("MalformedRecord", f"Row {index + 1}: {message}", record_index=index)


def _canonicalize(row: dict[str, Any], index: int) -> dict[str, Any]:
    normalized = {_normalize_header(key): value for key, value in row.items()}

    merged: dict[str, Any] = {}
    nested = normalized.get(NESTED_JSON_COLUMN)
    if not _is_blank(nested):
        if isinstance(nested, str):
            try:
                nested = json.loads(nested)
            except json.JSONDecodeError as exc:
                raise _malformed(index, f"interviewData is not valid JSON ({exc.msg}).") from exc
        if not isinstance(nested, dict):
            raise _malformed(index, "interviewData must be a JSON object.")
        merged.update({_normalize_header(key): value for key, value in nested.items()})

    # top-level columns win over the nested JSON blob unless they are empty
    for key, value in normalized.items():
        if key == NESTED_JSON_COLUMN:
            continue
        if not _is_blank(value) or key not in merged:
            merged[key] = value

    canonical: dict[str, Any] = {}
    for column, aliases in COLUMN_ALIASES.items():
        present = [merged[alias] for alias in aliases if alias in merged]
        if not present:
            continue
        filled = [value for value in present if not _is_blank(value)]
        canonical[column] = filled[0] if filled else ""
    return canonical


def _parse_int(value: Any, column: str, index: int) -> int:
    if isinstance(value, bool):
        raise _malformed(index, f"{column} must be a whole number, got {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if _INT_RE.match(text):
        return int(float(text))
    raise _malformed(index, f"{column} must be a whole number, got {text!r}.")


def _parse_score(value: Any, column: str, index: int) -> int:
    score = _parse_int(value, column, index)
    if not 0 <= score <= 10:
        raise _malformed(index, f"{column} must be between 0 and 10, got {score}.")
    return score


def _parse_bool(value: Any, column: str, index: int) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise _malformed(index, f"{column} must be a boolean (true/false), got {value!r}.")


def _parse_skills(value: Any, index: int) -> list[str]:
    if _is_blank(value):
        return []
    items: Any = value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except json.JSONDecodeError as exc:
                raise _malformed(index, f"key_skills_mentioned is not a valid JSON array ({exc.msg}).") from exc
        else:
            items = text.split(",")
    if not isinstance(items, list):
        raise _malformed(index, "key_skills_mentioned must be a comma-separated list or JSON array.")
    return [str(item).strip() for item in items if str(item).strip()]


def row_to_record(row: dict[str, Any], index: int) -> CandidateRecord:
    values = _canonicalize(row, index)
    missing = [column for column in REQUIRED_COLUMNS if column not in values]
    if missing:
        raise _malformed(index, f"missing required field(s): {', '.join(missing)}.")
    empty = [
        column
        for column in REQUIRED_COLUMNS
        if column not in BLANK_ALLOWED_COLUMNS and _is_blank(values[column])
    ]
    if empty:
        raise _malformed(index, f"empty value for required field(s): {', '.join(empty)}.")

    fields: dict[str, Any] = {
        "interview_id": _parse_int(values["interview_id"], "interview_id", index),
        "candidate_name": str(values["candidate_name"]),
        "job_title_applied_for": str(values["job_title_applied_for"]),
        "key_skills_mentioned": _parse_skills(values.get("key_skills_mentioned"), index),
        "relevant_experience_years": _parse_int(
            values["relevant_experience_years"], "relevant_experience_years", index
        ),
        "additional_experience_shared": str(values.get("additional_experience_shared") or ""),
        "final_recommendation": _parse_bool(values["final_recommendation"], "final_recommendation", index),
    }
    for column in SCORE_COLUMNS:
        fields[column] = _parse_score(values[column], column, index)

    try:
        return CandidateRecord(**fields)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "record"
        raise _malformed(index, f"{location}: {first.get('msg', 'invalid value')}.") from exc


def parse_candidate_records(csv_text: str) -> list[CandidateRecord]:
    """Map interview-data CSV text onto ordered CandidateRecords."""
    try:
        rows = parse_csv_rows(csv_text)
    except ExtractionError as exc:
        raise ValidationError("MalformedRecord", str(exc)) from exc
    if not rows:
        raise ValidationError("EmptyContent", "The interview data CSV contains no candidate rows.")

    records: list[CandidateRecord] = []
    seen_ids: dict[int, int] = {}
    for index, row in enumerate(rows):
        record = row_to_record(row, index)
        if record.interview_id in seen_ids:
            raise _malformed(
                index,
                f"interview_id {record.interview_id} duplicates row {seen_ids[record.interview_id] + 1}.",
            )
        seen_ids[record.interview_id] = index
        records.append(record)
    return records
