from __future__ import annotations

from typing import Sequence

from candidate_report.schemas.report import ValidationErrorKind, ValidationErrorOut


class ValidationError(ValueError):
    """Local, pre-network failure; the user fixes it by re-selecting files."""

    def __init__(
        self,
        kind: ValidationErrorKind,
        message: str,
        *,
        record_index: int | None = None,
        filenames: Sequence[str] = (),
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.record_index = record_index
        self.filenames = list(filenames)

    def to_out(self) -> ValidationErrorOut:
        return ValidationErrorOut(
            kind=self.kind,
            message=self.message,
            record_index=self.record_index,
            filenames=self.filenames,
        )


class SubmissionInProgressError(RuntimeError):
    def __init__(self, message: str = "A report is already being generated for this session."):
        super().__init__(message)
