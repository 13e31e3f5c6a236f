from __future__ import annotations

import csv
import logging
import re
from io import BytesIO, StringIO

from candidate_report.parsing.signatures import extension_from_filename, validate_upload_signature

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class ExtractionError(ValueError):
    pass


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def decode_text(content: bytes) -> str:
    if content.startswith((b"\xff\xfe", b"\xfe\xff")):
        try:
            return content.decode("utf-16")
        except UnicodeDecodeError as exc:
            raise ExtractionError("Unable to decode UTF-16 text content.") from exc
    for encoding in ("utf-8-sig", "cp1252", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ExtractionError("Unable to decode text content.")


def extract_pdf_text(content: bytes) -> str:
    """Embedded text of a PDF with page breaks and whitespace runs collapsed."""
    from pypdf import PdfReader

    try:
        reader = PdfReader(BytesIO(content))
        page_chunks: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            if page_text.strip():
                page_chunks.append(page_text)
    except Exception as exc:
        raise ExtractionError("Unable to extract text from this PDF file.") from exc
    return collapse_whitespace(" ".join(page_chunks))


def extract_docx_text(content: bytes) -> str:
    from docx import Document

    try:
        doc = Document(BytesIO(content))
    except Exception as exc:
        raise ExtractionError("Unable to extract text from this Word document.") from exc
    return collapse_whitespace(" ".join(p.text for p in doc.paragraphs if p.text.strip()))


def extract_document_text(filename: str, content: bytes) -> str:
    ext = extension_from_filename(filename)
    if ext == "pdf":
        return extract_pdf_text(content)
    if ext == "docx":
        return extract_docx_text(content)
    if ext in {"txt", "md"}:
        return collapse_whitespace(decode_text(content))
    raise ExtractionError(f"Unsupported document type '.{ext}'.")


def extract_for_role(role: str, filename: str, content: bytes) -> str:
    """Text for one uploaded file. Interview data keeps its line structure."""
    try:
        validate_upload_signature(filename=filename, content=content)
    except ValueError as exc:
        raise ExtractionError(str(exc)) from exc
    if role == "interview-data":
        return decode_text(content).strip()
    text = extract_document_text(filename, content)
    logger.debug("document_extracted file_ext=%s chars=%s", extension_from_filename(filename), len(text))
    return text


def parse_csv_rows(text: str) -> list[dict[str, str]]:
    """Rows of a headed CSV, keyed by the trimmed header names. Blank rows are skipped."""
    reader = csv.DictReader(StringIO(text), skipinitialspace=True)
    if not reader.fieldnames:
        raise ExtractionError("CSV has no header row.")
    rows: list[dict[str, str]] = []
    try:
        for raw in reader:
            row = {
                (key or "").strip(): (value or "").strip() if isinstance(value, str) else ""
                for key, value in raw.items()
                if key is not None
            }
            if not any(row.values()):
                continue
            rows.append(row)
    except csv.Error as exc:
        raise ExtractionError(f"CSV parsing error: {exc}") from exc
    return rows
