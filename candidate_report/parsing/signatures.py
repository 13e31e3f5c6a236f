from __future__ import annotations

from io import BytesIO
from zipfile import ZipFile

PDF_MAGIC = b"%PDF-"
ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")

ROLE_EXTENSIONS: dict[str, frozenset[str]] = {
    "interview-data": frozenset({"csv", "txt"}),
    "job-description": frozenset({"pdf", "docx", "txt", "md"}),
    "resume": frozenset({"pdf", "docx", "txt", "md"}),
}


def extension_from_filename(filename: str) -> str:
    if "." not in (filename or ""):
        return ""
    return filename.rsplit(".", 1)[-1].strip().lower()[:20]


def _is_zip_payload(content: bytes) -> bool:
    return any(content.startswith(prefix) for prefix in ZIP_MAGICS)


def _zip_has_paths(content: bytes, prefixes: tuple[str, ...]) -> bool:
    try:
        with ZipFile(BytesIO(content)) as archive:
            names = archive.namelist()
        return any(any(name.startswith(prefix) for prefix in prefixes) for name in names)
    except Exception:
        return False


def _is_probably_text_payload(content: bytes) -> bool:
    if not content:
        return False
    sample = content[:4096]
    if sample.startswith((b"\xff\xfe", b"\xfe\xff")):
        decoded = sample[: len(sample) - len(sample) % 2].decode("utf-16", errors="replace")
    elif b"\x00" in sample:
        return False
    else:
        # UTF-8 multi-byte sequences (accented names) count as printable
        try:
            decoded = sample.decode("utf-8")
        except UnicodeDecodeError:
            decoded = sample.decode("latin-1")
    printable = sum(1 for ch in decoded if ch in "\t\n\r" or ch.isprintable())
    return (printable / max(1, len(decoded))) >= 0.75


def check_extension_for_role(*, role: str, filename: str) -> str:
    ext = extension_from_filename(filename)
    allowed = ROLE_EXTENSIONS.get(role)
    if allowed is None:
        raise ValueError(f"Unknown file role '{role}'.")
    if ext not in allowed:
        raise ValueError(
            f"Unsupported file type '.{ext}' for {role}. Allowed: {', '.join(sorted('.' + e for e in allowed))}."
        )
    return ext


def validate_upload_signature(*, filename: str, content: bytes) -> None:
    ext = extension_from_filename(filename)
    if ext == "doc":
        raise ValueError("Legacy .doc is not supported. Convert to .docx.")

    if ext == "pdf":
        if not content.startswith(PDF_MAGIC):
            raise ValueError("File signature does not match .pdf content.")
        return

    if ext == "docx":
        if not _is_zip_payload(content) or not _zip_has_paths(content, ("word/",)):
            raise ValueError("File signature does not match .docx content.")
        return

    if ext in {"txt", "md", "csv"}:
        if content and not _is_probably_text_payload(content):
            raise ValueError(f"File signature does not match .{ext} text content.")
        return
