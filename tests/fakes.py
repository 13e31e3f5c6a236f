import asyncio
import sys
from io import BytesIO
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from candidate_report.ai.types import Completion  # noqa: E402
from candidate_report.services.report_client import ReportClient  # noqa: E402

CSV_HEADER = (
    "interview_id,candidate_name,job_title_applied_for,key_skills_mentioned,relevant_experience_years,"
    "additional_experience_shared,preparedness_score,values_alignment_score,language_proficiency_score,"
    "final_recommendation"
)

JOB_DESCRIPTION = b"Senior Backend Engineer. We need Python, SQL and cloud experience. 5+ years required."


def csv_row(
    interview_id,
    name,
    role="Backend Engineer",
    skills="Python, SQL",
    years=5,
    extra="Built internal APIs",
    preparedness=8,
    values=9,
    language=7,
    recommendation="true",
) -> str:
    return (
        f'{interview_id},{name},{role},"{skills}",{years},"{extra}",'
        f"{preparedness},{values},{language},{recommendation}"
    )


def interview_csv(*rows: str, header: str = CSV_HEADER) -> bytes:
    return ("\n".join([header, *rows]) + "\n").encode("utf-8")


def resume_bytes(name: str, body: str = "Python engineer with SQL and AWS experience.") -> bytes:
    return f"{name}\n{body}".encode("utf-8")


def make_text_pdf(text: str) -> bytes:
    """Single-page PDF whose content stream draws ``text`` in Helvetica."""
    stream = f"BT /F1 12 Tf 72 712 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(b"%d 0 obj\n" % number + body + b"\nendobj\n")
    xref_at = out.tell()
    out.write(b"xref\n0 %d\n" % (len(objects) + 1))
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(b"%010d 00000 n \n" % offset)
    out.write(b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at))
    return out.getvalue()


def make_blank_pdf() -> bytes:
    from pypdf import PdfWriter

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


class FakeProvider:
    """Scripted stand-in for the text-generation service.

    ``outcomes`` are consumed one per call: exceptions are raised, Completions returned.
    Once exhausted every call succeeds with ``text``. When ``gate`` is set the call
    blocks until the event fires.
    """

    def __init__(self, outcomes=None, *, text="<div>Candidate report</div>", gate=None):
        self.outcomes = list(outcomes or [])
        self.text = text
        self.gate = gate
        self.calls = []

    async def complete(self, messages):
        self.calls.append(list(messages))
        if self.gate is not None:
            await self.gate.wait()
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return Completion(text=self.text, model="fake-model", request_id=f"req-{len(self.calls)}")


async def no_sleep(_delay: float) -> None:
    return None


def make_client(provider, **kwargs) -> ReportClient:
    kwargs.setdefault("sleep", no_sleep)
    return ReportClient(provider, model="fake-model", **kwargs)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
