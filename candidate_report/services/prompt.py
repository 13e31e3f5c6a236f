"""Deterministic prompt assembly for the candidate-comparison report.

``assemble`` is a pure function of the payload plus the template config in
``config/report.yaml``: equal payloads produce byte-identical prompts.
Candidate blocks keep input order and are fenced with numbered delimiters;
the theme listed for position N belongs to the Nth block.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from candidate_report.ai.types import ChatMessage
from candidate_report.core.template_config import (
    Theme,
    get_match_weights,
    get_theme_palette,
    theme_for_position,
)
from candidate_report.schemas.report import AnalysisPayload, CandidateRecord

CANDIDATE_OPEN = "<<<CANDIDATE {n}>>>"
CANDIDATE_CLOSE = "<<<END CANDIDATE {n}>>>"
JOB_DESCRIPTION_OPEN = "<<<JOB DESCRIPTION>>>"
JOB_DESCRIPTION_CLOSE = "<<<END JOB DESCRIPTION>>>"

_WEIGHT_LABELS = {
    "experience": "Experience",
    "skills_match": "Skills match",
    "values_alignment": "Values alignment",
    "language_proficiency": "Language proficiency",
}


@dataclass(frozen=True)
class AssembledPrompt:
    system: str
    user: str

    @property
    def fingerprint(self) -> str:
        digest = hashlib.sha256()
        digest.update(self.system.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(self.user.encode("utf-8"))
        return digest.hexdigest()

    @property
    def text(self) -> str:
        return f"{self.system}\n\n{self.user}"

    def messages(self) -> list[ChatMessage]:
        return [
            ChatMessage(role="system", content=self.system),
            ChatMessage(role="user", content=self.user),
        ]


def _neutralize_delimiters(text: str) -> str:
    # user text must never be able to open or close a block
    return text.replace("<<<", "<< <").replace(">>>", "> >>")


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _theme_line(position: int, candidate: CandidateRecord, theme: Theme) -> str:
    shade = theme.tailwind
    return (
        f"- Candidate {position} ({candidate.candidate_name}): {theme.name} theme "
        f"({shade}-800 for headings, {shade}-500 for accents and score bars, {shade}-100 for backgrounds)"
    )


def _weights_block(weights: dict[str, int]) -> str:
    terms = " + ".join(f"{weights[key] / 100:.2f} x {_WEIGHT_LABELS[key].lower()}" for key in _WEIGHT_LABELS)
    lines = [f"- {_WEIGHT_LABELS[key]}: {weights[key]}%" for key in _WEIGHT_LABELS]
    return "\n".join(
        [
            *lines,
            f"Overall match (0-100%) = ({terms}) x 10, with every component scored 0-10.",
            "Experience and skills match are judged against the job description and resume; "
            "values alignment and language proficiency use the interview scores as given.",
        ]
    )


def build_system_prompt(candidates: list[CandidateRecord]) -> str:
    palette = get_theme_palette()
    weights = get_match_weights()
    theme_lines = "\n".join(
        _theme_line(position, candidate, theme_for_position(position, palette))
        for position, candidate in enumerate(candidates, start=1)
    )
    if len(candidates) > len(palette):
        theme_lines += (
            f"\nThemes repeat after {len(palette)} candidates; always use the theme listed for the position."
        )

    return f"""You are an expert system for analyzing technical candidate data and generating standardized hiring reports. You receive interview results, resumes and a job description, and you produce one comprehensive comparison report.

INPUT SOURCES
1. Interview data (structured), one block per candidate between {CANDIDATE_OPEN.format(n="N")} and {CANDIDATE_CLOSE.format(n="N")}:
   - Name: the candidate's full name
   - Applied Role: job title the candidate applied for
   - Years of Experience: relevant professional experience, whole years
   - Key Skills: skills mentioned during the interview, comma-separated
   - Additional Experience: free-text narrative shared during the interview
   - Preparedness Score: interviewer rating, integer 0-10
   - Values Alignment Score: interviewer rating, integer 0-10
   - Language Proficiency Score: interviewer rating, integer 0-10
   - Final Recommendation: the interviewer's recommendation, true or false
2. Resume (unstructured text), inside the same candidate block after "Resume:".
3. Job description (unstructured text), between {JOB_DESCRIPTION_OPEN} and {JOB_DESCRIPTION_CLOSE}.

DATA POLICY
- Use only information stated in the inputs. Never fabricate or infer unstated facts such as employers, degrees, certifications, dates or salaries. Write "Not stated" when something is missing.
- Every fact belongs to the candidate block it appears in. Never move information between candidates.
- Report the interview scores exactly as given.

REQUIRED OUTPUT STRUCTURE
1. Dashboard summary: one card per candidate in input order with name, applied role, overall match percentage, the three interview scores as visual indicators, and the final recommendation; followed by a side-by-side comparison of skills and experience against the job description.
2. Detailed profile for each candidate, in the same order as the candidate blocks: background summary, skills matched and missing versus the job description, key strengths, areas for improvement, score breakdown, and recommendation rationale.

COLOR THEMES (assigned by candidate position)
{theme_lines}

OVERALL MATCH SCORE
{_weights_block(weights)}

OUTPUT FORMAT
Return one self-contained HTML fragment styled with Tailwind CSS utility classes. It must be mobile-responsive and use simple inline SVG or Unicode icons where helpful. Do not wrap it in markdown code fences and do not add commentary before or after the HTML."""


def build_candidate_block(position: int, candidate: CandidateRecord, resume_text: str) -> str:
    skills = ", ".join(candidate.key_skills_mentioned) or "Not stated"
    narrative = candidate.additional_experience_shared or "Not stated"
    lines = [
        CANDIDATE_OPEN.format(n=position),
        f"Name: {candidate.candidate_name}",
        f"Applied Role: {candidate.job_title_applied_for}",
        f"Years of Experience: {candidate.relevant_experience_years}",
        f"Key Skills: {skills}",
        f"Additional Experience: {narrative}",
        f"Preparedness Score: {candidate.preparedness_score}/10",
        f"Values Alignment Score: {candidate.values_alignment_score}/10",
        f"Language Proficiency Score: {candidate.language_proficiency_score}/10",
        f"Final Recommendation: {_format_bool(candidate.final_recommendation)}",
        "Resume:",
        resume_text.strip(),
        CANDIDATE_CLOSE.format(n=position),
    ]
    return _neutralize_block(lines)


def _neutralize_block(lines: list[str]) -> str:
    # delimiters are first and last; everything between is user-supplied
    body = [_neutralize_delimiters(line) for line in lines[1:-1]]
    return "\n".join([lines[0], *body, lines[-1]])


def build_user_prompt(payload: AnalysisPayload) -> str:
    count = len(payload.candidates)
    blocks = [
        build_candidate_block(position, candidate, resume)
        for position, (candidate, resume) in enumerate(
            zip(payload.candidates, payload.resume_texts), start=1
        )
    ]
    job_block = "\n".join(
        [
            JOB_DESCRIPTION_OPEN,
            _neutralize_delimiters(payload.job_description_text.strip()),
            JOB_DESCRIPTION_CLOSE,
        ]
    )
    closing = (
        f"Please analyze these {count} candidate{'s' if count != 1 else ''} against the job description "
        "and create the HTML report described in your instructions."
    )
    return "\n\n".join([f"Candidates: {count}", *blocks, job_block, closing])


def assemble(payload: AnalysisPayload) -> AssembledPrompt:
    return AssembledPrompt(
        system=build_system_prompt(payload.candidates),
        user=build_user_prompt(payload),
    )


def assemble_markdown_brief(payload: AnalysisPayload) -> str:
    """Markdown rendering of the same payload for copy-to-clipboard use; never sent to the model."""
    titles = sorted({c.job_title_applied_for for c in payload.candidates})
    parts: list[str] = [
        "# Candidate Analysis Data",
        "",
        "## Role Information",
        f"* Position: {', '.join(titles)}",
        "",
    ]
    for candidate, resume in zip(payload.candidates, payload.resume_texts):
        recommendation = "Recommended" if candidate.final_recommendation else "Not Recommended"
        parts.extend(
            [
                f"## Candidate: {candidate.candidate_name}",
                "",
                "### Interview Data",
                f"* Interview ID: {candidate.interview_id}",
                f"* Applied Position: {candidate.job_title_applied_for}",
                f"* Preparedness Score: {candidate.preparedness_score}/10",
                f"* Values Alignment Score: {candidate.values_alignment_score}/10",
                f"* Language Proficiency Score: {candidate.language_proficiency_score}/10",
                f"* Years of Relevant Experience: {candidate.relevant_experience_years}",
                f"* Key Skills Mentioned: {', '.join(candidate.key_skills_mentioned)}",
                f"* Additional Experience: {candidate.additional_experience_shared}",
                f"* Final Recommendation: {recommendation}",
                "",
                "### Resume Content",
                "```",
                resume.replace("```", "'''"),
                "```",
                "",
                "---",
                "",
            ]
        )
    parts.extend(
        [
            "## Job Description",
            "",
            payload.job_description_text,
            "",
            "## Analysis Request",
            "",
            "Please analyze each candidate based on both their interview data and resume content. Consider:",
            "1. Technical expertise and experience alignment with the role",
            "2. Soft skills and communication abilities",
            "3. Cultural fit and values alignment",
            "4. Overall recommendation",
        ]
    )
    return "\n".join(parts) + "\n"
