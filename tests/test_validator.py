import unittest

from fakes import JOB_DESCRIPTION, csv_row, interview_csv, resume_bytes

from candidate_report.services.errors import ValidationError
from candidate_report.services.upload_collector import UploadCollector
from candidate_report.services.validator import normalize_candidate_name, resume_name_key, validate


def _collector(*, interview=None, job=JOB_DESCRIPTION, resumes=()) -> UploadCollector:
    collector = UploadCollector()
    if interview is not None:
        collector.add_files("interview-data", [("interviews.csv", interview)])
    if job is not None:
        collector.add_files("job-description", [("job.txt", job)])
    if resumes:
        collector.add_files("resume", list(resumes))
    return collector


class NameKeyTests(unittest.TestCase):
    def test_separators_and_case_are_normalized(self):
        self.assertEqual(normalize_candidate_name("  Jane   DOE "), "jane doe")
        self.assertEqual(resume_name_key("jane_doe.PDF"), "jane doe")
        self.assertEqual(resume_name_key("Jane-Doe.final.docx"), "jane doe final")


class ValidatorTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_roles(self):
        with self.assertRaises(ValidationError) as ctx:
            await validate(UploadCollector())
        self.assertEqual(ctx.exception.kind, "MissingRole")

        collector = _collector(interview=interview_csv(csv_row(1, "Jane Doe")))
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "MissingRole")
        self.assertIn("resume", ctx.exception.message)

    async def test_failed_file_is_extraction_incomplete(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe")),
            resumes=[("Jane Doe.pdf", b"not really a pdf")],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "ExtractionIncomplete")
        self.assertEqual(ctx.exception.filenames, ["Jane Doe.pdf"])

    async def test_blank_job_description_is_empty_content(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe")),
            job=b"   \n\t ",
            resumes=[("Jane Doe.txt", resume_bytes("Jane Doe"))],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "EmptyContent")
        self.assertEqual(ctx.exception.filenames, ["job.txt"])

    async def test_malformed_row_surfaces_with_index(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe"), csv_row(2, "John Smith", values=12)),
            resumes=[("Jane Doe.txt", resume_bytes("Jane Doe")), ("John Smith.txt", resume_bytes("John Smith"))],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "MalformedRecord")
        self.assertEqual(ctx.exception.record_index, 1)

    async def test_resume_without_candidate_is_unmatched(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe")),
            resumes=[("Jane Doe.txt", resume_bytes("Jane Doe")), ("John Smith.txt", resume_bytes("John Smith"))],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "UnmatchedResume")
        self.assertEqual(ctx.exception.filenames, ["John Smith.txt"])

    async def test_two_rows_for_one_name_cannot_share_a_resume(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe"), csv_row(2, "jane doe")),
            resumes=[("Jane Doe.txt", resume_bytes("Jane Doe"))],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "UnmatchedResume")
        self.assertEqual(ctx.exception.record_index, 1)
        self.assertIn("Rows 1 and 2", ctx.exception.message)

    async def test_two_resumes_for_one_candidate_are_unmatched(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe")),
            resumes=[("Jane Doe.txt", resume_bytes("Jane Doe")), ("jane-doe.md", resume_bytes("Jane Doe"))],
        )
        with self.assertRaises(ValidationError) as ctx:
            await validate(collector)
        self.assertEqual(ctx.exception.kind, "UnmatchedResume")
        self.assertEqual(ctx.exception.filenames, ["jane-doe.md"])

    async def test_resumes_align_with_csv_order(self):
        collector = _collector(
            interview=interview_csv(csv_row(1, "Jane Doe"), csv_row(2, "John Smith")),
            resumes=[
                ("john_smith.txt", resume_bytes("John Smith", "Go and Kubernetes.")),
                ("Jane Doe.txt", resume_bytes("Jane Doe", "Python and SQL.")),
            ],
        )
        payload = await validate(collector)

        self.assertEqual([c.candidate_name for c in payload.candidates], ["Jane Doe", "John Smith"])
        self.assertIn("Python and SQL", payload.resume_texts[0])
        self.assertIn("Go and Kubernetes", payload.resume_texts[1])
        self.assertIn("Senior Backend Engineer", payload.job_description_text)


if __name__ == "__main__":
    unittest.main()
