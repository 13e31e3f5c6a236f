import unittest

from fakes import JOB_DESCRIPTION, FakeProvider, csv_row, interview_csv, make_client, resume_bytes

from fastapi.testclient import TestClient

from candidate_report.ai.errors import AuthError, RateLimitError, TransientServiceError
from candidate_report.main import app
from candidate_report.services.session import SessionStore


class ReportsApiTests(unittest.TestCase):
    def setUp(self):
        self.provider = FakeProvider()
        app.state.sessions = SessionStore(make_client(self.provider, max_attempts=2), max_upload_bytes=1024 * 1024)
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        del app.state.sessions

    def _session(self) -> str:
        response = self.client.post("/v1/sessions")
        self.assertEqual(response.status_code, 201)
        return response.json()["session_id"]

    def _upload(self, session_id: str, role: str, *files):
        return self.client.post(
            f"/v1/sessions/{session_id}/files/{role}",
            files=[("files", (name, content, "application/octet-stream")) for name, content in files],
        )

    def _load_inputs(self, session_id: str, *names: str):
        names = names or ("Jane Doe",)
        rows = [csv_row(i, name) for i, name in enumerate(names, start=1)]
        self.assertEqual(self._upload(session_id, "interview-data", ("interviews.csv", interview_csv(*rows))).status_code, 200)
        self.assertEqual(self._upload(session_id, "job-description", ("job.txt", JOB_DESCRIPTION)).status_code, 200)
        response = self._upload(session_id, "resume", *[(f"{name}.txt", resume_bytes(name)) for name in names])
        self.assertEqual(response.status_code, 200)
        return response

    def test_health(self):
        response = self.client.get("/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy"})

    def test_full_report_flow(self):
        session_id = self._session()
        upload = self._load_inputs(session_id, "Jane Doe", "John Smith")
        self.assertEqual([f["role"] for f in upload.json()["files"]], ["interview-data", "job-description", "resume", "resume"])

        response = self.client.post(f"/v1/sessions/{session_id}/report")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["raw_text"], "<div>Candidate report</div>")
        self.assertEqual(body["model"], "fake-model")
        self.assertEqual(len(body["prompt_fingerprint"]), 64)

        stored = self.client.get(f"/v1/sessions/{session_id}/report")
        self.assertEqual(stored.status_code, 200)
        self.assertEqual(stored.json()["prompt_fingerprint"], body["prompt_fingerprint"])

        files = self.client.get(f"/v1/sessions/{session_id}/files").json()
        self.assertTrue(files["has_report"])
        self.assertTrue(all(f["status"] == "extracted" for f in files["files"]))

    def test_prompt_preview(self):
        session_id = self._session()
        self._load_inputs(session_id)

        response = self.client.get(f"/v1/sessions/{session_id}/prompt")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["candidate_count"], 1)
        self.assertIn("<<<CANDIDATE 1>>>", body["user"])
        self.assertIn("## Candidate: Jane Doe", body["markdown_brief"])
        self.assertEqual(self.provider.calls, [])

    def test_missing_resume_is_422_without_network_call(self):
        session_id = self._session()
        self._upload(session_id, "interview-data", ("interviews.csv", interview_csv(csv_row(1, "Jane Doe"))))
        self._upload(session_id, "job-description", ("job.txt", JOB_DESCRIPTION))

        response = self.client.post(f"/v1/sessions/{session_id}/report")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["detail"]["kind"], "MissingRole")
        self.assertEqual(self.provider.calls, [])

    def test_malformed_row_is_422_with_index(self):
        session_id = self._session()
        rows = interview_csv(csv_row(1, "Jane Doe"), csv_row(2, "John Smith", language=15))
        self._upload(session_id, "interview-data", ("interviews.csv", rows))
        self._upload(session_id, "job-description", ("job.txt", JOB_DESCRIPTION))
        self._upload(session_id, "resume", ("Jane Doe.txt", resume_bytes("Jane Doe")), ("John Smith.txt", resume_bytes("John Smith")))

        response = self.client.post(f"/v1/sessions/{session_id}/report")
        self.assertEqual(response.status_code, 422)
        detail = response.json()["detail"]
        self.assertEqual(detail["kind"], "MalformedRecord")
        self.assertEqual(detail["record_index"], 1)

    def test_wrong_file_type_is_reported_per_file(self):
        session_id = self._session()
        response = self._upload(session_id, "interview-data", ("interviews.pdf", b"%PDF-1.4"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["files"][0]["status"], "failed")

        self._upload(session_id, "job-description", ("job.txt", JOB_DESCRIPTION))
        self._upload(session_id, "resume", ("Jane Doe.txt", resume_bytes("Jane Doe")))
        report = self.client.post(f"/v1/sessions/{session_id}/report")
        self.assertEqual(report.status_code, 422)
        self.assertEqual(report.json()["detail"]["kind"], "ExtractionIncomplete")
        self.assertEqual(report.json()["detail"]["filenames"], ["interviews.pdf"])

    def test_service_errors_map_to_http_statuses(self):
        cases = [
            ([RateLimitError("slow"), RateLimitError("slow")], 429, "rate_limit"),
            ([AuthError("bad key", status_code=401)], 502, "auth"),
            ([TransientServiceError("down"), TransientServiceError("down")], 503, "service_unavailable"),
        ]
        for outcomes, status_code, kind in cases:
            with self.subTest(kind=kind):
                self.provider.outcomes = list(outcomes)
                session_id = self._session()
                self._load_inputs(session_id)

                response = self.client.post(f"/v1/sessions/{session_id}/report")
                self.assertEqual(response.status_code, status_code)
                self.assertEqual(response.json()["detail"]["kind"], kind)

                stored = self.client.get(f"/v1/sessions/{session_id}/report")
                self.assertEqual(stored.status_code, 404)
                self.assertEqual(stored.json()["last_error"]["kind"], kind)

    def test_removing_a_file_clears_the_report(self):
        session_id = self._session()
        self._load_inputs(session_id)
        self.assertEqual(self.client.post(f"/v1/sessions/{session_id}/report").status_code, 200)

        response = self.client.delete(f"/v1/sessions/{session_id}/files/2")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["has_report"])
        self.assertEqual(len(response.json()["files"]), 2)
        self.assertEqual(self.client.get(f"/v1/sessions/{session_id}/report").status_code, 404)

        self.assertEqual(self.client.delete(f"/v1/sessions/{session_id}/files/9").status_code, 404)

    def test_schedule_is_accepted(self):
        session_id = self._session()
        response = self.client.post(f"/v1/sessions/{session_id}/report/schedule", params={"delay_ms": 5000})
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json(), {"session_id": session_id, "delay_ms": 5000, "status": "scheduled"})

        too_long = self.client.post(f"/v1/sessions/{session_id}/report/schedule", params={"delay_ms": 10**9})
        self.assertEqual(too_long.status_code, 422)

    def test_unknown_session_and_role(self):
        self.assertEqual(self.client.get("/v1/sessions/nope/files").status_code, 404)
        self.assertEqual(self.client.post("/v1/sessions/nope/report").status_code, 404)

        session_id = self._session()
        response = self._upload(session_id, "cover-letter", ("letter.txt", b"hello"))
        self.assertEqual(response.status_code, 422)

        self.assertEqual(self.client.delete(f"/v1/sessions/{session_id}").status_code, 204)
        self.assertEqual(self.client.get(f"/v1/sessions/{session_id}/files").status_code, 404)

    def test_singleton_role_rejects_multiple_files(self):
        session_id = self._session()
        response = self._upload(session_id, "job-description", ("a.txt", b"one"), ("b.txt", b"two"))
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
