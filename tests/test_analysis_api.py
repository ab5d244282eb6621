import asyncio
import json
import unittest

import helpers

from fastapi.testclient import TestClient

from app.ai.types import ProviderError
from app.core.guest_ledger import get_guest
from app.history import db as history_db
from app.main import app


class AnalysisApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        app.dependency_overrides.clear()

    def setUp(self):
        helpers.reset_stores()
        self.ai, self.verifier = helpers.install_fakes(app)

    def _guest_headers(self, address, **extra):
        headers = {"X-Forwarded-For": address}
        headers.update(extra)
        return headers

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_guest_gets_one_analysis_then_login_prompt(self):
        headers = self._guest_headers("203.0.113.60", **{"X-Mac-Address": "aa:bb:cc:00:00:60"})
        first = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(first.status_code, 200)
        body = first.json()
        self.assertTrue(body["isGuest"])
        self.assertEqual(body["remainingAnalyses"], 0)
        self.assertTrue(body["guestId"].startswith("guest_"))
        self.assertTrue(body["message"])
        self.assertEqual(body["overallScore"], 7.8)
        self.assertEqual(body["redFlags"], [])

        second = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(second.status_code, 429)
        self.assertTrue(second.json()["requiresLogin"])
        self.assertEqual(len(self.ai.calls), 1)

    def test_new_hardware_tag_does_not_reset_quota(self):
        address = "203.0.113.61"
        self.client.post(
            "/api/analyze",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=self._guest_headers(address, **{"X-Mac-Address": "aa:bb:cc:00:00:61"}),
        )
        response = self.client.post(
            "/api/analyze",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=self._guest_headers(address, **{"X-Mac-Address": "dd:ee:ff:00:00:61"}),
        )
        self.assertEqual(response.status_code, 429)

    def test_invalid_input_is_rejected_before_quota(self):
        headers = self._guest_headers("203.0.113.62")
        for body in ({}, {"resumeText": ""}, {"resumeText": "   "}, {"resumeText": 42},
                     {"resumeText": "x" * 50001}):
            with self.subTest(body=body):
                response = self.client.post("/api/analyze", json=body, headers=headers)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["error"], "Invalid input")
        self.assertEqual(self.ai.calls, [])
        ok = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(ok.status_code, 200)

    def test_not_a_resume_is_a_bad_request(self):
        message = "This document looks like a restaurant menu."
        self.ai.queue(helpers.not_a_resume_payload(message))
        response = self.client.post(
            "/api/analyze",
            json={"resumeText": "Soup of the day: tomato"},
            headers=self._guest_headers("203.0.113.63"),
        )
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["error"], "NOT_A_RESUME")
        self.assertEqual(body["message"], message)
        self.assertEqual(body["detectedType"], "recipe")

    def test_provider_failure_still_consumes_guest_quota(self):
        self.ai.error = ProviderError("upstream 503")
        headers = self._guest_headers("203.0.113.64")
        response = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Analysis failed")
        self.assertNotIn("503", response.json()["message"])

        self.ai.error = None
        retry = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(retry.status_code, 429)

    def test_unexpected_sdk_error_is_opaque_500(self):
        self.ai.error = ConnectionError("socket closed at 10.1.2.3")
        response = self.client.post(
            "/api/analyze",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=self._guest_headers("203.0.113.65"),
        )
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("10.1.2.3", response.text)

    def test_malformed_provider_text_is_500(self):
        self.ai.queue("Sorry, I can't do that.")
        response = self.client.post(
            "/api/analyze",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=self._guest_headers("203.0.113.66"),
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Analysis failed")

    def test_provider_timeout_is_500(self):
        ai = self.ai

        async def slow_complete(messages):
            ai.calls.append(list(messages))
            await asyncio.sleep(5)
            return json.dumps(helpers.sample_analysis())

        ai.complete = slow_complete
        response = self.client.post(
            "/api/analyze",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=self._guest_headers("203.0.113.67"),
        )
        self.assertEqual(response.status_code, 500)

    def test_authenticated_analysis_skips_ledger(self):
        headers = helpers.auth_headers(**{"X-Forwarded-For": "203.0.113.68"})
        for _ in range(3):
            response = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
            self.assertEqual(response.status_code, 200)
            self.assertNotIn("isGuest", response.json())
            self.assertIsNone(response.json()["historyId"])
        rows, total = history_db.list_history("user-alice")
        self.assertEqual(total, 0)

    def test_invalid_token_on_analyze_falls_back_to_guest(self):
        headers = helpers.auth_headers("expired", **{"X-Forwarded-For": "203.0.113.69"})
        response = self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["isGuest"])
        self.assertEqual(get_guest(response.json()["guestId"]).analysis_count, 1)

    def test_authenticated_analysis_with_id_is_recorded(self):
        body = {"resumeText": helpers.RESUME_TEXT, "analysisId": "analysis-001"}
        response = self.client.post("/api/analyze", json=body, headers=helpers.auth_headers())
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["historyId"], "analysis-001")
        self.assertIsNotNone(history_db.get_history_entry("analysis-001", "user-alice"))

        duplicate = self.client.post("/api/analyze", json=body, headers=helpers.auth_headers())
        self.assertEqual(duplicate.status_code, 409)

    def test_analysis_id_with_control_characters_is_rejected(self):
        body = {"resumeText": helpers.RESUME_TEXT, "analysisId": "analysis\x00001"}
        response = self.client.post("/api/analyze", json=body, headers=helpers.auth_headers())
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid input")
        self.assertEqual(self.ai.calls, [])
        self.assertIsNone(history_db.get_history_entry("analysis001", "user-alice"))

    def test_guest_analyses_are_never_recorded(self):
        body = {"resumeText": helpers.RESUME_TEXT, "analysisId": "guest-analysis"}
        response = self.client.post("/api/analyze", json=body, headers=self._guest_headers("203.0.113.70"))
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(history_db.get_history_entry("guest-analysis", "user-alice"))

    def test_guest_status(self):
        headers = self._guest_headers("203.0.113.71")
        before = self.client.get("/api/guest-status", headers=headers)
        self.assertEqual(before.status_code, 200)
        self.assertEqual(before.json()["allowed"], True)
        self.assertEqual(before.json()["requiresLogin"], False)

        self.client.post("/api/analyze", json={"resumeText": helpers.RESUME_TEXT}, headers=headers)
        after = self.client.get("/api/guest-status", headers=headers)
        self.assertEqual(after.json()["allowed"], False)
        self.assertTrue(after.json()["requiresLogin"])
        self.assertTrue(after.json()["message"])

        signed_in = self.client.get("/api/guest-status", headers=helpers.auth_headers(**headers))
        self.assertEqual(signed_in.json(), {"allowed": True, "requiresLogin": False})


class AuthRequiredRoutesTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        app.dependency_overrides.clear()

    def setUp(self):
        helpers.reset_stores()
        self.ai, self.verifier = helpers.install_fakes(app)

    def test_routes_require_a_session(self):
        cases = [
            ("/api/job-match", {"resumeText": helpers.RESUME_TEXT, "jobDescription": helpers.JOB_DESCRIPTION}),
            ("/api/tailor", {"resumeText": helpers.RESUME_TEXT, "jobDescription": helpers.JOB_DESCRIPTION}),
            ("/api/career-map", {"resumeText": helpers.RESUME_TEXT}),
            ("/api/rewrite", {"originalText": "Managed a team", "jobDescription": helpers.JOB_DESCRIPTION}),
        ]
        for path, body in cases:
            with self.subTest(path=path):
                missing = self.client.post(path, json=body)
                self.assertEqual(missing.status_code, 401)
                invalid = self.client.post(path, json=body, headers=helpers.auth_headers("expired"))
                self.assertEqual(invalid.status_code, 401)
        self.assertEqual(self.ai.calls, [])

    def test_job_match(self):
        self.ai.queue({"matchPercentage": 64, "matchLevel": "Fair", "recommendation": "Apply after upskilling."})
        response = self.client.post(
            "/api/job-match",
            json={"resumeText": helpers.RESUME_TEXT, "jobDescription": helpers.JOB_DESCRIPTION},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["matchPercentage"], 64)
        self.assertEqual(body["suggestions"], [])
        self.assertEqual(body["presentSkills"]["exact_matches"], [])

    def test_job_match_missing_description(self):
        response = self.client.post(
            "/api/job-match",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 400)

    def test_tailor(self):
        self.ai.queue({"tailoredSummary": "Backend engineer", "atsScoreBefore": 55, "atsScoreAfter": 80})
        response = self.client.post(
            "/api/tailor",
            json={"resumeText": helpers.RESUME_TEXT, "jobDescription": helpers.JOB_DESCRIPTION},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["atsScoreAfter"], 80)

    def test_career_map(self):
        self.ai.queue({"paths": [{"name": "Staff Engineer", "steps": []}], "currentRole": "Senior Engineer"})
        response = self.client.post(
            "/api/career-map",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["paths"][0]["name"], "Staff Engineer")

    def test_career_map_malformed(self):
        self.ai.queue({"currentRole": "Senior Engineer"})
        response = self.client.post(
            "/api/career-map",
            json={"resumeText": helpers.RESUME_TEXT},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 500)

    def test_rewrite(self):
        self.ai.queue({"variations": [{"style": "Aggressive", "text": "Led 5 engineers", "impact": "High"}]})
        response = self.client.post(
            "/api/rewrite",
            json={"originalText": "Managed a team", "jobDescription": helpers.JOB_DESCRIPTION},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["original"], "Managed a team")

    def test_rewrite_text_limit(self):
        response = self.client.post(
            "/api/rewrite",
            json={"originalText": "x" * 5001, "jobDescription": helpers.JOB_DESCRIPTION},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
