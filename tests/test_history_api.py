import unittest

import helpers

from fastapi.testclient import TestClient

from app.main import app


class HistoryApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        app.dependency_overrides.clear()

    def setUp(self):
        helpers.reset_stores()
        helpers.install_fakes(app)

    def _create(self, entry_id, token=helpers.ALICE_TOKEN, **overrides):
        return self.client.post(
            "/api/history",
            json={"id": entry_id, "resumeText": helpers.RESUME_TEXT, "analysis": helpers.sample_analysis(**overrides)},
            headers=helpers.auth_headers(token),
        )

    def test_all_routes_require_a_session(self):
        calls = [
            ("get", "/api/history"),
            ("get", "/api/history/summary"),
            ("get", "/api/history/skill-trends"),
            ("get", "/api/history/progression"),
            ("get", "/api/history/some-id"),
            ("delete", "/api/history/some-id"),
            ("delete", "/api/history"),
        ]
        for method, path in calls:
            with self.subTest(path=path, method=method):
                response = getattr(self.client, method)(path)
                self.assertEqual(response.status_code, 401)
        response = self.client.post("/api/history", json={"id": "x", "resumeText": "y", "analysis": {}})
        self.assertEqual(response.status_code, 401)

    def test_create_and_read(self):
        created = self._create("h-1", overallScore=11.4)
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual(body["id"], "h-1")
        self.assertEqual(body["user_id"], "user-alice")
        self.assertEqual(body["overall_score"], 10.0)
        self.assertEqual(body["full_analysis"]["overallScore"], 10.0)

        fetched = self.client.get("/api/history/h-1", headers=helpers.auth_headers())
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["created_at"], body["created_at"])

    def test_malformed_analysis_is_rejected(self):
        payload = helpers.sample_analysis()
        del payload["dimensionScores"]
        response = self.client.post(
            "/api/history",
            json={"id": "bad-1", "resumeText": helpers.RESUME_TEXT, "analysis": payload},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/api/history",
            json={"id": "bad-2", "resumeText": helpers.RESUME_TEXT, "analysis": "not an object"},
            headers=helpers.auth_headers(),
        )
        self.assertEqual(response.status_code, 400)

    def test_duplicate_id_is_conflict(self):
        self.assertEqual(self._create("dup").status_code, 201)
        self.assertEqual(self._create("dup").status_code, 409)

    def test_id_with_control_characters_is_rejected(self):
        for entry_id in ["abc\x00def", "abc\x07", "line\nbreak"]:
            with self.subTest(entry_id=entry_id):
                response = self._create(entry_id)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["error"], "Invalid input")
        self.assertEqual(self.client.get("/api/history", headers=helpers.auth_headers()).json()["pagination"]["total"], 0)

    def test_id_is_stored_as_sent(self):
        entry_id = "entry:é/2024 #1"
        self.assertEqual(self._create(entry_id).json()["id"], entry_id)
        listed = self.client.get("/api/history", headers=helpers.auth_headers()).json()
        self.assertEqual([row["id"] for row in listed["data"]], [entry_id])

    def test_list_pagination(self):
        for index in range(3):
            self._create(f"p-{index}")
        response = self.client.get("/api/history?limit=2&offset=0", headers=helpers.auth_headers())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([item["id"] for item in body["data"]], ["p-2", "p-1"])
        self.assertEqual(body["pagination"], {"total": 3, "limit": 2, "offset": 0, "hasMore": True})

        last = self.client.get("/api/history?limit=2&offset=2", headers=helpers.auth_headers()).json()
        self.assertFalse(last["pagination"]["hasMore"])

    def test_invalid_paging_params(self):
        for query in ("limit=0", "limit=101", "offset=-1", "limit=abc"):
            with self.subTest(query=query):
                response = self.client.get(f"/api/history?{query}", headers=helpers.auth_headers())
                self.assertEqual(response.status_code, 400)

    def test_isolation(self):
        self._create("alice-only")
        bob = helpers.auth_headers(helpers.BOB_TOKEN)

        self.assertEqual(self.client.get("/api/history/alice-only", headers=bob).status_code, 404)
        self.assertEqual(self.client.delete("/api/history/alice-only", headers=bob).status_code, 404)
        self.assertEqual(self.client.get("/api/history", headers=bob).json()["data"], [])
        self.assertEqual(self.client.get("/api/history/summary", headers=bob).json()["total_analyses"], 0)
        self.assertEqual(self.client.delete("/api/history", headers=bob).json(), {"success": True, "deletedCount": 0})

        self.assertEqual(self.client.get("/api/history/alice-only", headers=helpers.auth_headers()).status_code, 200)

    def test_aggregates(self):
        self._create("a-1", overallScore=6.0, experienceLevel="Mid-Level")
        self._create("a-2", overallScore=8.0)

        summary = self.client.get("/api/history/summary", headers=helpers.auth_headers()).json()
        self.assertEqual(summary["total_analyses"], 2)
        self.assertEqual(summary["average_score"], 7.0)
        self.assertEqual(len(summary["score_trend"]), 2)

        trends = self.client.get("/api/history/skill-trends", headers=helpers.auth_headers()).json()
        self.assertEqual(trends["trends"][0]["frequency"], 2)

        progression = self.client.get("/api/history/progression", headers=helpers.auth_headers()).json()
        self.assertEqual([point["experience_level"] for point in progression["progression"]], ["Mid-Level", "Senior"])

    def test_empty_aggregates(self):
        headers = helpers.auth_headers()
        self.assertEqual(self.client.get("/api/history/skill-trends", headers=headers).json(), {"trends": []})
        self.assertEqual(self.client.get("/api/history/progression", headers=headers).json(), {"progression": []})
        summary = self.client.get("/api/history/summary", headers=headers).json()
        self.assertEqual(summary["score_trend"], [])
        self.assertIsNone(summary["latest_analysis"])

    def test_delete_entry_and_all(self):
        self._create("del-1")
        self._create("del-2")
        deleted = self.client.delete("/api/history/del-1", headers=helpers.auth_headers())
        self.assertEqual(deleted.status_code, 200)
        self.assertTrue(deleted.json()["success"])
        self.assertEqual(self.client.delete("/api/history/del-1", headers=helpers.auth_headers()).status_code, 404)

        cleared = self.client.delete("/api/history", headers=helpers.auth_headers())
        self.assertEqual(cleared.json(), {"success": True, "deletedCount": 1})


if __name__ == "__main__":
    unittest.main()
