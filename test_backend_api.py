import unittest

from fastapi.testclient import TestClient

from backend.app.main import app
from backend.app.pipeline import load_feedback_csv, load_issues_csv

ISSUES_CSV = (
    "ID,Team,Title,Description,Status\n"
    'ENG-1,Core,Dashboard fails to render charts,"Charts stay blank\nafter login",Todo\n'
    "not-an-id,,,continued text,\n"
    "ENG-2,Core,Add dark mode,,Backlog\n"
    "ENG-3,Core,Dashboard charts fail to render,Charts stay blank after login,In Progress\n"
).encode("utf-8")

FEEDBACK_CSV = b"feedback,source\ndashboard charts not loading,slack\n,slack\n  dark mode please  ,email\n"


def _issue(issue_id, title, description=None):
    return {"id": issue_id, "title": title, "description": description}


class IssueCsvTests(unittest.TestCase):
    def test_parses_issues_and_folds_continuation_rows(self):
        issues = load_issues_csv(ISSUES_CSV)

        self.assertEqual([issue.id for issue in issues], ["ENG-1", "ENG-2", "ENG-3"])
        self.assertEqual(issues[0].description, "Charts stay blank\nafter login\ncontinued text")
        self.assertIsNone(issues[1].description)
        self.assertEqual(issues[1].status, "Backlog")

    def test_falls_back_to_positional_columns(self):
        content = b"Identifier,Team,Name,Body,State\nPROJ-7,Web,Export csv,Button missing,Done\n"

        issues = load_issues_csv(content)

        self.assertEqual(len(issues), 1)
        self.assertEqual(issues[0].id, "PROJ-7")
        self.assertEqual(issues[0].title, "Export csv")
        self.assertEqual(issues[0].description, "Button missing")
        self.assertEqual(issues[0].status, "Done")

    def test_issue_id_without_title_is_skipped_not_folded(self):
        content = (
            b"ID,Team,Title,Description,Status\n"
            b"ENG-1,Core,Export csv,First body,Todo\n"
            b"ENG-2,Core,,Orphan body of another issue,Todo\n"
        )

        issues = load_issues_csv(content)

        self.assertEqual([issue.id for issue in issues], ["ENG-1"])
        self.assertEqual(issues[0].description, "First body")

    def test_rows_wider_than_header_are_trimmed(self):
        content = (
            b"ID,Team,Title,Description,Status\n"
            b"ENG-1,Core,Export csv,Button missing,Todo\n"
            b"ENG-2,Core,Dark mode,has, comma,Todo\n"
            b"ENG-3,Core,Search slow,,\n"
        )

        issues = load_issues_csv(content)

        self.assertEqual([issue.id for issue in issues], ["ENG-1", "ENG-2", "ENG-3"])
        self.assertEqual(issues[1].title, "Dark mode")
        self.assertEqual(issues[1].description, "has")
        self.assertEqual(issues[1].status, "comma")
        self.assertIsNone(issues[2].description)

    def test_rejects_csv_without_id_and_title(self):
        with self.assertRaises(ValueError):
            load_issues_csv(b"summary\nsomething broke\n")

    def test_feedback_csv_drops_blank_rows(self):
        df = load_feedback_csv(FEEDBACK_CSV)

        self.assertEqual(df["feedback"].tolist(), ["dashboard charts not loading", "dark mode please"])

    def test_feedback_csv_requires_feedback_column(self):
        with self.assertRaises(ValueError):
            load_feedback_csv(b"text\nhello\n")


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def test_health(self):
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_upload_issues(self):
        response = self.client.post("/issues/upload", files={"file": ("issues.csv", ISSUES_CSV, "text/csv")})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_issues"], 3)
        self.assertEqual(body["issues"][2]["status"], "In Progress")

    def test_upload_rejects_non_csv(self):
        response = self.client.post("/issues/upload", files={"file": ("issues.txt", ISSUES_CSV, "text/plain")})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please upload a CSV file")

    def test_suggestions_use_review_defaults(self):
        issues = [_issue("ENG-1", "Dashboard fails to render charts"), _issue("ENG-2", "Add dark mode")]

        response = self.client.post("/suggestions", json={"text": "dashboard charts not loading", "issues": issues})

        self.assertEqual(response.status_code, 200)
        suggestions = response.json()["suggestions"]
        self.assertEqual([item["issue"]["id"] for item in suggestions], ["ENG-1"])
        self.assertGreater(suggestions[0]["score"], 0)

    def test_suggestions_respect_min_score_and_limit(self):
        issues = [_issue(f"ENG-{idx}", f"Export csv report {idx}") for idx in range(5)]
        issues.append(_issue("ENG-9", "Add dark mode"))

        response = self.client.post(
            "/suggestions",
            json={"text": "export csv", "issues": issues, "min_score": 0, "limit": 10},
        )

        suggestions = response.json()["suggestions"]
        self.assertEqual(len(suggestions), 6)
        self.assertEqual(suggestions[-1]["issue"]["id"], "ENG-9")
        self.assertEqual([item["issue"]["id"] for item in suggestions[:5]], [f"ENG-{idx}" for idx in range(5)])

    def test_suggestions_accept_candidates_without_id(self):
        candidates = [{"title": "Dashboard fails to render charts"}, {"title": "Add dark mode", "description": "Night theme"}]

        response = self.client.post(
            "/suggestions",
            json={"text": "dashboard charts not loading", "issues": candidates, "min_score": 0},
        )

        self.assertEqual(response.status_code, 200)
        suggestions = response.json()["suggestions"]
        self.assertEqual([item["issue"]["title"] for item in suggestions], ["Dashboard fails to render charts", "Add dark mode"])
        self.assertIsNone(suggestions[0]["issue"]["id"])

    def test_suggestions_require_title(self):
        response = self.client.post("/suggestions", json={"text": "export", "issues": [{"id": "ENG-1"}]})

        self.assertEqual(response.status_code, 422)

    def test_link_feedback(self):
        response = self.client.post(
            "/feedback/link",
            files={
                "feedback": ("feedback.csv", FEEDBACK_CSV, "text/csv"),
                "issues": ("issues.csv", ISSUES_CSV, "text/csv"),
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["total_feedback_items"], 2)
        self.assertEqual(body["total_issues"], 3)
        first = body["results"][0]
        self.assertEqual(first["feedback"], "dashboard charts not loading")
        self.assertEqual({item["issue"]["id"] for item in first["suggestions"]}, {"ENG-1", "ENG-3"})
        self.assertEqual([item["issue"]["id"] for item in body["results"][1]["suggestions"]], ["ENG-2"])

    def test_consolidation_usage_message(self):
        response = self.client.get("/consolidation-opportunities")

        self.assertEqual(response.status_code, 200)
        self.assertIn("POST", response.json()["message"])

    def test_consolidation_rejects_invalid_threshold(self):
        for threshold in ("1.5", "-0.1", "abc", "nan"):
            response = self.client.post(
                f"/consolidation-opportunities?threshold={threshold}",
                json={"issues": []},
            )
            self.assertEqual(response.status_code, 400, threshold)
            self.assertEqual(response.json()["detail"], "Invalid threshold. Must be between 0 and 1.")

    def test_consolidation_report(self):
        issues = [
            _issue("ENG-1", "Dashboard fails to render charts", "Charts stay blank after login"),
            _issue("ENG-2", "Add dark mode"),
            _issue("ENG-3", "Dashboard charts fail to render", "Charts stay blank after login"),
        ]

        response = self.client.post("/consolidation-opportunities?threshold=0.5", json={"issues": issues})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["threshold"], 0.5)
        self.assertEqual(body["total_issues"], 3)
        self.assertEqual(body["total_pairs_returned"], 1)
        self.assertFalse(body["approximation_mode"])
        self.assertIn("generated_at", body)
        pair = body["pairs"][0]
        self.assertEqual((pair["issue_a"]["id"], pair["issue_b"]["id"]), ("ENG-1", "ENG-3"))
        self.assertGreaterEqual(pair["similarity"], 0.5)

    def test_consolidation_default_threshold(self):
        issues = [_issue("ENG-1", "Export csv"), _issue("ENG-2", "Export csv")]

        response = self.client.post("/consolidation-opportunities", json={"issues": issues})

        body = response.json()
        self.assertEqual(body["threshold"], 0.5)
        self.assertEqual(body["pairs"][0]["similarity"], 1.0)


if __name__ == "__main__":
    unittest.main()
