"""Route tests for api.py through the FastAPI app."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from k12_study.classroom import add_student_to_class, create_assignment, create_class

STUDENT = {"X-User-Id": "s1"}
TEACHER = {"X-User-Id": "t1"}


@pytest.fixture
def client(seeded):
    from fastapi.testclient import TestClient
    from k12_study.app import app
    return TestClient(app)


class TestAuth:
    def test_health_is_open(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_missing_user(self, client):
        response = client.get("/api/plan")
        assert response.status_code == 401
        assert response.json() == {"error": "unauthorized"}


class TestPractice:
    def test_submit(self, client):
        response = client.post("/api/practice/submit", json={"questionId": "q-mul-1", "answer": "312"}, headers=STUDENT)
        assert response.status_code == 200
        body = response.json()
        assert body["correct"] is False
        assert body["answer"] == "322"

    def test_submit_missing_answer(self, client):
        response = client.post("/api/practice/submit", json={"questionId": "q-mul-1"}, headers=STUDENT)
        assert response.status_code == 400
        assert "answer" in response.json()["error"]

    def test_submit_unknown_question(self, client):
        response = client.post("/api/practice/submit", json={"questionId": "nope", "answer": "1"}, headers=STUDENT)
        assert response.status_code == 404

    def test_next(self, client):
        response = client.post("/api/practice/next", json={"subject": "math", "grade": "4"}, headers=STUDENT)
        assert response.status_code == 200
        question = response.json()["question"]
        assert question["id"].startswith("q-")
        assert "answer" not in question

    def test_next_wrong_mode_empty(self, client):
        response = client.post("/api/practice/next", json={"mode": "wrong"}, headers=STUDENT)
        assert response.status_code == 404
        assert response.json() == {"error": "no questions"}

    def test_next_wrong_mode(self, client):
        client.post("/api/practice/submit", json={"questionId": "q-div-2", "answer": "11"}, headers=STUDENT)
        response = client.post("/api/practice/next", json={"mode": "wrong"}, headers=STUDENT)
        assert response.json()["question"]["id"] == "q-div-2"

    def test_next_wrong_mode_spans_subjects(self, client):
        client.post("/api/practice/submit", json={"questionId": "q-eng-1", "answer": "goed"}, headers=STUDENT)
        response = client.post("/api/practice/next", json={"mode": "wrong"}, headers=STUDENT)
        assert response.status_code == 200
        assert response.json()["question"]["id"] == "q-eng-1"

    def test_next_wrong_mode_honours_sent_subject(self, client):
        client.post("/api/practice/submit", json={"questionId": "q-eng-1", "answer": "goed"}, headers=STUDENT)
        response = client.post("/api/practice/next", json={"mode": "wrong", "subject": "math"}, headers=STUDENT)
        assert response.status_code == 404

    def test_explanation_falls_back_to_stored(self, client):
        response = client.post("/api/practice/explanation", json={"questionId": "q-mul-1"}, headers=STUDENT)
        body = response.json()
        assert body["source"] == "stored"
        assert "<strong>322</strong>" in body["data"]["html"]


class TestDiagnostic:
    def test_start_and_submit(self, client):
        started = client.post("/api/diagnostic/start", json={}, headers=STUDENT).json()
        assert started["subject"] == "math"
        assert len(started["questions"]) == 10

        answers = [{"questionId": q["id"], "answer": "0", "reason": "guess"} for q in started["questions"]]
        result = client.post(
            "/api/diagnostic/submit",
            json={"subject": "math", "grade": "4", "answers": answers},
            headers=STUDENT,
        ).json()
        assert result["total"] == 10
        assert result["correct"] == 0
        assert result["wrongReasons"] == [{"reason": "guess", "count": 10}]
        assert len(result["plan"]["items"]) == 4

    def test_submit_without_answers(self, client):
        response = client.post(
            "/api/diagnostic/submit",
            json={"subject": "math", "grade": "4", "answers": []},
            headers=STUDENT,
        )
        assert response.status_code == 400


class TestPlansAndMastery:
    def test_plan_defaults_to_math(self, client):
        body = client.get("/api/plan", headers=STUDENT).json()
        assert [plan["subject"] for plan in body["plans"]] == ["math"]
        assert len(body["items"]) == 4

    def test_refresh_all_subjects(self, client):
        body = client.post("/api/plan/refresh", json={"subject": "all"}, headers=STUDENT).json()
        assert sorted(plan["subject"] for plan in body["plans"]) == ["english", "math"]

    def test_mastery(self, client):
        client.post("/api/practice/submit", json={"questionId": "q-area-1", "answer": "24 cm²"}, headers=STUDENT)
        body = client.get("/api/mastery?subject=math", headers=STUDENT).json()
        [math] = body["subjects"]
        assert math["practicedPoints"] == 1
        assert math["ratio"] == 1.0
        assert len(math["entries"]) == 4
        assert len(math["weakPoints"]) == 3

    def test_weekly_report(self, client):
        body = client.get("/api/report/weekly?subjects=math", headers=STUDENT).json()
        assert body["stats"]["total"] == 0
        assert len(body["trend"]) == 7


class TestChallenges:
    def test_claim_flow(self, client):
        tasks = client.get("/api/challenges", headers=STUDENT).json()["tasks"]
        assert {task["id"] for task in tasks} >= {"practice-10", "streak-3"}

        response = client.post("/api/challenges/claim", json={"taskId": "practice-10"}, headers=STUDENT)
        assert response.status_code == 409

        for _ in range(10):
            client.post("/api/practice/submit", json={"questionId": "q-mul-1", "answer": "322"}, headers=STUDENT)
        first = client.post("/api/challenges/claim", json={"taskId": "practice-10"}, headers=STUDENT).json()
        second = client.post("/api/challenges/claim", json={"taskId": "practice-10"}, headers=STUDENT).json()
        assert first["pointsAwarded"] == 10
        assert second["ok"] is True
        assert second["alreadyClaimed"] is True
        assert second["points"] == 10

    def test_unknown_task(self, client):
        response = client.post("/api/challenges/claim", json={"taskId": "nope"}, headers=STUDENT)
        assert response.status_code == 404


class TestTeacherNotifications:
    def test_rules_and_run(self, client):
        create_class("Class 4A", "t1", class_id="c1")
        add_student_to_class("c1", "s1")
        create_assignment("c1", "Worksheet", datetime.now(timezone.utc) + timedelta(days=1))

        saved = client.post(
            "/api/teacher/notifications/rules",
            json={"classId": "c1", "dueDays": 3},
            headers=TEACHER,
        ).json()["data"]
        assert saved["dueDays"] == 3
        assert saved["overdueDays"] == 0

        listed = client.get("/api/teacher/notifications/rules", headers=TEACHER).json()
        assert [klass["id"] for klass in listed["classes"]] == ["c1"]
        assert listed["rules"][0]["dueDays"] == 3

        run = client.post("/api/teacher/notifications/run", json={}, headers=TEACHER).json()["data"]
        assert run["students"] == 1

        inbox = client.get("/api/notifications", headers=STUDENT).json()["data"]
        assert inbox[0]["type"] == "assignment_due"
        read = client.post(f"/api/notifications/{inbox[0]['id']}/read", headers=STUDENT).json()["data"]
        assert read["readAt"] is not None

    def test_foreign_class(self, client):
        create_class("Class 5B", "t2", class_id="c2")
        rule = client.post("/api/teacher/notifications/rules", json={"classId": "c2"}, headers=TEACHER)
        run = client.post("/api/teacher/notifications/run", json={"classId": "c2"}, headers=TEACHER)
        assert rule.status_code == 404
        assert run.status_code == 404

    def test_negative_days_rejected(self, client):
        create_class("Class 4A", "t1", class_id="c1")
        response = client.post(
            "/api/teacher/notifications/rules",
            json={"classId": "c1", "dueDays": -1},
            headers=TEACHER,
        )
        assert response.status_code == 400

    def test_read_unknown_notification(self, client):
        response = client.post("/api/notifications/999/read", headers=STUDENT)
        assert response.status_code == 404
