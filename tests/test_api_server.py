from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
import pytest

from greenmind.core.records import PersistedResult, SubmissionRecord
from greenmind.core.services.result_recorder import InMemoryResultRecorder, JsonLinesResultRecorder
from greenmind.server.api_server import create_api_app

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _payload(**overrides) -> dict:
    payload = {
        "score": 80,
        "totalQuestions": 10,
        "correctAnswers": 8,
        "timeTaken": 125,
        "categories": {"Recycling": {"correct": 3, "total": 3}, "Climate Change": {"correct": 5, "total": 7}},
        "difficulty": "mixed",
        "sessionId": "session_1",
    }
    payload.update(overrides)
    return payload


class _BrokenRecorder(InMemoryResultRecorder):
    def _append(self, result: PersistedResult) -> None:
        raise OSError("disk full")

    def _load(self) -> list[PersistedResult]:
        raise OSError("disk gone")


@pytest.fixture
def recorder() -> InMemoryResultRecorder:
    return InMemoryResultRecorder(clock=lambda: NOW)


@pytest.fixture
def client(recorder) -> TestClient:
    return TestClient(create_api_app(recorder))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_submit_records_valid_result(client, recorder):
    response = client.post("/api/quiz/submit", json=_payload(), headers={"User-Agent": "quiz-tests"})
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["data"]["score"] == 80
    assert body["data"]["formattedTime"] == "2m 5s"
    assert body["data"]["performance"]["level"] == "good"
    assert body["data"]["performance"]["categories"]["Climate Change"]["level"] == "moderate"

    stored = recorder.all_results()
    assert len(stored) == 1
    assert stored[0].client_metadata == "quiz-tests"
    assert stored[0].session_id == "session_1"


def test_submit_truncates_client_metadata(client, recorder):
    client.post("/api/quiz/submit", json=_payload(clientMetadata="x" * 600))
    assert len(recorder.all_results()[0].client_metadata) == 500


def test_submit_rejects_inconsistent_result(client, recorder):
    response = client.post("/api/quiz/submit", json=_payload(score=100, correctAnswers=5))
    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert [error["field"] for error in body["errors"]] == ["score"]
    assert recorder.all_results() == []


def test_submit_rejects_non_object_body(client):
    assert client.post("/api/quiz/submit", json=[1, 2]).status_code == 422


def test_storage_failure_is_retryable():
    client = TestClient(create_api_app(_BrokenRecorder()))
    response = client.post("/api/quiz/submit", json=_payload())
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert client.get("/api/quiz/stats").status_code == 503


def test_stats(client):
    client.post("/api/quiz/submit", json=_payload())
    client.post("/api/quiz/submit", json=_payload(score=100, correctAnswers=10, timeTaken=None, categories={}))

    data = client.get("/api/quiz/stats").json()["data"]
    assert data["overall"]["totalAttempts"] == 2
    assert data["overall"]["averageScore"] == 90
    assert data["overall"]["averageTime"] == 125
    assert data["overall"]["thisWeekAttempts"] == 2
    assert data["scoreDistribution"][-1] == {"range": [80, 100], "count": 2, "averageTime": 125}
    assert data["categoryStats"][0]["category"] == "Climate Change"
    assert data["performanceLevels"]["excellent"] == 1


def test_leaderboard(client):
    client.post("/api/quiz/submit", json=_payload(timeTaken=120))
    client.post("/api/quiz/submit", json=_payload(timeTaken=90))

    data = client.get("/api/quiz/leaderboard", params={"period": "week"}).json()["data"]
    assert [row["timeTaken"] for row in data["leaderboard"]] == [90, 120]
    assert data["leaderboard"][0]["rank"] == 1
    assert data["leaderboard"][0]["formattedTime"] == "1m 30s"


def test_unknown_period_is_rejected(client):
    assert client.get("/api/quiz/leaderboard", params={"period": "decade"}).status_code == 422
    assert client.get("/api/quiz/analytics", params={"period": "decade"}).status_code == 422


def test_recent_and_analytics(recorder, client):
    client.post("/api/quiz/submit", json=_payload())

    recent = client.get("/api/quiz/recent", params={"days": 7, "limit": 5}).json()["data"]
    assert recent["count"] == 1
    assert recent["results"][0]["sessionId"] == "session_1"
    assert "clientMetadata" not in recent["results"][0]

    analytics = client.get("/api/quiz/analytics", params={"period": "quarter"}).json()["data"]
    assert analytics["dailyTrend"][0]["date"] == "2026-03-15"
    assert analytics["timeAnalysis"]["averageTime"] == 125


def test_export_json_and_csv(recorder):
    recorder.record(SubmissionRecord(**_payload()))
    client = TestClient(create_api_app(recorder))

    start = (NOW - timedelta(days=1)).isoformat()
    data = client.get("/api/quiz/export", params={"start": start, "end": NOW.isoformat()}).json()["data"]
    assert data["count"] == 1
    assert data["period"] == "2026-03-14 to 2026-03-15"

    response = client.get("/api/quiz/export", params={"format": "csv"})
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text.splitlines()[1].endswith(",80,8,10,125,good")


def test_export_rejects_bad_format_and_range(client):
    assert client.get("/api/quiz/export", params={"format": "xml"}).status_code == 422
    params = {"start": NOW.isoformat(), "end": (NOW - timedelta(days=1)).isoformat()}
    assert client.get("/api/quiz/export", params=params).status_code == 422


def test_stats_skip_undecodable_store_lines(tmp_path):
    path = tmp_path / "results.jsonl"
    path.write_bytes(b"\xff\xfe garbage\n")
    client = TestClient(create_api_app(JsonLinesResultRecorder(path, clock=lambda: NOW)))
    client.post("/api/quiz/submit", json=_payload())

    response = client.get("/api/quiz/stats")
    assert response.status_code == 200
    assert response.json()["data"]["overall"]["totalAttempts"] == 1
