from __future__ import annotations

import json
from threading import Event

import httpx
import pytest
from fastapi.testclient import TestClient

from greenmind.core.errors import RateLimitedError, RemoteRejectionError, TransientTransportError
from greenmind.core.models import CategoryScore, Result
from greenmind.core.services.result_recorder import InMemoryResultRecorder
from greenmind.core.services.submission import (
    HttpSubmissionTransport,
    RetryPolicy,
    SubmissionClient,
    SubmissionStatus,
    build_payload,
)
from greenmind.server.api_server import create_api_app
from tests.conftest import ScriptedTransport


def _result(elapsed: int | None = 95) -> Result:
    return Result(
        score_percent=75,
        correct_count=3,
        total_count=4,
        elapsed_seconds=elapsed,
        category_breakdown={
            "Recycling": CategoryScore(correct=2, total=2),
            "Water Conservation": CategoryScore(correct=1, total=2),
        },
    )


def test_build_payload_wire_shape():
    payload = build_payload(_result(), "session_1", "easy")
    assert payload == {
        "score": 75,
        "totalQuestions": 4,
        "correctAnswers": 3,
        "timeTaken": 95,
        "categories": {
            "Recycling": {"correct": 2, "total": 2},
            "Water Conservation": {"correct": 1, "total": 2},
        },
        "difficulty": "easy",
        "sessionId": "session_1",
    }


def test_build_payload_omits_unknown_elapsed_time():
    assert "timeTaken" not in build_payload(_result(elapsed=None), "session_1")


def test_retry_policy_doubles_delay():
    policy = RetryPolicy(max_retries=3, base_delay=1.0)
    assert [policy.delay_for(attempt) for attempt in range(3)] == [1.0, 2.0, 4.0]


def test_transient_failures_are_retried_with_backoff():
    delays: list[float] = []
    transport = ScriptedTransport(
        TransientTransportError("down"),
        TransientTransportError("still down"),
        {"status": "success", "data": {"id": "abc"}},
    )
    client = SubmissionClient(transport, sleep=delays.append)

    outcome = client.submit({"score": 1})
    assert outcome.accepted
    assert outcome.attempts == 3
    assert outcome.response["data"]["id"] == "abc"
    assert delays == [1.0, 2.0]
    assert len(transport.payloads) == 3


def test_retries_are_bounded():
    delays: list[float] = []
    transport = ScriptedTransport(*[TransientTransportError("down")] * 10)
    outcome = SubmissionClient(transport, RetryPolicy(max_retries=3, base_delay=0.5), sleep=delays.append).submit({})

    assert outcome.status is SubmissionStatus.TRANSIENT_FAILURE
    assert outcome.retryable
    assert outcome.attempts == 4
    assert delays == [0.5, 1.0, 2.0]


def test_rate_limit_honours_retry_after():
    delays: list[float] = []
    transport = ScriptedTransport(RateLimitedError("slow down", retry_after=7), {"status": "success"})
    outcome = SubmissionClient(transport, sleep=delays.append).submit({})
    assert outcome.accepted
    assert delays == [7]


def test_rate_limit_wait_is_capped():
    delays: list[float] = []
    transport = ScriptedTransport(RateLimitedError("slow down", retry_after=86400), {"status": "success"})
    policy = RetryPolicy(max_retry_after=30.0)
    outcome = SubmissionClient(transport, policy, sleep=delays.append).submit({})
    assert outcome.accepted
    assert delays == [30.0]
    assert RetryPolicy().rate_limit_delay(86400, 0) == 60.0
    assert RetryPolicy().rate_limit_delay(None, 2) == 4.0


def test_rate_limit_exhaustion_reports_rate_limited():
    transport = ScriptedTransport(*[RateLimitedError("slow down")] * 4)
    outcome = SubmissionClient(transport, sleep=lambda _: None).submit({})
    assert outcome.status is SubmissionStatus.RATE_LIMITED


def test_rejection_is_not_retried():
    errors = [{"field": "score", "reason": "does not match"}]
    transport = ScriptedTransport(RemoteRejectionError("Validation failed", errors=errors))
    outcome = SubmissionClient(transport, sleep=pytest.fail).submit({})

    assert outcome.status is SubmissionStatus.REJECTED_VALIDATION
    assert not outcome.retryable
    assert outcome.attempts == 1
    assert outcome.errors == errors


def test_cancel_before_first_attempt():
    cancel = Event()
    cancel.set()
    transport = ScriptedTransport()
    outcome = SubmissionClient(transport).submit({}, cancel=cancel)
    assert outcome.status is SubmissionStatus.CANCELLED
    assert outcome.attempts == 0
    assert transport.payloads == []


def test_cancel_during_backoff_stops_retrying():
    cancel = Event()
    transport = ScriptedTransport(TransientTransportError("down"), {"status": "success"})
    outcome = SubmissionClient(transport, sleep=lambda _: cancel.set()).submit({}, cancel=cancel)
    assert outcome.status is SubmissionStatus.CANCELLED
    assert len(transport.payloads) == 1


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), base_url="http://quiz.test")


def test_http_transport_posts_json():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"status": "success"})

    transport = HttpSubmissionTransport(client=_mock_client(handler))
    assert transport.send({"score": 50}) == {"status": "success"}
    assert seen[0].url.path == "/api/quiz/submit"
    assert json.loads(seen[0].content) == {"score": 50}


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(503), TransientTransportError),
        (httpx.Response(429, headers={"Retry-After": "3"}), RateLimitedError),
        (httpx.Response(400, json={"message": "Validation failed", "errors": [{"field": "score", "reason": "x"}]}), RemoteRejectionError),
        (httpx.Response(422, json={"detail": "bad body"}), RemoteRejectionError),
    ],
)
def test_http_transport_maps_status_codes(response, error):
    transport = HttpSubmissionTransport(client=_mock_client(lambda request: response))
    with pytest.raises(error) as excinfo:
        transport.send({})
    if isinstance(excinfo.value, RateLimitedError):
        assert excinfo.value.retry_after == 3.0
    if isinstance(excinfo.value, RemoteRejectionError):
        assert excinfo.value.errors


def test_http_transport_network_error_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = HttpSubmissionTransport(client=_mock_client(handler))
    with pytest.raises(TransientTransportError):
        transport.send({})


def test_submission_against_api_app():
    recorder = InMemoryResultRecorder()
    with TestClient(create_api_app(recorder)) as http_client:
        client = SubmissionClient(HttpSubmissionTransport(client=http_client), sleep=pytest.fail)

        accepted = client.submit(build_payload(_result(), "session_ok"))
        assert accepted.accepted
        assert accepted.response["data"]["score"] == 75

        forged = build_payload(_result(), "session_forged")
        forged["score"] = 100
        rejected = client.submit(forged)
        assert rejected.status is SubmissionStatus.REJECTED_VALIDATION
        assert [error["field"] for error in rejected.errors] == ["score"]

    assert [r.session_id for r in recorder.all_results()] == ["session_ok"]


def test_http_transport_closes_only_its_own_client():
    shared = _mock_client(lambda request: httpx.Response(201, json={}))
    HttpSubmissionTransport(client=shared).close()
    assert not shared.is_closed

    owned = HttpSubmissionTransport(base_url="http://quiz.test")
    owned.close()
    assert owned._client.is_closed
