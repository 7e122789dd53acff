from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from greenmind.core.errors import SessionFrozenError, SubmissionInProgressError, TransientTransportError
from greenmind.core.quiz_manager import QuizManager
from greenmind.core.services.result_recorder import InMemoryResultRecorder
from greenmind.core.services.submission import HttpSubmissionTransport, SubmissionClient, SubmissionStatus
from greenmind.server.api_server import create_api_app
from tests.conftest import ScriptedTransport, StepClock


def _manager(transport, bank, clock=None) -> QuizManager:
    client = SubmissionClient(transport, sleep=lambda _: None)
    return QuizManager(client, bank=bank, clock=clock or StepClock())


class _ReentrantTransport(ScriptedTransport):
    """Runs ``action`` while the first send is in flight."""

    def __init__(self, action) -> None:
        super().__init__()
        self.action = action

    def send(self, payload: dict) -> dict:
        if self.action is not None:
            action, self.action = self.action, None
            action()
        return super().send(payload)


def test_requires_started_quiz(synthetic_bank):
    manager = _manager(ScriptedTransport(), synthetic_bank)
    assert not manager.has_started()
    with pytest.raises(RuntimeError):
        manager.select_answer(1, 0)
    with pytest.raises(RuntimeError):
        manager.submit()


def test_navigation_and_answers(synthetic_bank):
    manager = _manager(ScriptedTransport(), synthetic_bank)
    manager.start_quiz()
    manager.select_answer(1, 0)
    assert manager.next_question().id == 2
    assert manager.go_to_question(3).id == 4
    assert manager.previous_question().id == 3
    assert manager.get_current_question().id == 3
    assert manager.progress().label == "Question 3 of 4"
    assert manager.get_unanswered_count() == 3
    assert manager.review()[0].chosen_text == "Option 0"


def test_submit_scores_and_sends_once(synthetic_bank):
    transport = ScriptedTransport()
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()
    for question_id in (1, 2, 3):
        manager.select_answer(question_id, 0)

    outcome = manager.submit()
    assert outcome.accepted
    result = manager.get_result()
    assert result.score_percent == 75
    assert result.elapsed_seconds == 30

    payload = transport.payloads[0]
    assert payload["score"] == 75
    assert payload["timeTaken"] == 30
    assert payload["sessionId"] == manager.get_session_id()
    assert payload["difficulty"] == "mixed"
    assert manager.get_last_outcome() is outcome
    assert manager.get_feedback().level == "fair"

    with pytest.raises(SessionFrozenError):
        manager.select_answer(4, 0)


def test_double_submit_is_refused(synthetic_bank):
    caught: list[Exception] = []
    manager: QuizManager

    def submit_again() -> None:
        assert manager.is_submitting()
        with pytest.raises(SubmissionInProgressError) as excinfo:
            manager.submit()
        caught.append(excinfo.value)

    transport = _ReentrantTransport(submit_again)
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()

    assert manager.submit().accepted
    assert len(caught) == 1
    assert len(transport.payloads) == 1
    assert not manager.is_submitting()


def test_retry_resends_the_same_result(synthetic_bank):
    transport = ScriptedTransport(*[TransientTransportError("offline")] * 4)
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()
    manager.select_answer(1, 0)

    failed = manager.submit()
    assert failed.status is SubmissionStatus.TRANSIENT_FAILURE
    result = manager.get_result()

    retried = manager.retry_submission()
    assert retried.accepted
    assert manager.get_result() is result
    assert transport.payloads[-1] == transport.payloads[0]


def test_retry_without_result_is_an_error(synthetic_bank):
    manager = _manager(ScriptedTransport(), synthetic_bank)
    manager.start_quiz()
    with pytest.raises(RuntimeError):
        manager.retry_submission()


def test_abandon_ignores_late_outcome(synthetic_bank):
    manager: QuizManager
    transport = _ReentrantTransport(lambda: manager.abandon_submission())
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()

    outcome = manager.submit()
    assert outcome.status is SubmissionStatus.CANCELLED
    assert manager.get_last_outcome() is None
    assert not manager.is_submitting()


def test_retake_discards_previous_attempt(synthetic_bank):
    manager: QuizManager
    transport = _ReentrantTransport(lambda: manager.retake_quiz())
    manager = _manager(transport, synthetic_bank)
    first = manager.start_quiz()
    first_id = manager.get_session_id()
    manager.select_answer(1, 0)

    outcome = manager.submit()
    assert outcome.status is SubmissionStatus.CANCELLED
    assert manager.get_session() is not first
    assert manager.get_session_id() != first_id
    assert manager.get_result() is None
    assert manager.get_session().unanswered_count() == len(synthetic_bank)


def test_accepted_result_is_never_sent_twice(synthetic_bank):
    recorder = InMemoryResultRecorder()
    with TestClient(create_api_app(recorder)) as http_client:
        client = SubmissionClient(HttpSubmissionTransport(client=http_client), sleep=pytest.fail)
        manager = QuizManager(client, bank=synthetic_bank, clock=StepClock())
        manager.start_quiz()
        manager.select_answer(1, 0)

        first = manager.submit()
        again = manager.submit()
        retried = manager.retry_submission()

    assert first.accepted
    assert again is first
    assert retried is first
    assert len(recorder.all_results()) == 1
    assert manager.get_history().total_attempts == 1


def test_retake_can_submit_a_new_result(synthetic_bank):
    transport = ScriptedTransport()
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()
    assert manager.submit().accepted

    manager.retake_quiz()
    assert manager.submit().accepted
    assert len(transport.payloads) == 2
    assert transport.payloads[0]["sessionId"] != transport.payloads[1]["sessionId"]


def test_only_accepted_results_enter_history(synthetic_bank):
    transport = ScriptedTransport(*[TransientTransportError("offline")] * 4)
    manager = _manager(transport, synthetic_bank)
    manager.start_quiz()
    for question_id in (1, 2):
        manager.select_answer(question_id, 0)

    manager.submit()
    assert manager.get_history().total_attempts == 0

    manager.retry_submission()
    history = manager.get_history()
    assert [attempt.score for attempt in history.attempts] == [50]
    assert history.best_score == 50
