"""Client-side facade over one quiz attempt at a time."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from threading import Event, Lock

from greenmind.constants.quiz_constants import DEFAULT_SUBMISSION_DIFFICULTY
from greenmind.core.errors import PersistenceError, SubmissionInProgressError
from greenmind.core.feedback import ResultFeedback, build_feedback
from greenmind.core.models import QuizItem, Result
from greenmind.core.question_bank import QuestionBank
from greenmind.core.services.attempt_history import AttemptHistory
from greenmind.core.services.quiz_session import (
    QuizSession,
    ReviewEntry,
    SessionProgress,
    utcnow,
)
from greenmind.core.services.score_calculator import calculate_result
from greenmind.core.services.submission import (
    SubmissionClient,
    SubmissionOutcome,
    SubmissionStatus,
    build_payload,
    generate_session_id,
)

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade for the session, score calculator and submission client.

    Each call to ``start_quiz`` (or ``retake_quiz``) replaces the session
    wholesale and advances the attempt generation; a submission still in
    flight for an older generation is ignored when it returns.
    """

    def __init__(
        self,
        submitter: SubmissionClient,
        bank: QuestionBank | None = None,
        clock: Callable[[], datetime] = utcnow,
        difficulty: str = DEFAULT_SUBMISSION_DIFFICULTY,
        history: AttemptHistory | None = None,
    ) -> None:
        self._lock = Lock()
        self._bank = bank or QuestionBank.default()
        self._submitter = submitter
        self._clock = clock
        self._difficulty = difficulty
        self._history = history if history is not None else AttemptHistory(clock=clock)

        self._session: QuizSession | None = None
        self._session_id: str | None = None
        self._generation: int = 0
        self._result: Result | None = None
        self._last_outcome: SubmissionOutcome | None = None
        self._submitting: bool = False
        self._cancel: Event | None = None

    # --- Attempt lifecycle ---

    def start_quiz(self) -> QuizSession:
        with self._lock:
            self._discard_attempt()
            self._session = QuizSession.start(self._bank, clock=self._clock)
            self._session_id = generate_session_id()
            logger.info("Quiz started with %d questions", len(self._session))
            return self._session

    def retake_quiz(self) -> QuizSession:
        return self.start_quiz()

    def get_session(self) -> QuizSession | None:
        with self._lock:
            return self._session

    def get_session_id(self) -> str | None:
        with self._lock:
            return self._session_id

    def has_started(self) -> bool:
        with self._lock:
            return self._session is not None

    # --- Session delegation ---

    def select_answer(self, question_id: int, option_index: int) -> None:
        with self._lock:
            self._require_session().select_answer(question_id, option_index)

    def next_question(self) -> QuizItem:
        with self._lock:
            session = self._require_session()
            session.advance()
            return session.current_item

    def previous_question(self) -> QuizItem:
        with self._lock:
            session = self._require_session()
            session.retreat()
            return session.current_item

    def go_to_question(self, index: int) -> QuizItem:
        with self._lock:
            session = self._require_session()
            session.jump_to(index)
            return session.current_item

    def get_current_question(self) -> QuizItem:
        with self._lock:
            return self._require_session().current_item

    def progress(self) -> SessionProgress:
        with self._lock:
            return self._require_session().progress()

    def review(self) -> list[ReviewEntry]:
        with self._lock:
            return self._require_session().review()

    def get_unanswered_count(self) -> int:
        with self._lock:
            return self._require_session().unanswered_count()

    # --- Submission ---

    def submit(self) -> SubmissionOutcome:
        """Freeze the session, score it once and send the result.

        Calling again after a failed attempt resends the stored result without
        recomputing it. Once the result has been accepted the stored outcome is
        returned and nothing is sent.
        """
        with self._lock:
            session = self._require_session()
            if self._submitting:
                raise SubmissionInProgressError("A submission is already in progress.")
            if self._last_outcome is not None and self._last_outcome.accepted:
                logger.info("Result already accepted; not sending it again")
                return self._last_outcome
            if self._result is None:
                if not session.is_frozen:
                    session.complete(clock=self._clock)
                self._result = calculate_result(session)
            result = self._result
            payload = build_payload(result, self._session_id or "", self._difficulty)
            generation = self._generation
            cancel = Event()
            self._cancel = cancel
            self._submitting = True

        outcome: SubmissionOutcome | None = None
        try:
            outcome = self._submitter.submit(payload, cancel=cancel)
        finally:
            with self._lock:
                current = generation == self._generation
                if current:
                    self._submitting = False
                    self._cancel = None
                    if outcome is not None:
                        self._last_outcome = outcome

        if not current:
            logger.info("Discarding submission outcome for an abandoned attempt")
            return SubmissionOutcome(SubmissionStatus.CANCELLED, outcome.attempts, message="Submission abandoned")
        if outcome.accepted:
            self._record_attempt(result)
        return outcome

    def retry_submission(self) -> SubmissionOutcome:
        with self._lock:
            if self._result is None:
                raise RuntimeError("There is no result to resubmit.")
        return self.submit()

    def abandon_submission(self) -> None:
        """Stop waiting on the pending submission; its outcome will be ignored."""
        with self._lock:
            if not self._submitting:
                return
            self._generation += 1
            if self._cancel is not None:
                self._cancel.set()
            self._cancel = None
            self._submitting = False
            logger.info("Submission abandoned by the user")

    def is_submitting(self) -> bool:
        with self._lock:
            return self._submitting

    def get_result(self) -> Result | None:
        with self._lock:
            return self._result

    def get_last_outcome(self) -> SubmissionOutcome | None:
        with self._lock:
            return self._last_outcome

    def get_history(self) -> AttemptHistory:
        return self._history

    def get_feedback(self) -> ResultFeedback | None:
        with self._lock:
            if self._result is None:
                return None
            return build_feedback(self._result.score_percent, self._result.category_breakdown)

    # --- Internals ---

    def _require_session(self) -> QuizSession:
        if self._session is None:
            raise RuntimeError("Quiz has not been started.")
        return self._session

    def _record_attempt(self, result: Result) -> None:
        try:
            self._history.record(result)
        except PersistenceError as exc:
            logger.warning("Attempt accepted but not added to local history: %s", exc)

    def _discard_attempt(self) -> None:
        self._generation += 1
        if self._cancel is not None:
            self._cancel.set()
        self._cancel = None
        self._submitting = False
        self._session = None
        self._session_id = None
        self._result = None
        self._last_outcome = None
