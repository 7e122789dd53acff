"""Authority-side gate that re-derives a submitted score before it is recorded.

The client computes and declares its own score. Nothing here trusts that
declaration: the percentage is recomputed from the submitted counts and the
payload is rejected when the two differ by more than ``SCORE_TOLERANCE``
points. Every structural problem is collected so the caller can report all of
them at once. The module performs no I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from greenmind.constants.quiz_constants import (
    DEFAULT_SUBMISSION_DIFFICULTY,
    MAX_ELAPSED_SECONDS,
    MAX_TOTAL_QUESTIONS,
    MIN_ELAPSED_SECONDS,
    SCORE_TOLERANCE,
    SUBMISSION_DIFFICULTIES,
)
from greenmind.core.errors import RangeError, SubmissionRejected
from greenmind.core.records import CategoryTally, SubmissionRecord
from greenmind.core.services.score_calculator import score_percent


def _as_int(value: Any) -> int | None:
    """Return ``value`` as an int when it is a whole number, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def collect_errors(payload: Any) -> list[RangeError]:
    """Return every validation failure in ``payload`` (empty when valid)."""
    if not isinstance(payload, Mapping):
        return [RangeError("payload", "must be a JSON object")]

    errors: list[RangeError] = []

    score = _as_int(payload.get("score"))
    if score is None:
        errors.append(RangeError("score", "must be a whole number"))
    elif not 0 <= score <= 100:
        errors.append(RangeError("score", "must be between 0 and 100"))

    total = _as_int(payload.get("totalQuestions"))
    if total is None:
        errors.append(RangeError("totalCount", "must be a whole number"))
    elif not 1 <= total <= MAX_TOTAL_QUESTIONS:
        errors.append(RangeError("totalCount", f"must be between 1 and {MAX_TOTAL_QUESTIONS}"))
        total = None

    correct = _as_int(payload.get("correctAnswers"))
    if correct is None:
        errors.append(RangeError("correctCount", "must be a whole number"))
    elif correct < 0:
        errors.append(RangeError("correctCount", "cannot be negative"))
        correct = None
    elif total is not None and correct > total:
        errors.append(RangeError("correctCount", "cannot exceed total questions"))
        correct = None

    score_in_range = score is not None and 0 <= score <= 100
    if score_in_range and total is not None and correct is not None:
        expected = score_percent(correct, total)
        if abs(score - expected) > SCORE_TOLERANCE:
            errors.append(
                RangeError("score", f"does not match correct answers and total questions (expected {expected})")
            )

    time_taken = payload.get("timeTaken")
    if time_taken is not None:
        elapsed = _as_int(time_taken)
        if elapsed is None:
            errors.append(RangeError("elapsedSeconds", "must be a whole number of seconds"))
        elif not MIN_ELAPSED_SECONDS <= elapsed <= MAX_ELAPSED_SECONDS:
            errors.append(
                RangeError(
                    "elapsedSeconds",
                    f"must be between {MIN_ELAPSED_SECONDS} and {MAX_ELAPSED_SECONDS} seconds",
                )
            )

    category_error = _check_categories(payload.get("categories"))
    if category_error is not None:
        errors.append(category_error)

    difficulty = payload.get("difficulty")
    if difficulty is not None and difficulty not in SUBMISSION_DIFFICULTIES:
        errors.append(RangeError("difficulty", f"must be one of {', '.join(SUBMISSION_DIFFICULTIES)}"))

    session_id = payload.get("sessionId")
    if session_id is not None and not isinstance(session_id, str):
        errors.append(RangeError("sessionId", "must be a string"))

    return errors


def _check_categories(categories: Any) -> RangeError | None:
    if categories is None:
        return None
    if not isinstance(categories, Mapping):
        return RangeError("categories", "must be an object")
    for name, stats in categories.items():
        if not isinstance(stats, Mapping):
            return RangeError("categories", f"invalid category stats for {name}")
        correct = _as_int(stats.get("correct"))
        total = _as_int(stats.get("total"))
        if correct is None or total is None:
            return RangeError("categories", f"category {name} must have numeric correct and total values")
        if correct > total or correct < 0 or total < 1:
            return RangeError("categories", f"invalid stats for category {name}")
    return None


def validate_submission(payload: Any) -> SubmissionRecord:
    """Check ``payload`` and return the normalized record, or raise SubmissionRejected."""
    errors = collect_errors(payload)
    if errors:
        raise SubmissionRejected(errors)

    time_taken = payload.get("timeTaken")
    session_id = (payload.get("sessionId") or "").strip() or None
    return SubmissionRecord(
        score=_as_int(payload["score"]),
        total_questions=_as_int(payload["totalQuestions"]),
        correct_answers=_as_int(payload["correctAnswers"]),
        time_taken=_as_int(time_taken) if time_taken is not None else None,
        categories={
            str(name): CategoryTally(correct=_as_int(stats["correct"]), total=_as_int(stats["total"]))
            for name, stats in (payload.get("categories") or {}).items()
        },
        difficulty=payload.get("difficulty") or DEFAULT_SUBMISSION_DIFFICULTY,
        session_id=session_id,
    )
