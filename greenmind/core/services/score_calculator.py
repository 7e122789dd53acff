"""Derives a Result from a quiz session at submission time."""

from __future__ import annotations

from datetime import datetime

from greenmind.constants.quiz_constants import MIN_ELAPSED_SECONDS, UNANSWERED_LABEL
from greenmind.core.errors import InvalidBankError
from greenmind.core.models import CategoryScore, QuestionDetail, Result
from greenmind.core.services.quiz_session import QuizSession


def score_percent(correct_count: int, total_count: int) -> int:
    """Percentage rounded half-up, computed in integers so .5 never drifts."""
    if total_count < 1:
        raise InvalidBankError("Cannot score an empty question bank.")
    return (200 * correct_count + total_count) // (2 * total_count)


def elapsed_seconds(started_at: datetime | None, completed_at: datetime | None) -> int | None:
    if started_at is None or completed_at is None:
        return None
    seconds = (completed_at - started_at).total_seconds()
    return max(MIN_ELAPSED_SECONDS, int(seconds + 0.5))


def calculate_result(session: QuizSession) -> Result:
    """Score every item; unanswered items count as incorrect."""
    pairs = session.answered_pairs()
    total_count = len(pairs)
    if total_count == 0:
        raise InvalidBankError("Cannot score an empty question bank.")

    correct_count = 0
    tallies: dict[str, list[int]] = {}
    details: list[QuestionDetail] = []

    for number, (item, state) in enumerate(pairs, start=1):
        is_correct = state.answered and state.selected_option_index == item.correct_option_index
        if is_correct:
            correct_count += 1

        tally = tallies.setdefault(item.category, [0, 0])
        tally[1] += 1
        if is_correct:
            tally[0] += 1

        chosen = item.options[state.selected_option_index] if state.answered else UNANSWERED_LABEL
        details.append(
            QuestionDetail(
                question_number=number,
                prompt=item.prompt,
                category=item.category,
                chosen_text=chosen,
                correct_text=item.correct_option_text,
                is_correct=is_correct,
                explanation=item.explanation,
            )
        )

    return Result(
        score_percent=score_percent(correct_count, total_count),
        correct_count=correct_count,
        total_count=total_count,
        elapsed_seconds=elapsed_seconds(session.started_at, session.completed_at),
        category_breakdown={
            category: CategoryScore(correct=correct, total=total)
            for category, (correct, total) in tallies.items()
        },
        per_question_detail=tuple(details),
    )
