"""State machine for a single quiz attempt: navigation and answer capture."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from greenmind.core.errors import InvalidBankError, OutOfRangeError, SessionFrozenError
from greenmind.core.models import AnswerState, QuizItem
from greenmind.core.question_bank import QuestionBank


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class SessionProgress:
    position: int
    total: int
    answered: int

    @property
    def label(self) -> str:
        return f"Question {self.position + 1} of {self.total}"

    @property
    def percent(self) -> float:
        return (self.position + 1) / self.total * 100

    @property
    def is_first(self) -> bool:
        return self.position == 0

    @property
    def is_last(self) -> bool:
        return self.position == self.total - 1


@dataclass(slots=True, frozen=True)
class ReviewEntry:
    question_number: int
    prompt: str
    answered: bool
    chosen_text: str | None


class QuizSession:
    """One quiz attempt over a bank, in bank order.

    A session is never reused: retaking the quiz means calling ``start`` again.
    Once ``complete`` has been called the session is read-only.
    """

    def __init__(self, items: tuple[QuizItem, ...], started_at: datetime) -> None:
        if not items:
            raise InvalidBankError("Question bank must contain at least one question.")
        self._items = items
        self._answers: list[AnswerState] = [AnswerState() for _ in items]
        self._positions = {item.id: index for index, item in enumerate(items)}
        self._position = 0
        self._started_at = started_at
        self._completed_at: datetime | None = None

    @classmethod
    def start(cls, bank: QuestionBank, clock: Callable[[], datetime] = utcnow) -> "QuizSession":
        return cls(bank.items, started_at=clock())

    # --- Read access ---

    @property
    def items(self) -> tuple[QuizItem, ...]:
        return self._items

    @property
    def current_position(self) -> int:
        return self._position

    @property
    def current_item(self) -> QuizItem:
        return self._items[self._position]

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def completed_at(self) -> datetime | None:
        return self._completed_at

    @property
    def is_frozen(self) -> bool:
        return self._completed_at is not None

    def __len__(self) -> int:
        return len(self._items)

    def answer_for(self, question_id: int) -> AnswerState:
        state = self._answers[self._index_of(question_id)]
        return AnswerState(selected_option_index=state.selected_option_index)

    def answered_pairs(self) -> list[tuple[QuizItem, AnswerState]]:
        return [
            (item, AnswerState(selected_option_index=state.selected_option_index))
            for item, state in zip(self._items, self._answers)
        ]

    def is_complete(self) -> bool:
        return all(state.answered for state in self._answers)

    def unanswered_count(self) -> int:
        return sum(1 for state in self._answers if not state.answered)

    def progress(self) -> SessionProgress:
        return SessionProgress(
            position=self._position,
            total=len(self._items),
            answered=len(self._items) - self.unanswered_count(),
        )

    def review(self) -> list[ReviewEntry]:
        entries = []
        for number, (item, state) in enumerate(zip(self._items, self._answers), start=1):
            chosen = item.options[state.selected_option_index] if state.answered else None
            entries.append(
                ReviewEntry(
                    question_number=number,
                    prompt=item.prompt,
                    answered=state.answered,
                    chosen_text=chosen,
                )
            )
        return entries

    # --- Mutation ---

    def select_answer(self, question_id: int, option_index: int) -> None:
        self._ensure_mutable()
        index = self._index_of(question_id)
        item = self._items[index]
        if not 0 <= option_index < len(item.options):
            raise OutOfRangeError(
                f"Option {option_index} out of range for question {question_id} "
                f"(0..{len(item.options) - 1})"
            )
        self._answers[index].selected_option_index = option_index

    def advance(self) -> None:
        self._ensure_mutable()
        if self._position < len(self._items) - 1:
            self._position += 1

    def retreat(self) -> None:
        self._ensure_mutable()
        if self._position > 0:
            self._position -= 1

    def jump_to(self, index: int) -> None:
        self._ensure_mutable()
        if not 0 <= index < len(self._items):
            raise OutOfRangeError(f"Question index {index} out of range")
        self._position = index

    def complete(self, clock: Callable[[], datetime] = utcnow) -> datetime:
        """Freeze the session and stamp its completion time."""
        self._ensure_mutable()
        self._completed_at = clock()
        return self._completed_at

    def _index_of(self, question_id: int) -> int:
        try:
            return self._positions[question_id]
        except KeyError:
            raise OutOfRangeError(f"Unknown question id {question_id}") from None

    def _ensure_mutable(self) -> None:
        if self._completed_at is not None:
            raise SessionFrozenError("Session has been submitted and can no longer change.")
