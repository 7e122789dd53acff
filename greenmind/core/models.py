"""Domain models for the quiz application."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(slots=True, frozen=True)
class QuizItem:
    """Multiple-choice question loaded once at startup."""

    id: int
    category: str
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    difficulty: str = "medium"
    explanation: str = ""

    @property
    def correct_option_text(self) -> str:
        return self.options[self.correct_option_index]


@dataclass(slots=True)
class AnswerState:
    """Selection held for one question within one session."""

    selected_option_index: int | None = None

    @property
    def answered(self) -> bool:
        return self.selected_option_index is not None


@dataclass(slots=True, frozen=True)
class CategoryScore:
    correct: int = 0
    total: int = 0


@dataclass(slots=True, frozen=True)
class QuestionDetail:
    """Per-question line of a result, in bank order."""

    question_number: int
    prompt: str
    category: str
    chosen_text: str
    correct_text: str
    is_correct: bool
    explanation: str


@dataclass(slots=True, frozen=True)
class Result:
    """Aggregate outcome of one quiz attempt."""

    score_percent: int
    correct_count: int
    total_count: int
    elapsed_seconds: int | None = None
    category_breakdown: Mapping[str, CategoryScore] = field(default_factory=dict)
    per_question_detail: tuple[QuestionDetail, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "category_breakdown", MappingProxyType(dict(self.category_breakdown)))
