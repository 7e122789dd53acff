from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from greenmind.core.errors import TransportError
from greenmind.core.models import QuizItem
from greenmind.core.question_bank import QuestionBank


def build_synthetic_bank(
    *,
    categories: list[str] | None = None,
    per_category: int = 2,
    option_count: int = 4,
) -> QuestionBank:
    """Create a deterministic bank; every item's correct option is index 0."""

    items: list[QuizItem] = []
    next_id = 1
    for category in categories or ["Recycling", "Water Conservation"]:
        for idx in range(per_category):
            items.append(
                QuizItem(
                    id=next_id,
                    category=category,
                    prompt=f"{category} question #{idx}",
                    options=tuple(f"Option {n}" for n in range(option_count)),
                    correct_option_index=0,
                    difficulty="easy",
                    explanation=f"Explanation {next_id}",
                )
            )
            next_id += 1
    return QuestionBank(items)


class StepClock:
    """Deterministic clock advancing by ``step`` on every call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=30)) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ScriptedTransport:
    """Replays queued responses or errors, recording each payload it receives."""

    def __init__(self, *steps: dict | TransportError) -> None:
        self.steps = list(steps)
        self.payloads: list[dict] = []

    def send(self, payload: dict) -> dict:
        self.payloads.append(payload)
        step = self.steps.pop(0) if self.steps else {"status": "success"}
        if isinstance(step, TransportError):
            raise step
        return step


@pytest.fixture
def synthetic_bank() -> QuestionBank:
    return build_synthetic_bank()


@pytest.fixture
def clock() -> StepClock:
    return StepClock()
