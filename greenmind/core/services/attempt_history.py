"""Client-local history of accepted attempts: best score, average and trend."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum
import logging
from pathlib import Path
from threading import Lock

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from greenmind.constants.quiz_constants import (
    ATTEMPT_HISTORY_LIMIT,
    TREND_MARGIN_POINTS,
    TREND_WINDOW,
)
from greenmind.core.errors import PersistenceError
from greenmind.core.models import Result
from greenmind.core.records import CategoryTally
from greenmind.core.services.quiz_session import utcnow

logger = logging.getLogger(__name__)


class Trend(Enum):
    NOT_ENOUGH_DATA = "Not enough data"
    BUILDING = "Building progress"
    IMPROVING = "Improving"
    DECLINING = "Keep practicing"
    STEADY = "Steady progress"


class Attempt(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    score: int
    correct_answers: int = Field(alias="correctAnswers")
    total_questions: int = Field(alias="totalQuestions")
    time_taken: int | None = Field(default=None, alias="timeTaken")
    completed_at: datetime = Field(alias="completedAt")
    categories: dict[str, CategoryTally] = Field(default_factory=dict)


class _Snapshot(BaseModel):
    attempts: list[Attempt] = Field(default_factory=list)
    best_score: int = Field(default=0, alias="bestScore")

    model_config = ConfigDict(populate_by_name=True)


def _mean(scores: list[int]) -> float:
    return sum(scores) / len(scores)


class AttemptHistory:
    """Most recent attempts of this client, newest last.

    Only the last ``limit`` attempts are kept, but the best score survives
    trimming. With a ``path`` the history is written to a JSON file after
    every change and reloaded on construction.
    """

    def __init__(
        self,
        path: Path | None = None,
        limit: int = ATTEMPT_HISTORY_LIMIT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._limit = limit
        self._clock = clock
        self._lock = Lock()
        snapshot = self._read()
        self._attempts: list[Attempt] = snapshot.attempts[-limit:]
        self._best_score = snapshot.best_score

    @property
    def attempts(self) -> tuple[Attempt, ...]:
        with self._lock:
            return tuple(self._attempts)

    @property
    def best_score(self) -> int:
        with self._lock:
            return self._best_score

    @property
    def total_attempts(self) -> int:
        with self._lock:
            return len(self._attempts)

    def record(self, result: Result) -> Attempt:
        attempt = Attempt(
            score=result.score_percent,
            correct_answers=result.correct_count,
            total_questions=result.total_count,
            time_taken=result.elapsed_seconds,
            completed_at=self._clock(),
            categories={
                name: CategoryTally(correct=tally.correct, total=tally.total)
                for name, tally in result.category_breakdown.items()
            },
        )
        with self._lock:
            self._attempts.append(attempt)
            del self._attempts[: -self._limit]
            self._best_score = max(self._best_score, attempt.score)
            self._write()
        logger.info("Attempt recorded: %d%% (best %d%%)", attempt.score, self._best_score)
        return attempt

    def average_score(self) -> int:
        """Mean score of the kept attempts, rounded half-up; 0 when empty."""
        with self._lock:
            scores = [a.score for a in self._attempts]
        if not scores:
            return 0
        return (2 * sum(scores) + len(scores)) // (2 * len(scores))

    def improvement_trend(self) -> Trend:
        """Compare the last attempts against the ones just before them."""
        with self._lock:
            scores = [a.score for a in self._attempts]
        if len(scores) < 2:
            return Trend.NOT_ENOUGH_DATA
        recent = scores[-TREND_WINDOW:]
        older = scores[-2 * TREND_WINDOW : -TREND_WINDOW]
        if not older:
            return Trend.BUILDING
        if _mean(recent) > _mean(older) + TREND_MARGIN_POINTS:
            return Trend.IMPROVING
        if _mean(recent) < _mean(older) - TREND_MARGIN_POINTS:
            return Trend.DECLINING
        return Trend.STEADY

    def _read(self) -> _Snapshot:
        if self._path is None or not self._path.exists():
            return _Snapshot()
        try:
            return _Snapshot.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable attempt history %s: %s", self._path, exc)
            return _Snapshot()

    def _write(self) -> None:
        if self._path is None:
            return
        snapshot = _Snapshot(attempts=self._attempts, best_score=self._best_score)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(snapshot.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"Could not store attempt history: {exc}") from exc
