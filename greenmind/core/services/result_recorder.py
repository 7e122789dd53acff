"""Append-only store of validated results and the aggregate queries over it."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
import logging
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from greenmind.constants.quiz_constants import (
    ANALYTICS_PERIOD_DAYS,
    DEFAULT_LEADERBOARD_LIMIT,
    DEFAULT_PERIOD_DAYS,
    DEFAULT_RECENT_DAYS,
    LEADERBOARD_PERIOD_DAYS,
    SCORE_BUCKET_BOUNDARIES,
)
from greenmind.core.errors import PersistenceError
from greenmind.core.feedback import PERFORMANCE_LEVELS, performance_level
from greenmind.core.records import PersistedResult, SubmissionRecord, format_elapsed

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class OverallStats:
    total_attempts: int
    average_score: float
    highest_score: int
    lowest_score: int
    average_time: int


@dataclass(slots=True, frozen=True)
class ScoreBucket:
    lower: int
    upper: int
    count: int
    average_time: float | None


@dataclass(slots=True, frozen=True)
class CategoryStat:
    category: str
    total_attempts: int
    average_percentage: float


@dataclass(slots=True, frozen=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    score: int
    correct_answers: int
    total_questions: int
    time_taken: int | None
    submitted_at: datetime

    @property
    def formatted_time(self) -> str:
        return format_elapsed(self.time_taken)


@dataclass(slots=True, frozen=True)
class DailyTrend:
    day: date
    attempts: int
    average_score: float
    min_score: int
    max_score: int
    total_time: int


@dataclass(slots=True, frozen=True)
class TimeSummary:
    average_time: float
    min_time: int
    max_time: int


def period_days(period: str, table: dict[str, int]) -> int | None:
    """Days covered by a named period; ``None`` for "all", 30 when unknown."""
    if period == "all":
        return None
    return table.get(period, DEFAULT_PERIOD_DAYS)


class ResultRecorder(ABC):
    """Immutable event log of accepted results.

    Subclasses supply storage through ``_append`` and ``_load``. Records are
    never updated or deleted. Reads may miss a record appended concurrently.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    # --- Storage hooks ---

    @abstractmethod
    def _append(self, result: PersistedResult) -> None: ...

    @abstractmethod
    def _load(self) -> list[PersistedResult]: ...

    # --- Write path ---

    def record(
        self,
        submission: SubmissionRecord,
        *,
        client_metadata: str | None = None,
    ) -> PersistedResult:
        """Append an already validated submission."""
        persisted = PersistedResult.from_submission(
            submission,
            submitted_at=self._clock(),
            client_metadata=client_metadata,
        )
        try:
            self._append(persisted)
        except OSError as exc:
            logger.error("Failed to persist result %s: %s", persisted.id, exc)
            raise PersistenceError(f"Could not store result: {exc}") from exc
        return persisted

    def all_results(self) -> list[PersistedResult]:
        try:
            return self._load()
        except OSError as exc:
            raise PersistenceError(f"Could not read results: {exc}") from exc

    # --- Aggregate queries ---

    def overall_stats(self) -> OverallStats:
        results = self.all_results()
        if not results:
            return OverallStats(0, 0.0, 0, 0, 0)
        scores = [r.score for r in results]
        times = [r.time_taken for r in results if r.time_taken is not None]
        return OverallStats(
            total_attempts=len(results),
            average_score=round(sum(scores) / len(scores), 2),
            highest_score=max(scores),
            lowest_score=min(scores),
            average_time=round(sum(times) / len(times)) if times else 0,
        )

    def score_distribution(self) -> list[ScoreBucket]:
        bounds = SCORE_BUCKET_BOUNDARIES
        grouped: list[list[PersistedResult]] = [[] for _ in bounds[:-1]]
        for result in self.all_results():
            for index, lower in enumerate(bounds[:-1]):
                upper = bounds[index + 1]
                is_last = index == len(bounds) - 2
                if lower <= result.score < upper or (is_last and result.score == upper):
                    grouped[index].append(result)
                    break
        buckets = []
        for index, members in enumerate(grouped):
            times = [r.time_taken for r in members if r.time_taken is not None]
            buckets.append(
                ScoreBucket(
                    lower=bounds[index],
                    upper=bounds[index + 1],
                    count=len(members),
                    average_time=sum(times) / len(times) if times else None,
                )
            )
        return buckets

    def category_stats(self) -> list[CategoryStat]:
        tallies: dict[str, list[int]] = {}
        for result in self.all_results():
            for name, tally in result.categories.items():
                entry = tallies.setdefault(name, [0, 0, 0])
                entry[0] += 1
                entry[1] += tally.correct
                entry[2] += tally.total
        return [
            CategoryStat(
                category=name,
                total_attempts=attempts,
                average_percentage=round(correct / total * 100, 2) if total else 0.0,
            )
            for name, (attempts, correct, total) in sorted(tallies.items())
        ]

    def performance_levels(self) -> dict[str, int]:
        counts = {level: 0 for level in PERFORMANCE_LEVELS}
        for result in self.all_results():
            counts[performance_level(result.score)] += 1
        return counts

    def recent(self, days: int = DEFAULT_RECENT_DAYS, limit: int | None = None) -> list[PersistedResult]:
        """Results submitted within the last ``days`` days, newest first."""
        results = self._since(self._clock() - timedelta(days=days))
        results.sort(key=lambda r: r.submitted_at, reverse=True)
        return results if limit is None else results[:limit]

    def leaderboard(self, limit: int = DEFAULT_LEADERBOARD_LIMIT, period: str = "all") -> list[LeaderboardRow]:
        """Best score first; equal scores rank the faster completion higher."""
        days = period_days(period, LEADERBOARD_PERIOD_DAYS)
        if days is None:
            results = self.all_results()
        else:
            results = self._since(self._clock() - timedelta(days=days))
        ordered = sorted(
            results,
            key=lambda r: (-r.score, r.time_taken is None, r.time_taken or 0, r.submitted_at),
        )
        return [
            LeaderboardRow(
                rank=rank,
                score=r.score,
                correct_answers=r.correct_answers,
                total_questions=r.total_questions,
                time_taken=r.time_taken,
                submitted_at=r.submitted_at,
            )
            for rank, r in enumerate(ordered[:limit], start=1)
        ]

    def daily_trend(self, period: str = "month") -> list[DailyTrend]:
        days = period_days(period, ANALYTICS_PERIOD_DAYS) or DEFAULT_PERIOD_DAYS
        by_day: dict[date, list[PersistedResult]] = {}
        for result in self._since(self._clock() - timedelta(days=days)):
            by_day.setdefault(result.submitted_at.date(), []).append(result)
        trend = []
        for day in sorted(by_day):
            scores = [r.score for r in by_day[day]]
            trend.append(
                DailyTrend(
                    day=day,
                    attempts=len(scores),
                    average_score=round(sum(scores) / len(scores), 2),
                    min_score=min(scores),
                    max_score=max(scores),
                    total_time=sum(r.time_taken or 0 for r in by_day[day]),
                )
            )
        return trend

    def time_summary(self, period: str = "month") -> TimeSummary | None:
        days = period_days(period, ANALYTICS_PERIOD_DAYS) or DEFAULT_PERIOD_DAYS
        times = [
            r.time_taken
            for r in self._since(self._clock() - timedelta(days=days))
            if r.time_taken
        ]
        if not times:
            return None
        return TimeSummary(
            average_time=round(sum(times) / len(times), 2),
            min_time=min(times),
            max_time=max(times),
        )

    def export(self, start: datetime | None = None, end: datetime | None = None) -> list[PersistedResult]:
        selected = [
            r
            for r in self.all_results()
            if (start is None or r.submitted_at >= start) and (end is None or r.submitted_at <= end)
        ]
        selected.sort(key=lambda r: r.submitted_at, reverse=True)
        return selected

    def _since(self, cutoff: datetime) -> list[PersistedResult]:
        return [r for r in self.all_results() if r.submitted_at >= cutoff]


class InMemoryResultRecorder(ResultRecorder):
    """Process-local store, used by default and in tests."""

    def __init__(
        self,
        results: Iterable[PersistedResult] = (),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(clock=clock)
        self._lock = Lock()
        self._results: list[PersistedResult] = list(results)

    def _append(self, result: PersistedResult) -> None:
        with self._lock:
            self._results.append(result)

    def _load(self) -> list[PersistedResult]:
        with self._lock:
            return list(self._results)


class JsonLinesResultRecorder(ResultRecorder):
    """Stores one JSON document per line; the file is only ever appended to."""

    def __init__(self, path: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        super().__init__(clock=clock)
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, result: PersistedResult) -> None:
        line = result.model_dump_json(by_alias=True)
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def _load(self) -> list[PersistedResult]:
        if not self._path.exists():
            return []
        with self._lock:
            lines = self._path.read_bytes().splitlines()
        results = []
        for number, raw_line in enumerate(lines, start=1):
            if not raw_line.strip():
                continue
            try:
                results.append(PersistedResult.model_validate_json(raw_line.decode("utf-8")))
            except (UnicodeDecodeError, ValidationError):
                logger.warning("Skipping unreadable result on line %d of %s", number, self._path)
        return results
