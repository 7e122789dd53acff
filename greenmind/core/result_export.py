"""Helpers to export recorded results in JSON/CSV formats."""

from __future__ import annotations

from collections.abc import Iterable
import csv
import io
from typing import Any

from greenmind.core.feedback import performance_level
from greenmind.core.records import PersistedResult

_FIELDS: tuple[str, ...] = (
    "date",
    "score",
    "correct_answers",
    "total_questions",
    "time_taken",
    "performance_level",
)


def result_to_json(result: PersistedResult) -> dict[str, Any]:
    """Public view of a stored result; client metadata is never exported."""
    body = result.model_dump(mode="json", by_alias=True, exclude={"client_metadata"})
    body["formattedTime"] = result.formatted_time
    body["performanceLevel"] = performance_level(result.score)
    return body


def to_json(results: Iterable[PersistedResult]) -> list[dict[str, Any]]:
    return [result_to_json(result) for result in results]


def to_csv(results: Iterable[PersistedResult]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for result in results:
        writer.writerow(
            {
                "date": result.submitted_at.isoformat(),
                "score": result.score,
                "correct_answers": result.correct_answers,
                "total_questions": result.total_questions,
                "time_taken": "N/A" if result.time_taken is None else result.time_taken,
                "performance_level": performance_level(result.score),
            }
        )
    return buf.getvalue()


__all__ = ["result_to_json", "to_json", "to_csv"]
