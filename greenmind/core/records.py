"""Wire and storage models for submitted results."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class CategoryTally(BaseModel):
    model_config = ConfigDict(frozen=True)

    correct: int
    total: int


class SubmissionRecord(BaseModel):
    """A submitted result that passed the consistency check."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    score: int
    total_questions: int = Field(alias="totalQuestions")
    correct_answers: int = Field(alias="correctAnswers")
    time_taken: int | None = Field(default=None, alias="timeTaken")
    categories: dict[str, CategoryTally] = Field(default_factory=dict)
    difficulty: str = "mixed"
    session_id: str | None = Field(default=None, alias="sessionId")


class PersistedResult(SubmissionRecord):
    """Append-only stored form of a submission."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="submittedAt"
    )
    client_metadata: str | None = Field(default=None, alias="clientMetadata")

    @classmethod
    def from_submission(
        cls,
        record: SubmissionRecord,
        *,
        submitted_at: datetime | None = None,
        client_metadata: str | None = None,
    ) -> "PersistedResult":
        extra: dict[str, object] = {"client_metadata": client_metadata}
        if submitted_at is not None:
            extra["submitted_at"] = submitted_at
        return cls(**record.model_dump(), **extra)

    @property
    def formatted_time(self) -> str:
        return format_elapsed(self.time_taken)


def format_elapsed(seconds: int | None) -> str:
    if not seconds:
        return "Unknown"
    minutes, remainder = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remainder}s"
    return f"{remainder}s"
