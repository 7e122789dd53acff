"""Exception hierarchy shared by the client, validator and server."""

from __future__ import annotations


class GreenMindError(Exception):
    """Base class for all quiz errors."""


class OutOfRangeError(GreenMindError, IndexError):
    """Raised when a question or option index is outside its valid range."""


class InvalidBankError(GreenMindError, ValueError):
    """Raised when a question bank is empty or contains a malformed item."""


class SessionFrozenError(GreenMindError, RuntimeError):
    """Raised when a submitted session is mutated."""


class SubmissionInProgressError(GreenMindError, RuntimeError):
    """Raised when a second submission starts before the first one settled."""


class RangeError(GreenMindError, ValueError):
    """A single field of a submitted result failed validation."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_payload(self) -> dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class SubmissionRejected(GreenMindError):
    """All validation failures found for one submitted result."""

    def __init__(self, errors: list[RangeError]) -> None:
        fields = ", ".join(error.field for error in errors)
        super().__init__(f"Submission rejected ({fields})")
        self.errors = list(errors)

    @property
    def fields(self) -> list[str]:
        return [error.field for error in self.errors]

    def to_payload(self) -> list[dict[str, str]]:
        return [error.to_payload() for error in self.errors]


class PersistenceError(GreenMindError):
    """Storage failure while recording or reading results. Safe to retry."""


class TransportError(GreenMindError):
    """Base class for failures while sending a result to the server."""


class TransientTransportError(TransportError):
    """Network failure or server-side error; retry with backoff."""


class RateLimitedError(TransportError):
    """Server asked the client to slow down."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RemoteRejectionError(TransportError):
    """Server refused the payload; resending it unchanged will fail again."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
