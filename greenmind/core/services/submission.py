"""Sends computed results to the server with bounded exponential backoff."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
import logging
from threading import Event
import time
from typing import Any, Protocol
from uuid import uuid4

import httpx

from greenmind.constants.network_constants import SUBMIT_PATH
from greenmind.constants.quiz_constants import (
    DEFAULT_SUBMISSION_DIFFICULTY,
    SUBMIT_BASE_DELAY_SECONDS,
    SUBMIT_MAX_RETRIES,
    SUBMIT_MAX_RETRY_AFTER_SECONDS,
    SUBMIT_TIMEOUT_SECONDS,
)
from greenmind.core.errors import (
    RateLimitedError,
    RemoteRejectionError,
    TransientTransportError,
)
from greenmind.core.models import Result

logger = logging.getLogger(__name__)


class SubmissionStatus(Enum):
    ACCEPTED = auto()
    REJECTED_VALIDATION = auto()
    TRANSIENT_FAILURE = auto()
    RATE_LIMITED = auto()
    CANCELLED = auto()


@dataclass(slots=True, frozen=True)
class SubmissionOutcome:
    status: SubmissionStatus
    attempts: int
    response: dict[str, Any] | None = None
    errors: list[dict[str, str]] = field(default_factory=list)
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status is SubmissionStatus.ACCEPTED

    @property
    def retryable(self) -> bool:
        return self.status in (SubmissionStatus.TRANSIENT_FAILURE, SubmissionStatus.RATE_LIMITED)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """``max_retries`` extra attempts after the first, delays doubling from ``base_delay``."""

    max_retries: int = SUBMIT_MAX_RETRIES
    base_delay: float = SUBMIT_BASE_DELAY_SECONDS
    max_retry_after: float = SUBMIT_MAX_RETRY_AFTER_SECONDS

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    def rate_limit_delay(self, retry_after: float | None, attempt: int) -> float:
        """Server-requested wait, bounded by ``max_retry_after``."""
        if retry_after is None:
            return self.delay_for(attempt)
        return min(retry_after, self.max_retry_after)


def generate_session_id() -> str:
    return uuid4().hex


def build_payload(
    result: Result,
    session_id: str,
    difficulty: str = DEFAULT_SUBMISSION_DIFFICULTY,
) -> dict[str, Any]:
    """JSON-ready wire shape of a result."""
    payload: dict[str, Any] = {
        "score": result.score_percent,
        "totalQuestions": result.total_count,
        "correctAnswers": result.correct_count,
        "categories": {
            name: {"correct": tally.correct, "total": tally.total}
            for name, tally in result.category_breakdown.items()
        },
        "difficulty": difficulty,
        "sessionId": session_id,
    }
    if result.elapsed_seconds is not None:
        payload["timeTaken"] = result.elapsed_seconds
    return payload


class SubmissionTransport(Protocol):
    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Deliver ``payload``; raise a TransportError subclass on failure."""
        ...


class HttpSubmissionTransport:
    """Posts payloads to the quiz API over HTTP."""

    def __init__(
        self,
        base_url: str = "",
        client: httpx.Client | None = None,
        timeout: float = SUBMIT_TIMEOUT_SECONDS,
        path: str = SUBMIT_PATH,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._path = path

    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(self._path, json=payload)
        except httpx.HTTPError as exc:
            raise TransientTransportError(f"Request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError("Too many submissions", retry_after=_retry_after(response))
        if response.status_code >= 500:
            raise TransientTransportError(f"Server error {response.status_code}")
        if response.is_error:
            body = _json_or_empty(response)
            raise RemoteRejectionError(
                body.get("message") or f"HTTP error {response.status_code}",
                errors=_rejection_errors(body),
            )
        return _json_or_empty(response)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _rejection_errors(body: dict[str, Any]) -> list[dict[str, str]]:
    errors = body.get("errors")
    if isinstance(errors, list):
        return [e for e in errors if isinstance(e, dict)]
    detail = body.get("detail")
    if detail:
        return [{"field": "payload", "reason": str(detail)}]
    return []


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


class SubmissionClient:
    """Delivers one payload, retrying transient failures.

    A rejection is returned immediately; transient and rate-limit failures are
    retried up to ``policy.max_retries`` times. Setting ``cancel`` stops the
    loop before the next attempt or during a backoff wait.
    """

    def __init__(
        self,
        transport: SubmissionTransport,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._transport = transport
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def submit(self, payload: dict[str, Any], cancel: Event | None = None) -> SubmissionOutcome:
        status = SubmissionStatus.TRANSIENT_FAILURE
        message: str | None = None
        attempts = 0

        for attempt in range(self._policy.max_retries + 1):
            if cancel is not None and cancel.is_set():
                return SubmissionOutcome(SubmissionStatus.CANCELLED, attempts, message="Submission abandoned")

            attempts += 1
            try:
                response = self._transport.send(payload)
            except RemoteRejectionError as exc:
                logger.warning("Submission rejected: %s", exc)
                return SubmissionOutcome(
                    SubmissionStatus.REJECTED_VALIDATION,
                    attempts,
                    errors=exc.errors,
                    message=str(exc),
                )
            except RateLimitedError as exc:
                status, message = SubmissionStatus.RATE_LIMITED, str(exc)
                delay = self._policy.rate_limit_delay(exc.retry_after, attempt)
            except TransientTransportError as exc:
                status, message = SubmissionStatus.TRANSIENT_FAILURE, str(exc)
                delay = self._policy.delay_for(attempt)
            else:
                return SubmissionOutcome(SubmissionStatus.ACCEPTED, attempts, response=response)

            if attempt == self._policy.max_retries:
                break
            logger.info("Submission attempt %d failed (%s); retrying in %.1fs", attempts, message, delay)
            if self._wait(delay, cancel):
                return SubmissionOutcome(SubmissionStatus.CANCELLED, attempts, message="Submission abandoned")

        logger.error("Submission failed after %d attempts: %s", attempts, message)
        return SubmissionOutcome(status, attempts, message=message)

    def _wait(self, delay: float, cancel: Event | None) -> bool:
        """Sleep for ``delay``; return True if cancelled meanwhile."""
        if self._sleep is not None:
            self._sleep(delay)
            return cancel is not None and cancel.is_set()
        if cancel is None:
            time.sleep(delay)
            return False
        return cancel.wait(delay)
