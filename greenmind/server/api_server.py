"""FastAPI server exposing quiz submission and result statistics."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
import uvicorn

from greenmind.constants.about import APP_NAME, APP_VERSION
from greenmind.constants.network_constants import API_PREFIX, DEFAULT_HOST, DEFAULT_PORT
from greenmind.constants.quiz_constants import (
    ANALYTICS_PERIOD_DAYS,
    CLIENT_METADATA_MAX_LENGTH,
    DEFAULT_LEADERBOARD_LIMIT,
    DEFAULT_RECENT_DAYS,
    DEFAULT_RECENT_LIMIT,
    LEADERBOARD_PERIOD_DAYS,
    WEEKLY_WINDOW_DAYS,
)
from greenmind.core.errors import PersistenceError, SubmissionRejected
from greenmind.core.feedback import category_performance, performance_level, performance_message
from greenmind.core.result_export import to_csv, to_json
from greenmind.core.services.consistency_validator import validate_submission
from greenmind.core.services.result_recorder import LeaderboardRow, ResultRecorder

logger = logging.getLogger(__name__)


def _get_recorder_dependency(recorder: ResultRecorder):
    def dependency() -> ResultRecorder:
        return recorder

    return dependency


def _client_metadata(payload: dict[str, Any], request: Request) -> str | None:
    metadata = payload.get("clientMetadata")
    if not isinstance(metadata, str) or not metadata.strip():
        metadata = request.headers.get("user-agent")
    if not metadata:
        return None
    return metadata.strip()[:CLIENT_METADATA_MAX_LENGTH]


def _leaderboard_entry(row: LeaderboardRow) -> dict[str, object]:
    return {
        "rank": row.rank,
        "score": row.score,
        "correctAnswers": row.correct_answers,
        "totalQuestions": row.total_questions,
        "timeTaken": row.time_taken,
        "formattedTime": row.formatted_time,
        "completedAt": row.submitted_at.isoformat(),
    }


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _unavailable(exc: PersistenceError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(exc), headers={"Retry-After": "1"})


def create_api_app(recorder: ResultRecorder) -> FastAPI:
    """Create a FastAPI application wired to the provided result recorder."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    recorder_dep = _get_recorder_dependency(recorder)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(f"{API_PREFIX}/submit", status_code=201)
    def submit_result(
        request: Request,
        payload: dict[str, Any] = Body(...),
        store: ResultRecorder = Depends(recorder_dep),
    ) -> Any:
        try:
            record = validate_submission(payload)
        except SubmissionRejected as exc:
            logger.info("Rejected quiz submission: %s", ", ".join(exc.fields))
            return JSONResponse(
                status_code=400,
                content={
                    "status": "error",
                    "message": "Validation failed",
                    "errors": exc.to_payload(),
                },
            )

        try:
            persisted = store.record(record, client_metadata=_client_metadata(payload, request))
        except PersistenceError as exc:
            raise _unavailable(exc) from exc

        logger.info(
            "Quiz completed - Score: %d%% (%d/%d) - Time: %s",
            persisted.score,
            persisted.correct_answers,
            persisted.total_questions,
            persisted.formatted_time,
        )
        categories = category_performance(persisted.categories)
        return {
            "status": "success",
            "message": "Quiz results saved successfully!",
            "data": {
                "id": persisted.id,
                "score": persisted.score,
                "correctAnswers": persisted.correct_answers,
                "totalQuestions": persisted.total_questions,
                "performance": {
                    "level": performance_level(persisted.score),
                    "message": performance_message(persisted.score),
                    "categories": {name: asdict(value) for name, value in categories.items()},
                },
                "completedAt": persisted.submitted_at.isoformat(),
                "formattedTime": persisted.formatted_time,
            },
        }

    @app.get(f"{API_PREFIX}/stats")
    def get_stats(store: ResultRecorder = Depends(recorder_dep)) -> dict[str, object]:
        try:
            overall = store.overall_stats()
            distribution = store.score_distribution()
            categories = store.category_stats()
            levels = store.performance_levels()
            this_week = len(store.recent(WEEKLY_WINDOW_DAYS))
        except PersistenceError as exc:
            raise _unavailable(exc) from exc
        return {
            "status": "success",
            "data": {
                "overall": {
                    "totalAttempts": overall.total_attempts,
                    "averageScore": overall.average_score,
                    "highestScore": overall.highest_score,
                    "lowestScore": overall.lowest_score,
                    "averageTime": overall.average_time,
                    "thisWeekAttempts": this_week,
                },
                "scoreDistribution": [
                    {
                        "range": [bucket.lower, bucket.upper],
                        "count": bucket.count,
                        "averageTime": bucket.average_time,
                    }
                    for bucket in distribution
                ],
                "categoryStats": [
                    {
                        "category": stat.category,
                        "totalAttempts": stat.total_attempts,
                        "averagePercentage": stat.average_percentage,
                    }
                    for stat in categories
                ],
                "performanceLevels": levels,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
        }

    @app.get(f"{API_PREFIX}/recent")
    def get_recent(
        days: int = Query(DEFAULT_RECENT_DAYS, ge=1, le=3650),
        limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=100),
        store: ResultRecorder = Depends(recorder_dep),
    ) -> dict[str, object]:
        try:
            results = store.recent(days, limit)
        except PersistenceError as exc:
            raise _unavailable(exc) from exc
        return {
            "status": "success",
            "data": {"results": to_json(results), "count": len(results), "period": f"{days} days"},
        }

    @app.get(f"{API_PREFIX}/leaderboard")
    def get_leaderboard(
        limit: int = Query(DEFAULT_LEADERBOARD_LIMIT, ge=1, le=100),
        period: str = Query("all"),
        store: ResultRecorder = Depends(recorder_dep),
    ) -> dict[str, object]:
        if period != "all" and period not in LEADERBOARD_PERIOD_DAYS:
            raise HTTPException(status_code=422, detail=f"Unknown period '{period}'.")
        try:
            rows = store.leaderboard(limit, period)
        except PersistenceError as exc:
            raise _unavailable(exc) from exc
        return {
            "status": "success",
            "data": {
                "leaderboard": [_leaderboard_entry(row) for row in rows],
                "period": period,
                "count": len(rows),
            },
        }

    @app.get(f"{API_PREFIX}/analytics")
    def get_analytics(
        period: str = Query("month"),
        store: ResultRecorder = Depends(recorder_dep),
    ) -> dict[str, object]:
        if period not in ANALYTICS_PERIOD_DAYS:
            raise HTTPException(status_code=422, detail=f"Unknown period '{period}'.")
        try:
            trend = store.daily_trend(period)
            times = store.time_summary(period)
        except PersistenceError as exc:
            raise _unavailable(exc) from exc
        return {
            "status": "success",
            "data": {
                "period": period,
                "dailyTrend": [
                    {
                        "date": day.day.isoformat(),
                        "attempts": day.attempts,
                        "averageScore": day.average_score,
                        "minScore": day.min_score,
                        "maxScore": day.max_score,
                        "totalTime": day.total_time,
                    }
                    for day in trend
                ],
                "timeAnalysis": (
                    {
                        "averageTime": times.average_time,
                        "minTime": times.min_time,
                        "maxTime": times.max_time,
                    }
                    if times is not None
                    else {}
                ),
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
        }

    @app.get(f"{API_PREFIX}/export")
    def export_results(
        export_format: str = Query("json", alias="format", pattern="^(json|csv)$"),
        start: datetime | None = Query(None),
        end: datetime | None = Query(None),
        store: ResultRecorder = Depends(recorder_dep),
    ) -> Any:
        start_utc, end_utc = _as_utc(start), _as_utc(end)
        if start_utc and end_utc and start_utc > end_utc:
            raise HTTPException(status_code=422, detail="start must not be after end.")
        try:
            results = store.export(start_utc, end_utc)
        except PersistenceError as exc:
            raise _unavailable(exc) from exc

        if export_format == "csv":
            return Response(
                content=to_csv(results),
                media_type="text/csv",
                headers={"Content-Disposition": 'attachment; filename="quiz-results.csv"'},
            )
        period = "all time"
        if start_utc and end_utc:
            period = f"{start_utc.date().isoformat()} to {end_utc.date().isoformat()}"
        return {
            "status": "success",
            "data": {
                "results": to_json(results),
                "count": len(results),
                "exportedAt": datetime.now(timezone.utc).isoformat(),
                "period": period,
            },
        }

    return app


def run_api_server(
    recorder: ResultRecorder,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API in the current thread until interrupted."""
    app = create_api_app(recorder)
    uvicorn.run(app, host=host, port=port, log_level="info")

