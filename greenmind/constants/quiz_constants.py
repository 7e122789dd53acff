"""Quiz-related constants shared across the client, validator and server."""

DIFFICULTY_LEVELS: tuple[str, ...] = ("easy", "medium", "hard")
SUBMISSION_DIFFICULTIES: tuple[str, ...] = DIFFICULTY_LEVELS + ("mixed",)
DEFAULT_SUBMISSION_DIFFICULTY: str = "mixed"

UNANSWERED_LABEL: str = "unanswered"

SCORE_TOLERANCE: int = 1
MAX_TOTAL_QUESTIONS: int = 50
MIN_ELAPSED_SECONDS: int = 1
MAX_ELAPSED_SECONDS: int = 3600
CLIENT_METADATA_MAX_LENGTH: int = 500

SCORE_BUCKET_BOUNDARIES: tuple[int, ...] = (0, 20, 40, 60, 80, 100)

LEADERBOARD_PERIOD_DAYS: dict[str, int] = {"week": 7, "month": 30, "year": 365}
ANALYTICS_PERIOD_DAYS: dict[str, int] = {"week": 7, "month": 30, "quarter": 90, "year": 365}
DEFAULT_PERIOD_DAYS: int = 30
DEFAULT_RECENT_DAYS: int = 30
DEFAULT_RECENT_LIMIT: int = 10
DEFAULT_LEADERBOARD_LIMIT: int = 10
WEEKLY_WINDOW_DAYS: int = 7

SUBMIT_MAX_RETRIES: int = 3
SUBMIT_BASE_DELAY_SECONDS: float = 1.0
SUBMIT_TIMEOUT_SECONDS: float = 30.0
SUBMIT_MAX_RETRY_AFTER_SECONDS: float = 60.0

ATTEMPT_HISTORY_LIMIT: int = 10
TREND_WINDOW: int = 3
TREND_MARGIN_POINTS: int = 5
