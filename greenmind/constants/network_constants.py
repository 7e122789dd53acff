"""Network configuration constants for the quiz application."""

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3000
API_PREFIX: str = "/api/quiz"
SUBMIT_PATH: str = f"{API_PREFIX}/submit"
