from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "https://api.feedback.example.com"
    API_TOKEN: str = ""
    API_VERSION: int = 3
    SDK_VERSION: str = "0.1.0"

    HTTP_CONNECT_TIMEOUT: float = 30.0
    HTTP_READ_TIMEOUT: float = 30.0

    DATABASE_URL: str = "sqlite+aiosqlite:///feedback.db"
    FILES_DIR: str = "feedback_files"

    # Sender id of the local user; remote messages from this sender are outgoing.
    PERSON_ID: str | None = None

    SEND_BACKOFF_BASE_SECONDS: float = 5.0
    SEND_BACKOFF_MAX_SECONDS: float = 300.0
    SEND_MAX_ATTEMPTS: int | None = None
    SEND_RESUME_ON_TIMER: bool = True
    RETRYABLE_CLIENT_STATUSES: list[int] = [408, 429]

    MESSAGE_POLL_INTERVAL_FOREGROUND: float = 8.0
    MESSAGE_POLL_INTERVAL_BACKGROUND: float = 60.0
    MESSAGE_FETCH_PAGE_SIZE: int | None = None

    @property
    def user_agent(self) -> str:
        return f"FeedbackClient/{self.SDK_VERSION} (Python)"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
