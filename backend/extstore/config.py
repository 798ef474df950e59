from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Extension Store API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENV: str = "dev"  # Environment: "dev", "staging", "prod"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "extension_store"

    # Redis (shared rate-limit counters)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_BACKEND: str = "redis"  # "redis" or "memory" (single process only)

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_RAW_URL: str = "https://raw.githubusercontent.com"
    GITHUB_API_TOKEN: Optional[str] = None  # 5,000 req/h with a token, 60 without
    GITHUB_USER_AGENT: str = "Extension-Store/1.0"
    GITHUB_REQUEST_TIMEOUT_SECONDS: float = 15.0

    # --- Release listing ---
    RELEASES_PER_PAGE: int = 30
    RELEASES_MAX_PAGES: int = 5  # Upper bound on upstream pagination

    # --- Backoff on upstream rate limits ---
    GITHUB_RETRY_MAX_ATTEMPTS: int = 4  # Total attempts, including the first
    GITHUB_RETRY_BASE_SECONDS: float = 1.0  # Exponential multiplier
    GITHUB_RETRY_MAX_WAIT_SECONDS: float = 60.0  # Cap for a single wait

    # --- Artifacts ---
    ARTIFACT_MAX_SIZE_BYTES: int = 50 * 1024 * 1024  # 50MB
    ARTIFACT_DOWNLOAD_TIMEOUT_SECONDS: float = 30.0
    ARTIFACT_DOWNLOAD_DEADLINE_SECONDS: float = 120.0  # whole transfer
    CHANGELOG_MAX_LENGTH: int = 10_000

    # --- Sync ---
    SYNC_VERIFY_EXISTING_DIGESTS: bool = True  # Re-hash known versions to detect tampering
    BULK_SYNC_MAX_WORKERS: int = 2  # Keep small, upstream is rate sensitive
    BULK_SYNC_BUDGET_SECONDS: float = 600.0
    BULK_SYNC_CRON_MINUTE: int = 0  # Hourly, at this minute

    # --- Rate Limiting (public endpoints) ---
    RATE_LIMIT_SYNC_PER_MINUTE: int = 10
    RATE_LIMIT_SUBMISSIONS_PER_HOUR: int = 5

    # --- Review ---
    REVIEW_NOTES_MIN_LENGTH: int = 10
    REVIEW_NOTES_MAX_LENGTH: int = 2000

    # Security
    ADMIN_API_KEY: Optional[str] = None
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    ADMIN_EMAIL_DOMAIN: str = "@bluerobotics.com"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Celery (scheduled bulk sync)
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    CELERY_DEFAULT_QUEUE: str = "store.default"
    CELERY_TASK_SOFT_TIME_LIMIT: int = 900
    CELERY_TASK_TIME_LIMIT: int = 1200

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
