from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "File Tracker"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:5173,http://localhost:3000"
    LOG_LEVEL: str = "info"

    # Database
    DATABASE_URL: str = "sqlite:///./file_tracker.db"

    # Authentication & Security
    JWT_SECRET_KEY: str = "<your-jwt-secret-key>"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # MinIO Object Storage
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "<your-minio-access-key>"
    MINIO_SECRET_KEY: str = "<your-minio-secret-key>"
    MINIO_BUCKET_NAME: str = "file-tracker"
    MINIO_SECURE: bool = False

    # Redis & Celery
    REDIS_PASSWORD: str = "<your-redis-password>"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Status fan-out
    FANOUT_DEADLINE_SECONDS: float = 5.0
    RECONCILIATION_BATCH_SIZE: int = 200
    RECONCILIATION_MAX_ATTEMPTS: int = 8
    RECONCILIATION_RETRY_BACKOFF_SECONDS: int = 60
    RECONCILIATION_RETRY_BACKOFF_MAX_SECONDS: int = 6 * 60 * 60

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
