"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All config comes from env vars or .env.backend file."""

    DATABASE_URL: str = "sqlite+aiosqlite:///./backend/data/filedrop.db"
    FILE_STORAGE_PATH: str = "./backend/uploads"
    API_PORT: int = 3001
    CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Upload limits
    DEFAULT_MAX_FILE_SIZE_MB: int = 20  # seeds the maxFileSizeMB setting, fallback if unreadable
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024
    UPLOAD_RATE_LIMIT: int = 30  # uploads per client per window, 0 disables
    UPLOAD_RATE_WINDOW_SECONDS: float = 60.0

    # Admin area (demo credentials, replace the verifier for real deployments)
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "password"

    class Config:
        env_file = ".env.backend"
        env_file_encoding = "utf-8"


settings = Settings()
