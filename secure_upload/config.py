from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Info
    PROJECT_NAME: str = "Secure Upload API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = Field(default="development", description="Environment: development, staging, production")

    # Storage backing
    STORAGE_BACKEND: str = Field(default="sql", description="Repository backing: sql or memory")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/secure_upload.db",
        description="Database URL (SQLite or PostgreSQL)"
    )
    DB_POOL_SIZE: int = Field(default=5, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Database max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time in seconds")
    DB_AUTO_CREATE: bool = Field(default=True, description="Create missing tables on startup")

    # Security - JWT (tokens are issued by the identity provider, only decoded here)
    SECRET_KEY: str = Field(..., description="Secret key used to verify bearer tokens")
    ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, description="Lifetime of tokens minted by scripts/")

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters')
        return v

    @field_validator('STORAGE_BACKEND')
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("sql", "memory"):
            raise ValueError('STORAGE_BACKEND must be "sql" or "memory"')
        return v

    # Security - CORS
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins"
    )

    # File Storage
    UPLOAD_DIR: str = Field(default="./uploads", description="Directory for file uploads")
    MAX_FILE_SIZE: int = Field(default=10485760, description="Default max file size in bytes (10MB)")
    MAX_REQUEST_SIZE: int = Field(default=209715200, description="Max request body size in bytes (200MB)")
    MAX_FILES_PER_SUBMISSION: int = Field(default=20, description="Max files accepted by one submission")
    FILE_WRITE_TIMEOUT: int = Field(default=60, description="Seconds allowed for writing one uploaded file")
    ALLOWED_FILE_TYPES: List[str] = Field(
        default=[
            "application/pdf",
            "image/jpeg",
            "image/jpg",
            "image/png",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ],
        description="MIME types accepted for files without a specific document type"
    )

    # Upload Links
    LINK_DEFAULT_EXPIRATION_DAYS: int = Field(default=30, description="Default upload link lifetime in days")
    LINK_EXPIRING_SOON_DAYS: int = Field(default=3, description="Window used by the dashboard expiring-soon count")

    # Server Configuration
    WORKERS: int = Field(default=4, description="Number of Uvicorn workers")
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: str = Field(default="./logs", description="Directory for log files")
    LOG_RETENTION_DAYS: int = Field(default=30, description="Number of days to keep log files")
    LOG_MASK_SENSITIVE: bool = Field(default=True, description="Enable sensitive data masking in logs")
    LOG_ENABLE_REQUEST_LOGGING: bool = Field(default=True, description="Enable HTTP request/response logging")

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT: str = Field(default="100/minute", description="Default rate limit")
    RATE_LIMIT_PUBLIC: str = Field(default="30/minute", description="Rate limit for public link/session endpoints")
    RATE_LIMIT_SUBMIT: str = Field(default="10/minute", description="Rate limit for submissions")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="Rate limit storage URI")

    def get_log_level(self) -> str:
        """Get log level based on environment."""
        if self.ENVIRONMENT.lower() in ["development", "dev", "test"]:
            return "DEBUG"
        return self.LOG_LEVEL.upper()

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ["production", "prod"]


settings = Settings()
