# casetrack/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "CaseTrack"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str
    AUTO_CREATE_TABLES: bool = False

    # JWT Authentication
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # AWS Configuration
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"

    # Attachments
    ATTACHMENT_STORAGE: str = "s3"  # s3 | local
    S3_BUCKET_NAME: str = "casetrack-proceedings"
    ATTACHMENT_S3_PREFIX: str = "proceedings"
    ATTACHMENT_LOCAL_DIR: str = "assets/proceedings"
    ATTACHMENT_MAX_BYTES: int = 250 * 1024

    # Audit trail
    AUDIT_BACKEND: str = "database"  # database | dynamodb
    DYNAMODB_TABLE_NAME: str = "casetrack-audit-trail"
    AUDIT_TTL_DAYS: int = 3 * 365

    # Proceeding sequencing
    SEQUENCE_CONFLICT_RETRIES: int = 3

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    @field_validator("ATTACHMENT_STORAGE", "AUDIT_BACKEND", mode="before")
    @classmethod
    def normalize_backend_name(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


# Create settings instance
settings = Settings()
