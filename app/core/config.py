import os
import logging
from dotenv import load_dotenv
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings
from typing import ClassVar, List, Optional

# Load environment variables from .env file
load_dotenv(".env", override=True)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Class to store all the settings of the Taskly application."""

    # ------------------------------
    # Server
    # ------------------------------
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    PORT: int = Field(default=5000, env="PORT")
    CLIENT_URL: str = Field(default="http://localhost:5173", env="CLIENT_URL")
    CORS_ORIGINS: List[str] = Field(default=["*"], env="CORS_ORIGINS")

    # ------------------------------
    # Database
    # ------------------------------
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./taskly.db", env="DATABASE_URL")
    DATABASE_ECHO: bool = Field(default=False, env="DATABASE_ECHO")

    # ------------------------------
    # Auth - Required
    # ------------------------------
    SECRET_KEY: str = Field(env="SECRET_KEY")
    ALGORITHM: str = Field(default="HS256", env="ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7, env="ACCESS_TOKEN_EXPIRE")
    SESSION_SECRET_KEY: str = Field(default="dev-session-secret", env="SESSION_SECRET_KEY")

    # ------------------------------
    # Rate limiting (per 15 minute window)
    # ------------------------------
    RATE_LIMIT_ENABLED: bool = Field(default=True, env="RATE_LIMIT_ENABLED")
    RATE_LIMIT_GENERAL: str = Field(default="100 per 15 minutes", env="RATE_LIMIT_GENERAL")
    RATE_LIMIT_AUTH: Optional[str] = Field(default=None, env="RATE_LIMIT_AUTH")
    RATE_LIMIT_USER: str = Field(default="50 per 15 minutes", env="RATE_LIMIT_USER")

    # ------------------------------
    # AWS - Optional (avatar uploads, S3)
    # ------------------------------
    AWS_ACCESS_KEY_ID: str = Field(default="", env="AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str = Field(default="", env="AWS_SECRET_ACCESS_KEY")
    AWS_S3_BUCKET: str = Field(default="", env="AWS_S3_BUCKET")
    AWS_REGION: str = Field(default="us-east-1", env="AWS_REGION")
    AWS_S3_BASE_URL: str = Field(default="", env="AWS_S3_BASE_URL")
    DEFAULT_AVATAR_URL: str = Field(default="", env="DEFAULT_AVATAR_URL")

    # ------------------------------
    # Email - Optional
    # ------------------------------
    RESEND_API_KEY: str = Field(default="", env="RESEND_API_KEY")
    RESEND_API_URL: str = Field(default="https://api.resend.com/emails", env="RESEND_API_URL")
    EMAIL_FROM: str = Field(default="Taskly <onboarding@resend.dev>", env="EMAIL_FROM")
    EMAIL_MAX_RETRIES: int = Field(default=3, env="EMAIL_MAX_RETRIES")

    # ------------------------------
    # Collaboration limits
    # ------------------------------
    TEAM_MAX_MEMBERS: int = Field(default=50, env="TEAM_MAX_MEMBERS")
    INVITATION_EXPIRY_DAYS: int = Field(default=30, env="INVITATION_EXPIRY_DAYS")
    NOTIFICATION_EXPIRY_DAYS: int = Field(default=30, env="NOTIFICATION_EXPIRY_DAYS")

    # ------------------------------
    # Schedulers
    # ------------------------------
    OVERDUE_SWEEP_ENABLED: bool = Field(default=True, env="OVERDUE_SWEEP_ENABLED")
    OVERDUE_SWEEP_INTERVAL_SECONDS: int = Field(default=15 * 60, env="OVERDUE_SWEEP_INTERVAL_SECONDS")
    SEED_ACHIEVEMENTS: bool = Field(default=True, env="SEED_ACHIEVEMENTS")

    # ------------------------------
    # Database models
    # ------------------------------
    DB_MODELS: ClassVar[List[str]] = [
        "app.models.user",
        "app.models.task",
        "app.models.team",
        "app.models.project",
        "app.models.invitation",
        "app.models.notifications",
        "app.models.achievement",
    ]

    # ------------------------------
    # Computed Fields
    # ------------------------------
    @computed_field
    @property
    def AUTH_RATE_LIMIT(self) -> str:
        """Auth endpoints are strict in production and relaxed elsewhere."""
        if self.RATE_LIMIT_AUTH:
            return self.RATE_LIMIT_AUTH
        return "5 per 15 minutes" if self.ENVIRONMENT == "production" else "50 per 15 minutes"

    @computed_field
    @property
    def COOKIE_SECURE(self) -> bool:
        return self.ENVIRONMENT == "production"

    class Config:
        """Configuration for the settings class."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Instantiate the settings
settings = Settings()
