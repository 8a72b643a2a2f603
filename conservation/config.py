"""
Configuration management using Pydantic Settings.
Loads environment variables from .env file with validation.
"""

from pathlib import Path
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Fireworks AI Configuration
    fireworks_api_key: Optional[str] = Field(
        default=None,
        description="Fireworks AI API key"
    )
    fireworks_llm_model: str = Field(
        default="accounts/fireworks/models/llama-v3p3-70b-instruct",
        description="Model used for extraction and outreach messages"
    )
    llm_max_attempts: int = Field(
        default=2,
        description="Attempts per generative-text call (transient errors only)"
    )
    llm_retry_delay_seconds: float = Field(
        default=1.5,
        description="Linear backoff step between attempts"
    )

    # MongoDB Configuration
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    mongodb_database: str = Field(
        default="agent_conservation",
        description="MongoDB database name"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    app_url: str = Field(
        default="http://localhost:3000",
        description="Agent dashboard URL used in confirmation emails"
    )

    # Logging
    log_level: str = Field(default="INFO")

    # Identity provider tokens
    identity_jwt_secret: Optional[str] = Field(
        default=None,
        description="Key used to verify agent identity tokens"
    )
    identity_jwt_algorithm: str = Field(default="HS256")
    identity_jwt_audience: Optional[str] = Field(default=None)

    # Scheduled sweep
    cron_secret: Optional[str] = Field(
        default=None,
        description="Shared secret expected as 'Bearer <secret>' on cron calls"
    )

    # Twilio SMS
    twilio_account_sid: Optional[str] = Field(default=None)
    twilio_auth_token: Optional[str] = Field(default=None)
    twilio_phone_number: Optional[str] = Field(
        default=None,
        description="Default sender number when an agent has none provisioned"
    )

    # Expo push gateway
    expo_push_url: str = Field(default="https://exp.host/--/api/v2/push/send")
    push_timeout_seconds: float = Field(default=10.0)

    # Resend email
    resend_api_key: Optional[str] = Field(default=None)
    confirmation_from_address: str = Field(
        default="AgentForLife <support@agentforlife.app>"
    )

    @property
    def project_root(self) -> Path:
        """Get project root directory."""
        return Path(__file__).parent.parent

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token)

    class Config:
        env_file = Path(__file__).parent.parent / ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
