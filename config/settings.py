"""
Configuration settings for the Grouper planning service.
All sensitive values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Grouper Planner"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="production", env="ENVIRONMENT")

    # Server
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8000, env="PORT")

    # Database (PostgreSQL, or sqlite+aiosqlite for local runs)
    database_url: str = Field(default="", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    db_pool_size: int = Field(default=5, env="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, env="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, env="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, env="DB_POOL_RECYCLE")

    # Generation backend (OpenAI Responses API)
    openai_api_key: str = Field(default="", env="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, env="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", env="OPENAI_MODEL")
    openai_timeout_ms: int = Field(default=150000, env="OPENAI_TIMEOUT_MS")
    use_ai_stub: bool = Field(default=False, env="USE_AI_STUB")

    # Planning limits
    max_assignment_length: int = Field(default=18000, env="MAX_ASSIGNMENT_LENGTH")
    max_group_size: int = Field(default=12, env="MAX_GROUP_SIZE")

    # Join codes
    join_code_length: int = Field(default=6, env="JOIN_CODE_LENGTH")
    join_code_max_attempts: int = Field(default=5, env="JOIN_CODE_MAX_ATTEMPTS")
    join_code_escalate_after: int = Field(default=3, env="JOIN_CODE_ESCALATE_AFTER")
    join_code_fallback_length: int = Field(default=8, env="JOIN_CODE_FALLBACK_LENGTH")
    join_code_reuse_window_days: int = Field(default=30, env="JOIN_CODE_REUSE_WINDOW_DAYS")

    # Identity service (bearer token -> user lookup)
    identity_url: str = Field(default="", env="IDENTITY_URL")
    identity_api_key: str = Field(default="", env="IDENTITY_API_KEY")

    # Diagnostics: must be set before a request's debug_skip_openai flag is honoured
    allow_debug_skip_openai: bool = Field(default=False, env="ALLOW_DEBUG_SKIP_OPENAI")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
