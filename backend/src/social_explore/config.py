"""Configuration management."""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(
        default="sqlite:///./social_explore.db",
        description="SQLAlchemy database URL"
    )
    database_timeout: float = Field(
        default=30.0,
        description="Driver query/lock timeout in seconds"
    )

    # Ranking
    suggestion_limit: int = Field(default=8)
    explore_limit: int = Field(default=60)
    mutual_friend_weight: int = Field(default=15)
    category_match_weight: int = Field(default=10)
    explore_include_orphans: bool = Field(
        default=False,
        description="Backfill liked orphan posts into the explore feed"
    )

    # Store retries (connection layer only)
    store_retry_attempts: int = Field(default=3)
    store_retry_max_wait: float = Field(default=10.0)

    # HTTP
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:5173"]
    )

    class Config:
        env_prefix = "SOCIAL_EXPLORE_"
        env_file = ".env"


def get_settings() -> Settings:
    """Get settings - environment variables take priority over .env."""
    return Settings()


settings = get_settings()
