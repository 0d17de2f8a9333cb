"""
Configuration management for StoryForest.

Settings are read from environment variables prefixed with
``STORYFOREST_`` (or from a local ``.env`` file).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="STORYFOREST_",
        env_file=".env",
        extra="ignore",
    )

    # Application
    app_name: str = "StoryForest"
    log_level: str = "INFO"

    # Comma-separated list, "*" allows every origin
    cors_allowed_origins: str = "*"

    # Database
    database_url: str = "sqlite:///./storyforest.db"

    # Sessions
    session_cookie_name: str = "storyforest_session"
    session_ttl_days: int = 30
    session_cookie_secure: bool = False

    # External book APIs
    google_books_enabled: bool = True
    google_books_api_key: Optional[str] = None
    http_timeout: float = 10.0
    search_limit: int = 10
    recommendation_limit: int = 5

    # Recommendation ranking
    ranking_enabled: bool = True
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
