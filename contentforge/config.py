from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List
import os
import dotenv

dotenv.load_dotenv()


class Settings(BaseSettings):
    # Database - SQLite by default, PostgreSQL via DATABASE_URL
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./contentforge.db")

    # Upstream content generator (Groq)
    groq_api_key: str | None = os.getenv("GROQ_API_KEY")
    generation_model: str = os.getenv("GENERATION_MODEL", "llama-3.3-70b-versatile")
    generation_max_tokens: int = int(os.getenv("GENERATION_MAX_TOKENS", "600"))
    generation_temperature: float = float(os.getenv("GENERATION_TEMPERATURE", "0.7"))
    generation_timeout_seconds: float = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))
    generation_max_concurrency: int = int(os.getenv("GENERATION_MAX_CONCURRENCY", "6"))

    # Variant fan-out
    default_redundancy: int = int(os.getenv("DEFAULT_REDUNDANCY", "3"))
    degraded_failure_ratio: float = float(os.getenv("DEGRADED_FAILURE_RATIO", str(2 / 3)))

    # Publishing
    publish_max_retries: int = int(os.getenv("PUBLISH_MAX_RETRIES", "2"))
    publish_retry_delays: List[float] = [1.0, 4.0]
    publish_deadline_seconds: float = float(os.getenv("PUBLISH_DEADLINE_SECONDS", "60"))
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

    # Background scheduler
    scheduler_enabled: bool = os.getenv("SCHEDULER_ENABLED", "True").lower() == "true"
    scheduler_check_interval: int = int(os.getenv("SCHEDULER_CHECK_INTERVAL", "60"))

    # Twitter / X Integration
    twitter_client_id: str | None = os.getenv("TWITTER_CLIENT_ID")
    twitter_client_secret: str | None = os.getenv("TWITTER_CLIENT_SECRET")

    # LinkedIn Integration
    linkedin_client_id: str | None = os.getenv("LINKEDIN_CLIENT_ID")
    linkedin_client_secret: str | None = os.getenv("LINKEDIN_CLIENT_SECRET")

    # Facebook / Instagram Integration (Graph API)
    facebook_app_id: str | None = os.getenv("FACEBOOK_APP_ID")
    facebook_app_secret: str | None = os.getenv("FACEBOOK_APP_SECRET")
    graph_api_version: str = os.getenv("GRAPH_API_VERSION", "v18.0")

    # API rate limiting
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "600"))
    rate_limit_concurrent: int = int(os.getenv("RATE_LIMIT_CONCURRENT", "50"))

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "True").lower() == "true"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "https://localhost:3000",
        "http://127.0.0.1:3000",
        "https://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
