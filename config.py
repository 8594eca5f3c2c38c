"""
Regulatory Catalyst Dashboard - Configuration
"""
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Paths
    BASE_DIR: Path = Path(__file__).parent
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).parent / "data")
    DATABASE_PATH: Path = Field(default_factory=lambda: Path(__file__).parent / "data" / "catalyst.db")
    LOG_DIR: Path = Field(default_factory=lambda: Path(__file__).parent / "logs")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # LLM (OpenAI-compatible API)
    LLM_PROVIDER: str = Field(default="openai")
    LLM_API_KEY: str = Field(default="", description="API key for the classification provider")
    LLM_BASE_URL: str = Field(default="https://api.openai.com/v1")
    LLM_MODEL: str = Field(default="gpt-4o-mini")
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, description="Client-side timeout per model call")
    LLM_TEMPERATURE: float = Field(default=0.1)
    LLM_MAX_TOKENS: int = Field(default=3000)
    LLM_VERIFY_SSL: bool = Field(default=True)

    # Feeds
    FEED_TIMEOUT_SECONDS: float = Field(default=30.0)
    FEED_MAX_RETRIES: int = Field(default=3)
    FEED_RETRY_DELAY: float = Field(default=2.0)
    FEED_USER_AGENT: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )

    # openFDA JSON endpoints
    OPENFDA_ENABLED: bool = Field(default=True)
    OPENFDA_LIMIT: int = Field(default=25, description="Records requested per openFDA endpoint")
    OPENFDA_API_KEY: str = Field(default="", description="Optional key for higher openFDA rate limits")

    # Processing
    COMPANY_FILTER_BATCH_SIZE: int = Field(default=15)
    COMPANY_FILTER_BATCH_DELAY: float = Field(default=0.5)
    CLASSIFIER_BATCH_DELAY: float = Field(default=1.0)
    PROCESSING_LEASE_MINUTES: int = Field(default=15, description="Stale 'processing' entries older than this return to pending")

    # Pipeline trigger
    PIPELINE_ENABLED: bool = Field(default=True)
    PIPELINE_INTERVAL_MINUTES: int = Field(default=10)
    PIPELINE_FETCH_LIMIT: int = Field(default=25)
    PIPELINE_TIMEFRAME: str = Field(default="24h")

    # API
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def ensure_directories():
    """Ensure all required directories exist."""
    dirs = [
        settings.DATA_DIR,
        settings.DATABASE_PATH.parent,
        settings.LOG_DIR,
    ]
    for dir_path in dirs:
        dir_path.mkdir(parents=True, exist_ok=True)
