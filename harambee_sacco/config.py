"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database (async drivers: aiosqlite locally, asyncpg in production)
    database_url: str = "sqlite+aiosqlite:///./harambee_sacco.db"
    auto_create_schema: bool = True

    # Service
    service_name: str = "harambee-sacco"
    log_level: str = "INFO"

    # Business rules that operators tune
    large_transaction_threshold: float = 1_000_000.0  # KES, flagged by transaction monitoring
    member_number_prefix: str = "HAR"
    report_list_limit: int = 50


settings = Settings()
