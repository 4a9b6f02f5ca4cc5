from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = Field("Exam Scheduler", alias="APP_NAME")
    debug: bool = Field(False, alias="DEBUG")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    database_url: str = Field(..., alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")
    # Seconds before a pooled connection is replaced; -1 keeps connections indefinitely.
    database_pool_recycle: int = Field(300, alias="DATABASE_POOL_RECYCLE")
    database_pool_pre_ping: bool = Field(True, alias="DATABASE_POOL_PRE_PING")

    # Isolation level for the validate-then-write scheduling transaction.
    # Empty disables the per-transaction override.
    schedule_isolation_level: Optional[str] = Field("SERIALIZABLE", alias="SCHEDULE_ISOLATION_LEVEL")
    schedule_max_attempts: int = Field(3, alias="SCHEDULE_MAX_ATTEMPTS")

    notification_queue_size: int = Field(100, alias="NOTIFICATION_QUEUE_SIZE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
