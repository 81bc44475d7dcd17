from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "cpbot"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    WEBHOOK_PREFIX: str = "/webhook"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "*"
    LOG_LEVEL: str = "INFO"
    LOGGING_CONFIG_PATH: str = "logging_config.json"

    # Redis
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    """Keys are namespaced by this prefix so several bots can share one Redis."""
    REDIS_KEY_PREFIX: str = "line"

    # Line Messaging API
    LINE_CHANNEL_SECRET: str = "<your-line-channel-secret>"
    LINE_CHANNEL_ACCESS_TOKEN: str = "<your-line-channel-access-token>"
    LINE_BOT_NAME: str = "cpbot"
    LINE_GREETING_MESSAGE: str = (
        "Thanks for adding me!\n"
        "I will remind you the schedule of upcoming competitive programming contests. "
        "Contest times are provided by https://clist.by"
    )
    LINE_MAX_MESSAGE_LENGTH: int = 2000
    LINE_DAILY_DEFAULT: str = "09:00"

    # clist.by
    CLIST_API_URL: str = "https://clist.by/api/v1/contest/"
    CLIST_API_USERNAME: str = "<your-clist-username>"
    CLIST_API_KEY: str = "<your-clist-api-key>"
    CLIST_TIMEOUT_SECONDS: float = 5.0

    # Daily reminder scheduling
    DEFAULT_TIMEZONE: str = "UTC"
    DAILY_PLANNER_PERIOD_SECONDS: int = 3600
    SCHEDULER_ENABLED: bool = True

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("DAILY_PLANNER_PERIOD_SECONDS")
    def check_planner_period(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("DAILY_PLANNER_PERIOD_SECONDS must be positive")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
