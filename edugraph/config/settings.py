from enum import StrEnum
from functools import lru_cache
import os

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnv(StrEnum):
    dev = "dev"
    stage = "stage"
    prod = "prod"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(os.getenv("ENV_FILE", ".env"),),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        env_prefix="",
    )

    app_env: AppEnv = Field(default=AppEnv.dev, alias="APP_ENV", description="Application environment (dev/stage/prod)")

    neo4j_uri: str = Field(default="", alias="NEO4J_URI")
    neo4j_user: str = Field(default="", alias="NEO4J_USER")
    neo4j_password: SecretStr = Field(default=SecretStr(""), alias="NEO4J_PASSWORD")
    neo4j_database: str = Field(default="neo4j", alias="NEO4J_DATABASE")
    neo4j_explicit_tx: bool = Field(
        default=True,
        alias="NEO4J_EXPLICIT_TX",
        description="Run aggregate writes inside one explicit transaction; false switches to compensating mode",
    )
    neo4j_max_retries: int = Field(default=3, alias="NEO4J_MAX_RETRIES")
    neo4j_backoff_sec: float = Field(default=0.8, alias="NEO4J_BACKOFF_SEC")

    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    events_enabled: bool = Field(default=False, alias="EVENTS_ENABLED")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
