# logistics/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Optional env vars (.env):
      - DATABASE_URL (primary PostgreSQL connection string)
      - DATABASE_SSLMODE (e.g. "require"; appended to DATABASE_URL)
      - SQLITE_PATH (embedded fallback database file)

    When DATABASE_URL is missing or unreachable the embedded SQLite file
    is used instead.
    """

    PROJECT_NAME: str = "Logistics Backend"
    API_V1_STR: str = "/api/v1"

    # Primary engine
    DATABASE_URL: str | None = None
    DATABASE_SSLMODE: str | None = None

    # Fallback engine
    SQLITE_PATH: str = "logistics.db"

    DB_ECHO: bool = False
    SEED_SAMPLE_DATA: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def fallback_url(self) -> str:
        if self.SQLITE_PATH == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.SQLITE_PATH}"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
