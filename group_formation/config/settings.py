# group_formation/config/settings.py

from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./capstone_groups.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    MAX_PREFERENCES: int = 3
    DEFAULT_TEAM_SIZE: int = 4
    # a lock older than this is assumed to belong to a crashed run
    RUN_LOCK_TTL_SECONDS: int = 900
    COMMIT_ISOLATION_LEVEL: Optional[str] = "SERIALIZABLE"

    class Config:
        env_file = ".env"

settings = Settings()
