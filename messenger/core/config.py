import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:

    mongodb_url: str
    database_name: str
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        mongodb_url=os.getenv("MONGODB_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "messenger"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
