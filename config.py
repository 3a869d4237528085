"""
Application settings

Values come from the environment (optionally a local .env file) and are
handed to route handlers through the `get_settings` dependency.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    jwt_private_key: Optional[str] = None
    log_file: str = "logfile.log"
    exception_log_file: str = "uncaughtExceptions.log"
    log_level: str = "INFO"
    port: int = 3200

    def check(self):
        if not self.jwt_private_key:
            raise RuntimeError("FATAL ERROR: JWT_PRIVATE_KEY is not defined.")


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME"),
        jwt_private_key=os.getenv("JWT_PRIVATE_KEY"),
        log_file=os.getenv("LOG_FILE", "logfile.log"),
        exception_log_file=os.getenv("EXCEPTION_LOG_FILE", "uncaughtExceptions.log"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", 3200)),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
