"""
Configuration

Settings are read from the environment, with .env files loaded via python-dotenv.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LOG_FILE = "migration-execution.log"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class GuardSettings:
    database_url: Optional[str] = None
    fail_on_validation_errors: bool = False
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = "INFO"


def load_settings() -> GuardSettings:
    """
    Build settings from environment variables:

    - DATABASE_URL
    - MIGRATION_GUARD_FAIL_ON_VALIDATION_ERRORS (default false)
    - MIGRATION_GUARD_LOG_FILE (default migration-execution.log)
    - MIGRATION_GUARD_LOG_LEVEL (default INFO)
    """
    return GuardSettings(
        database_url=os.getenv("DATABASE_URL"),
        fail_on_validation_errors=_env_flag("MIGRATION_GUARD_FAIL_ON_VALIDATION_ERRORS"),
        log_file=os.getenv("MIGRATION_GUARD_LOG_FILE", DEFAULT_LOG_FILE),
        log_level=os.getenv("MIGRATION_GUARD_LOG_LEVEL", "INFO").upper(),
    )
