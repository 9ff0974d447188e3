from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "UPTIMER_",
        "extra": "ignore",
    }

    # Targets file (absolute or relative to CWD)
    config_file: str = "config.yaml"

    # Providers: <providers_dir>/<name>/plugin.py
    providers_dir: str = ""  # empty: built-in providers only
    builtin_providers: bool = True  # load uptimer.checks before the directory

    # Scheduler
    tick_seconds: float = 1.0
    default_interval_seconds: int = 60  # when neither check nor target sets one

    # Logging
    log_level: str = "INFO"


settings = Settings()
