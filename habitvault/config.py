"""
Application settings loaded from environment variables and an optional .env file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:5001/api"
    API_TIMEOUT: float = 10.0

    # Check-in fan-out (one request per habit)
    CHECKIN_FANOUT_WORKERS: int = 8
    CHECKIN_FETCH_TIMEOUT: float = 5.0

    # Rapid-click guard for the completion toggle
    TOGGLE_COOLDOWN: float = 0.5

    # Toast on transport failures (no response). Off: logged only.
    NOTIFY_NETWORK_ERRORS: bool = False

    DB_PATH: str = os.path.join("data", "habitvault.db")
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="HABITVAULT_",
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()


_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = settings.LOG_LEVEL) -> None:
    """
    Install the root handler once; later calls only adjust the level.
    """
    root = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if not root.handlers:
        logging.basicConfig(level=level, format=_LOG_FORMAT)
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
