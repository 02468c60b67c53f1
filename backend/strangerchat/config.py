from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    search_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30")))
    reaper_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("REAPER_INTERVAL_SECONDS", "300")))
    room_max_age_seconds: float = field(
        default_factory=lambda: float(os.getenv("ROOM_MAX_AGE_SECONDS", "3600")))
    max_message_length: int = field(
        default_factory=lambda: int(os.getenv("MAX_MESSAGE_LENGTH", "2000")))
    max_bad_messages: int = field(
        default_factory=lambda: int(os.getenv("MAX_BAD_MESSAGES", "3")))
    outbox_max_size: int = field(
        default_factory=lambda: int(os.getenv("OUTBOX_MAX_SIZE", "256")))
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS", "*"))
    trusted_hosts: Optional[List[str]] = field(
        default_factory=lambda: _env_list("TRUSTED_HOSTS", "") or None)
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_to_file: bool = field(
        default_factory=lambda: os.getenv("LOG_TO_FILE", "false").lower() == "true")


def load_settings() -> Settings:
    """Read settings from the environment at call time."""
    return Settings()
