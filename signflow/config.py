"""Environment driven settings for the SignFlow service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List


def _parse_bool(env_var: str, default: bool) -> bool:
    value = os.getenv(env_var)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "t", "y", "yes")


def _parse_int(env_var: str, default: int) -> int:
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_str_list(env_var: str, default: List[str]) -> List[str]:
    """Parse a comma-separated string from env into a list of strings."""
    value = os.getenv(env_var)
    if value is None or not value.strip():
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime configuration, read once from the process environment."""

    database_url: str = "sqlite:///./signflow.db"
    log_level: str = "INFO"
    log_json: bool = True
    seed_demo_data: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    page_size: int = 50
    max_page_size: int = 200

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = (
            os.getenv("SIGNFLOW_DATABASE_URL")
            or os.getenv("DATABASE_URL")
            or cls.database_url
        )
        max_page_size = max(1, _parse_int("SIGNFLOW_MAX_PAGE_SIZE", cls.max_page_size))
        page_size = min(max(1, _parse_int("SIGNFLOW_PAGE_SIZE", cls.page_size)), max_page_size)
        return cls(
            database_url=database_url,
            log_level=os.getenv("SIGNFLOW_LOG_LEVEL", cls.log_level).upper(),
            log_json=_parse_bool("SIGNFLOW_LOG_JSON", cls.log_json),
            seed_demo_data=_parse_bool("SIGNFLOW_SEED_DEMO_DATA", cls.seed_demo_data),
            cors_origins=_parse_str_list("SIGNFLOW_CORS_ORIGINS", ["*"]),
            page_size=page_size,
            max_page_size=max_page_size,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
