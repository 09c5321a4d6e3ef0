"""Configuration helpers for the Taskaroo client."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .analysis.ordering import SortMode


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the task client."""

    environment: str = "local"
    users_collection: str = "users"
    tasks_collection: str = "todos"
    sort_mode: SortMode = SortMode.MIXED
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    log_level: str = "WARNING"


def load_settings(
    *,
    dotenv: bool = True,
    dotenv_path: Optional[str] = None,
) -> Settings:
    """Load settings from environment variables.

    Args:
        dotenv: When True, values from a local ``.env`` file are loaded first
            (existing environment variables win).
        dotenv_path: Explicit .env file; defaults to the nearest one above the
            working directory.

    Returns:
        Settings with the resolved values.

    Raises:
        ConfigError: if the sort mode or log level is not recognized.
    """

    if dotenv:
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))

    raw_mode = os.getenv("TASKAROO_SORT_MODE", SortMode.MIXED.value).strip().lower()
    try:
        sort_mode = SortMode(raw_mode)
    except ValueError:
        raise ConfigError(
            f"Unknown TASKAROO_SORT_MODE '{raw_mode}'. "
            "Use 'mixed' or 'deadline'."
        ) from None

    log_level = os.getenv("TASKAROO_LOG_LEVEL", "WARNING").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown TASKAROO_LOG_LEVEL '{log_level}'.")

    user_id = os.getenv("TASKAROO_USER_ID", "").strip() or None
    project_id = os.getenv("GOOGLE_CLOUD_PROJECT", "").strip() or None

    return Settings(
        environment=os.getenv("TASKAROO_ENV", "local"),
        users_collection=os.getenv("TASKAROO_USERS_COLLECTION", "users").strip() or "users",
        tasks_collection=os.getenv("TASKAROO_TASKS_COLLECTION", "todos").strip() or "todos",
        sort_mode=sort_mode,
        user_id=user_id,
        project_id=project_id,
        log_level=log_level,
    )
