from __future__ import annotations

import pytest

from taskaroo.analysis.ordering import SortMode
from taskaroo.config import ConfigError, Settings, load_settings


def test_defaults(clean_env):
    settings = load_settings(dotenv=False)

    assert settings == Settings()
    assert settings.sort_mode is SortMode.MIXED
    assert settings.tasks_collection == "todos"


def test_environment_overrides(clean_env):
    clean_env.setenv("TASKAROO_ENV", "staging")
    clean_env.setenv("TASKAROO_USERS_COLLECTION", "accounts")
    clean_env.setenv("TASKAROO_TASKS_COLLECTION", "tasks")
    clean_env.setenv("TASKAROO_SORT_MODE", " Deadline ")
    clean_env.setenv("TASKAROO_USER_ID", "uid-42")
    clean_env.setenv("TASKAROO_LOG_LEVEL", "debug")
    clean_env.setenv("GOOGLE_CLOUD_PROJECT", "taskaroo-dev")

    settings = load_settings(dotenv=False)

    assert settings.environment == "staging"
    assert settings.users_collection == "accounts"
    assert settings.tasks_collection == "tasks"
    assert settings.sort_mode is SortMode.DEADLINE
    assert settings.user_id == "uid-42"
    assert settings.log_level == "DEBUG"
    assert settings.project_id == "taskaroo-dev"


def test_invalid_sort_mode(clean_env):
    clean_env.setenv("TASKAROO_SORT_MODE", "alphabetical")
    with pytest.raises(ConfigError, match="TASKAROO_SORT_MODE"):
        load_settings(dotenv=False)


def test_invalid_log_level(clean_env):
    clean_env.setenv("TASKAROO_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigError, match="TASKAROO_LOG_LEVEL"):
        load_settings(dotenv=False)


def test_dotenv_file_is_loaded(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TASKAROO_USER_ID=from-dotenv\nTASKAROO_SORT_MODE=deadline\n", encoding="utf-8")

    settings = load_settings(dotenv_path=str(env_file))

    assert settings.user_id == "from-dotenv"
    assert settings.sort_mode is SortMode.DEADLINE


def test_real_environment_wins_over_dotenv(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TASKAROO_USER_ID=from-dotenv\n", encoding="utf-8")
    clean_env.setenv("TASKAROO_USER_ID", "from-shell")

    assert load_settings(dotenv_path=str(env_file)).user_id == "from-shell"
