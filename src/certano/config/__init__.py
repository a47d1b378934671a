"""Configuration package for certano."""

from certano.config.app_config import (
    AppConfig,
    BackendConfig,
    QuizDefaults,
    SyncConfig,
    clear_config_cache,
    get_data_dir,
    load_app_config,
)
from certano.config.log_setup import configure_logging

__all__ = [
    "AppConfig",
    "BackendConfig",
    "QuizDefaults",
    "SyncConfig",
    "clear_config_cache",
    "configure_logging",
    "get_data_dir",
    "load_app_config",
]
