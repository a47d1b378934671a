"""Application configuration loader.

Loads centralized configuration from data/config/app_config_v1.yaml,
falling back to built-in defaults when the file is missing.

Usage:
    from certano.config.app_config import load_app_config

    config = load_app_config()
    url = config.backend.base_url
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to data dir)
CONFIG_FILENAME = "app_config_v1.yaml"

DATA_DIR_ENV = "CERTANO_DATA_DIR"
BACKEND_URL_ENV = "CERTANO_BACKEND_URL"


@dataclass
class BackendConfig:
    """Where quiz results are delivered and questions are fetched from."""

    base_url: str = "http://localhost:8000"
    results_path: str = "/api/quiz-results"
    questions_path: str = "/api/questions"
    health_path: str = "/health"
    timeout: float = 10.0
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class QuizDefaults:
    """Defaults for new quiz sessions."""

    question_count: int = 10
    time_limit: int | None = None
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_explanations: bool = True
    allow_skip: bool = False
    auto_advance_seconds: float = 10.0
    xp_per_correct: int = 10
    xp_per_incorrect: int = 5


@dataclass
class SyncConfig:
    """Offline queue settings."""

    db_filename: str = "certano.db"
    probe_interval_seconds: float = 30.0


@dataclass
class AppConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=lambda: Path("data"))
    backend: BackendConfig = field(default_factory=BackendConfig)
    quiz: QuizDefaults = field(default_factory=QuizDefaults)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "db" / self.sync.db_filename

    @property
    def state_dir(self) -> Path:
        return self.data_dir / "state"


# Module-level cache
_cached_config: AppConfig | None = None


def get_data_dir() -> Path:
    """Resolve the data directory from the environment."""
    return Path(os.environ.get(DATA_DIR_ENV, "data"))


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "backend": {
            "base_url": "http://localhost:8000",
            "results_path": "/api/quiz-results",
            "questions_path": "/api/questions",
            "health_path": "/health",
            "timeout": 10.0,
            "api_key_env": None,
        },
        "quiz": {
            "question_count": 10,
            "time_limit": None,
            "shuffle_questions": True,
            "shuffle_options": True,
            "show_explanations": True,
            "allow_skip": False,
            "auto_advance_seconds": 10.0,
            "xp_per_correct": 10,
            "xp_per_incorrect": 5,
        },
        "sync": {
            "db_filename": "certano.db",
            "probe_interval_seconds": 30.0,
        },
    }


def _parse_config(data: dict[str, Any], data_dir: Path) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    backend_data = {**defaults["backend"], **(data.get("backend") or {})}
    backend = BackendConfig(
        base_url=str(backend_data["base_url"]).rstrip("/"),
        results_path=backend_data["results_path"],
        questions_path=backend_data["questions_path"],
        health_path=backend_data["health_path"],
        timeout=float(backend_data["timeout"]),
        api_key_env=backend_data.get("api_key_env"),
    )

    quiz_data = {**defaults["quiz"], **(data.get("quiz") or {})}
    quiz = QuizDefaults(
        question_count=int(quiz_data["question_count"]),
        time_limit=quiz_data.get("time_limit"),
        shuffle_questions=bool(quiz_data["shuffle_questions"]),
        shuffle_options=bool(quiz_data["shuffle_options"]),
        show_explanations=bool(quiz_data["show_explanations"]),
        allow_skip=bool(quiz_data["allow_skip"]),
        auto_advance_seconds=float(quiz_data["auto_advance_seconds"]),
        xp_per_correct=int(quiz_data["xp_per_correct"]),
        xp_per_incorrect=int(quiz_data["xp_per_incorrect"]),
    )

    sync_data = {**defaults["sync"], **(data.get("sync") or {})}
    sync = SyncConfig(
        db_filename=sync_data["db_filename"],
        probe_interval_seconds=float(sync_data["probe_interval_seconds"]),
    )

    return AppConfig(data_dir=data_dir, backend=backend, quiz=quiz, sync=sync)


def load_app_config(
    data_dir: Path | None = None,
    force_reload: bool = False,
) -> AppConfig:
    """Load application config.

    Args:
        data_dir: Base data directory. Defaults to $CERTANO_DATA_DIR or ./data
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload and data_dir is None:
        return _cached_config

    if data_dir is None:
        data_dir = get_data_dir()

    config_file = data_dir / "config" / CONFIG_FILENAME
    data: dict[str, Any]

    if config_file.exists():
        logger.debug("loading_app_config", source=str(config_file))
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    else:
        logger.info("using_default_config", data_dir=str(data_dir))
        data = _get_defaults()

    config = _parse_config(data, data_dir)

    backend_url = os.environ.get(BACKEND_URL_ENV)
    if backend_url:
        config.backend.base_url = backend_url.rstrip("/")

    _cached_config = config
    return config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
