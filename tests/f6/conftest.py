"""Fixtures for F6 tests - Web API and CLI."""

import pytest
from fastapi.testclient import TestClient

from certano.config.app_config import load_app_config
from certano.core.question_cache import QuestionCache
from certano.web.api import create_app
from certano.web.sessions import reset_session_manager


@pytest.fixture
def seeded_snapshot(data_dir, question_records):
    """Offline snapshot with one question of every type."""
    cache = QuestionCache(load_app_config().db_path)
    cache.open()
    cache.save_offline_questions(question_records)
    return cache


@pytest.fixture
def client(seeded_snapshot):
    """Test client with a fresh session manager over the seeded data dir."""
    reset_session_manager()
    with TestClient(create_app()) as test_client:
        yield test_client
    reset_session_manager()
