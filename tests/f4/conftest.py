"""Fixtures for F4 tests - Web API and CLI."""

import pytest
from fastapi.testclient import TestClient

from progression.config.app_config import DB_PATH_ENV, clear_config_cache
from progression.config.catalog import clear_catalog_cache
from progression.core.progression import reset_controller
from progression.web.api import create_app


def _reset_state():
    clear_config_cache()
    clear_catalog_cache()
    reset_controller()


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Empty working directory with the database redirected to tmp_path.

    No config or catalog file exists, so the built-in defaults apply:
    course 1 with levels 11..15 taught by classes 101..105.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "test.db"))
    _reset_state()
    yield tmp_path
    _reset_state()


@pytest.fixture
def client(app_env):
    """Test client with the app lifespan (database init) running."""
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def grades_payload():
    """Build a POST /api/grades body with all four components set to score."""

    def build(class_id, student_id, period, score, **extra):
        return {
            "class_id": class_id,
            "student_id": student_id,
            "period_number": period,
            "test1": score,
            "test2": score,
            "practical_exam": score,
            "theory_exam": score,
            **extra,
        }

    return build
