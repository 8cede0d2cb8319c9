"""Tests for application construction, lifespan and settings."""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from feedback_gate.adapters.submissions.in_memory import InMemorySubmissionStore
from feedback_gate.core.app_factory import create_app
from feedback_gate.core.config import AppSettings, settings
from feedback_gate.services.submission_service import SubmissionService


def test_default_collaborators_are_built_from_settings() -> None:
    app = create_app()

    assert isinstance(app.state.rate_limiter, InMemoryFixedWindowRateLimiter)
    assert app.state.rate_limiter.default_config.max_requests == settings.app.rate_limit_max_requests
    assert isinstance(app.state.submission_store, InMemorySubmissionStore)
    assert isinstance(app.state.submission_service, SubmissionService)


def test_injected_collaborators_are_used(limiter, store) -> None:
    app = create_app(rate_limiter=limiter, submission_store=store)

    assert app.state.rate_limiter is limiter
    assert app.state.submission_store is store


def test_health_reports_rate_limiter_state(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "rate_limiter": {"entries": 0, "sweeper_running": False},
    }


def test_lifespan_runs_the_sweeper(limiter, store) -> None:
    app = create_app(rate_limiter=limiter, submission_store=store)

    with TestClient(app) as client:
        assert client.get("/health").json()["rate_limiter"]["sweeper_running"] is True

    assert limiter.sweeper_running is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"rate_limit_max_requests": 0},
        {"rate_limit_window_ms": 0},
        {"duplicate_similarity_threshold": 0},
        {"duplicate_similarity_threshold": 1.5},
    ],
)
def test_app_settings_reject_out_of_range_values(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        AppSettings(**kwargs)


def test_app_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("APP_RATE_LIMIT_WINDOW_MS", "1500")

    app_settings = AppSettings()

    assert app_settings.rate_limit_max_requests == 7
    assert app_settings.rate_limit_window_ms == 1500
