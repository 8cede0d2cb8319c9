"""Pytest configuration and fixtures shared across all test modules.

This file is loaded by pytest before any test module, so the environment is
set before settings are first imported.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("APP_DUPLICATE_DETECTION_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from feedback_gate.adapters.rate_limit.base import RateLimitConfig
from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from feedback_gate.adapters.submissions.in_memory import InMemorySubmissionStore
from feedback_gate.core.app_factory import create_app


class FakeClock:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(fake_clock: FakeClock) -> InMemoryFixedWindowRateLimiter:
    return InMemoryFixedWindowRateLimiter(
        default_config=RateLimitConfig(max_requests=3, window_ms=60_000),
        clock=fake_clock,
    )


@pytest.fixture
def store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def app(limiter: InMemoryFixedWindowRateLimiter, store: InMemorySubmissionStore) -> FastAPI:
    return create_app(rate_limiter=limiter, submission_store=store)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
