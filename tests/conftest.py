"""Shared fixtures for the design review service tests."""

import os

# Settings are read once at import time
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from designreview.app.core.config import settings
from designreview.app.main import create_app
from designreview.app.middleware.auth import get_admin_token
from designreview.app.providers.gemini import GeminiProvider
from designreview.app.providers.models import BoundingBox, FeedbackItem
from designreview.app.providers.retry import RetryPolicy
from designreview.app.services.analysis import AnalysisService
from designreview.app.services.dispatch_queue import DispatchQueue

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def clear_admin_token_cache():
    if hasattr(get_admin_token, "_cached_token"):
        delattr(get_admin_token, "_cached_token")
    yield
    if hasattr(get_admin_token, "_cached_token"):
        delattr(get_admin_token, "_cached_token")


@pytest.fixture
def trust_user_header(monkeypatch):
    """Trust X-User-Id, as when a stripping proxy sits in front."""
    monkeypatch.setattr(settings, "auth_user_header", "X-User-Id")


@pytest.fixture
def feedback_items():
    return [
        FeedbackItem(
            category="accessibility",
            severity="high",
            roles=["designer", "developer"],
            bbox=BoundingBox(x=0.1, y=0.2, width=0.3, height=0.1),
            anchor_type="bbox",
            title="Low contrast",
            text="Body text fails WCAG AA contrast.",
            recommendations=["Darken the text color"],
            model_version="gemini-test",
        )
    ]


@pytest.fixture
def mock_provider(feedback_items):
    provider = Mock(spec=GeminiProvider)
    provider.model = "gemini-test"
    provider.is_configured = True
    provider.analyze_image = AsyncMock(return_value=feedback_items)
    return provider


@pytest.fixture
def app(mock_provider):
    """Application with the AI provider mocked and no pacing delay."""
    application = create_app()
    application.state.analysis = AnalysisService(
        mock_provider,
        DispatchQueue(max_concurrent=2, min_interval=0),
        RetryPolicy(max_attempts=1),
    )
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
