"""Shared pytest fixtures for omnivore-sync tests."""

from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from omnivore_sync.config import Config
from omnivore_sync.outline.store import JsonOutlineStore
from omnivore_sync.sync.models import Article

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Omnivore API key",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Omnivore account"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep developer OMNIVORE_* settings out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("OMNIVORE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance for testing."""
    return Config(
        api_key="test-key",
        graph="notes",
        state_dir=str(tmp_path / ".omnivore_sync"),
    )


@pytest.fixture
def mock_omnivore_client(mock_config):
    """Create a mock OmnivoreClient instance for testing."""
    from omnivore_sync.core.client import OmnivoreClient

    client = MagicMock(spec=OmnivoreClient)
    client.config = mock_config
    return client


@pytest.fixture
def store():
    """In-memory outline store."""
    return JsonOutlineStore(name="notes")


@pytest.fixture
def make_article():
    """Factory for ``Article`` instances from camelCase wire data."""

    def _make(slug: str = "abc", **fields) -> Article:
        data = {
            "id": f"id-{slug}",
            "slug": slug,
            "title": fields.pop("title", slug.upper()),
            "originalArticleUrl": f"https://www.example.com/{slug}",
            "savedAt": "2026-03-14T09:26:53.000Z",
            "pageType": "ARTICLE",
            "labels": [],
            "highlights": [],
        }
        data.update(fields)
        return Article.model_validate(data)

    return _make
