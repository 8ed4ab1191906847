"""Shared test fixtures and configuration."""

import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


TEST_ENV = {
    "ELASTICSEARCH_URL": "http://localhost:9200",
    "DATASETS_INDEX_ID": "datasets",
    "REGIONS_INDEX_ID": "regions",
    "PUBLISHERS_INDEX_ID": "publishers",
    "FORMATS_INDEX_ID": "formats",
    "LOG_LEVEL": "info",
    "DEFAULT_LIMIT": "10",
    "MAX_LIMIT": "100",
    # Proxy settings - ensure they're cleared for tests
    "http_proxy": "",
    "https_proxy": "",
    "all_proxy": "",
    "no_proxy": "",
}

for key, value in TEST_ENV.items():
    os.environ[key] = value


from opendata_search.domain.model import Region  # noqa: E402
from tests.fixtures.fake_backend import FakeSearchBackend  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset search environment variables before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def backend() -> FakeSearchBackend:
    return FakeSearchBackend()


@pytest.fixture
def tasmania() -> Region:
    return Region(
        region_type="STE",
        region_id="6",
        region_search_id="STE/6",
        region_name="Tasmania",
        region_short_name="TAS",
    )
