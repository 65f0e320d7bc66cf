# tests/conftest.py
from pathlib import Path

import pytest

from whodb.e2e.matrix.loader import FixtureStore
from whodb.e2e.matrix.settings import MatrixSettings

from tests.fakes import FakeWhoDB

pytest_plugins = ["pytester", "whodb.e2e.matrix.plugin"]

FIXTURES_ROOT = Path(__file__).parent / "fixtures"
DATABASES_DIR = FIXTURES_ROOT / "databases"
BROKEN_DIR = FIXTURES_ROOT / "broken"


def make_settings(**overrides) -> MatrixSettings:
    """Settings pointing at the sample fixtures, with short waits."""
    values = {
        'fixtures_dirs': [str(DATABASES_DIR)],
        'timeout': 1.0,
        'poll_interval': 0.01,
        'mock_data_seed': 1234,
    }
    values.update(overrides)
    return MatrixSettings(**values)


def load_store(*directories) -> FixtureStore:
    """Load fixtures without picking up DB_HOST_* variables from the environment."""
    return FixtureStore.load(list(directories) or [DATABASES_DIR], environ={})


@pytest.fixture(scope="session")
def matrix_settings():
    return make_settings()


@pytest.fixture(scope="session")
def matrix_store():
    return load_store()


@pytest.fixture
def automation(matrix_store, matrix_settings):
    return FakeWhoDB(matrix_store, seed=matrix_settings.mock_data_seed, max_rows=matrix_settings.mock_data_max_rows)


@pytest.fixture
def postgres(matrix_store):
    return matrix_store["postgres"]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove the variables the settings loader reads."""
    for name in ("WHODB_E2E_CONFIG_PATH", "FIXTURES_DIR", "EE_FIXTURES_DIR", "DATABASE",
                 "CATEGORY", "WHODB_E2E_TIMEOUT", "WHODB_E2E_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
