# src/whodb/e2e/matrix/plugin.py
"""pytest integration.

Enable with ``pytest_plugins = ["whodb.e2e.matrix.plugin"]`` in a
``conftest.py`` and override the ``automation`` fixture with a real
browser automation object.

Outcome mapping:

- cases registered as skips are reported as skipped with their prefixed reason;
- login and other environment failures happen during fixture setup and are
  reported as errors;
- assertion failures in a case body are reported as failures.
"""
import logging

import pytest

from .errors import AutomationUnavailableError
from .loader import FixtureStore
from .settings import load_settings
from .types import ALL_CATEGORIES, Category

logger = logging.getLogger(__name__)


def pytest_addoption(parser):
    group = parser.getgroup("whodb-matrix", "database test matrix")
    group.addoption("--matrix-database", action="store", default=None,
                    help="Only run cases of this database id or type (overrides DATABASE)")
    group.addoption("--matrix-category", action="store", default=None,
                    help="Only run groups of this category (overrides CATEGORY)")


def pytest_configure(config):
    config.addinivalue_line("markers", "matrix: case generated by the database test matrix")


@pytest.fixture(scope="session")
def matrix_settings(pytestconfig):
    """Settings loaded once per session, with command line overrides applied."""
    settings = load_settings()
    database = pytestconfig.getoption("--matrix-database", default=None)
    category = pytestconfig.getoption("--matrix-category", default=None)
    if database:
        settings.target_database = database
    if category:
        settings.target_category = category if category == ALL_CATEGORIES else Category.parse(category).value
    return settings


@pytest.fixture(scope="session")
def matrix_store(matrix_settings):
    return FixtureStore.load(matrix_settings.fixtures_dirs)


@pytest.fixture
def automation():
    """Browser automation collaborator; projects must override this fixture."""
    raise AutomationUnavailableError(
        "No automation collaborator configured; override the 'automation' fixture in conftest.py"
    )


@pytest.fixture
def matrix_case(request):
    case = request.param
    if case.skipped:
        pytest.skip(case.skip_reason)
    return case


@pytest.fixture
def matrix_context(matrix_case, automation, matrix_settings, request):
    """Open the case's session during setup and close it during teardown."""
    scope = matrix_case.session(automation)
    scope.open()
    yield matrix_case.context(automation, matrix_settings)
    scope.close(failing=_call_failed(request))


def _call_failed(request) -> bool:
    report = getattr(request.node, "rep_call", None)
    return report is not None and report.failed


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        item.rep_call = report
