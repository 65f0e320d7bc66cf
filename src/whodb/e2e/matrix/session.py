# src/whodb/e2e/matrix/session.py
import inspect
import logging
from typing import Any, Mapping, Optional

from .config import DatabaseFixture, thaw
from .errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

STORAGE_UNIT_ROUTE = "storage-unit"


def _login_arguments(fixture: DatabaseFixture, user: Optional[str], password: Optional[str],
                     advanced: Optional[Mapping[str, Any]]) -> dict:
    connection = fixture.connection
    return {
        'database_type': fixture.login_type,
        'host': connection.host,
        'user': user if user is not None else connection.user,
        'password': password if password is not None else connection.password,
        'database': connection.database,
        'advanced': dict(advanced) if advanced is not None else thaw(connection.advanced),
    }


def login_to_database(automation, fixture: DatabaseFixture, visit_storage_unit: bool = True,
                      user: Optional[str] = None, password: Optional[str] = None,
                      advanced: Optional[Mapping[str, Any]] = None) -> None:
    """Log in with the fixture's connection, select its schema and open the storage units.

    ``user``, ``password`` and ``advanced`` replace the fixture's values for
    this login only.
    """
    automation.login(**_login_arguments(fixture, user, password, advanced))
    if fixture.schema and fixture.shows_schema_dropdown:
        automation.select_schema(fixture.schema)
    if visit_storage_unit:
        automation.goto(STORAGE_UNIT_ROUTE)


def logout(automation) -> None:
    automation.logout()


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class SessionScope:
    """Logs in on entry and out on every exit path.

    With ``login`` disabled the body manages its own login; ``logout`` still
    controls whether the scope logs out on exit.
    """

    def __init__(self, automation, fixture: DatabaseFixture, login: bool = True, logout: bool = True,
                 navigate: bool = True):
        self.automation = automation
        self.fixture = fixture
        self.login = login
        self.logout = logout
        self.navigate = navigate
        self._logger = logger

    def log(self, level: int, msg: str):
        self._logger.log(level, f"[{self.fixture.id}] {msg}")

    def open(self):
        if not self.login:
            return
        self.log(logging.DEBUG, "Logging in")
        try:
            login_to_database(self.automation, self.fixture, visit_storage_unit=self.navigate)
        except AssertionError:
            raise
        except Exception as e:
            self.log(logging.ERROR, f"Login failed: {e}")
            raise DatabaseUnavailableError(self.fixture.id, e) from e

    def close(self, failing: bool = False):
        if not self.logout:
            return
        self.log(logging.DEBUG, "Logging out")
        try:
            self.automation.logout()
        except Exception as e:
            self.log(logging.WARNING, f"Logout failed: {e}")
            if not failing:
                raise

    def __enter__(self) -> 'SessionScope':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close(failing=exc_type is not None)
        return False


class AsyncSessionScope(SessionScope):
    """``SessionScope`` for automation objects with coroutine methods."""

    async def open_async(self):
        if not self.login:
            return
        self.log(logging.DEBUG, "Logging in")
        arguments = _login_arguments(self.fixture, None, None, None)
        try:
            await _maybe_await(self.automation.login(**arguments))
            if self.fixture.schema and self.fixture.shows_schema_dropdown:
                await _maybe_await(self.automation.select_schema(self.fixture.schema))
            if self.navigate:
                await _maybe_await(self.automation.goto(STORAGE_UNIT_ROUTE))
        except AssertionError:
            raise
        except Exception as e:
            self.log(logging.ERROR, f"Login failed: {e}")
            raise DatabaseUnavailableError(self.fixture.id, e) from e

    async def close_async(self, failing: bool = False):
        if not self.logout:
            return
        self.log(logging.DEBUG, "Logging out")
        try:
            await _maybe_await(self.automation.logout())
        except Exception as e:
            self.log(logging.WARNING, f"Logout failed: {e}")
            if not failing:
                raise

    async def __aenter__(self) -> 'AsyncSessionScope':
        await self.open_async()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_async(failing=exc_type is not None)
        return False
