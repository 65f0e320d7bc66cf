# src/whodb/e2e/matrix/matrix.py
"""Expansion of scenario groups into one concrete case per matching database.

A scenario group is a function ``body(db, group)`` that registers cases on the
``ScenarioGroup`` it receives. ``DatabaseMatrix.for_each_database`` calls the
body once for every fixture that belongs to the requested category and
supports every required feature, in fixture store order, so the registered
cases and their ids are identical from one run to the next.

Example:

    matrix = DatabaseMatrix(store, settings)

    @matrix.for_each_database("sql", features=["export"])
    def export(db, group):
        @group.case("exports as CSV")
        def _(ctx):
            ...

    test_export = matrix.as_pytest()
"""
import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pytest

from .config import DatabaseFixture, TableConfig
from .errors import RegistrationError
from .features import check_feature_names, supports_all
from .loader import FixtureStore
from .session import SessionScope
from .settings import MatrixSettings
from .tables import require_table_config
from .types import ALL_CATEGORIES, Category, SkipKind
from .waiting import settle_mutations, wait_for

logger = logging.getLogger(__name__)

CaseFunction = Callable[['ScenarioContext'], Any]
GroupBody = Callable[[DatabaseFixture, 'ScenarioGroup'], Any]


@dataclass
class ScenarioContext:
    """What a case body receives: the fixture, the automation and run helpers."""
    db: DatabaseFixture
    automation: Any
    settings: MatrixSettings
    store: Optional[FixtureStore] = None

    def table_config(self, name: str) -> TableConfig:
        return require_table_config(self.db, name)

    def wait_for(self, predicate: Callable[[], Any], message: Optional[str] = None,
                 timeout: Optional[float] = None) -> Any:
        return wait_for(predicate, timeout if timeout is not None else self.settings.timeout,
                        self.settings.poll_interval, message)

    def settle(self) -> float:
        """Wait out the database's mutation visibility delay."""
        return settle_mutations(self.db)

    def skip(self, reason: str):
        pytest.skip(SkipKind.UNSUPPORTED.reason(reason))


@dataclass
class ScenarioCase:
    """One registered (group, database, case) combination."""
    test_id: str
    group: str
    name: str
    fixture_id: Optional[str] = None
    fixture: Optional[DatabaseFixture] = field(default=None, repr=False)
    fn: Optional[CaseFunction] = field(default=None, repr=False)
    login: bool = True
    logout: bool = True
    navigate: bool = True
    skip_reason: Optional[str] = None
    skip_kind: Optional[SkipKind] = None
    store: Optional[FixtureStore] = field(default=None, repr=False, compare=False)

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    def session(self, automation) -> SessionScope:
        return SessionScope(automation, self.fixture, login=self.login, logout=self.logout,
                            navigate=self.navigate)

    def invoke(self, context: ScenarioContext) -> Any:
        """Run the case body inside an already opened session."""
        if self.skipped:
            pytest.skip(self.skip_reason)
        result = self.fn(context)
        if inspect.isawaitable(result):
            raise TypeError(f"Case '{self.test_id}' returned an awaitable; case bodies must be synchronous")
        return result

    def context(self, automation, settings: MatrixSettings) -> ScenarioContext:
        return ScenarioContext(self.fixture, automation, settings, self.store)

    def run(self, automation, settings: MatrixSettings) -> Any:
        """Open the case's session, run the body and close the session."""
        if self.skipped:
            pytest.skip(self.skip_reason)
        with self.session(automation):
            return self.invoke(self.context(automation, settings))


class ScenarioGroup:
    """Registration surface handed to a group body for one database."""

    def __init__(self, matrix: 'DatabaseMatrix', name: str, fixture: DatabaseFixture,
                 login: bool, logout: bool, navigate: bool):
        self._matrix = matrix
        self.name = name
        self.db = fixture
        self._login = login
        self._logout = logout
        self._navigate = navigate
        self._path: List[str] = []
        self.cases: List[ScenarioCase] = []

    @property
    def path(self) -> Tuple[str, ...]:
        return tuple(self._path)

    @property
    def store(self) -> FixtureStore:
        return self._matrix.store

    @property
    def settings(self) -> MatrixSettings:
        return self._matrix.settings

    def _test_id(self, name: str) -> str:
        return " ".join([f"{self.name}[{self.db.id}]"] + self._path + [name])

    def add(self, name: str, fn: CaseFunction, login: Optional[bool] = None,
            logout: Optional[bool] = None) -> ScenarioCase:
        case = ScenarioCase(
            test_id=self._test_id(name),
            group=self.name,
            name=name,
            fixture_id=self.db.id,
            fixture=self.db,
            fn=fn,
            login=self._login if login is None else login,
            logout=self._logout if logout is None else logout,
            navigate=self._navigate,
            store=self._matrix.store,
        )
        self.cases.append(case)
        return case

    def case(self, name: str, login: Optional[bool] = None, logout: Optional[bool] = None):
        """Decorator registering ``fn(ctx)`` as a case of this group."""
        def decorator(fn: CaseFunction) -> CaseFunction:
            self.add(name, fn, login=login, logout=logout)
            return fn
        return decorator

    def skip(self, name: str, reason: str, kind: SkipKind = SkipKind.UNSUPPORTED) -> ScenarioCase:
        """Register a case that is reported as skipped with ``reason``."""
        case = ScenarioCase(
            test_id=self._test_id(name),
            group=self.name,
            name=name,
            fixture_id=self.db.id,
            fixture=self.db,
            skip_reason=kind.reason(reason),
            skip_kind=kind,
        )
        self.cases.append(case)
        return case

    def case_if(self, condition: bool, name: str, reason: str):
        """Register the decorated case when ``condition`` holds, a skip otherwise."""
        def decorator(fn: CaseFunction) -> CaseFunction:
            if condition:
                self.add(name, fn)
            else:
                self.skip(name, reason)
            return fn
        return decorator

    @contextmanager
    def describe(self, name: str):
        """Nest the cases registered inside the block under ``name``."""
        self._path.append(name)
        try:
            yield self
        finally:
            self._path.pop()


class DatabaseMatrix:
    """Collects the cases of every scenario group registered against a fixture store."""

    def __init__(self, store: FixtureStore, settings: Optional[MatrixSettings] = None):
        self.store = store
        self.settings = settings or MatrixSettings()
        self._cases: List[ScenarioCase] = []
        self._ids: Dict[str, int] = {}

    @property
    def cases(self) -> Tuple[ScenarioCase, ...]:
        return tuple(self._cases)

    def test_ids(self) -> List[str]:
        return [case.test_id for case in self._cases]

    def _marker(self, group: str, name: str, kind: SkipKind, reason: str,
                fixture_id: Optional[str] = None) -> ScenarioCase:
        label = f"{group}[{fixture_id}]" if fixture_id else group
        return ScenarioCase(
            test_id=f"{label} {name}",
            group=group,
            name=name,
            fixture_id=fixture_id,
            skip_reason=kind.reason(reason),
            skip_kind=kind,
        )

    def _unique(self, case: ScenarioCase) -> ScenarioCase:
        seen = self._ids.get(case.test_id, 0)
        self._ids[case.test_id] = seen + 1
        if seen:
            case.test_id = f"{case.test_id} #{seen + 1}"
        return case

    def target_matches(self, fixture_id: str, db_type: str) -> bool:
        target = self.settings.target_database
        if not target:
            return True
        target = target.lower()
        return fixture_id.lower() == target or db_type.lower() == target

    def select(self, category: Union[str, Category], features: Sequence[str] = ()) -> List[DatabaseFixture]:
        """Fixtures of ``category`` that support every feature, before run filters."""
        check_feature_names(features)
        candidates = self.store.by_category(
            category if category == ALL_CATEGORIES else Category.parse(category)
        )
        return [fixture for fixture in candidates if supports_all(fixture, features)]

    def expand(self, category: Union[str, Category], body: GroupBody, features: Sequence[str] = (),
               login: bool = True, logout: bool = True, navigate_to_storage_unit: bool = True,
               uses: Iterable[str] = (), name: Optional[str] = None) -> List[ScenarioCase]:
        """Build the cases of one group without recording them on the matrix."""
        if category != ALL_CATEGORIES:
            category = Category.parse(category).value
        group_name = name or getattr(body, "__name__", "scenario")
        matched = self.select(category, features)
        wanted = ", ".join(features) if features else "no features"
        scopes = set(features) | set(uses)

        target_category = self.settings.target_category
        if target_category and category != ALL_CATEGORIES and category != target_category:
            return [self._marker(group_name, "category", SkipKind.FILTERED,
                                 f"CATEGORY={target_category} excludes {category}")]

        cases: List[ScenarioCase] = []
        selected = [fixture for fixture in matched if self.target_matches(fixture.id, fixture.type)]
        for fixture in selected:
            issues = self.store.issues_for(fixture.id, scopes)
            if issues:
                cases.append(self._marker(group_name, "setup", SkipKind.CONFIGURATION,
                                          "; ".join(str(issue) for issue in issues), fixture.id))
                continue
            group = ScenarioGroup(self, group_name, fixture, login, logout, navigate_to_storage_unit)
            try:
                body(fixture, group)
            except Exception as e:
                logger.error(f"Registering {group_name} for {fixture.id} failed: {e}")
                raise RegistrationError(group_name, fixture.id, e) from e
            cases.extend(group.cases)

        for rejected in self.store.rejected.values():
            if rejected.matches_category(category) and self.target_matches(rejected.id, rejected.type):
                cases.append(self._marker(group_name, "setup", SkipKind.CONFIGURATION,
                                          rejected.reason, rejected.id))

        if not cases:
            if matched and not selected:
                cases.append(self._marker(group_name, "no database", SkipKind.FILTERED,
                                          f"DATABASE={self.settings.target_database} matches no {category} "
                                          f"database with {wanted}"))
            elif not matched:
                cases.append(self._marker(group_name, "no database", SkipKind.NO_MATCH,
                                          f"no {category} database supports {wanted}"))
        return cases

    def for_each_database(self, category: Union[str, Category], body: Optional[GroupBody] = None, *,
                          features: Sequence[str] = (), login: bool = True, logout: bool = True,
                          navigate_to_storage_unit: bool = True, uses: Iterable[str] = (),
                          name: Optional[str] = None):
        """Register ``body`` for every matching database.

        Called with a body it returns the registered cases; called without one
        it returns a decorator that registers the decorated function and
        returns it unchanged.
        """
        if category != ALL_CATEGORIES:
            Category.parse(category)
        check_feature_names(features)
        uses = tuple(uses)

        def register(fn: GroupBody) -> List[ScenarioCase]:
            cases = self.expand(category, fn, features, login, logout, navigate_to_storage_unit, uses, name)
            registered = [self._unique(case) for case in cases]
            self._cases.extend(registered)
            logger.debug(f"Registered {len(registered)} cases for {name or fn.__name__}")
            return registered

        if body is not None:
            return register(body)

        def decorator(fn: GroupBody) -> GroupBody:
            register(fn)
            return fn
        return decorator

    def as_pytest(self, cases: Optional[Sequence[ScenarioCase]] = None):
        """A pytest test function parametrized over the registered cases.

        The ``matrix_case`` and ``matrix_context`` fixtures come from
        ``whodb.e2e.matrix.plugin``.
        """
        cases = list(self._cases if cases is None else cases)

        @pytest.mark.parametrize("matrix_case", cases, ids=[case.test_id for case in cases], indirect=True)
        def test_matrix(matrix_case, matrix_context):
            matrix_case.invoke(matrix_context)

        return test_matrix
