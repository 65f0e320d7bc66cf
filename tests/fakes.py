# tests/fakes.py
"""
In-memory stand-in for the browser automation collaborator.

``FakeWhoDB`` keeps one ``InMemoryRowStore`` per database fixture and renders
rows the way the web client's data view does: a leading selection cell
followed by one text cell per declared column. Document and key-value
databases render each row as a single JSON cell.
"""
import itertools
import json
from typing import Any, Dict, List, Mapping, Optional

from whodb.e2e.matrix.config import DatabaseFixture, TableConfig, as_text
from whodb.e2e.matrix.export import ExportFormat, ExportRequest
from whodb.e2e.matrix.features import feature_enabled
from whodb.e2e.matrix.interfaces import GraphNode, IAutomation, NetworkExchange, TableData
from whodb.e2e.matrix.mockdata import (
    MAX_MOCK_ROWS,
    DependencyResolver,
    InMemoryRowStore,
    MockDataGenerator,
    clamp_row_count,
)
from whodb.e2e.matrix.types import Category

ROW_KEY = "__row"
SEED_ROWS = 2


def fixture_document(fixture_id: str, category: str = "sql", features: Optional[Mapping[str, Any]] = None,
                     **extra) -> Dict[str, Any]:
    """Smallest fixture document that passes fixture-level validation."""
    document = {
        'id': fixture_id,
        'type': fixture_id.capitalize(),
        'category': category,
        'connection': {'host': f"{fixture_id}.local", 'user': 'user', 'password': 'password',
                       'database': 'test_db'},
        'features': features if features is not None else {},
        'testTable': {
            'name': 'users',
            'identifierField': 'username',
            'identifierColIndex': 1,
            'testValues': {'original': 'john_doe', 'modified': 'john_doe_updated', 'rowIndex': 0},
        },
    }
    document.update(extra)
    return document


class TaggedRowStore(InMemoryRowStore):
    """Row store that stamps every inserted row with a handle that is never reused."""

    def __init__(self, tables, relationships=()):
        super().__init__(tables, relationships)
        self._handles = itertools.count(1)

    def insert(self, table, row):
        stamped = dict(row)
        stamped[ROW_KEY] = next(self._handles)
        return super().insert(table, stamped)


def _sort_key(value: Any):
    text = as_text(value) or ""
    try:
        return (0, float(text), "")
    except ValueError:
        return (1, 0.0, text)


class FakeWhoDB(IAutomation):
    """IAutomation backed by in-memory tables seeded from the fixtures themselves."""

    def __init__(self, fixtures: Mapping[str, DatabaseFixture], seed: Optional[int] = 0,
                 max_rows: int = MAX_MOCK_ROWS):
        self.fixtures = fixtures
        self.seed = seed
        self.max_rows = max_rows
        self.calls: List[tuple] = []
        self.fail_login: Optional[Exception] = None
        self.fail_logout: Optional[Exception] = None
        self.fixture: Optional[DatabaseFixture] = None
        self.route: Optional[str] = None
        self.schema: Optional[str] = None
        self.advanced: Dict[str, Any] = {}
        self.table: Optional[str] = None
        self._sort: Optional[int] = None
        self._profiles: Dict[str, str] = {}
        self._current_profile: Optional[str] = None
        self._stores: Dict[str, TaggedRowStore] = {}
        self._generators: Dict[str, MockDataGenerator] = {}
        self._mock_table: Optional[str] = None
        self._mock_rows = 0

    # --- Session ---

    def _find_fixture(self, database_type: str, host: Optional[str], database: Optional[str]) -> DatabaseFixture:
        for fixture in self.fixtures.values():
            connection = fixture.connection
            if fixture.login_type == database_type and connection.host == host and connection.database == database:
                return fixture
        raise ConnectionError(f"No {database_type} server at {host}")

    def login(self, database_type, host=None, user=None, password=None, database=None, advanced=None):
        self.calls.append(('login', database_type, host, user, database))
        if self.fail_login is not None:
            raise self.fail_login
        fixture = self._find_fixture(database_type, host, database)
        self.fixture = fixture
        self.advanced = dict(advanced or {})
        profile = f"{database_type}: {user or ''}@{host or ''}/{database or ''}"
        self._profiles[profile] = fixture.id
        self._current_profile = profile
        self.route = None

    def logout(self):
        self.calls.append(('logout',))
        if self.fail_logout is not None:
            raise self.fail_logout
        self.fixture = None
        self.advanced = {}
        self.schema = None
        self.table = None
        self._profiles.clear()
        self._current_profile = None

    def goto(self, route):
        self._require_login()
        self.calls.append(('goto', route))
        self.route = route

    def select_schema(self, schema):
        self._require_login()
        self.calls.append(('select_schema', schema))
        self.schema = schema

    def _require_login(self) -> DatabaseFixture:
        if self.fixture is None:
            raise AssertionError("Not logged in")
        return self.fixture

    # --- Storage ---

    def _tables(self, fixture: DatabaseFixture) -> Dict[str, TableConfig]:
        tables = dict(fixture.tables)
        if fixture.test_table is not None and fixture.test_table.name not in tables:
            tables[fixture.test_table.name] = TableConfig(fixture.test_table.name)
        return tables

    def _store(self) -> TaggedRowStore:
        fixture = self._require_login()
        if fixture.id not in self._stores:
            self._stores[fixture.id] = self._seed(fixture)
        return self._stores[fixture.id]

    def _generator(self) -> MockDataGenerator:
        fixture = self._require_login()
        if fixture.id not in self._generators:
            self._generators[fixture.id] = MockDataGenerator(
                self._store(), DependencyResolver.from_fixture(fixture), self._tables(fixture),
                seed=self.seed, maximum=self.max_rows,
            )
        return self._generators[fixture.id]

    def _seed(self, fixture: DatabaseFixture) -> TaggedRowStore:
        tables = self._tables(fixture)
        relationships = fixture.mock_data.fk_relationships if fixture.mock_data else ()
        store = TaggedRowStore(tables, relationships)
        seeded = set()

        test_table = fixture.test_table
        if test_table is not None and test_table.identifier_field and test_table.test_values:
            values = test_table.test_values
            template = dict(tables[test_table.name].test_data.new_row or {})
            for position in range(max(values.row_index + 1, SEED_ROWS)):
                row = dict(template)
                row[test_table.identifier_field] = (values.original if position == values.row_index
                                                    else f"seed_user_{position}")
                store.insert(test_table.name, row)
            seeded.add(test_table.name)

        data_types = tables.get(fixture.data_types_table) if fixture.data_types_table else None
        if data_types is not None:
            store.insert(data_types.name, {column: spec.original_value
                                           for column, spec in data_types.test_data.type_tests.items()})
            seeded.add(data_types.name)

        generator = MockDataGenerator(store, DependencyResolver.from_fixture(fixture), tables, seed=self.seed)
        for name in DependencyResolver.from_fixture(fixture).order(list(tables)):
            if name not in seeded and tables[name].columns:
                generator.generate(name, SEED_ROWS)
        return store

    # --- Data view ---

    def data(self, table):
        fixture = self._require_login()
        if table not in self._tables(fixture):
            raise AssertionError(f"Table {table} is not listed for {fixture.id}")
        self.calls.append(('data', table))
        self.table = table
        self._sort = None

    def _config(self) -> TableConfig:
        if self.table is None:
            raise AssertionError("No table is open")
        return self._tables(self._require_login())[self.table]

    def _view(self) -> List[Dict[str, Any]]:
        rows = self._store().rows(self._config().name)
        if self._sort is not None:
            columns = self._config().column_names
            key = columns[self._sort] if self._sort < len(columns) else ROW_KEY
            rows.sort(key=lambda row: _sort_key(row.get(key)))
        return rows

    def get_table_data(self):
        config = self._config()
        rows = self._view()
        if self.fixture.category is Category.SQL:
            columns = list(config.column_names)
            return TableData(
                columns=[""] + columns,
                rows=[[""] + [as_text(row.get(column)) or "" for column in columns] for row in rows],
            )
        return TableData(
            columns=["", "document"],
            rows=[["", json.dumps({key: value for key, value in row.items() if key != ROW_KEY},
                                  sort_keys=True, default=str)] for row in rows],
        )

    def sort_by(self, column_index):
        self._config()
        self._sort = column_index

    def add_row(self, values, is_document=False):
        self.calls.append(('add_row', dict(values)))
        self._store().insert(self._config().name, dict(values))

    def _handle(self, row_index: int) -> int:
        view = self._view()
        if not 0 <= row_index < len(view):
            raise AssertionError(f"Row {row_index} is not shown ({len(view)} rows)")
        return view[row_index][ROW_KEY]

    def update_row(self, row_index, column_index, value, cancel=False):
        handle = self._handle(row_index)
        if cancel:
            return
        config = self._config()
        store = self._store()
        for position, row in enumerate(store.rows(config.name)):
            if row[ROW_KEY] == handle:
                store.update(config.name, position, config.column_names[column_index], value)
                return

    def delete_row(self, row_index):
        handle = self._handle(row_index)
        self._store().delete(self._config().name, lambda row: row.get(ROW_KEY) == handle)

    def total_count(self):
        return len(self._view())

    # --- Graph ---

    def get_graph(self):
        fixture = self._require_login()
        if fixture.graph is None:
            return {}
        return {node: list(neighbors) for node, neighbors in fixture.graph.expected_nodes.items()}

    def get_graph_node(self, name):
        config = self._tables(self._require_login()).get(name)
        if config is None:
            raise AssertionError(f"No graph node {name}")
        return GraphNode(name=name, type=config.metadata.type,
                         size="16 KB" if config.metadata.has_size else None)

    # --- Export ---

    def export(self, table, format, delimiter=None, selected_rows=None):
        export_format = ExportFormat(format)
        request = ExportRequest(export_format, delimiter,
                                tuple(selected_rows) if selected_rows is not None else None)
        exchange = NetworkExchange(
            request_body=request.to_dict(),
            status=200,
            headers={'Content-Disposition': f'attachment; filename="{table}{export_format.extension}"'},
            body=b"",
        )
        self.calls.append(('export', table, format))
        return exchange

    # --- Mock data ---

    def open_mock_data(self, table):
        fixture = self._require_login()
        allowed = fixture.category is Category.SQL and feature_enabled(fixture, "mockData")
        self._mock_table = table if allowed else None
        self._mock_rows = 0
        return allowed

    def set_mock_data_rows(self, rows):
        self._mock_rows = clamp_row_count(rows, self.max_rows)
        return self._mock_rows

    def mock_data_preview(self):
        plan = self._generator().plan(self._mock_table, self._mock_rows)
        return plan.preview() if plan.parent_steps else {}

    def generate_mock_data(self, overwrite=False):
        if self._mock_table is None:
            raise AssertionError("Mock data dialog is not open")
        self._generator().generate(self._mock_table, self._mock_rows, overwrite=overwrite)

    # --- Connection state ---

    def has_secure_connection_indicator(self):
        self._require_login()
        ssl = self.advanced.get('ssl') or {}
        return bool(ssl) and ssl.get('mode') != 'disabled'

    def profiles(self):
        return list(self._profiles)

    def current_profile(self):
        return self._current_profile

    def switch_profile(self, name):
        if name not in self._profiles:
            raise AssertionError(f"Unknown profile {name}")
        self._current_profile = name
        self.fixture = self.fixtures[self._profiles[name]]
