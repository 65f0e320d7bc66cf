# src/whodb/e2e/matrix/validator.py
"""Schema validation for database fixture documents.

Validation runs on the decoded document before it is turned into a
``DatabaseFixture``. Issues carry a scope: fixture-level issues (scope
``None``) reject the whole fixture, while issues inside an optional block
(``ssl``, ``mockData``, ``graph``, ``tables``) only affect scenario groups
that use that block.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import DependencyCycleError, FixtureValidationError
from .types import CORE_FEATURES, Category, VALID_FEATURES

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('type', 'category', 'connection', 'features')

TEST_TABLE_REQUIRED_FIELDS: Dict[str, tuple] = {
    'sql': ('name', 'identifierField', 'identifierColIndex', 'testValues'),
    'document': ('name', 'identifierField', 'testValues'),
    'keyvalue': ('name', 'identifierField', 'testValues'),
}

TEST_VALUES_REQUIRED_FIELDS = ('original', 'modified', 'rowIndex')

SCOPE_SSL = 'ssl'
SCOPE_MOCK_DATA = 'mockData'
SCOPE_GRAPH = 'graph'
SCOPE_TABLES = 'tables'


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    message: str
    severity: Severity = Severity.ERROR
    scope: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def __str__(self):
        prefix = "Warning: " if self.severity is Severity.WARNING else ""
        location = f"{self.scope}: " if self.scope else ""
        return f"{prefix}{location}{self.message}"


@dataclass(frozen=True)
class UnreadableDocument:
    """Placeholder for a fixture file that could not be decoded."""
    path: str
    message: str


@dataclass
class ValidationResult:
    """Outcome of validating one fixture document."""
    name: str
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if not issue.is_error]

    @property
    def valid(self) -> bool:
        """True when no error was found in any scope."""
        return not self.errors

    @property
    def usable(self) -> bool:
        """True when the fixture can be loaded; block-level errors are tolerated."""
        return not any(issue.scope is None for issue in self.errors)

    def errors_for(self, scopes: Iterable[str]) -> List[ValidationIssue]:
        wanted = set(scopes)
        return [issue for issue in self.errors if issue.scope in wanted]

    def error(self, message: str, scope: Optional[str] = None):
        self.issues.append(ValidationIssue(message, Severity.ERROR, scope))

    def warn(self, message: str, scope: Optional[str] = None):
        self.issues.append(ValidationIssue(message, Severity.WARNING, scope))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'valid': self.valid,
            'errors': [str(issue) for issue in self.errors],
            'warnings': [str(issue) for issue in self.warnings],
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _declared_columns(table: Any) -> Optional[List[str]]:
    if not isinstance(table, Mapping):
        return None
    columns = table.get('columns')
    if isinstance(columns, Mapping):
        return list(columns.keys())
    if isinstance(columns, list):
        return [str(column) for column in columns]
    return None


def _validate_features(fixture: Mapping[str, Any], result: ValidationResult):
    features = fixture.get('features')
    if features is None:
        return
    if isinstance(features, list):
        features = {tag: True for tag in features}
    if not isinstance(features, Mapping):
        result.error("features must be a mapping of feature name to boolean")
        return

    for feature in CORE_FEATURES:
        if feature not in features:
            result.warn(f"Feature '{feature}' is not declared")
    for feature, value in features.items():
        if feature not in VALID_FEATURES:
            result.error(f"Unknown feature: '{feature}'. Valid features: {', '.join(VALID_FEATURES)}")
        elif value is not None and not isinstance(value, bool):
            result.error(f"Invalid feature flag: {feature} (must be boolean)")

    notes = fixture.get('featureNotes')
    if isinstance(notes, Mapping):
        for feature, enabled in features.items():
            if enabled is False and not notes.get(feature):
                result.warn(f"Feature '{feature}' is disabled but has no explanation in featureNotes")


def _validate_test_table(fixture: Mapping[str, Any], result: ValidationResult):
    test_table = fixture.get('testTable')
    if not isinstance(test_table, Mapping):
        result.error("Missing testTable config - required for feature-focused tests")
        return
    for name in TEST_TABLE_REQUIRED_FIELDS.get(str(fixture.get('category')), ()):
        if test_table.get(name) is None:
            result.error(f"testTable missing required field: {name}")
    values = test_table.get('testValues')
    if isinstance(values, Mapping):
        for name in TEST_VALUES_REQUIRED_FIELDS:
            if name not in values:
                result.error(f"testTable.testValues missing required field: {name}")


def _validate_ssl(ssl: Any, result: ValidationResult):
    if not isinstance(ssl, Mapping):
        result.error("ssl must be a mapping", SCOPE_SSL)
        return
    port = ssl.get('port')
    if port is not None and not isinstance(port, int):
        result.error(f"ssl.port must be an integer, got {port!r}", SCOPE_SSL)
    modes = ssl.get('modes')
    if not isinstance(modes, list):
        result.error("ssl.modes must be a list", SCOPE_SSL)
        return
    for position, mode in enumerate(modes):
        if not isinstance(mode, Mapping) or not mode.get('mode'):
            result.error(f"ssl.modes[{position}] is missing 'mode'", SCOPE_SSL)
            continue
        if mode.get('needsCert') and not ssl.get('caCertPath'):
            result.error(f"ssl mode '{mode['mode']}' needs a certificate but caCertPath is not set", SCOPE_SSL)


def _validate_mock_data(mock_data: Any, tables: Mapping[str, Any], result: ValidationResult):
    if not isinstance(mock_data, Mapping):
        result.error("mockData must be a mapping", SCOPE_MOCK_DATA)
        return
    for key in ('supportedTable', 'tableWithFKs'):
        table = mock_data.get(key)
        if table is not None and table not in tables:
            result.error(f"mockData.{key} references unknown table '{table}'", SCOPE_MOCK_DATA)

    relationships = mock_data.get('fkRelationships') or {}
    if not isinstance(relationships, Mapping):
        result.error("mockData.fkRelationships must be a mapping", SCOPE_MOCK_DATA)
        return
    for child, entries in relationships.items():
        if isinstance(entries, Mapping):
            entries = [entries]
        if child not in tables:
            result.error(f"FK relationship for unknown table '{child}'", SCOPE_MOCK_DATA)
            continue
        for entry in entries or ():
            parent = entry.get('parentTable') if isinstance(entry, Mapping) else None
            fk_column = entry.get('fkColumn') if isinstance(entry, Mapping) else None
            parent_pk = entry.get('parentPkColumn') if isinstance(entry, Mapping) else None
            if not (parent and fk_column and parent_pk):
                result.error(
                    f"FK relationship of '{child}' needs parentTable, fkColumn and parentPkColumn", SCOPE_MOCK_DATA
                )
                continue
            if parent not in tables:
                result.error(f"'{child}.{fk_column}' references unknown table '{parent}'", SCOPE_MOCK_DATA)
                continue
            child_columns = _declared_columns(tables[child])
            if child_columns is not None and fk_column not in child_columns:
                result.error(f"FK column '{fk_column}' is not a column of '{child}'", SCOPE_MOCK_DATA)
            parent_columns = _declared_columns(tables[parent])
            if parent_columns is not None and parent_pk not in parent_columns:
                result.error(f"Parent column '{parent_pk}' is not a column of '{parent}'", SCOPE_MOCK_DATA)

    if not any(issue.scope == SCOPE_MOCK_DATA for issue in result.errors):
        # Deferred import: mockdata depends on the parsed fixture model.
        from .config import MockDataConfig
        from .mockdata import DependencyResolver
        try:
            DependencyResolver(MockDataConfig.from_dict(mock_data)).order()
        except DependencyCycleError as e:
            result.error(str(e), SCOPE_MOCK_DATA)


def _validate_graph(graph: Any, result: ValidationResult):
    nodes = graph.get('expectedNodes') if isinstance(graph, Mapping) else None
    if not isinstance(nodes, Mapping):
        result.error("graph.expectedNodes must be a mapping of node to neighbor list", SCOPE_GRAPH)
        return
    for node, neighbors in nodes.items():
        if not isinstance(neighbors, list):
            result.error(f"graph.expectedNodes.{node} must be a list", SCOPE_GRAPH)


def _validate_tables(fixture: Mapping[str, Any], tables: Any, result: ValidationResult):
    if not isinstance(tables, Mapping):
        result.error("tables must be a mapping of table name to table config", SCOPE_TABLES)
        return
    for name, table in tables.items():
        if not isinstance(table, Mapping):
            result.error(f"Table '{name}' must be a mapping", SCOPE_TABLES)
            continue
        columns = _declared_columns(table)
        type_tests = (table.get('testData') or {}).get('typeTests') or {}
        for column in type_tests:
            if columns is not None and column not in columns:
                result.error(f"typeTests column '{column}' is not a column of '{name}'", SCOPE_TABLES)
    data_types_table = fixture.get('dataTypesTable')
    if data_types_table is not None and data_types_table not in tables:
        result.error(f"dataTypesTable references unknown table '{data_types_table}'", SCOPE_TABLES)


def validate_fixture(fixture: Any, name: str) -> ValidationResult:
    """Validate one decoded fixture document."""
    result = ValidationResult(name)
    if isinstance(fixture, UnreadableDocument):
        result.error(fixture.message)
        return result
    if not isinstance(fixture, Mapping):
        result.error("Fixture must be a mapping")
        return result

    for required in REQUIRED_FIELDS:
        if fixture.get(required) is None:
            result.error(f"Missing required field: {required}")

    category = fixture.get('category')
    valid_categories = [c.value for c in Category]
    if category is not None and category not in valid_categories:
        result.error(f"Invalid category: {category}. Must be one of: {', '.join(valid_categories)}")

    connection = fixture.get('connection')
    if connection is not None and not isinstance(connection, Mapping):
        result.error("connection must be an object")

    delay = fixture.get('mutationDelay')
    if delay is not None and (not _is_number(delay) or delay < 0):
        result.error(f"mutationDelay must be a non-negative number of milliseconds, got {delay!r}")

    _validate_features(fixture, result)
    _validate_test_table(fixture, result)

    tables = fixture.get('tables')
    if tables is not None:
        _validate_tables(fixture, tables, result)
    table_map = tables if isinstance(tables, Mapping) else {}
    if fixture.get('mockData') is not None:
        _validate_mock_data(fixture['mockData'], table_map, result)
    if fixture.get('ssl') is not None:
        _validate_ssl(fixture['ssl'], result)
    if fixture.get('graph') is not None:
        _validate_graph(fixture['graph'], result)
    return result


def validate_all(fixtures: Mapping[str, Any]) -> Dict[str, ValidationResult]:
    """Validate every fixture and log a summary per fixture."""
    results = {}
    for name, fixture in fixtures.items():
        result = validate_fixture(fixture, name)
        results[name] = result
        if not result.valid:
            logger.error(f"Fixture validation failed for {name}:")
            for issue in result.errors:
                logger.error(f"   - {issue}")
        for issue in result.warnings:
            logger.warning(f"Fixture {name}: {issue}")
    if all(result.valid for result in results.values()):
        logger.info("All fixtures validated successfully")
    return results


def assert_fixtures_valid(fixtures: Mapping[str, Any]) -> Dict[str, ValidationResult]:
    """Validate every fixture and raise when any of them has errors."""
    results = validate_all(fixtures)
    failed = [result for result in results.values() if not result.valid]
    if failed:
        details = "\n".join(
            f"{result.name}: {', '.join(str(issue) for issue in result.errors)}" for result in failed
        )
        raise FixtureValidationError(
            f"Fixture validation failed:\n{details}",
            errors=[str(issue) for result in failed for issue in result.errors],
        )
    return results
