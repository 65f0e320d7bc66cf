# src/whodb/e2e/matrix/config.py
"""Declarative database fixture model.

Fixture documents are written in the camelCase JSON/YAML shape used by the
end-to-end fixture files. This module turns one document into an immutable
``DatabaseFixture``: frozen dataclasses, tuples instead of lists and
read-only mappings instead of dicts, so that scenario code can share one
fixture store for the whole run without being able to mutate it.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .types import Category, ROW_OFFSET


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


def freeze(value: Any) -> Any:
    """Recursively convert dicts to read-only mappings and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of ``freeze``, used when a fixture is serialized back out."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


def as_text(value: Any) -> Optional[str]:
    """Render a fixture value the way the web client displays it."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _get(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; fixtures use camelCase, callers may use snake_case."""
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass(frozen=True)
class ConnectionParams:
    """Connection parameters handed to the login form."""

    host: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    advanced: Mapping[str, Any] = field(default_factory=_empty)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'ConnectionParams':
        data = data or {}
        return cls(
            host=data.get("host"),
            user=_get(data, "user", "username"),
            password=data.get("password"),
            database=data.get("database"),
            advanced=freeze(data.get("advanced") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary, omitting unset values."""
        result = {
            'host': self.host,
            'user': self.user,
            'password': self.password,
            'database': self.database,
        }
        result = {key: value for key, value in result.items() if value is not None}
        if self.advanced:
            result['advanced'] = thaw(self.advanced)
        return result


@dataclass(frozen=True)
class SSLMode:
    """One named state of the SSL mode matrix."""

    mode: str
    needs_cert: bool = False
    should_succeed: bool = True
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SSLMode':
        return cls(
            mode=str(data.get("mode", "")),
            needs_cert=bool(_get(data, "needsCert", "needs_cert", default=False)),
            should_succeed=bool(_get(data, "shouldSucceed", "should_succeed", default=True)),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class SSLConfig:
    port: Optional[int] = None
    ca_cert_path: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    modes: Tuple[SSLMode, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SSLConfig':
        port = data.get("port")
        return cls(
            port=int(port) if port is not None else None,
            ca_cert_path=_get(data, "caCertPath", "ca_cert_path"),
            user=data.get("user"),
            password=data.get("password"),
            modes=tuple(SSLMode.from_dict(mode) for mode in data.get("modes") or ()),
        )

    def succeeding_modes(self) -> Tuple[SSLMode, ...]:
        """Modes the scenario driver exercises, in declaration order."""
        return tuple(mode for mode in self.modes if mode.should_succeed)


@dataclass(frozen=True)
class ForeignKeyRelationship:
    child_table: str
    parent_table: str
    fk_column: str
    parent_pk_column: str

    @classmethod
    def from_dict(cls, child_table: str, data: Mapping[str, Any]) -> 'ForeignKeyRelationship':
        return cls(
            child_table=child_table,
            parent_table=str(_get(data, "parentTable", "parent_table", default="")),
            fk_column=str(_get(data, "fkColumn", "fk_column", default="")),
            parent_pk_column=str(_get(data, "parentPkColumn", "parent_pk_column", default="")),
        )


@dataclass(frozen=True)
class MockDataConfig:
    supported_table: Optional[str] = None
    table_with_fks: Optional[str] = None
    fk_relationships: Tuple[ForeignKeyRelationship, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MockDataConfig':
        relationships = []
        raw = _get(data, "fkRelationships", "fk_relationships", default=None) or {}
        for child_table, entries in raw.items():
            # A child table may declare a single relationship or a list of them.
            if isinstance(entries, Mapping):
                entries = [entries]
            for entry in entries:
                relationships.append(ForeignKeyRelationship.from_dict(child_table, entry))
        return cls(
            supported_table=_get(data, "supportedTable", "supported_table"),
            table_with_fks=_get(data, "tableWithFKs", "table_with_fks"),
            fk_relationships=tuple(relationships),
        )

    def relationships_for(self, child_table: str) -> Tuple[ForeignKeyRelationship, ...]:
        return tuple(rel for rel in self.fk_relationships if rel.child_table == child_table)

    def primary_relationship(self, child_table: str) -> Optional[ForeignKeyRelationship]:
        relationships = self.relationships_for(child_table)
        return relationships[0] if relationships else None


@dataclass(frozen=True)
class GraphConfig:
    expected_nodes: Mapping[str, Tuple[str, ...]] = field(default_factory=_empty)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'GraphConfig':
        nodes = _get(data, "expectedNodes", "expected_nodes", default=None) or {}
        return cls(expected_nodes=MappingProxyType({
            str(node): tuple(str(n) for n in (neighbors or ())) for node, neighbors in nodes.items()
        }))


@dataclass(frozen=True)
class ColumnSpec:
    """Column descriptor; a bare string in the fixture is the column type."""

    name: str
    type: str = "text"
    nullable: bool = True
    primary_key: bool = False

    @classmethod
    def from_descriptor(cls, name: str, descriptor: Any) -> 'ColumnSpec':
        if isinstance(descriptor, Mapping):
            return cls(
                name=name,
                type=str(descriptor.get("type") or "text"),
                nullable=bool(descriptor.get("nullable", True)),
                primary_key=bool(_get(descriptor, "primaryKey", "primary_key", default=False)),
            )
        return cls(name=name, type=str(descriptor) if descriptor is not None else "text")


@dataclass(frozen=True)
class TableMetadata:
    type: Optional[str] = None
    has_size: bool = False
    extra: Mapping[str, Any] = field(default_factory=_empty)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TableMetadata':
        extra = {key: value for key, value in data.items() if key not in ("type", "hasSize", "has_size")}
        return cls(
            type=data.get("type"),
            has_size=bool(_get(data, "hasSize", "has_size", default=False)),
            extra=freeze(extra),
        )


@dataclass(frozen=True)
class TypeTest:
    """Per-type CRUD fixture for one column of the data types table."""

    column: str
    type: str
    add_value: Optional[str] = None
    original_value: Optional[str] = None
    update_value: Optional[str] = None
    delete_value: Optional[str] = None
    display_add_value: Optional[str] = None
    display_update_value: Optional[str] = None
    display_delete_value: Optional[str] = None

    @property
    def expected_add_display(self) -> Optional[str]:
        return self.display_add_value or self.add_value

    @property
    def expected_update_display(self) -> Optional[str]:
        return self.display_update_value or self.update_value

    @property
    def effective_delete_value(self) -> Optional[str]:
        # Delete uses its own value so it does not collide with the add case.
        return self.delete_value or self.add_value

    @property
    def expected_delete_display(self) -> Optional[str]:
        return self.display_delete_value or self.display_add_value or self.effective_delete_value

    @classmethod
    def from_dict(cls, column: str, data: Mapping[str, Any]) -> 'TypeTest':
        return cls(
            column=column,
            type=str(data.get("type") or ""),
            add_value=as_text(_get(data, "addValue", "add_value")),
            original_value=as_text(_get(data, "originalValue", "original_value")),
            update_value=as_text(_get(data, "updateValue", "update_value")),
            delete_value=as_text(_get(data, "deleteValue", "delete_value")),
            display_add_value=as_text(_get(data, "displayAddValue", "display_add_value")),
            display_update_value=as_text(_get(data, "displayUpdateValue", "display_update_value")),
            display_delete_value=as_text(_get(data, "displayDeleteValue", "display_delete_value")),
        )


@dataclass(frozen=True)
class TableTestData:
    type_tests: Mapping[str, TypeTest] = field(default_factory=_empty)
    new_row: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TableTestData':
        type_tests = _get(data, "typeTests", "type_tests", default=None) or {}
        new_row = _get(data, "newRow", "new_row")
        return cls(
            type_tests=MappingProxyType({
                column: TypeTest.from_dict(column, spec) for column, spec in type_tests.items()
            }),
            new_row=freeze(new_row) if new_row is not None else None,
        )


@dataclass(frozen=True)
class TableConfig:
    """Column order, metadata and embedded test data of one table.

    Column order matches the rendered column order of the data view, after
    the leading selection column (``ROW_OFFSET``).
    """

    name: str
    columns: Tuple[ColumnSpec, ...] = ()
    metadata: TableMetadata = field(default_factory=TableMetadata)
    test_data: TableTestData = field(default_factory=TableTestData)
    primary_key: Optional[str] = None

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> 'TableConfig':
        columns = data.get("columns") or {}
        if isinstance(columns, Mapping):
            specs = tuple(ColumnSpec.from_descriptor(col, desc) for col, desc in columns.items())
        else:
            specs = tuple(ColumnSpec.from_descriptor(str(col), None) for col in columns)
        return cls(
            name=name,
            columns=specs,
            metadata=TableMetadata.from_dict(data.get("metadata") or {}),
            test_data=TableTestData.from_dict(_get(data, "testData", "test_data", default=None) or {}),
            primary_key=_get(data, "primaryKey", "primary_key"),
        )

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def column_index(self, name: str) -> int:
        """Position of ``name`` among the declared columns, -1 when absent."""
        try:
            return self.column_names.index(name)
        except ValueError:
            return -1

    def cell_index(self, name: str) -> int:
        """Position of the column's cell in a rendered row."""
        index = self.column_index(name)
        if index < 0:
            raise KeyError(f"Column '{name}' is not declared for table '{self.name}'")
        return index + ROW_OFFSET

    def find_column(self, name: str) -> Optional[str]:
        """Case-insensitive column lookup; backends differ in identifier case."""
        lowered = name.lower()
        for column in self.column_names:
            if column.lower() == lowered:
                return column
        return None

    @property
    def primary_key_column(self) -> Optional[str]:
        if self.primary_key:
            return self.primary_key
        for column in self.columns:
            if column.primary_key:
                return column.name
        return self.find_column("id")


@dataclass(frozen=True)
class TestValues:
    __test__ = False

    original: Optional[str] = None
    modified: Optional[str] = None
    row_index: int = 0


@dataclass(frozen=True)
class TestTableConfig:
    """Default table a fixture exposes to feature scenarios."""

    __test__ = False

    name: Optional[str] = None
    identifier_field: Optional[str] = None
    identifier_col_index: Optional[int] = None
    test_values: Optional[TestValues] = None
    type_casting_table: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TestTableConfig':
        values = _get(data, "testValues", "test_values")
        test_values = None
        if values is not None:
            test_values = TestValues(
                original=as_text(values.get("original")),
                modified=as_text(values.get("modified")),
                row_index=int(_get(values, "rowIndex", "row_index", default=0)),
            )
        col_index = _get(data, "identifierColIndex", "identifier_col_index")
        return cls(
            name=data.get("name"),
            identifier_field=_get(data, "identifierField", "identifier_field"),
            identifier_col_index=int(col_index) if col_index is not None else None,
            test_values=test_values,
            type_casting_table=_get(data, "typeCastingTable", "type_casting_table"),
        )


@dataclass(frozen=True)
class DatabaseFixture:
    """Declarative description of one database backend under test."""

    id: str
    type: str
    category: Category
    connection: ConnectionParams = field(default_factory=ConnectionParams)
    features: Mapping[str, Any] = field(default_factory=_empty)
    feature_notes: Mapping[str, str] = field(default_factory=_empty)
    mutation_delay_ms: float = 0
    test_table: Optional[TestTableConfig] = None
    data_types_table: Optional[str] = None
    tables: Mapping[str, TableConfig] = field(default_factory=_empty)
    mock_data: Optional[MockDataConfig] = None
    ssl: Optional[SSLConfig] = None
    graph: Optional[GraphConfig] = None
    ui_type: Optional[str] = None
    schema: Optional[str] = None
    shows_schema_dropdown: bool = False
    source: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=_empty, repr=False, compare=False)

    @property
    def mutation_delay(self) -> float:
        """Mutation visibility delay in seconds."""
        return self.mutation_delay_ms / 1000.0

    @property
    def login_type(self) -> str:
        return self.ui_type or self.type

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], fixture_id: Optional[str] = None,
                  source: Optional[str] = None) -> 'DatabaseFixture':
        """Build a fixture from one decoded document.

        The document is expected to have passed fixture-level validation;
        optional blocks are parsed leniently.
        """
        db_type = str(data.get("type") or "")
        fixture_id = data.get("id") or fixture_id or db_type.lower()

        features = data.get("features") or {}
        if not isinstance(features, Mapping):
            # List shorthand: every listed tag is supported.
            features = {str(tag): True for tag in features}

        test_table = data.get("testTable") or data.get("test_table")
        mock_data = data.get("mockData") or data.get("mock_data")
        ssl = data.get("ssl")
        graph = data.get("graph")
        sidebar = data.get("sidebar") or {}

        return cls(
            id=str(fixture_id),
            type=db_type,
            category=Category.parse(data.get("category")),
            connection=ConnectionParams.from_dict(data.get("connection")),
            features=freeze(features),
            feature_notes=freeze(_get(data, "featureNotes", "feature_notes", default=None) or {}),
            mutation_delay_ms=float(_get(data, "mutationDelay", "mutation_delay", default=0) or 0),
            test_table=TestTableConfig.from_dict(test_table) if test_table else None,
            data_types_table=_get(data, "dataTypesTable", "data_types_table"),
            tables=MappingProxyType({
                name: TableConfig.from_dict(name, table or {})
                for name, table in (data.get("tables") or {}).items()
            }),
            mock_data=MockDataConfig.from_dict(mock_data) if mock_data else None,
            ssl=SSLConfig.from_dict(ssl) if ssl else None,
            graph=GraphConfig.from_dict(graph) if graph else None,
            ui_type=_get(data, "uiType", "ui_type"),
            schema=data.get("schema"),
            shows_schema_dropdown=bool(_get(sidebar, "showsSchemaDropdown", "shows_schema_dropdown",
                                            default=False)),
            source=source,
            raw=freeze(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Summary used by the command line listing."""
        return {
            'id': self.id,
            'type': self.type,
            'category': self.category.value,
            'features': {key: value for key, value in self.features.items()},
            'mutationDelay': self.mutation_delay_ms,
            'tables': list(self.tables.keys()),
            'source': self.source,
        }
