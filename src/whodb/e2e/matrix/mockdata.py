# src/whodb/e2e/matrix/mockdata.py
"""Mock-data planning, generation and referential-integrity checks.

The same ``GenerationPlan`` drives the preview shown before generation and
the generation itself, so the parent row counts a user sees are the counts
that get written.
"""
import json
import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from faker import Faker

from .config import ColumnSpec, ForeignKeyRelationship, MockDataConfig, TableConfig, as_text
from .errors import DependencyCycleError, IntegrityViolation, ReferentialIntegrityError

logger = logging.getLogger(__name__)

MAX_MOCK_ROWS = 200
ROWS_PER_PARENT = 5
MIN_PARENT_ROWS = 1

NULL_MARKERS = ("", "NULL")


def clamp_row_count(requested: int, maximum: int = MAX_MOCK_ROWS) -> int:
    """Clamp a requested row count into ``[1, maximum]``."""
    return min(max(int(requested), 1), maximum)


def parent_row_count(child_rows: int) -> int:
    return max(MIN_PARENT_ROWS, math.ceil(child_rows / ROWS_PER_PARENT))


@dataclass(frozen=True)
class GenerationStep:
    table: str
    rows: int
    is_target: bool = False


@dataclass(frozen=True)
class GenerationPlan:
    """Ordered generation steps, parents first and the target table last."""
    target: str
    rows: int
    steps: Tuple[GenerationStep, ...]

    @property
    def parent_steps(self) -> Tuple[GenerationStep, ...]:
        return tuple(step for step in self.steps if not step.is_target)

    @property
    def total(self) -> int:
        return sum(step.rows for step in self.steps)

    def rows_for(self, table: str) -> int:
        for step in self.steps:
            if step.table == table:
                return step.rows
        return 0

    def preview(self) -> Dict[str, int]:
        """Table to row count, in generation order."""
        return {step.table: step.rows for step in self.steps}


class DependencyResolver:
    """Parent-first view of the foreign key relationships of one fixture."""

    def __init__(self, config: Optional[MockDataConfig]):
        self._relationships: Tuple[ForeignKeyRelationship, ...] = config.fk_relationships if config else ()

    @classmethod
    def from_fixture(cls, fixture) -> 'DependencyResolver':
        return cls(fixture.mock_data)

    @property
    def relationships(self) -> Tuple[ForeignKeyRelationship, ...]:
        return self._relationships

    def relationships_for(self, child: str) -> Tuple[ForeignKeyRelationship, ...]:
        return tuple(rel for rel in self._relationships if rel.child_table == child)

    def parents_of(self, table: str) -> Tuple[str, ...]:
        parents: List[str] = []
        for rel in self.relationships_for(table):
            # Self references are satisfied by earlier rows of the same table.
            if rel.parent_table != table and rel.parent_table not in parents:
                parents.append(rel.parent_table)
        return tuple(parents)

    def children_of(self, table: str) -> Tuple[str, ...]:
        children: List[str] = []
        for rel in self._relationships:
            if rel.parent_table == table and rel.child_table != table and rel.child_table not in children:
                children.append(rel.child_table)
        return tuple(children)

    def _tables(self) -> List[str]:
        tables: List[str] = []
        for rel in self._relationships:
            for table in (rel.parent_table, rel.child_table):
                if table not in tables:
                    tables.append(table)
        return tables

    def _declared(self, names: Set[str]) -> List[str]:
        return [table for table in self._tables() if table in names]

    def order(self, tables: Optional[Iterable[str]] = None) -> Tuple[str, ...]:
        """Topological order, parents before children; ties keep declaration order."""
        wanted = list(tables) if tables is not None else self._tables()
        ordered: List[str] = []
        visiting: List[str] = []

        def visit(table: str):
            if table in ordered:
                return
            if table in visiting:
                cycle = visiting[visiting.index(table):] + [table]
                raise DependencyCycleError(f"Foreign key cycle: {' -> '.join(cycle)}")
            visiting.append(table)
            for parent in self.parents_of(table):
                visit(parent)
            visiting.pop()
            ordered.append(table)

        for table in wanted:
            visit(table)
        return tuple(table for table in ordered if table in wanted or tables is None)

    def ancestors(self, table: str) -> Tuple[str, ...]:
        """All transitive parents of ``table``, parent first."""
        found: Set[str] = set()
        pending = list(self.parents_of(table))
        while pending:
            parent = pending.pop()
            if parent not in found and parent != table:
                found.add(parent)
                pending.extend(self.parents_of(parent))
        return tuple(t for t in self.order(self._declared(found) + [table]) if t != table)

    def dependents(self, table: str) -> Tuple[str, ...]:
        """All transitive children of ``table``, children first."""
        found: Set[str] = set()
        pending = list(self.children_of(table))
        while pending:
            child = pending.pop()
            if child not in found and child != table:
                found.add(child)
                pending.extend(self.children_of(child))
        return tuple(reversed([t for t in self.order(self._declared(found) + [table]) if t != table]))

    def plan(self, table: str, rows: int, maximum: int = MAX_MOCK_ROWS) -> GenerationPlan:
        """Plan the generation of ``rows`` rows into ``table`` and its parents."""
        rows = clamp_row_count(rows, maximum)
        ordered = self.ancestors(table) + (table,)
        counts: Dict[str, int] = {table: rows}
        # Children are sized before their parents, so walk in reverse.
        for current in reversed(ordered[:-1]):
            counts[current] = max(
                (parent_row_count(counts[child]) for child in ordered
                 if child in counts and current in self.parents_of(child)),
                default=MIN_PARENT_ROWS,
            )
        steps = tuple(GenerationStep(name, counts[name], name == table) for name in ordered)
        return GenerationPlan(target=table, rows=rows, steps=steps)


class IRowStore(ABC):
    """Minimal table storage the generator writes through."""

    @abstractmethod
    def rows(self, table: str) -> List[Dict[str, Any]]:
        """Return a copy of the rows of ``table`` in insertion order."""

    @abstractmethod
    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored, with generated keys filled in."""

    @abstractmethod
    def clear(self, table: str) -> int:
        """Delete every row of ``table`` and return how many were removed."""

    def count(self, table: str) -> int:
        return len(self.rows(table))

    def column_values(self, table: str, column: str) -> List[Any]:
        return [row.get(column) for row in self.rows(table)]


def _is_null(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() in NULL_MARKERS)


class InMemoryRowStore(IRowStore):
    """Row store that enforces declared foreign keys and assigns integer keys."""

    def __init__(self, tables: Mapping[str, TableConfig],
                 relationships: Sequence[ForeignKeyRelationship] = ()):
        self._tables = tables
        self._relationships = tuple(relationships)
        self._rows: Dict[str, List[Dict[str, Any]]] = {name: [] for name in tables}

    def _table_rows(self, table: str) -> List[Dict[str, Any]]:
        if table not in self._rows:
            raise KeyError(f"Unknown table '{table}'")
        return self._rows[table]

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._table_rows(table)]

    def _next_key(self, table: str, column: str) -> int:
        keys = [row.get(column) for row in self._table_rows(table)]
        numeric = [int(key) for key in keys if isinstance(key, int) or (isinstance(key, str) and key.isdigit())]
        return max(numeric, default=0) + 1

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        stored = dict(row)
        config = self._tables.get(table)
        pk = config.primary_key_column if config else None
        if pk and _is_null(stored.get(pk)):
            stored[pk] = self._next_key(table, pk)

        for rel in self._relationships:
            if rel.child_table != table:
                continue
            value = stored.get(rel.fk_column)
            if _is_null(value):
                continue
            parent_keys = {as_text(key) for key in self.column_values(rel.parent_table, rel.parent_pk_column)}
            if rel.parent_table == table:
                parent_keys.add(as_text(stored.get(rel.parent_pk_column)))
            if as_text(value) not in parent_keys:
                raise IntegrityViolation(
                    f"{table}.{rel.fk_column}={value} has no matching {rel.parent_table}.{rel.parent_pk_column}"
                )
        self._table_rows(table).append(stored)
        return dict(stored)

    def _referencing_rows(self, table: str, predicate: Callable[[Dict[str, Any]], bool]) -> List[str]:
        doomed = {as_text(row.get(rel.parent_pk_column))
                  for rel in self._relationships if rel.parent_table == table
                  for row in self._table_rows(table) if predicate(row)}
        blocking = []
        for rel in self._relationships:
            if rel.parent_table != table or rel.child_table == table:
                continue
            for row in self._table_rows(rel.child_table):
                if as_text(row.get(rel.fk_column)) in doomed:
                    blocking.append(f"{rel.child_table}.{rel.fk_column}={row.get(rel.fk_column)}")
        return blocking

    def delete(self, table: str, predicate: Callable[[Dict[str, Any]], bool]) -> int:
        blocking = self._referencing_rows(table, predicate)
        if blocking:
            raise IntegrityViolation(f"Rows of {table} are still referenced by {', '.join(blocking)}")
        rows = self._table_rows(table)
        kept = [row for row in rows if not predicate(row)]
        removed = len(rows) - len(kept)
        self._rows[table] = kept
        return removed

    def update(self, table: str, position: int, column: str, value: Any) -> Dict[str, Any]:
        rows = self._table_rows(table)
        rows[position][column] = value
        return dict(rows[position])

    def clear(self, table: str) -> int:
        return self.delete(table, lambda row: True)


def check_referential_integrity(rows: Iterable[Mapping[str, Any]], fk_column: str,
                                parent_keys: Iterable[Any]) -> List[str]:
    """Return the foreign key values that have no matching parent key.

    Null, empty and literal ``NULL`` values are not references and are ignored.
    """
    keys = {as_text(key).strip() for key in parent_keys if not _is_null(key)}
    violations = []
    for row in rows:
        value = row.get(fk_column)
        if _is_null(value):
            continue
        text = as_text(value).strip()
        if text not in keys:
            violations.append(text)
    return violations


def assert_referential_integrity(table: str, rows: Iterable[Mapping[str, Any]], fk_column: str,
                                 parent_keys: Iterable[Any]):
    violations = check_referential_integrity(rows, fk_column, parent_keys)
    if violations:
        raise ReferentialIntegrityError(table, fk_column, violations)


_INT_TYPES = {"INT", "INTEGER", "SMALLINT", "TINYINT", "MEDIUMINT", "BIGINT", "SERIAL", "BIGSERIAL",
              "SMALLSERIAL", "INT2", "INT4", "INT8", "INT16", "INT32", "INT64", "UINT8", "UINT16",
              "UINT32", "UINT64"}
_FLOAT_TYPES = {"FLOAT", "DOUBLE", "REAL", "DECIMAL", "NUMERIC", "MONEY", "FLOAT4", "FLOAT8",
                "FLOAT32", "FLOAT64", "DOUBLE PRECISION"}
_BOOL_TYPES = {"BOOL", "BOOLEAN", "BIT"}
_DATE_TYPES = {"DATE"}
_DATETIME_TYPES = {"DATETIME", "TIMESTAMP", "TIMESTAMPTZ", "TIMESTAMP WITH TIME ZONE",
                   "TIMESTAMP WITHOUT TIME ZONE", "DATETIME64"}
_UUID_TYPES = {"UUID", "UNIQUEIDENTIFIER"}
_JSON_TYPES = {"JSON", "JSONB"}

_SIZE = re.compile(r"\((\d+)")


def detect_column_kind(column_type: str) -> str:
    """Reduce a backend column type to a generator kind."""
    upper = column_type.upper().strip()
    if "[]" in upper:
        return "array"
    if "(" in upper:
        upper = upper[:upper.index("(")].strip()
    for kind, names in (("int", _INT_TYPES), ("float", _FLOAT_TYPES), ("bool", _BOOL_TYPES),
                        ("date", _DATE_TYPES), ("datetime", _DATETIME_TYPES), ("uuid", _UUID_TYPES),
                        ("json", _JSON_TYPES)):
        if upper in names:
            return kind
    return "text"


def max_length(column_type: str) -> Optional[int]:
    match = _SIZE.search(column_type)
    return int(match.group(1)) if match and int(match.group(1)) > 0 else None


# Most specific first; the first match wins. Only applied to text columns.
_NAME_PATTERNS: Tuple[Tuple[re.Pattern, Callable[[Faker], Any]], ...] = (
    (re.compile(r"(^|_)e[-_]?mail(_|$)", re.I), lambda f: f.email()),
    (re.compile(r"(^|_)(user[-_]?name|uname|login)(_|$)", re.I), lambda f: f.user_name()),
    (re.compile(r"(^|_)(first[-_]?name|fname|given[-_]?name)(_|$)", re.I), lambda f: f.first_name()),
    (re.compile(r"(^|_)(last[-_]?name|lname|surname|family[-_]?name)(_|$)", re.I), lambda f: f.last_name()),
    (re.compile(r"^name$|(^|_)(full[-_]?name|display[-_]?name)(_|$)", re.I), lambda f: f.name()),
    (re.compile(r"(^|_)(phone|mobile|cell|telephone|tel)(_|$)", re.I), lambda f: f.phone_number()),
    (re.compile(r"(^|_)(ip|ip[-_]?addr(ess)?)(_|$)", re.I), lambda f: f.ipv4()),
    (re.compile(r"^(url|website|link|homepage)$", re.I), lambda f: f.url()),
    (re.compile(r"(^|_)(street[-_]?address|address[-_]?line|address|street)(_|$)", re.I),
     lambda f: f.street_address()),
    (re.compile(r"^city$", re.I), lambda f: f.city()),
    (re.compile(r"^(state|province|region)$", re.I), lambda f: f.state()),
    (re.compile(r"^country$", re.I), lambda f: f.country()),
    (re.compile(r"(^|_)(zip|postal|postcode)(_|$)", re.I), lambda f: f.postcode()),
    (re.compile(r"(^|_)(company|organization|org)(_|$)", re.I), lambda f: f.company()),
    (re.compile(r"(^|_)(job[-_]?title|title|position|role)(_|$)", re.I), lambda f: f.job()),
    (re.compile(r"(^|_)(description|bio|about|summary)(_|$)", re.I), lambda f: f.sentence()),
    (re.compile(r"(^|_)(password|passwd|pwd|secret|api[-_]?key|token)(_|$)", re.I), lambda f: f.password()),
)


class MockDataGenerator:
    """Executes generation plans against a row store using Faker values."""

    def __init__(self, store: IRowStore, resolver: DependencyResolver,
                 tables: Mapping[str, TableConfig], seed: Optional[int] = None,
                 maximum: int = MAX_MOCK_ROWS):
        self._store = store
        self._resolver = resolver
        self._tables = tables
        self._maximum = maximum
        self._faker = Faker()
        if seed is not None:
            self._faker.seed_instance(seed)
        self._logger = logger

    def log(self, level: int, msg: str):
        self._logger.log(level, msg)

    def plan(self, table: str, rows: int) -> GenerationPlan:
        return self._resolver.plan(table, rows, self._maximum)

    def value_for(self, column: ColumnSpec) -> Any:
        """Produce one value for a column from its name and type."""
        kind = detect_column_kind(column.type)
        fake = self._faker
        if kind == "int":
            return fake.pyint(min_value=0, max_value=10000)
        if kind == "float":
            return round(fake.pyfloat(min_value=0, max_value=10000), 2)
        if kind == "bool":
            return fake.pybool()
        if kind == "date":
            return fake.date()
        if kind == "datetime":
            return fake.date_time().strftime("%Y-%m-%d %H:%M:%S")
        if kind == "uuid":
            return fake.uuid4()
        if kind == "json":
            return json.dumps({"key": fake.word(), "value": fake.pyint()})
        if kind == "array":
            return "{" + ",".join(fake.words(nb=fake.pyint(min_value=1, max_value=5))) + "}"

        limit = max_length(column.type)
        for pattern, produce in _NAME_PATTERNS:
            if pattern.search(column.name):
                value = str(produce(fake))
                break
        else:
            value = fake.word() if limit is not None and limit < 10 else fake.sentence(nb_words=4)
        return value[:limit] if limit else value

    def _build_row(self, table: str) -> Dict[str, Any]:
        config = self._tables.get(table)
        if config is None:
            raise KeyError(f"No column configuration for table '{table}'")
        fk_columns = {rel.fk_column: rel for rel in self._resolver.relationships_for(table)}
        pk = config.primary_key_column
        row: Dict[str, Any] = {}
        for column in config.columns:
            if column.name in fk_columns:
                rel = fk_columns[column.name]
                keys = [key for key in self._store.column_values(rel.parent_table, rel.parent_pk_column)
                        if not _is_null(key)]
                if not keys:
                    if rel.parent_table == table or column.nullable:
                        row[column.name] = None
                        continue
                    raise IntegrityViolation(
                        f"No rows in {rel.parent_table} to reference from {table}.{column.name}"
                    )
                row[column.name] = self._faker.random_element(keys)
            elif column.name == pk and detect_column_kind(column.type) == "int":
                continue
            else:
                row[column.name] = self.value_for(column)
        return row

    def clear_for_overwrite(self, table: str) -> List[str]:
        """Empty ``table`` and every table that references it, children first."""
        cleared = []
        for dependent in self._resolver.dependents(table) + (table,):
            removed = self._store.clear(dependent)
            self.log(logging.DEBUG, f"Cleared {removed} rows from {dependent}")
            cleared.append(dependent)
        return cleared

    def generate(self, table: str, rows: int, overwrite: bool = False) -> GenerationPlan:
        """Plan and write mock rows for ``table`` and its parent tables."""
        plan = self.plan(table, rows)
        self.log(logging.INFO, f"Generating mock data for {table}: {plan.preview()}")
        if overwrite:
            self.clear_for_overwrite(table)
        for step in plan.steps:
            for _ in range(step.rows):
                self._store.insert(step.table, self._build_row(step.table))
            self.log(logging.DEBUG, f"Inserted {step.rows} rows into {step.table}")
        return plan
