# src/whodb/e2e/matrix/tables.py
from typing import Optional

from .config import DatabaseFixture, TableConfig, TypeTest
from .types import ROW_OFFSET


def get_table_config(fixture: DatabaseFixture, table_name: str) -> Optional[TableConfig]:
    """Exact-name table lookup; ``None`` when the fixture does not declare it."""
    return fixture.tables.get(table_name)


def require_table_config(fixture: DatabaseFixture, table_name: str) -> TableConfig:
    table = get_table_config(fixture, table_name)
    if table is None:
        raise KeyError(f"Table '{table_name}' is not declared for database '{fixture.id}'")
    return table


def get_type_test(fixture: DatabaseFixture, table_name: str, column: str) -> Optional[TypeTest]:
    table = get_table_config(fixture, table_name)
    if table is None:
        return None
    return table.test_data.type_tests.get(column)


def get_test_value(fixture: DatabaseFixture, key: str = "original") -> Optional[str]:
    """Value from the default test table's ``testValues`` block."""
    if fixture.test_table is None or fixture.test_table.test_values is None:
        return None
    return getattr(fixture.test_table.test_values, key, None)


def identifier_cell_index(fixture: DatabaseFixture) -> Optional[int]:
    """Rendered cell index of the default test table's identifier column.

    Prefers the declared column order; falls back to ``identifierColIndex``
    when the table's columns are not declared.
    """
    test_table = fixture.test_table
    if test_table is None or not test_table.identifier_field:
        return None
    table = get_table_config(fixture, test_table.name or "")
    if table is not None and table.column_index(test_table.identifier_field) >= 0:
        return table.cell_index(test_table.identifier_field)
    if test_table.identifier_col_index is not None:
        return test_table.identifier_col_index + ROW_OFFSET
    return None
