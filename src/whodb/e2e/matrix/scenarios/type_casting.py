# src/whodb/e2e/matrix/scenarios/type_casting.py
"""Numeric type casting of string inputs on add and edit."""
from functools import partial

from ..config import TableConfig
from ..features import has_feature
from ..tables import get_table_config
from ..types import FeatureSupport
from .common import refresh, wait_for_row_containing


def _value(row, key: str):
    lowered = key.lower()
    for name, value in row.items():
        if name.lower() == lowered:
            return value
    return None


def _column(table: TableConfig, name: str) -> str:
    return table.find_column(name) or name


def casts_new_row(ctx, table: TableConfig):
    new_row = dict(table.test_data.new_row)
    description = _value(new_row, "description")
    ctx.automation.data(table.name)
    ctx.automation.add_row(new_row)
    refresh(ctx, table.name, sort=False)
    wait_for_row_containing(ctx, description)
    ctx.automation.sort_by(0)

    rows = ctx.automation.get_table_data().rows
    added = next((row for row in rows if description in row), None)
    assert added is not None, "Added row should exist"
    for name, value in new_row.items():
        column = table.find_column(name)
        if column is None:
            continue
        assert added[table.cell_index(column)] == str(value), \
            f"{column} should display {value!r}, got {added[table.cell_index(column)]!r}"
    pk = table.primary_key_column
    if pk and _value(new_row, pk) is None:
        assert str(added[table.cell_index(pk)]).isdigit(), f"{pk} should be a number"

    ctx.automation.delete_row(rows.index(added))
    ctx.settle()


def large_bigint(ctx, table: TableConfig):
    row = {
        _column(table, "bigint_col"): "5000000000",
        _column(table, "integer_col"): "42",
        _column(table, "smallint_col"): "256",
        _column(table, "numeric_col"): "9876.54",
        _column(table, "description"): "Large bigint test",
    }
    ctx.automation.data(table.name)
    ctx.automation.add_row(row)
    refresh(ctx, table.name, sort=False)
    position = wait_for_row_containing(ctx, "Large bigint test")
    added = ctx.automation.get_table_data().rows[position]
    assert "5000000000" in added, f"Row should contain 5000000000, got {added}"
    ctx.automation.delete_row(position)
    ctx.settle()


def edit_numeric(ctx, table: TableConfig):
    column = _column(table, "bigint_col")
    column_index = table.column_index(column)
    cell = table.cell_index(column)
    ctx.automation.data(table.name)
    ctx.automation.sort_by(0)
    original = ctx.automation.get_table_data().rows[1][cell]

    ctx.automation.update_row(1, column_index, "7500000000")
    refresh(ctx, table.name)
    assert ctx.automation.get_table_data().rows[1][cell] == "7500000000"

    ctx.automation.update_row(1, column_index, original)
    refresh(ctx, table.name)
    assert ctx.automation.get_table_data().rows[1][cell] == original


def type_casting(db, group):
    if has_feature(db, "typeCasting") is FeatureSupport.UNSUPPORTED:
        group.skip("type casting", "type casting tests skipped - async mutations not supported")
        return
    table_name = db.test_table.type_casting_table if db.test_table else None
    table = get_table_config(db, table_name) if table_name else None
    if table is None or not table.test_data.new_row:
        return
    with group.describe("Add Row Type Casting"):
        group.add("correctly casts string inputs to numeric types", partial(casts_new_row, table=table))
        group.add("handles large bigint values", partial(large_bigint, table=table))
    with group.describe("Edit Row Type Casting"):
        group.add("edits numeric values with type casting", partial(edit_numeric, table=table))


def register(matrix):
    matrix.for_each_database("sql", type_casting)
