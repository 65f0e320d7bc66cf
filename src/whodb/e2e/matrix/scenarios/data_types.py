# src/whodb/e2e/matrix/scenarios/data_types.py
"""Per-type READ/ADD/UPDATE/DELETE cases over the data types table."""
from functools import partial

from ..config import TableConfig, TypeTest
from ..tables import get_table_config
from ..types import SkipKind
from .common import refresh, wait_for_row_value


def _cell_values(ctx, cell_index: int):
    return [str(row[cell_index]).strip() if len(row) > cell_index else ""
            for row in ctx.automation.get_table_data().rows]


def read_seed_value(ctx, table: TableConfig, spec: TypeTest):
    cell = table.cell_index(spec.column)
    ctx.automation.data(table.name)
    ctx.automation.sort_by(0)
    values = _cell_values(ctx, cell)
    assert values, f"No rows in {table.name} table"
    # Leftover state from a failed UPDATE shows the updated value instead.
    accepted = {str(spec.original_value).strip(), str(spec.expected_update_display).strip()}
    assert any(value in accepted for value in values), \
        f"Seed data with {spec.column} in {sorted(accepted)} should exist. Actual values: {values}"


def add_value(ctx, table: TableConfig, spec: TypeTest):
    cell = table.cell_index(spec.column)
    ctx.automation.data(table.name)
    ctx.automation.add_row({spec.column: spec.add_value})
    refresh(ctx, table.name)
    position = wait_for_row_value(ctx, cell, spec.expected_add_display)
    ctx.automation.delete_row(position)
    ctx.settle()


def update_value(ctx, table: TableConfig, spec: TypeTest):
    column_index = table.column_index(spec.column)
    cell = table.cell_index(spec.column)
    original = str(spec.original_value).strip()
    updated = str(spec.expected_update_display).strip()

    ctx.automation.data(table.name)
    ctx.automation.sort_by(0)
    values = _cell_values(ctx, cell)
    if original not in values:
        assert updated in values, \
            f"Row with value {original!r} or {updated!r} not found in column {spec.column}. Actual values: {values}"
        ctx.automation.update_row(values.index(updated), column_index, spec.original_value)
        refresh(ctx, table.name)
        wait_for_row_value(ctx, cell, original)

    position = _cell_values(ctx, cell).index(original)
    ctx.automation.update_row(position, column_index, spec.update_value)
    refresh(ctx, table.name)
    position = wait_for_row_value(ctx, cell, updated)

    ctx.automation.update_row(position, column_index, spec.original_value)
    refresh(ctx, table.name)
    wait_for_row_value(ctx, cell, original)


def delete_value(ctx, table: TableConfig, spec: TypeTest):
    cell = table.cell_index(spec.column)
    ctx.automation.data(table.name)
    ctx.automation.add_row({spec.column: spec.effective_delete_value})
    refresh(ctx, table.name)
    position = wait_for_row_value(ctx, cell, spec.expected_delete_display)
    before = len(ctx.automation.get_table_data().rows)
    ctx.automation.delete_row(position)
    refresh(ctx, table.name)
    ctx.wait_for(lambda: len(ctx.automation.get_table_data().rows) == before - 1,
                 f"row count of {table.name} to drop to {before - 1}")


def data_types(db, group):
    table = get_table_config(db, db.data_types_table) if db.data_types_table else None
    if table is None:
        group.skip("data types", "data types table config missing in fixture", SkipKind.CONFIGURATION)
        return
    if not table.test_data.type_tests:
        group.skip("data types", "typeTests config missing in fixture", SkipKind.CONFIGURATION)
        return

    for column, spec in table.test_data.type_tests.items():
        with group.describe(f"Type: {spec.type} ({column})"):
            group.add("READ - displays seed data with correct format", partial(read_seed_value, table=table, spec=spec))
            group.add("ADD - creates row with type value", partial(add_value, table=table, spec=spec))
            group.add("UPDATE - edits type value", partial(update_value, table=table, spec=spec))
            group.add("DELETE - removes row with type value", partial(delete_value, table=table, spec=spec))


def register(matrix):
    matrix.for_each_database("sql", data_types, uses=("tables",))
