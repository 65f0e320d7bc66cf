# src/whodb/e2e/matrix/scenarios/crud.py
from functools import partial

from ..features import feature_enabled
from ..tables import get_table_config, identifier_cell_index
from ..types import SkipKind
from .common import refresh, unique_test_id, wait_for_row_value


def edit_row(ctx):
    test_table = ctx.db.test_table
    values = test_table.test_values
    cell = identifier_cell_index(ctx.db)
    ctx.automation.data(test_table.name)
    ctx.automation.sort_by(0)

    ctx.automation.update_row(values.row_index, test_table.identifier_col_index, values.modified)
    refresh(ctx, test_table.name)
    ctx.wait_for(lambda: ctx.automation.get_table_data().rows[values.row_index][cell] == values.modified,
                 f"row {values.row_index} to show {values.modified!r}")

    ctx.automation.update_row(values.row_index, test_table.identifier_col_index, values.original)
    refresh(ctx, test_table.name)
    ctx.wait_for(lambda: ctx.automation.get_table_data().rows[values.row_index][cell] == values.original,
                 f"row {values.row_index} to show {values.original!r}")


def cancel_edit(ctx):
    test_table = ctx.db.test_table
    values = test_table.test_values
    cell = identifier_cell_index(ctx.db)
    ctx.automation.data(test_table.name)
    ctx.automation.sort_by(0)
    ctx.automation.update_row(values.row_index, test_table.identifier_col_index, "temp_value", cancel=True)
    rows = ctx.automation.get_table_data().rows
    assert rows[values.row_index][cell] == values.original, \
        f"Cancelled edit changed row {values.row_index} to {rows[values.row_index][cell]!r}"


def _new_row(ctx, suffix: str):
    test_table = ctx.db.test_table
    table = get_table_config(ctx.db, test_table.name)
    template = table.test_data.new_row if table else None
    if not template:
        ctx.skip("no newRow test data configured")
    unique_id = unique_test_id()
    row = dict(template)
    row[test_table.identifier_field] = f"{unique_id}_{suffix}"
    if "email" in row:
        row["email"] = f"{unique_id}@example.com"
    return row


def add_row(ctx):
    test_table = ctx.db.test_table
    cell = identifier_cell_index(ctx.db)
    ctx.automation.data(test_table.name)
    row = _new_row(ctx, "user")
    identifier = row[test_table.identifier_field]
    ctx.automation.add_row(row)
    refresh(ctx, test_table.name, sort=False)
    position = wait_for_row_value(ctx, cell, identifier)
    ctx.automation.delete_row(position)
    ctx.settle()


def delete_row(ctx):
    test_table = ctx.db.test_table
    cell = identifier_cell_index(ctx.db)
    ctx.automation.data(test_table.name)
    row = _new_row(ctx, "delete")
    identifier = row[test_table.identifier_field]
    ctx.automation.add_row(row)
    refresh(ctx, test_table.name, sort=False)
    position = wait_for_row_value(ctx, cell, identifier)
    before = len(ctx.automation.get_table_data().rows)
    ctx.automation.delete_row(position)
    refresh(ctx, test_table.name, sort=False)
    ctx.wait_for(lambda: len(ctx.automation.get_table_data().rows) == before - 1,
                 f"row count to drop to {before - 1}")


def _document_position(ctx, unique_id: str) -> tuple:
    for position, row in enumerate(ctx.automation.get_table_data().rows):
        if len(row) > 1 and unique_id in str(row[1]).lower():
            return (position,)
    return None


def add_document(ctx, table_name: str):
    unique_id = unique_test_id()
    ctx.automation.data(table_name)
    ctx.automation.add_row({
        "username": f"{unique_id}_user",
        "email": f"{unique_id}@example.com",
        "password": "newpassword",
    }, is_document=True)
    refresh(ctx, table_name, sort=False)
    position = ctx.wait_for(lambda: _document_position(ctx, unique_id), f"document {unique_id}")[0]
    ctx.automation.delete_row(position)
    ctx.settle()


def sql_crud(db, group):
    if not feature_enabled(db, "crud"):
        group.skip("row operations", "crud is disabled for this database")
        return
    test_table = db.test_table
    if test_table is None or identifier_cell_index(db) is None:
        group.skip("row operations", "testTable config missing in fixture", SkipKind.CONFIGURATION)
        return
    with group.describe("Edit Row"):
        group.add("edits a row and saves changes", edit_row)
        group.add("cancels edit without saving", cancel_edit)
    with group.describe("Add Row"):
        group.add("adds a new row", add_row)
    with group.describe("Delete Row"):
        group.add("deletes a row and verifies removal", delete_row)


def document_crud(db, group):
    if not feature_enabled(db, "crud"):
        group.skip("document operations", "crud is disabled for this database")
        return
    if db.test_table is None:
        group.skip("document operations", "testTable config missing in fixture", SkipKind.CONFIGURATION)
        return
    with group.describe("Add Document"):
        group.add("adds and removes a document", partial(add_document, table_name=db.test_table.name))


def register(matrix):
    matrix.for_each_database("sql", sql_crud, name="crud")
    matrix.for_each_database("document", document_crud, name="crud")
