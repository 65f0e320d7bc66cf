# src/whodb/e2e/matrix/scenarios/mock_data.py
"""Mock-data generation cases.

Cases that overwrite table contents are registered last so earlier cases of
the group see the seeded rows.
"""
from functools import partial

from ..features import feature_enabled
from ..mockdata import DependencyResolver, assert_referential_integrity, clamp_row_count
from ..types import SkipKind
from .common import wait_for_total

LOW_ROW_COUNTS = (1, 2, 3)


def enforces_row_limit(ctx, table_name: str):
    maximum = ctx.settings.mock_data_max_rows
    ctx.automation.data(table_name)
    assert ctx.automation.open_mock_data(table_name), f"Mock data should be allowed for {table_name}"
    displayed = ctx.automation.set_mock_data_rows(maximum + 100)
    assert displayed == clamp_row_count(maximum + 100, maximum), \
        f"Row input should clamp to {maximum}, shows {displayed}"


def generates_rows(ctx, table_name: str, rows: int, at_least: bool = False):
    ctx.automation.data(table_name)
    initial = ctx.automation.total_count()
    ctx.automation.open_mock_data(table_name)
    ctx.automation.set_mock_data_rows(rows)
    ctx.automation.generate_mock_data()
    ctx.settle()
    expected = initial + rows
    if at_least:
        wait_for_total(ctx, lambda count: count >= expected, f"{table_name} to hold at least {expected} rows")
    else:
        wait_for_total(ctx, lambda count: count == expected, f"{table_name} to hold {expected} rows")


def preview_matches_written_rows(ctx, table_name: str, rows: int):
    automation = ctx.automation
    automation.data(table_name)
    automation.open_mock_data(table_name)
    automation.set_mock_data_rows(rows)
    preview = automation.mock_data_preview()
    assert preview, "Dependency preview (Tables to populate) should be shown"
    resolver = DependencyResolver.from_fixture(ctx.db)
    planned = resolver.plan(table_name, rows, ctx.settings.mock_data_max_rows).preview()
    assert preview == planned, f"Preview {preview} does not match the generation plan {planned}"

    initial = {}
    for table in preview:
        automation.data(table)
        initial[table] = automation.total_count()
    automation.data(table_name)
    automation.open_mock_data(table_name)
    automation.set_mock_data_rows(rows)
    automation.generate_mock_data()
    ctx.settle()

    for table, count in preview.items():
        automation.data(table)
        target = initial[table] + count
        wait_for_total(ctx, lambda total, target=target: total == target,
                       f"{table} to gain the {count} previewed rows")


def fk_references_resolve(ctx, table_name: str, rows: int):
    relationship = ctx.db.mock_data.primary_relationship(table_name)
    automation = ctx.automation

    automation.data(relationship.parent_table)
    initial_parent = automation.total_count()
    automation.data(table_name)
    initial_child = automation.total_count()

    automation.open_mock_data(table_name)
    automation.set_mock_data_rows(rows)
    parent_rows = automation.mock_data_preview().get(relationship.parent_table, 0)
    automation.generate_mock_data()
    ctx.settle()

    automation.data(relationship.parent_table)
    wait_for_total(ctx, lambda count: count >= initial_parent + parent_rows,
                   f"{relationship.parent_table} to gain {parent_rows} rows")
    parent_data = automation.get_table_data()
    pk_cell = parent_data.header_index(relationship.parent_pk_column)
    assert pk_cell >= 0, f"{relationship.parent_pk_column} column not shown for {relationship.parent_table}"
    parent_keys = parent_data.column_values(pk_cell)

    automation.data(table_name)
    wait_for_total(ctx, lambda count: count >= initial_child + rows, f"{table_name} to gain {rows} rows")
    child_data = automation.get_table_data()
    fk_cell = child_data.header_index(relationship.fk_column)
    assert fk_cell >= 0, f"{relationship.fk_column} column not shown for {table_name}"
    assert_referential_integrity(
        table_name,
        [{relationship.fk_column: value} for value in child_data.column_values(fk_cell)],
        relationship.fk_column,
        parent_keys,
    )


def overwrites_table(ctx, table_name: str, rows: int):
    ctx.automation.data(table_name)
    ctx.automation.open_mock_data(table_name)
    ctx.automation.set_mock_data_rows(rows)
    ctx.automation.generate_mock_data(overwrite=True)
    ctx.settle()
    ctx.automation.data(table_name)
    wait_for_total(ctx, lambda count: count == rows, f"{table_name} to hold exactly {rows} rows")


def not_allowed(ctx, table_name: str):
    ctx.automation.data(table_name)
    assert not ctx.automation.open_mock_data(table_name), \
        f"Mock data generation should be reported as not allowed for {ctx.db.type}"


def sql_mock_data(db, group):
    config = db.mock_data
    supported = config.supported_table if config else None
    if not supported:
        group.skip("mock data", "mockData.supportedTable missing in fixture", SkipKind.CONFIGURATION)
        return
    fk_table = config.table_with_fks

    group.add("enforces maximum row count limit", partial(enforces_row_limit, table_name=supported))
    group.add("generates mock data and adds rows to table", partial(generates_rows, table_name=supported, rows=5))

    if fk_table:
        with group.describe("Foreign keys"):
            group.add("shows dependency preview matching the rows written to each table",
                      partial(preview_matches_written_rows, table_name=fk_table, rows=10))
            group.add("generates mock data for FK table and populates parent tables",
                      partial(generates_rows, table_name=fk_table, rows=5, at_least=True))
            for rows in LOW_ROW_COUNTS:
                group.add(f"generates {rows} rows for FK table",
                          partial(generates_rows, table_name=fk_table, rows=rows, at_least=True))
            if config.primary_relationship(fk_table):
                group.add("verifies correct row counts and FK references after generation",
                          partial(fk_references_resolve, table_name=fk_table, rows=5))

    if db.data_types_table:
        group.add("generates mock data for data types table",
                  partial(overwrites_table, table_name=db.data_types_table, rows=100))

    name = ("executes overwrite mode and clears table with FK references" if fk_table
            else "executes overwrite mode for single table")
    group.add(name, partial(overwrites_table, table_name=supported, rows=5))


def document_mock_data(db, group):
    if feature_enabled(db, "mockData"):
        return
    group.add("shows mock data is not allowed", partial(not_allowed, table_name=db.test_table.name))


def register(matrix):
    matrix.for_each_database("sql", sql_mock_data, features=["mockData"], name="mock data")
    matrix.for_each_database("document", document_mock_data, name="mock data")
