# src/whodb/e2e/matrix/scenarios/export.py
from functools import partial

from ..export import DEFAULT_DELIMITER, ExportFormat, verify_export_exchange


def export_all(ctx, table_name: str, export_format: ExportFormat, delimiter=None):
    ctx.automation.data(table_name)
    exchange = ctx.automation.export(table_name, export_format.value, delimiter=delimiter)
    verify_export_exchange(exchange, export_format, delimiter=delimiter)


def export_selected(ctx, table_name: str):
    ctx.automation.data(table_name)
    exchange = ctx.automation.export(table_name, ExportFormat.CSV.value, delimiter="|", selected_rows=[0])
    verify_export_exchange(exchange, ExportFormat.CSV, delimiter="|", selected_rows=[0])


def sql_export(db, group):
    table_name = db.test_table.name
    with group.describe("Export All"):
        group.add("exports table data as CSV with default comma delimiter",
                  partial(export_all, table_name=table_name, export_format=ExportFormat.CSV,
                          delimiter=DEFAULT_DELIMITER))
        group.add("exports table data as Excel",
                  partial(export_all, table_name=table_name, export_format=ExportFormat.EXCEL))
    with group.describe("Export Selected"):
        group.add("exports selected rows with pipe delimiter", partial(export_selected, table_name=table_name))


def document_export(db, group):
    table_name = db.test_table.name
    group.add("exports collection data as NDJSON",
              partial(export_all, table_name=table_name, export_format=ExportFormat.NDJSON))
    group.add("exports collection data as CSV when selected",
              partial(export_all, table_name=table_name, export_format=ExportFormat.CSV))


def keyvalue_export(db, group):
    group.add("exports key data as NDJSON by default",
              partial(export_all, table_name=db.test_table.name, export_format=ExportFormat.NDJSON))


def register(matrix):
    matrix.for_each_database("sql", sql_export, features=["export"], name="export")
    matrix.for_each_database("document", document_export, features=["export"], name="export")
    matrix.for_each_database("keyvalue", keyvalue_export, features=["export"], name="export")
