# src/whodb/e2e/matrix/scenarios/common.py
"""Steps shared by several scenario groups."""
import uuid
from typing import Callable, Optional


def unique_test_id() -> str:
    return f"test_{uuid.uuid4().hex[:10]}"


def refresh(ctx, table: str, sort: bool = True):
    """Wait out the mutation delay and reopen the table when there was one."""
    if ctx.settle() > 0:
        ctx.automation.data(table)
        if sort:
            ctx.automation.sort_by(0)


def wait_for_row_value(ctx, cell_index: int, value: str) -> int:
    """Poll the data view until a row shows ``value`` in ``cell_index``; returns the row index."""
    expected = str(value).strip()

    def find():
        rows = ctx.automation.get_table_data().rows
        for position, row in enumerate(rows):
            if len(row) > cell_index and str(row[cell_index]).strip() == expected:
                return (position,)
        return None

    return ctx.wait_for(find, f"row with {expected!r} in cell {cell_index}")[0]


def wait_for_row_containing(ctx, text: str, case_sensitive: bool = True) -> int:
    needle = text if case_sensitive else text.lower()

    def find():
        rows = ctx.automation.get_table_data().rows
        for position, row in enumerate(rows):
            cells = [str(cell) if case_sensitive else str(cell).lower() for cell in row]
            if any(needle in cell for cell in cells):
                return (position,)
        return None

    return ctx.wait_for(find, f"row containing {text!r}")[0]


def wait_for_total(ctx, check: Callable[[int], bool], message: str) -> int:
    """Poll the displayed row total until ``check`` accepts it."""
    def total() -> Optional[tuple]:
        count = ctx.automation.total_count()
        return (count,) if check(count) else None

    return ctx.wait_for(total, message)[0]
