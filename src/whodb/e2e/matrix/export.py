# src/whodb/e2e/matrix/export.py
"""Wire contract of the export endpoint."""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .types import Category

EXPORT_ENDPOINT = "/api/export"
DEFAULT_DELIMITER = ","


class ExportFormat(str, Enum):
    CSV = "csv"
    EXCEL = "excel"
    NDJSON = "ndjson"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def takes_delimiter(self) -> bool:
        return self is ExportFormat.CSV

    @classmethod
    def default_for(cls, category: Category) -> 'ExportFormat':
        """Format the export dialog preselects for a backend category."""
        return cls.CSV if category is Category.SQL else cls.NDJSON


_EXTENSIONS = {
    ExportFormat.CSV: ".csv",
    ExportFormat.EXCEL: ".xlsx",
    ExportFormat.NDJSON: ".ndjson",
}


@dataclass(frozen=True)
class ExportRequest:
    format: ExportFormat
    delimiter: Optional[str] = None
    selected_rows: Optional[Tuple[int, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON body of the export POST."""
        body: Dict[str, Any] = {'format': self.format.value}
        if self.format.takes_delimiter:
            body['delimiter'] = self.delimiter or DEFAULT_DELIMITER
        if self.selected_rows is not None:
            body['selectedRows'] = list(self.selected_rows)
        return body

    @classmethod
    def from_dict(cls, body: Mapping[str, Any]) -> 'ExportRequest':
        selected = body.get('selectedRows')
        return cls(
            format=ExportFormat(body['format']),
            delimiter=body.get('delimiter'),
            selected_rows=tuple(selected) if selected is not None else None,
        )


_FILENAME_STAR = re.compile(r"filename\*\s*=\s*(?:[\w-]+'[\w-]*')?\"?([^\";]+)\"?", re.I)
_FILENAME = re.compile(r"filename\s*=\s*\"?([^\";]+)\"?", re.I)


def parse_content_disposition(value: Optional[str]) -> Optional[str]:
    """Filename announced by a ``Content-Disposition`` header, if any."""
    if not value:
        return None
    match = _FILENAME_STAR.search(value) or _FILENAME.search(value)
    return match.group(1).strip() if match else None


def verify_export_exchange(exchange, expected_format: ExportFormat, delimiter: Optional[str] = None,
                           selected_rows: Optional[Sequence[int]] = None) -> str:
    """Assert that a captured export matches the contract; returns the filename."""
    assert exchange.status == 200, f"Export returned HTTP {exchange.status}"
    body = exchange.request_body
    assert body.get('format') == expected_format.value, \
        f"Export requested format {body.get('format')!r}, expected {expected_format.value!r}"
    if delimiter is not None:
        assert body.get('delimiter') == delimiter, \
            f"Export used delimiter {body.get('delimiter')!r}, expected {delimiter!r}"
    if selected_rows is not None:
        sent = body.get('selectedRows')
        assert isinstance(sent, list) and len(sent) > 0, "Export did not send the selected rows"
        assert len(sent) == len(selected_rows), \
            f"Export sent {len(sent)} selected rows, expected {len(selected_rows)}"
    filename = parse_content_disposition(exchange.header('content-disposition'))
    assert filename is not None, "Export response has no Content-Disposition filename"
    assert filename.lower().endswith(expected_format.extension), \
        f"Export filename {filename!r} does not end with {expected_format.extension}"
    return filename
