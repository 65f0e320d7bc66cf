# src/whodb/e2e/matrix/interfaces.py
"""
Contract of the browser automation collaborator.

Scenario bodies never touch a browser directly. They drive an object
implementing ``IAutomation``; a Playwright or Selenium page object in a real
run, an in-memory fake in the harness's own tests.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence


@dataclass
class TableData:
    """Rendered data view: header labels and cell text per row.

    Every row starts with the selection column, so the cell of declared
    column ``i`` is ``row[i + 1]``.
    """
    columns: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)

    def column_values(self, cell_index: int) -> List[str]:
        return [row[cell_index] for row in self.rows if len(row) > cell_index]

    def find_row(self, cell_index: int, value: str) -> int:
        """Index of the first row whose cell equals ``value``, -1 when absent."""
        for position, row in enumerate(self.rows):
            if len(row) > cell_index and row[cell_index] == value:
                return position
        return -1

    def header_index(self, name: str) -> int:
        """Case-insensitive header lookup, -1 when absent."""
        lowered = name.strip().lower()
        for position, header in enumerate(self.columns):
            if header.strip().lower() == lowered:
                return position
        return -1


@dataclass
class NetworkExchange:
    """One captured HTTP request/response pair."""
    request_body: Mapping[str, Any] = field(default_factory=dict)
    status: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class GraphNode:
    """Details panel of one graph node."""
    name: str
    type: Optional[str] = None
    size: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class IAutomation(ABC):
    """Operations a scenario may perform against the web client."""

    # --- Session ---

    @abstractmethod
    def login(self, database_type: str, host: Optional[str] = None, user: Optional[str] = None,
              password: Optional[str] = None, database: Optional[str] = None,
              advanced: Optional[Mapping[str, Any]] = None) -> None:
        """Fill and submit the login form."""
        pass

    @abstractmethod
    def logout(self) -> None:
        pass

    @abstractmethod
    def goto(self, route: str) -> None:
        """Navigate to a client route such as ``storage-unit`` or ``graph``."""
        pass

    @abstractmethod
    def select_schema(self, schema: str) -> None:
        pass

    # --- Data view ---

    @abstractmethod
    def data(self, table: str) -> None:
        """Open the data view of ``table``."""
        pass

    @abstractmethod
    def get_table_data(self) -> TableData:
        pass

    @abstractmethod
    def sort_by(self, column_index: int) -> None:
        pass

    @abstractmethod
    def add_row(self, values: Mapping[str, Any], is_document: bool = False) -> None:
        pass

    @abstractmethod
    def update_row(self, row_index: int, column_index: int, value: str, cancel: bool = False) -> None:
        """Edit one cell; ``column_index`` is the declared column position."""
        pass

    @abstractmethod
    def delete_row(self, row_index: int) -> None:
        pass

    @abstractmethod
    def total_count(self) -> int:
        """Row total shown above the data view."""
        pass

    # --- Graph ---

    @abstractmethod
    def get_graph(self) -> Dict[str, List[str]]:
        """Rendered graph as node to neighbor list."""
        pass

    @abstractmethod
    def get_graph_node(self, name: str) -> GraphNode:
        pass

    # --- Export ---

    @abstractmethod
    def export(self, table: str, format: str, delimiter: Optional[str] = None,
               selected_rows: Optional[Sequence[int]] = None) -> NetworkExchange:
        """Trigger an export and return the captured export request."""
        pass

    # --- Mock data ---

    @abstractmethod
    def open_mock_data(self, table: str) -> bool:
        """Open the mock-data dialog; False when the client reports it as not allowed."""
        pass

    @abstractmethod
    def set_mock_data_rows(self, rows: int) -> int:
        """Type a row count and return the value the input displays afterward."""
        pass

    @abstractmethod
    def mock_data_preview(self) -> Dict[str, int]:
        """The "Tables to populate" preview as table to row count."""
        pass

    @abstractmethod
    def generate_mock_data(self, overwrite: bool = False) -> None:
        pass

    # --- Connection state ---

    @abstractmethod
    def has_secure_connection_indicator(self) -> bool:
        pass

    @abstractmethod
    def profiles(self) -> List[str]:
        pass

    @abstractmethod
    def current_profile(self) -> Optional[str]:
        pass

    @abstractmethod
    def switch_profile(self, name: str) -> None:
        pass
