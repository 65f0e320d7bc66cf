# src/whodb/e2e/matrix/types.py
from enum import Enum
from typing import FrozenSet

from .errors import UnknownCategoryError


class Category(str, Enum):
    """Closed set of backend categories a fixture can belong to."""
    SQL = "sql"
    DOCUMENT = "document"
    KEYVALUE = "keyvalue"

    @classmethod
    def parse(cls, value) -> 'Category':
        """Parse a category name, failing loudly on anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise UnknownCategoryError(f"Invalid category: {value}. Must be one of: {valid}")


# Pseudo-category accepted by the matrix expander only.
ALL_CATEGORIES = "all"


class FeatureSupport(str, Enum):
    """Result of a feature lookup.

    A feature that was never declared is not the same thing as a feature
    that was declared as unsupported; scenario groups pick their own default
    for the undeclared case.
    """
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"
    UNDECLARED = "undeclared"

    @property
    def is_declared(self) -> bool:
        return self is not FeatureSupport.UNDECLARED

    def resolve(self, default: bool) -> bool:
        if self is FeatureSupport.UNDECLARED:
            return default
        return self is FeatureSupport.SUPPORTED


class SkipKind(str, Enum):
    """Why a registered case will not run. The value prefixes the skip reason."""
    UNSUPPORTED = "unsupported"
    CONFIGURATION = "configuration error"
    NO_MATCH = "no matching fixture"
    FILTERED = "filtered"

    def reason(self, message: str) -> str:
        return f"{self.value}: {message}"


# Feature tags that require an explicit opt-in; everything else is assumed
# to be available when a fixture does not mention it.
OPT_IN_FEATURES: FrozenSet[str] = frozenset({"graph", "mockData", "scratchpad"})

CORE_FEATURES = (
    "graph",
    "export",
    "scratchpad",
    "mockData",
    "chat",
    "whereConditions",
    "queryHistory",
)

VALID_FEATURES = CORE_FEATURES + (
    "crud",
    "scratchpadUpdate",
    "multiConditionFilter",
    "typeCasting",
    "sslConnection",
)

# Leading selection column in rendered data rows.
ROW_OFFSET = 1
