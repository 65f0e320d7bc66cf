# src/whodb/e2e/matrix/loader.py
"""Loading database fixtures from JSON and YAML documents.

Directories are read in the given order and the files of one directory in
sorted name order. A fixture id seen again in a later directory replaces the
earlier definition in place, keeping its position in the store.
"""
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from .config import DatabaseFixture
from .errors import FixtureConfigError, UnknownDatabaseError
from .types import ALL_CATEGORIES, Category
from .validator import (
    SCOPE_GRAPH,
    SCOPE_MOCK_DATA,
    SCOPE_SSL,
    SCOPE_TABLES,
    UnreadableDocument,
    ValidationIssue,
    ValidationResult,
    validate_fixture,
)

logger = logging.getLogger(__name__)

FIXTURE_SUFFIXES = ('.json', '.yaml', '.yml')
HOST_OVERRIDE_PREFIX = "DB_HOST_"

# Document keys of each optional validation scope, aliases included.
BLOCK_KEYS = {
    SCOPE_SSL: ('ssl',),
    SCOPE_MOCK_DATA: ('mockData', 'mock_data'),
    SCOPE_GRAPH: ('graph',),
    SCOPE_TABLES: ('tables',),
}


@dataclass(frozen=True)
class RejectedFixture:
    """A fixture document that could not be read or failed fixture-level validation."""
    id: str
    type: str
    category: Optional[str]
    result: ValidationResult
    source: Optional[str] = None

    def matches_category(self, category: str) -> bool:
        # An unknown category is surfaced in every group instead of vanishing.
        valid = {c.value for c in Category}
        return category == ALL_CATEGORIES or self.category == category or self.category not in valid

    @property
    def reason(self) -> str:
        return "; ".join(str(issue) for issue in self.result.errors)


def host_override_variable(fixture_id: str) -> str:
    return HOST_OVERRIDE_PREFIX + re.sub(r"[^A-Z0-9]", "_", fixture_id.upper())


def read_document(path: Path) -> Any:
    """Decode one JSON or YAML file, wrapping decode errors with the file name."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() == '.json':
                return json.load(f)
            return yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to read fixture file {path}: {e}")
        raise FixtureConfigError(f"Cannot read fixture file {path}: {e}") from e


def iter_documents(directories: Iterable[Union[str, Path]]) -> Iterator[Tuple[str, Any, str]]:
    """Yield ``(fixture id, document, source)`` for every fixture in ``directories``.

    A file that cannot be decoded yields an ``UnreadableDocument`` under the
    file's stem, so it is rejected like any other invalid fixture.
    """
    for directory in directories:
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Fixture directory {directory} does not exist, skipping")
            continue
        for path in sorted(directory.iterdir()):
            if path.suffix.lower() not in FIXTURE_SUFFIXES or not path.is_file():
                continue
            try:
                document = read_document(path)
            except FixtureConfigError as e:
                yield path.stem, UnreadableDocument(str(path), str(e)), str(path)
                continue
            if isinstance(document, Mapping) and 'databases' in document and 'type' not in document:
                databases = document['databases'] or {}
                if not isinstance(databases, Mapping):
                    message = f"'databases' in {path} must be a mapping of id to fixture"
                    logger.error(message)
                    yield path.stem, UnreadableDocument(str(path), message), str(path)
                    continue
                for key, fixture in databases.items():
                    fixture_id = fixture.get('id') if isinstance(fixture, Mapping) else None
                    yield str(fixture_id or key), fixture, str(path)
            else:
                fixture_id = document.get('id') if isinstance(document, Mapping) else None
                yield str(fixture_id or path.stem), document, str(path)


def drop_invalid_blocks(document: Mapping[str, Any], result: ValidationResult) -> Mapping[str, Any]:
    """Remove optional blocks that failed validation so the rest still loads."""
    failed = {issue.scope for issue in result.errors if issue.scope is not None}
    if not failed:
        return document
    document = dict(document)
    for scope in failed:
        for key in BLOCK_KEYS.get(scope, ()):
            document.pop(key, None)
    logger.warning(f"Fixture {result.name}: ignoring invalid {', '.join(sorted(failed))} configuration")
    return document


def apply_host_override(fixture_id: str, document: Any, environ: Mapping[str, str]) -> Any:
    host = environ.get(host_override_variable(fixture_id))
    if not host or not isinstance(document, Mapping):
        return document
    document = dict(document)
    connection = dict(document.get('connection') or {})
    connection['host'] = host
    document['connection'] = connection
    logger.info(f"Overriding host of {fixture_id} with {host}")
    return document


class FixtureStore(Mapping):
    """Read-only, ordered mapping of fixture id to ``DatabaseFixture``."""

    def __init__(self, fixtures: Iterable[DatabaseFixture] = (),
                 rejected: Iterable[RejectedFixture] = (),
                 results: Optional[Mapping[str, ValidationResult]] = None):
        self._fixtures: Dict[str, DatabaseFixture] = {}
        for fixture in fixtures:
            self._fixtures[fixture.id] = fixture
        self._rejected: Dict[str, RejectedFixture] = {item.id: item for item in rejected}
        self._results: Dict[str, ValidationResult] = dict(results or {})

    @classmethod
    def from_documents(cls, documents: Iterable[Tuple[str, Any, Optional[str]]],
                       environ: Optional[Mapping[str, str]] = None) -> 'FixtureStore':
        """Validate and parse ``(id, document, source)`` triples."""
        environ = os.environ if environ is None else environ
        merged: Dict[str, Tuple[Any, Optional[str]]] = {}
        for fixture_id, document, source in documents:
            if fixture_id in merged:
                logger.info(f"Fixture {fixture_id} from {source} overrides {merged[fixture_id][1]}")
            merged[fixture_id] = (apply_host_override(fixture_id, document, environ), source)

        fixtures: List[DatabaseFixture] = []
        rejected: List[RejectedFixture] = []
        results: Dict[str, ValidationResult] = {}
        for fixture_id, (document, source) in merged.items():
            result = validate_fixture(document, fixture_id)
            results[fixture_id] = result
            for issue in result.warnings:
                logger.debug(f"Fixture {fixture_id}: {issue}")
            if result.usable:
                try:
                    fixtures.append(DatabaseFixture.from_dict(drop_invalid_blocks(document, result),
                                                              fixture_id, source))
                    continue
                except (FixtureConfigError, ValueError, TypeError, AttributeError) as e:
                    result.issues.append(ValidationIssue(f"Cannot parse fixture: {e}"))
            logger.error(f"Rejecting fixture {fixture_id}: {'; '.join(str(i) for i in result.errors)}")
            raw = document if isinstance(document, Mapping) else {}
            category = raw.get('category')
            rejected.append(RejectedFixture(
                id=fixture_id,
                type=str(raw.get('type') or fixture_id),
                category=str(category) if category is not None else None,
                result=result,
                source=source,
            ))
        return cls(fixtures, rejected, results)

    @classmethod
    def load(cls, directories: Sequence[Union[str, Path]],
             environ: Optional[Mapping[str, str]] = None) -> 'FixtureStore':
        """Load every fixture found in ``directories``."""
        store = cls.from_documents(iter_documents(directories), environ)
        logger.info(f"Loaded {len(store)} fixtures ({len(store.rejected)} rejected) from "
                    f"{', '.join(str(d) for d in directories)}")
        return store

    def __getitem__(self, name: str) -> DatabaseFixture:
        return self.get_database_config(name)

    def __iter__(self):
        return iter(self._fixtures)

    def __len__(self):
        return len(self._fixtures)

    def get_database_config(self, name: str) -> DatabaseFixture:
        """Lookup by id, falling back to a case-insensitive match."""
        if name in self._fixtures:
            return self._fixtures[name]
        lowered = name.lower()
        for fixture_id, fixture in self._fixtures.items():
            if fixture_id.lower() == lowered:
                return fixture
        raise UnknownDatabaseError(name, list(self._fixtures))

    def by_category(self, category: Union[str, Category]) -> List[DatabaseFixture]:
        """Fixtures of ``category`` in store order; ``all`` returns every fixture."""
        if category == ALL_CATEGORIES:
            return list(self._fixtures.values())
        category = Category.parse(category)
        return [fixture for fixture in self._fixtures.values() if fixture.category is category]

    @property
    def rejected(self) -> Mapping[str, RejectedFixture]:
        return dict(self._rejected)

    @property
    def results(self) -> Mapping[str, ValidationResult]:
        return dict(self._results)

    def validation(self, fixture_id: str) -> Optional[ValidationResult]:
        return self._results.get(fixture_id)

    def issues_for(self, fixture_id: str, scopes: Iterable[str]) -> List[ValidationIssue]:
        """Validation errors of a loaded fixture inside the given block scopes."""
        result = self._results.get(fixture_id)
        return result.errors_for(scopes) if result else []
