# src/whodb/e2e/matrix/errors.py
"""Error taxonomy for the test matrix.

Three families are kept apart because operators remediate them differently:

- Configuration errors: a fixture document is missing, malformed or
  references something that does not exist.
- Assertion failures: the system under test did not show what a scenario
  expected, possibly after waiting.
- Environment errors: a backend, certificate or automation collaborator is
  not reachable.
"""
from typing import Optional, Sequence


class MatrixError(Exception):
    """Base class for all test matrix errors."""
    pass


# --- Configuration errors ---

class FixtureConfigError(MatrixError):
    """A database fixture is missing, unreadable or malformed."""

    def __init__(self, message: str, fixture_id: Optional[str] = None):
        self.fixture_id = fixture_id
        if fixture_id:
            message = f"[{fixture_id}] {message}"
        super().__init__(message)


class FixtureValidationError(FixtureConfigError):
    """One or more fixtures failed schema validation."""

    def __init__(self, message: str, errors: Sequence[str] = (), fixture_id: Optional[str] = None):
        self.errors = tuple(errors)
        super().__init__(message, fixture_id)


class UnknownDatabaseError(FixtureConfigError, KeyError):
    """Lookup of a database id that the fixture store does not hold."""

    def __init__(self, name: str, available: Sequence[str]):
        self.name = name
        self.available = tuple(available)
        super().__init__(f"Unknown database: {name}. Available: {', '.join(available)}")

    def __str__(self):
        return self.args[0]


class DependencyCycleError(FixtureConfigError):
    """Foreign key relationships of a fixture form a cycle."""
    pass


class UnknownCategoryError(FixtureConfigError):
    """Category outside of the closed sql/document/keyvalue set."""
    pass


class UnknownFeatureError(FixtureConfigError):
    """Feature tag that is not part of the known feature list."""
    pass


class RegistrationError(MatrixError):
    """A scenario group body raised while registering its cases."""

    def __init__(self, group: str, fixture_id: str, cause: BaseException):
        self.group = group
        self.fixture_id = fixture_id
        self.cause = cause
        super().__init__(f"Registering '{group}' for database '{fixture_id}' failed: {cause}")


# --- Assertion failures ---

class WaitTimeoutError(MatrixError, AssertionError):
    """A polled condition did not hold within its timeout."""

    def __init__(self, message: str, timeout: float, attempts: int):
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(f"{message} (timed out after {timeout:.2f}s, {attempts} attempts)")


class ReferentialIntegrityError(MatrixError, AssertionError):
    """Foreign key values that do not resolve to a parent primary key."""

    def __init__(self, table: str, column: str, violations: Sequence[str]):
        self.table = table
        self.column = column
        self.violations = tuple(violations)
        super().__init__(
            f"{table}.{column} holds values missing from the parent table: {', '.join(self.violations)}"
        )


class IntegrityViolation(MatrixError):
    """A row store rejected a write because of a foreign key constraint."""
    pass


# --- Environment errors ---

class EnvironmentFault(MatrixError):
    """The test environment is misconfigured or unreachable."""
    pass


class DatabaseUnavailableError(EnvironmentFault):
    """Logging in to a database through the automation collaborator failed."""

    def __init__(self, fixture_id: str, cause: BaseException):
        self.fixture_id = fixture_id
        self.cause = cause
        super().__init__(f"Could not open a session for database '{fixture_id}': {cause}")


class CertificateError(EnvironmentFault):
    """A CA certificate could not be read or parsed."""
    pass


class AutomationUnavailableError(EnvironmentFault):
    """No automation collaborator was provided to the harness."""
    pass
