# src/whodb/e2e/matrix/__init__.py
"""
Fixture-driven test matrix for end-to-end tests of the WhoDB web client.

This package expands one logical scenario into one concrete test case per
database backend that matches a category and a set of required features:
- Database fixture store loaded from JSON/YAML fixture documents
- Tri-state feature capability resolver
- Test matrix expander with pytest integration
- Table/column lookups for scenario bodies
- Mock-data dependency planning and generation
- SSL mode matrix, export contract and bounded waiting helpers

Architecture:
- FixtureStore: immutable, ordered store of DatabaseFixture objects
- DatabaseMatrix: registers scenario groups and exposes them to pytest
- IAutomation: opaque browser automation collaborator driven by scenarios
- SessionScope / AsyncSessionScope: scoped login and logout
"""

from .config import DatabaseFixture, TableConfig, ColumnSpec, ConnectionParams
from .errors import (
    MatrixError,
    FixtureConfigError,
    FixtureValidationError,
    UnknownDatabaseError,
    DependencyCycleError,
    UnknownCategoryError,
    UnknownFeatureError,
    RegistrationError,
    WaitTimeoutError,
    ReferentialIntegrityError,
    EnvironmentFault,
    DatabaseUnavailableError,
    CertificateError,
    AutomationUnavailableError,
)
from .features import has_feature, feature_enabled
from .interfaces import IAutomation, TableData, NetworkExchange, GraphNode
from .loader import FixtureStore
from .matrix import DatabaseMatrix, ScenarioCase, ScenarioContext, ScenarioGroup
from .session import login_to_database, logout, SessionScope, AsyncSessionScope
from .settings import MatrixSettings, load_settings
from .tables import get_table_config
from .types import Category, FeatureSupport, SkipKind, ROW_OFFSET
from .waiting import wait_for, async_wait_for

__version__ = "1.0.0.dev1"

__all__ = [
    # Fixtures
    'DatabaseFixture',
    'TableConfig',
    'ColumnSpec',
    'ConnectionParams',
    'FixtureStore',

    # Matrix
    'DatabaseMatrix',
    'ScenarioCase',
    'ScenarioContext',
    'ScenarioGroup',

    # Lookups
    'has_feature',
    'feature_enabled',
    'get_table_config',

    # Sessions and waiting
    'login_to_database',
    'logout',
    'SessionScope',
    'AsyncSessionScope',
    'wait_for',
    'async_wait_for',

    # Automation contract
    'IAutomation',
    'TableData',
    'NetworkExchange',
    'GraphNode',

    # Settings
    'MatrixSettings',
    'load_settings',

    # Types
    'Category',
    'FeatureSupport',
    'SkipKind',
    'ROW_OFFSET',

    # Errors
    'MatrixError',
    'FixtureConfigError',
    'FixtureValidationError',
    'UnknownDatabaseError',
    'DependencyCycleError',
    'UnknownCategoryError',
    'UnknownFeatureError',
    'RegistrationError',
    'WaitTimeoutError',
    'ReferentialIntegrityError',
    'EnvironmentFault',
    'DatabaseUnavailableError',
    'CertificateError',
    'AutomationUnavailableError',
]
