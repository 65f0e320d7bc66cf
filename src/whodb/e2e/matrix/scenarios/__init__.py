# src/whodb/e2e/matrix/scenarios/__init__.py
"""
Scenario groups driving the web client through ``IAutomation``.

Each module exposes ``register(matrix)``. ``register_all`` registers every
group in an order where groups that overwrite table contents come last.
"""
from . import crud, data_types, export, graph, mock_data, profiles, ssl_modes, type_casting

GROUPS = (
    data_types,
    crud,
    type_casting,
    export,
    graph,
    profiles,
    ssl_modes,
    mock_data,
)


def register_all(matrix):
    """Register every scenario group on ``matrix`` and return it."""
    for module in GROUPS:
        module.register(matrix)
    return matrix


__all__ = ['register_all', 'GROUPS']
