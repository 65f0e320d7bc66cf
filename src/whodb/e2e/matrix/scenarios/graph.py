# src/whodb/e2e/matrix/scenarios/graph.py
from functools import partial

from ..tables import get_table_config

GRAPH_ROUTE = "graph"


def topology(ctx):
    ctx.automation.goto(GRAPH_ROUTE)
    graph = ctx.automation.get_graph()
    for node, neighbors in ctx.db.graph.expected_nodes.items():
        assert node in graph, f"Graph should have node: {node}"
        assert sorted(graph[node]) == sorted(neighbors), \
            f"Neighbors of {node}: expected {sorted(neighbors)}, got {sorted(graph[node])}"


def node_metadata(ctx, table_name: str):
    ctx.automation.goto(GRAPH_ROUTE)
    node = ctx.automation.get_graph_node(table_name)
    metadata = get_table_config(ctx.db, table_name).metadata
    if metadata.type:
        assert node.type == metadata.type, f"Should have Type: {metadata.type}, got {node.type}"
    if metadata.has_size:
        has_size = bool(node.size) or any("size" in key.lower() for key in node.metadata)
        assert has_size, f"Node {table_name} should show size information"


def graph(db, group):
    if db.graph is None:
        return
    group.add("displays graph with expected topology", topology)
    table_name = db.test_table.name
    if get_table_config(db, table_name) is not None:
        group.add("shows table metadata in graph nodes", partial(node_metadata, table_name=table_name))


def register(matrix):
    matrix.for_each_database("sql", graph, features=["graph"])
    matrix.for_each_database("document", graph, features=["graph"])
