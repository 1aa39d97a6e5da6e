"""Shared graph builders for the layout tests."""

import pytest

from cose_layout.models import CompoundGraph, GraphEdge, GraphNode, Padding


def make_graph(nodes, edges=(), width=800, height=600) -> CompoundGraph:
    """Build a CompoundGraph from compact tuples.

    ``nodes``: (id, parent, x, y, w, h) with optional 7th ``kind`` and 8th
    padding value.  ``edges``: (source, target) pairs, ids assigned in order.
    """
    graph_nodes = []
    for entry in nodes:
        node_id, parent, x, y, w, h = entry[:6]
        kind = entry[6] if len(entry) > 6 else "default"
        padding = Padding.uniform(entry[7]) if len(entry) > 7 else Padding()
        graph_nodes.append(GraphNode(
            id=node_id, parent=parent, x=x, y=y, width=w, height=h,
            kind=kind, padding=padding,
        ))
    graph_edges = [
        GraphEdge(id=f"e{i}", source=src, target=dst)
        for i, (src, dst) in enumerate(edges)
    ]
    return CompoundGraph(width=width, height=height, nodes=graph_nodes, edges=graph_edges)


@pytest.fixture
def nested_graph() -> CompoundGraph:
    """root{A{X, Y}, B} with an edge inside A and one leaving it."""
    return make_graph(
        nodes=[
            ("A", None, 0, 0, 0, 0, "compartment", 10),
            ("X", "A", 300, 300, 40, 20),
            ("Y", "A", 360, 320, 40, 20),
            ("B", None, 500, 300, 30, 30),
        ],
        edges=[("X", "Y"), ("X", "B")],
    )
