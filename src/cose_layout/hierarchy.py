"""
Graph-hierarchy builder for the CoSE layout.

Turns the flat node list of a ``CompoundGraph`` into the working set of a
layout run (``LayoutInfo``):

  - one ``LayoutNode`` per graph node, indexed by id
  - the **sibling groups** ("graphs"): group 0 holds the root-level nodes,
    every later group is the children list of one container, in the
    breadth-first order containers are discovered
  - one ``LayoutEdge`` per edge, carrying its ideal length

Edges whose endpoints sit in different sibling groups get a longer ideal
length: the base length scaled by how deep both endpoints are nested below
their lowest common ancestor group.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import CompoundGraph, LayoutError, LayoutOptions

logger = logging.getLogger(__name__)

ROOT_GRAPH = 0


@dataclass
class LayoutNode:
    """Simulation state of one node.

    Leaves move by their accumulated offset.  Containers never move on their
    own; their centre and size are recomputed from the extents of their
    children after every position update.
    """
    id: str
    parent_id: Optional[str]
    width: float
    height: float
    position_x: float
    position_y: float
    pad_left: float = 0.0
    pad_right: float = 0.0
    pad_top: float = 0.0
    pad_bottom: float = 0.0
    children: list[str] = field(default_factory=list)
    offset_x: float = 0.0
    offset_y: float = 0.0
    min_x: Optional[float] = None
    max_x: Optional[float] = None
    min_y: Optional[float] = None
    max_y: Optional[float] = None

    def __post_init__(self):
        self.update_extents()

    @property
    def is_container(self) -> bool:
        return len(self.children) > 0

    def update_extents(self) -> None:
        """Recompute the bounding box from centre and size."""
        half_w = self.width / 2
        half_h = self.height / 2
        self.min_x = self.position_x - half_w
        self.max_x = self.position_x + half_w
        self.min_y = self.position_y - half_h
        self.max_y = self.position_y + half_h

    def reset_extents(self) -> None:
        self.min_x = None
        self.max_x = None
        self.min_y = None
        self.max_y = None


@dataclass
class LayoutEdge:
    """A spring between two layout nodes."""
    id: str
    source_id: str
    target_id: str
    ideal_length: float


@dataclass
class LayoutInfo:
    """Everything a layout run reads and writes while simulating."""
    layout_nodes: list[LayoutNode] = field(default_factory=list)
    id_to_index: dict[str, int] = field(default_factory=dict)
    graph_set: list[list[str]] = field(default_factory=list)
    index_to_graph: list[int] = field(default_factory=list)
    layout_edges: list[LayoutEdge] = field(default_factory=list)
    temperature: float = 0.0
    client_width: float = 0.0
    client_height: float = 0.0

    @property
    def node_size(self) -> int:
        return len(self.layout_nodes)

    @property
    def edge_size(self) -> int:
        return len(self.layout_edges)

    def node(self, node_id: str) -> LayoutNode:
        return self.layout_nodes[self.id_to_index[node_id]]

    def graph_of(self, node_id: str) -> int:
        """Index of the sibling group ``node_id`` belongs to."""
        return self.index_to_graph[self.id_to_index[node_id]]

    def child_graph(self, node: LayoutNode) -> Optional[int]:
        """Index of the sibling group formed by ``node``'s children."""
        if not node.children:
            return None
        return self.graph_of(node.children[0])

    def parent_of(self, node: LayoutNode) -> Optional[LayoutNode]:
        if node.parent_id is None:
            return None
        return self.node(node.parent_id)

    def prune(self, node_ids: Iterable[str]) -> None:
        """Drop the given nodes and every edge touching them.

        Containers that lose all their children become leaves.  Groups and
        index maps are rebuilt; surviving edges keep their ideal lengths.
        """
        removed = set(node_ids)
        if not removed:
            return
        survivors = [n for n in self.layout_nodes if n.id not in removed]
        for node in survivors:
            node.children = [c for c in node.children if c not in removed]
            if not node.children:
                node.update_extents()
        self.layout_nodes = survivors
        self.id_to_index = {n.id: i for i, n in enumerate(survivors)}
        self.layout_edges = [
            e for e in self.layout_edges
            if e.source_id not in removed and e.target_id not in removed
        ]
        _build_graph_set(self)

    def describe(self) -> str:
        """Multi-line dump of the whole working set, for debug logging."""
        lines = ["layoutNodes:"]
        for i, n in enumerate(self.layout_nodes):
            lines.append(
                f"  [{i}] id={n.id} parent={n.parent_id} children={n.children} "
                f"pos=({n.position_x}, {n.position_y}) offset=({n.offset_x}, {n.offset_y}) "
                f"size={n.width}x{n.height} "
                f"pad=(l={n.pad_left}, r={n.pad_right}, t={n.pad_top}, b={n.pad_bottom})"
            )
        lines.append("graphSet:")
        for i, graph in enumerate(self.graph_set):
            lines.append(f"  [{i}] {', '.join(graph)}")
        lines.append("layoutEdges:")
        for e in self.layout_edges:
            lines.append(
                f"  {e.id}: {e.source_id} -> {e.target_id} ideal={e.ideal_length}"
            )
        lines.append(
            f"nodeSize={self.node_size} edgeSize={self.edge_size} "
            f"temperature={self.temperature}"
        )
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_graph(graph: CompoundGraph) -> None:
    """Reject graphs the layout cannot place.

    Raises ``LayoutError`` for duplicate ids, unknown parents, parent
    cycles, and edges whose endpoints are not nodes of the graph.  Runs
    before anything on the graph is touched.
    """
    ids: set[str] = set()
    for node in graph.nodes:
        if node.id in ids:
            raise LayoutError(f"Duplicate node id: {node.id}")
        ids.add(node.id)

    parents: dict[str, Optional[str]] = {}
    for node in graph.nodes:
        if node.parent is not None and node.parent not in ids:
            raise LayoutError(f"Node {node.id} references unknown parent {node.parent}")
        parents[node.id] = node.parent

    # Parent chains must end at a root; a chain longer than the node count
    # can only be a cycle.
    for node_id in parents:
        steps = 0
        current = parents[node_id]
        while current is not None:
            steps += 1
            if steps > len(parents):
                raise LayoutError(f"Parent cycle through node {node_id}")
            current = parents[current]

    for edge in graph.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in ids:
                raise LayoutError(f"Edge {edge.id} references unknown node {endpoint}")


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def _build_graph_set(layout_info: LayoutInfo) -> None:
    """Fill ``graph_set`` and ``index_to_graph`` by breadth-first traversal."""
    queue: deque[str] = deque()
    root_graph: list[str] = []
    for node in layout_info.layout_nodes:
        if node.parent_id is None:
            queue.append(node.id)
            root_graph.append(node.id)

    layout_info.graph_set = [root_graph]

    while queue:
        node = layout_info.node(queue.popleft())
        if node.children:
            layout_info.graph_set.append(node.children)
            queue.extend(node.children)

    layout_info.index_to_graph = [ROOT_GRAPH] * layout_info.node_size
    for graph_ix, graph in enumerate(layout_info.graph_set):
        for node_id in graph:
            layout_info.index_to_graph[layout_info.id_to_index[node_id]] = graph_ix


def create_layout_info(graph: CompoundGraph, options: LayoutOptions) -> LayoutInfo:
    """Build the working set of a layout run from ``graph``.

    The graph is validated first; nothing on it is modified.
    """
    validate_graph(graph)

    layout_info = LayoutInfo(
        temperature=options.initial_temp,
        client_width=graph.width,
        client_height=graph.height,
    )

    for i, node in enumerate(graph.nodes):
        layout_info.layout_nodes.append(LayoutNode(
            id=node.id,
            parent_id=node.parent,
            width=node.width,
            height=node.height,
            position_x=node.x,
            position_y=node.y,
            pad_left=node.padding.left,
            pad_right=node.padding.right,
            pad_top=node.padding.top,
            pad_bottom=node.padding.bottom,
        ))
        layout_info.id_to_index[node.id] = i

    for node in layout_info.layout_nodes:
        if node.parent_id is not None:
            layout_info.node(node.parent_id).children.append(node.id)

    _build_graph_set(layout_info)

    for edge in graph.edges:
        ideal_length = options.ideal_edge_length

        source_graph = layout_info.graph_of(edge.source)
        target_graph = layout_info.graph_of(edge.target)

        if source_graph != target_graph:
            lca = find_lca(edge.source, edge.target, layout_info)
            depth = (
                depth_below(edge.source, lca, layout_info)
                + depth_below(edge.target, lca, layout_info)
            )
            if options.debug:
                logger.debug(
                    f"LCA of nodes {edge.source} and {edge.target}. Index: {lca} "
                    f"Contents: {layout_info.graph_set[lca]}. Depth: {depth}"
                )
            if depth:
                ideal_length *= depth * options.nesting_factor

        layout_info.layout_edges.append(LayoutEdge(
            id=edge.id,
            source_id=edge.source,
            target_id=edge.target,
            ideal_length=ideal_length,
        ))

    return layout_info


# ---------------------------------------------------------------------------
# Lowest common ancestor
# ---------------------------------------------------------------------------

def _count_in_subtree(
    node1: str,
    node2: str,
    graph_ix: int,
    layout_info: LayoutInfo,
) -> int:
    """How many of ``node1``/``node2`` live in ``graph_ix`` or below it (0-2)."""
    count = 0
    stack = [graph_ix]
    while stack:
        for node_id in layout_info.graph_set[stack.pop()]:
            if node_id == node1 or node_id == node2:
                count += 1
                if count == 2:
                    return count
            child_graph = layout_info.child_graph(layout_info.node(node_id))
            if child_graph is not None:
                stack.append(child_graph)
    return count


def find_lca(node1: str, node2: str, layout_info: LayoutInfo) -> int:
    """Index of the lowest sibling group that contains both nodes' ancestry.

    Descends from the root group.  A group holding both nodes is the answer;
    otherwise each member's child group is searched, and the descent moves
    into a child group holding both.  Once two different child groups each
    hold one of the nodes, the current group is the answer.  When neither
    is found below, the root group is returned.
    """
    graph_ix = ROOT_GRAPH
    while True:
        if (layout_info.graph_of(node1) == graph_ix
                and layout_info.graph_of(node2) == graph_ix):
            return graph_ix

        found = 0
        descend_to = None
        for node_id in layout_info.graph_set[graph_ix]:
            child_graph = layout_info.child_graph(layout_info.node(node_id))
            if child_graph is None:
                continue
            count = _count_in_subtree(node1, node2, child_graph, layout_info)
            if count == 2:
                descend_to = child_graph
                break
            if count == 1:
                found += 1
                if found == 2:
                    break

        if descend_to is None:
            return graph_ix
        graph_ix = descend_to


def depth_below(node_id: str, graph_ix: int, layout_info: LayoutInfo) -> int:
    """Number of parent hops from ``node_id`` up to a member of ``graph_ix``."""
    depth = 0
    node = layout_info.node(node_id)
    while layout_info.graph_of(node.id) != graph_ix:
        parent = layout_info.parent_of(node)
        if parent is None:
            raise LayoutError(f"Node {node_id} does not descend from group {graph_ix}")
        node = parent
        depth += 1
    return depth
