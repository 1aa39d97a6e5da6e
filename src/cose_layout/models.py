"""
Data models for cose-layout: the compound graph handed to the layout.

A compound graph is a flat list of nodes where nesting is expressed through
``parent`` references:

    CompoundGraph
    ├── GraphNode: a leaf (fixed size) or a container (has children)
    │   └── GraphNode: children point back at their container via ``parent``
    └── GraphEdge: a connection between two node ids

Positions are **centres**, not top-left corners.  Containers have their
``width``/``height`` recomputed from their children on every layout run;
values supplied for containers are only used as a hint when a container is
tiled inside a complex.

Complexes
---------
A container whose ``kind`` is ``"complex"`` is a *complex*: before the
simulation its children are detached and tiled into compact rows, the
complex is simulated as a single sized node, and afterwards the children are
put back inside it.

This module also defines the layout configuration (``LayoutOptions``) and
the value returned by a run (``LayoutResult``).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


COMPLEX_KIND = "complex"


class LayoutError(ValueError):
    """The input graph violates the layout's contract (unknown ids, cycles)."""


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------

class Padding(BaseModel):
    """Per-side padding between a container's border and its children.

    Only meaningful for containers.  A scalar in YAML expands to all four
    sides (see ``parser._parse_padding``).
    """
    left: float = Field(default=0.0, ge=0)
    right: float = Field(default=0.0, ge=0)
    top: float = Field(default=0.0, ge=0)
    bottom: float = Field(default=0.0, ge=0)

    @classmethod
    def uniform(cls, value: float) -> "Padding":
        return cls(left=value, right=value, top=value, bottom=value)


class GraphNode(BaseModel):
    """A node of the compound graph.

    Labeling
    --------
    ``id`` must be unique across the graph.  ``label`` is optional;
    ``get_label()`` falls back to the id.

    Hierarchy
    ---------
    ``parent`` is the id of the containing node, or None for root-level
    nodes.  A node with at least one child is a container.

    Ports
    -----
    ``ports`` lists identifiers of connection points owned by this node.
    Edges may name a port instead of the node; ``CompoundGraph.resolve_ports``
    rewrites such endpoints to the owning node id.
    """
    id: str
    parent: Optional[str] = None
    kind: str = "default"
    label: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=30.0, ge=0)
    height: float = Field(default=30.0, ge=0)
    padding: Padding = Field(default_factory=Padding)
    ports: list[str] = Field(default_factory=list)
    shape: Optional[str] = None

    def get_label(self) -> str:
        return self.label if self.label else self.id

    @property
    def is_complex(self) -> bool:
        return self.kind == COMPLEX_KIND


class GraphEdge(BaseModel):
    """A connection between two nodes (or ports) of the graph."""
    id: str
    source: str
    target: str
    kind: Optional[str] = None


@dataclass
class DetachedMembers:
    """Nodes and edges temporarily removed from a graph.

    ``children`` are the direct children of the container they were detached
    from, in input order; ``nodes`` holds those children plus every
    descendant that went with them.
    """
    container_id: str
    children: list[GraphNode] = field(default_factory=list)
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]


# ---------------------------------------------------------------------------
# CompoundGraph
# ---------------------------------------------------------------------------

class CompoundGraph(BaseModel):
    """The graph a layout run operates on.

    ``width``/``height`` describe the canvas.  Its centre is where gravity
    pulls root-level nodes, and random initial positions are drawn from it.

    Flat Access
    -----------
    The graph keeps a ``_node_map`` for O(1) lookup by id.  It is rebuilt by
    ``model_post_init`` and whenever nodes are detached or restored.
    """
    title: str = "Untitled Graph"
    width: float = Field(default=1920.0, gt=0)
    height: float = Field(default=1080.0, gt=0)
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    _node_map: dict[str, GraphNode] = {}

    def model_post_init(self, __context):
        """Build lookup maps after initialization."""
        self._reindex()

    def _reindex(self) -> None:
        self._node_map = {node.id: node for node in self.nodes}

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Look up a node by its id."""
        return self._node_map.get(node_id)

    def children_of(self, node_id: str) -> list[GraphNode]:
        """Return the direct children of ``node_id``, in input order."""
        return [n for n in self.nodes if n.parent == node_id]

    def resolve_ports(self) -> int:
        """Rewrite edge endpoints that name a port to the owning node's id.

        Returns the number of endpoints rewritten.
        """
        owner: dict[str, str] = {}
        for node in self.nodes:
            for port_id in node.ports:
                owner[port_id] = node.id

        rewritten = 0
        for edge in self.edges:
            if edge.source in owner:
                edge.source = owner[edge.source]
                rewritten += 1
            if edge.target in owner:
                edge.target = owner[edge.target]
                rewritten += 1
        return rewritten

    def detach_children(self, container_id: str) -> DetachedMembers:
        """Remove the children of a container, their subtrees and every edge
        touching a removed node.

        The container itself stays in the graph.  Use ``restore`` to put the
        removed elements back.
        """
        detached = DetachedMembers(container_id=container_id)
        removed: set[str] = set()
        frontier = [container_id]
        while frontier:
            parent_id = frontier.pop()
            for node in self.nodes:
                if node.parent == parent_id and node.id not in removed:
                    removed.add(node.id)
                    frontier.append(node.id)

        for node in self.nodes:
            if node.id in removed:
                detached.nodes.append(node)
                if node.parent == container_id:
                    detached.children.append(node)

        detached.edges = [
            e for e in self.edges if e.source in removed or e.target in removed
        ]
        self.nodes = [n for n in self.nodes if n.id not in removed]
        self.edges = [
            e for e in self.edges if e.source not in removed and e.target not in removed
        ]
        self._reindex()
        return detached

    def restore(self, detached: DetachedMembers) -> None:
        """Put previously detached nodes and edges back into the graph."""
        present = set(self._node_map)
        for node in detached.nodes:
            if node.id not in present:
                self.nodes.append(node)
                present.add(node.id)
        edge_ids = {e.id for e in self.edges}
        for edge in detached.edges:
            if edge.id not in edge_ids:
                self.edges.append(edge)
                edge_ids.add(edge.id)
        self._reindex()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class LayoutOptions(BaseModel):
    """Options recognised by the CoSE layout.

    Field names are snake_case; the camelCase names used by Cytoscape-style
    configurations (``numIter``, ``idealEdgeLength`` ...) are accepted as
    aliases.

    Attributes:
        num_iter:          Maximum number of simulation iterations.
        initial_temp:      Starting cap on per-iteration node displacement.
        cooling_factor:    Temperature multiplier applied after each iteration.
        min_temp:          The run stops once temperature drops below this.
        node_repulsion:    Repulsion multiplier for non-overlapping siblings.
        node_overlap:      Repulsion multiplier for overlapping siblings.
        ideal_edge_length: Rest length of an edge between siblings.
        edge_elasticity:   Divisor of the spring force.
        nesting_factor:    Ideal-length multiplier per level of nesting.
        gravity:           Constant pull toward a group's centre.
        randomize:         Scatter positions over the canvas before running.
        seed:              Seed for the scatter; None draws a fresh one.
        refresh:           Iterations between refresh notifications (0 = end only).
        fit:               Compute a viewport fitted around the result.
        padding:           Margin added around the fitted viewport.
        debug:             Emit per-step tracing at DEBUG level.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    num_iter: int = Field(default=100, ge=0, alias="numIter")
    initial_temp: float = Field(default=200.0, gt=0, alias="initialTemp")
    cooling_factor: float = Field(default=0.95, gt=0, le=1, alias="coolingFactor")
    min_temp: float = Field(default=1.0, ge=0, alias="minTemp")
    node_repulsion: float = Field(default=10000.0, ge=0, alias="nodeRepulsion")
    node_overlap: float = Field(default=10.0, ge=0, alias="nodeOverlap")
    ideal_edge_length: float = Field(default=10.0, ge=0, alias="idealEdgeLength")
    edge_elasticity: float = Field(default=100.0, gt=0, alias="edgeElasticity")
    nesting_factor: float = Field(default=5.0, ge=0, alias="nestingFactor")
    gravity: float = Field(default=250.0, ge=0)
    randomize: bool = True
    seed: Optional[int] = None
    refresh: int = Field(default=0, ge=0)
    fit: bool = True
    padding: float = Field(default=30.0, ge=0)
    debug: bool = False

    @field_validator("initial_temp", "min_temp", "node_repulsion", "gravity")
    @classmethod
    def _finite(cls, value: float) -> float:
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError("must be a finite number")
        return value

    @model_validator(mode="after")
    def _check_schedule(self) -> "LayoutOptions":
        if self.min_temp > self.initial_temp:
            raise ValueError(
                f"min_temp ({self.min_temp}) must not exceed initial_temp ({self.initial_temp})"
            )
        return self


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class NodeGeometry:
    """Final centre and size of one node."""
    x: float
    y: float
    width: float
    height: float


@dataclass
class Viewport:
    """Axis-aligned box a renderer should fit to show the whole layout."""
    x: float
    y: float
    width: float
    height: float


@dataclass
class LayoutResult:
    """What a layout run returns besides the geometry written onto the graph.

    ``converged`` is True when the temperature dropped below ``min_temp``
    before the iteration budget ran out.  ``ready_iteration`` is the
    iteration at which positions were first published (-1 for the initial
    scatter, None when no refresh happened before the end).
    """
    geometry: dict[str, NodeGeometry] = field(default_factory=dict)
    iterations: int = 0
    final_temperature: float = 0.0
    converged: bool = False
    elapsed_ms: float = 0.0
    ready_iteration: Optional[int] = None
    viewport: Optional[Viewport] = None
    complexes: list[str] = field(default_factory=list)
