"""
Complex tiling for the CoSE layout.

Complexes are containers whose members should sit in a compact block rather
than float freely.  Before the simulation each complex is collapsed:

  1. its children (and everything below them) are detached from the graph
  2. the detached children are packed into rows (``tile_nodes``)
  3. the complex is simulated as a single node of the tile's size

After the simulation ``repopulate_complexes`` puts the members back, laid
out row by row inside the complex's final box.

Packing heuristic
-----------------
Each child goes into the shortest row when that keeps the block roughly
square, otherwise into a new row.  After every insertion the last node of
the longest row is moved to the last row for as long as it fits within the
current width, which keeps one row from growing far past the others.

Spacing constants:
  - 10px between nodes in a row, 10px below every row
  - every row starts 10px wide, so the block is 10px wider than its longest
    row of nodes
  - 10px margin above and below the rows
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from .hierarchy import LayoutInfo, ROOT_GRAPH
from .models import CompoundGraph, DetachedMembers, GraphNode

logger = logging.getLogger(__name__)


# --- Spacing constants ---

TILE_VERTICAL_PADDING = 10
TILE_HORIZONTAL_PADDING = 10
COMPLEX_MARGIN = 10
MIN_COMPLEX_WIDTH = 10


@dataclass
class Organization:
    """Rows of tiled nodes and the running size of the block.

    ``width``/``height`` are the size of the whole tile.  ``width`` is the
    widest ``row_width``; ``height`` is the tallest member of every row plus
    the vertical padding, on top of the margin above and below.
    """
    rows: list[list[GraphNode]] = field(default_factory=list)
    row_width: list[float] = field(default_factory=list)
    width: float = 2 * COMPLEX_MARGIN
    height: float = 2 * COMPLEX_MARGIN
    vertical_padding: float = TILE_VERTICAL_PADDING
    horizontal_padding: float = TILE_HORIZONTAL_PADDING
    complex_margin: float = COMPLEX_MARGIN

    def row_ids(self) -> list[list[str]]:
        return [[n.id for n in row] for row in self.rows]


@dataclass
class TiledComplex:
    """A collapsed complex: its packed rows and what was detached with them."""
    complex_id: str
    organization: Organization
    detached: DetachedMembers


# ---------------------------------------------------------------------------
# Row packing
# ---------------------------------------------------------------------------

def get_shortest_row_index(organization: Organization) -> int:
    r = -1
    shortest = math.inf
    for i, w in enumerate(organization.row_width):
        if w < shortest:
            r = i
            shortest = w
    return r


def get_longest_row_index(organization: Organization) -> int:
    r = -1
    longest = -math.inf
    for i, w in enumerate(organization.row_width):
        if w > longest:
            r = i
            longest = w
    return r


def can_add_horizontal(organization: Organization, extra_width: float, extra_height: float) -> bool:
    """Whether appending a node to the shortest row keeps the block balanced.

    True when the shortest row still has room inside the current width, or
    when opening a new row would make the block taller than the shortest
    row would become wide.
    """
    sri = get_shortest_row_index(organization)
    if sri < 0:
        return True

    shortest = organization.row_width[sri]
    if organization.width - shortest >= extra_width + organization.horizontal_padding:
        return True

    return (
        organization.height + organization.vertical_padding + extra_height
        > shortest + extra_width + organization.horizontal_padding
    )


def update_height(organization: Organization) -> None:
    """Recompute the block height from the tallest node of each row."""
    total = 2 * organization.complex_margin
    for row in organization.rows:
        total += max((n.height for n in row), default=0.0) + organization.vertical_padding
    organization.height = total


def insert_node_to_row(organization: Organization, node: GraphNode, row_index: int) -> None:
    """Append ``node`` to row ``row_index``, opening that row if it is new."""
    if row_index == len(organization.rows):
        organization.rows.append([])
        organization.row_width.append(MIN_COMPLEX_WIDTH)

    w = organization.row_width[row_index] + node.width
    if organization.rows[row_index]:
        w += organization.horizontal_padding
    organization.row_width[row_index] = w
    organization.rows[row_index].append(node)

    update_height(organization)

    if organization.width < w:
        organization.width = w


def shift_to_last_row(organization: Organization) -> None:
    """Move trailing nodes of the longest row to the last row while they fit."""
    while True:
        longest = get_longest_row_index(organization)
        last = len(organization.row_width) - 1
        row = organization.rows[longest]
        node = row[-1]
        diff = node.width + organization.horizontal_padding

        if not organization.width - organization.row_width[last] > diff:
            return

        row.pop()
        organization.rows[last].append(node)
        organization.row_width[longest] -= diff
        organization.row_width[last] += diff
        organization.width = organization.row_width[get_longest_row_index(organization)]
        update_height(organization)


def tile_nodes(nodes: list[GraphNode]) -> Organization:
    """Pack ``nodes`` (in order) into balanced rows."""
    organization = Organization()

    for node in nodes:
        if not organization.rows:
            insert_node_to_row(organization, node, 0)
        elif can_add_horizontal(organization, node.width, node.height):
            insert_node_to_row(organization, node, get_shortest_row_index(organization))
        else:
            insert_node_to_row(organization, node, len(organization.rows))

        shift_to_last_row(organization)

    return organization


# ---------------------------------------------------------------------------
# Collapsing complexes
# ---------------------------------------------------------------------------

def find_complexes(graph: CompoundGraph, layout_info: LayoutInfo) -> list[str]:
    """Ids of all complexes that have members, innermost first.

    Depth-first over the containers reachable from the root group; a
    complex is listed after every complex nested inside it.
    """
    order: list[str] = []
    stack: list[tuple[str, bool]] = [
        (node_id, False) for node_id in reversed(layout_info.graph_set[ROOT_GRAPH])
    ]
    while stack:
        node_id, expanded = stack.pop()
        node = layout_info.node(node_id)
        if not node.children:
            continue
        if expanded:
            graph_node = graph.get_node(node_id)
            if graph_node is not None and graph_node.is_complex:
                order.append(node_id)
            continue
        stack.append((node_id, True))
        for child_id in reversed(node.children):
            stack.append((child_id, False))
    return order


def _measure(node: GraphNode, detached: DetachedMembers) -> None:
    """Give a container that was detached along with its members a size.

    Plain containers inside a complex keep their subtree; their box is taken
    from the subtree's extents plus padding so the tile leaves room for it.
    """
    members = _descendants(node.id, detached)
    bounds = compute_bounds(members)
    if bounds is None:
        return
    min_x, min_y, max_x, max_y = bounds
    min_x -= node.padding.left
    max_x += node.padding.right
    min_y -= node.padding.top
    max_y += node.padding.bottom
    node.x = (min_x + max_x) / 2
    node.y = (min_y + max_y) / 2
    node.width = max_x - min_x
    node.height = max_y - min_y


def compute_bounds(nodes: list[GraphNode]) -> Optional[tuple[float, float, float, float]]:
    """(min_x, min_y, max_x, max_y) around a set of centred nodes.

    Returns None if there are no nodes or no finite coordinates.
    """
    min_x = math.inf
    min_y = math.inf
    max_x = -math.inf
    max_y = -math.inf
    for node in nodes:
        if not math.isfinite(node.x) or not math.isfinite(node.y):
            continue
        min_x = min(min_x, node.x - node.width / 2)
        max_x = max(max_x, node.x + node.width / 2)
        min_y = min(min_y, node.y - node.height / 2)
        max_y = max(max_y, node.y + node.height / 2)
    if not math.isfinite(min_x):
        return None
    return min_x, min_y, max_x, max_y


def _descendants(node_id: str, detached: DetachedMembers) -> list[GraphNode]:
    by_parent: dict[Optional[str], list[GraphNode]] = {}
    for n in detached.nodes:
        by_parent.setdefault(n.parent, []).append(n)
    result: list[GraphNode] = []
    frontier = [node_id]
    while frontier:
        for child in by_parent.get(frontier.pop(), []):
            result.append(child)
            frontier.append(child.id)
    return result


def clear_complexes(
    graph: CompoundGraph,
    layout_info: LayoutInfo,
    complex_order: list[str],
) -> dict[str, DetachedMembers]:
    """Detach the members of each complex from the graph and the layout."""
    child_graph_map: dict[str, DetachedMembers] = {}
    for complex_id in complex_order:
        detached = graph.detach_children(complex_id)
        layout_info.prune(detached.node_ids())
        child_graph_map[complex_id] = detached
    return child_graph_map


def tile_complex_members(
    layout_info: LayoutInfo,
    child_graph_map: dict[str, DetachedMembers],
) -> dict[str, TiledComplex]:
    """Tile each complex's members and size the complex's layout node to fit."""
    tiled: dict[str, TiledComplex] = {}
    for complex_id, detached in child_graph_map.items():
        for child in detached.children:
            if _descendants(child.id, detached):
                _measure(child, detached)

        organization = tile_nodes(detached.children)
        tiled[complex_id] = TiledComplex(
            complex_id=complex_id,
            organization=organization,
            detached=detached,
        )

        complex_node = layout_info.node(complex_id)
        complex_node.width = organization.width
        complex_node.height = organization.height
        complex_node.update_extents()
        logger.debug(
            f"Tiled complex {complex_id}: rows={organization.row_ids()} "
            f"size={organization.width}x{organization.height}"
        )
    return tiled


def collapse_complexes(
    graph: CompoundGraph,
    layout_info: LayoutInfo,
) -> dict[str, TiledComplex]:
    """Find, detach and tile every complex, innermost first.

    Each complex is tiled right after its own members are detached, so a
    complex nested in another is already at its tiled size when the outer
    one packs it.
    """
    tiled: dict[str, TiledComplex] = {}
    for complex_id in find_complexes(graph, layout_info):
        detached = clear_complexes(graph, layout_info, [complex_id])
        tiled.update(tile_complex_members(layout_info, detached))
        graph_node = graph.get_node(complex_id)
        if graph_node is not None:
            graph_node.width = tiled[complex_id].organization.width
            graph_node.height = tiled[complex_id].organization.height
    return tiled


# ---------------------------------------------------------------------------
# Repopulating complexes
# ---------------------------------------------------------------------------

def adjust_locations(tiled: TiledComplex, x: float, y: float) -> None:
    """Lay the tiled rows out as a block centred on (x, y).

    Rows are left-aligned inside the block.  Each member's subtree moves
    along with it.
    """
    organization = tiled.organization
    if not organization.rows:
        return
    block_width = max(organization.row_width) - MIN_COMPLEX_WIDTH
    block_height = (
        organization.height - 2 * organization.complex_margin - organization.vertical_padding
    )
    left = x - block_width / 2
    top = y - block_height / 2

    row_top = top
    for row in organization.rows:
        cursor = left
        row_height = max((n.height for n in row), default=0.0)
        for node in row:
            new_x = cursor + node.width / 2
            new_y = row_top + node.height / 2
            dx = new_x - node.x
            dy = new_y - node.y
            node.x = new_x
            node.y = new_y
            for descendant in _descendants(node.id, tiled.detached):
                descendant.x += dx
                descendant.y += dy
            cursor += node.width + organization.horizontal_padding
        row_top += row_height + organization.vertical_padding


def repopulate_complexes(graph: CompoundGraph, tiled: dict[str, TiledComplex]) -> None:
    """Restore every complex's members around its final position.

    Outer complexes go first, so a nested complex has been placed by its
    parent before its own members are laid out.
    """
    for complex_id in reversed(list(tiled)):
        entry = tiled[complex_id]
        complex_node = graph.get_node(complex_id)
        if complex_node is None:
            logger.warning(f"Complex {complex_id} missing from graph; members left detached")
            continue

        adjust_locations(entry, complex_node.x, complex_node.y)
        graph.restore(entry.detached)
        complex_node.shape = "complex"
