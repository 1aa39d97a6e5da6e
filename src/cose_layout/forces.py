"""
Force computations for one step of the CoSE simulation.

Each step accumulates an offset on every node and then moves the leaves:

  1. node repulsion: siblings push each other apart
  2. edge forces   : springs pull connected nodes toward each other
  3. gravity       : every sibling group is pulled toward its centre
  4. propagation   : offsets on containers are handed down to their children
  5. update        : leaves move (capped by the temperature) and every
                      container is resized around its children

Coordinates are node centres.  Functions take a ``trace`` flag; when it is
set they log every force they apply at DEBUG level.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass

from .hierarchy import LayoutInfo, LayoutNode, ROOT_GRAPH
from .models import LayoutOptions

logger = logging.getLogger(__name__)

# Nodes closer than this to their group's centre feel no gravity.
GRAVITY_DISTANCE_THRESHOLD = 1.0


@dataclass
class Point:
    x: float
    y: float


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def find_clipping_point(node: LayoutNode, dx: float, dy: float) -> Point:
    """Where a ray from ``node``'s centre in direction (dx, dy) leaves its box.

    The side that is hit is picked by comparing the ray's slope with the
    slope of the box diagonal.
    """
    x = node.position_x
    y = node.position_y
    h = node.height
    w = node.width

    if dx == 0:
        if dy > 0:
            return Point(x, y + h / 2)
        return Point(x, y - h / 2)

    dir_slope = dy / dx
    node_slope = h / w if w else math.inf

    if -node_slope <= dir_slope <= node_slope:
        if dx > 0:
            return Point(x + w / 2, y + w * dy / 2 / dx)
        return Point(x - w / 2, y - w * dy / 2 / dx)

    if dy > 0:
        return Point(x + h * dx / 2 / dy, y + h / 2)
    return Point(x - h * dx / 2 / dy, y - h / 2)


def nodes_overlap(node1: LayoutNode, node2: LayoutNode, dx: float, dy: float) -> float:
    """Amount by which two boxes overlap (0 when they do not)."""
    if dx > 0:
        overlap_x = node1.max_x - node2.min_x
    else:
        overlap_x = node2.max_x - node1.min_x

    if dy > 0:
        overlap_y = node1.max_y - node2.min_y
    else:
        overlap_y = node2.max_y - node1.min_y

    if overlap_x >= 0 and overlap_y >= 0:
        return math.sqrt(overlap_x * overlap_x + overlap_y * overlap_y)
    return 0.0


def limit_force(force_x: float, force_y: float, max_force: float) -> tuple[float, float]:
    """Scale (force_x, force_y) down to at most ``max_force``, keeping direction."""
    force = math.sqrt(force_x * force_x + force_y * force_y)
    if force > max_force:
        return max_force * force_x / force, max_force * force_y / force
    return force_x, force_y


# ---------------------------------------------------------------------------
# Forces
# ---------------------------------------------------------------------------

def node_repulsion(
    node1: LayoutNode,
    node2: LayoutNode,
    options: LayoutOptions,
    trace: bool = False,
) -> None:
    """Push two siblings apart.

    Overlapping boxes repel in proportion to the overlap; separate boxes
    repel with the inverse square of the gap between their borders.
    Coincident centres give no direction and are skipped.
    """
    direction_x = node2.position_x - node1.position_x
    direction_y = node2.position_y - node1.position_y

    if direction_x == 0 and direction_y == 0:
        if trace:
            logger.debug(f"Node repulsion {node1.id}/{node2.id}: same position, skipped")
        return

    overlap = nodes_overlap(node1, node2, direction_x, direction_y)

    if overlap > 0:
        force = options.node_overlap * overlap
        distance = math.sqrt(direction_x * direction_x + direction_y * direction_y)
        force_x = force * direction_x / distance
        force_y = force * direction_y / distance
    else:
        point1 = find_clipping_point(node1, direction_x, direction_y)
        point2 = find_clipping_point(node2, -direction_x, -direction_y)

        distance_x = point2.x - point1.x
        distance_y = point2.y - point1.y
        distance_sqr = distance_x * distance_x + distance_y * distance_y
        if distance_sqr == 0:
            return
        distance = math.sqrt(distance_sqr)

        force = options.node_repulsion / distance_sqr
        force_x = force * distance_x / distance
        force_y = force * distance_y / distance

    node1.offset_x -= force_x
    node1.offset_y -= force_y
    node2.offset_x += force_x
    node2.offset_y += force_y

    if trace:
        logger.debug(
            f"Node repulsion {node1.id}/{node2.id}: overlap={overlap} "
            f"force=({force_x}, {force_y})"
        )


def calculate_node_forces(layout_info: LayoutInfo, options: LayoutOptions, trace: bool = False) -> None:
    """Repulsion between every pair of nodes that share a sibling group."""
    for graph in layout_info.graph_set:
        members = [layout_info.node(node_id) for node_id in graph]
        for j, node1 in enumerate(members):
            for node2 in members[j + 1:]:
                node_repulsion(node1, node2, options, trace)


def calculate_edge_forces(layout_info: LayoutInfo, options: LayoutOptions, trace: bool = False) -> None:
    """Spring force along every edge.

    The magnitude is ``(ideal - l)**2 / edge_elasticity`` where ``l`` is the
    gap between the endpoints' borders.  It always pulls the endpoints
    together.
    """
    for edge in layout_info.layout_edges:
        source = layout_info.node(edge.source_id)
        target = layout_info.node(edge.target_id)

        direction_x = target.position_x - source.position_x
        direction_y = target.position_y - source.position_y

        if direction_x == 0 and direction_y == 0:
            continue

        point1 = find_clipping_point(source, direction_x, direction_y)
        point2 = find_clipping_point(target, -direction_x, -direction_y)

        lx = point2.x - point1.x
        ly = point2.y - point1.y
        length = math.sqrt(lx * lx + ly * ly)

        if length == 0:
            continue

        force = (edge.ideal_length - length) ** 2 / options.edge_elasticity
        force_x = force * lx / length
        force_y = force * ly / length

        source.offset_x += force_x
        source.offset_y += force_y
        target.offset_x -= force_x
        target.offset_y -= force_y

        if trace:
            logger.debug(
                f"Edge force between nodes {source.id} and {target.id}: "
                f"distance={length} force=({force_x}, {force_y})"
            )


def calculate_gravity_forces(layout_info: LayoutInfo, options: LayoutOptions, trace: bool = False) -> None:
    """Pull each sibling group toward its centre.

    The root group's centre is the middle of the canvas; a nested group's
    centre is the position of the container holding it.
    """
    for graph_ix, graph in enumerate(layout_info.graph_set):
        if not graph:
            continue
        if graph_ix == ROOT_GRAPH:
            center_x = layout_info.client_width / 2
            center_y = layout_info.client_height / 2
        else:
            parent = layout_info.parent_of(layout_info.node(graph[0]))
            center_x = parent.position_x
            center_y = parent.position_y

        for node_id in graph:
            node = layout_info.node(node_id)
            dx = center_x - node.position_x
            dy = center_y - node.position_y
            d = math.sqrt(dx * dx + dy * dy)
            if d > GRAVITY_DISTANCE_THRESHOLD:
                fx = options.gravity * dx / d
                fy = options.gravity * dy / d
                node.offset_x += fx
                node.offset_y += fy
                if trace:
                    logger.debug(f"Gravity on {node.id}: ({fx}, {fy})")


# ---------------------------------------------------------------------------
# Propagation and position update
# ---------------------------------------------------------------------------

def propagate_forces(layout_info: LayoutInfo, trace: bool = False) -> None:
    """Hand the offsets of containers down to their children.

    Breadth-first from the root group, so a child container passes on its
    own offset plus everything it inherited.
    """
    queue: deque[str] = deque(layout_info.graph_set[ROOT_GRAPH])

    while queue:
        node = layout_info.node(queue.popleft())
        if not node.children:
            continue

        off_x = node.offset_x
        off_y = node.offset_y
        if trace:
            logger.debug(
                f"Propagating offset ({off_x}, {off_y}) from {node.id} to {node.children}"
            )
        for child_id in node.children:
            child = layout_info.node(child_id)
            child.offset_x += off_x
            child.offset_y += off_y
            queue.append(child_id)

        node.offset_x = 0.0
        node.offset_y = 0.0


def update_ancestry_boundaries(node: LayoutNode, layout_info: LayoutInfo) -> None:
    """Grow the boxes of ``node``'s ancestors so they contain it.

    Walks up the parent chain and stops at the first ancestor whose box did
    not have to grow.
    """
    while node.parent_id is not None:
        p = layout_info.node(node.parent_id)
        changed = False

        if p.max_x is None or node.max_x + p.pad_right > p.max_x:
            p.max_x = node.max_x + p.pad_right
            changed = True
        if p.min_x is None or node.min_x - p.pad_left < p.min_x:
            p.min_x = node.min_x - p.pad_left
            changed = True
        if p.max_y is None or node.max_y + p.pad_bottom > p.max_y:
            p.max_y = node.max_y + p.pad_bottom
            changed = True
        if p.min_y is None or node.min_y - p.pad_top < p.min_y:
            p.min_y = node.min_y - p.pad_top
            changed = True

        if not changed:
            return
        node = p


def update_positions(layout_info: LayoutInfo, trace: bool = False) -> None:
    """Move every leaf by its offset and refit every container."""
    for n in layout_info.layout_nodes:
        if n.is_container:
            n.reset_extents()

    for n in layout_info.layout_nodes:
        if n.is_container:
            continue

        step_x, step_y = limit_force(n.offset_x, n.offset_y, layout_info.temperature)
        n.position_x += step_x
        n.position_y += step_y
        n.offset_x = 0.0
        n.offset_y = 0.0
        n.update_extents()
        if trace:
            logger.debug(f"Node {n.id} moved to ({n.position_x}, {n.position_y})")

        update_ancestry_boundaries(n, layout_info)

    for n in layout_info.layout_nodes:
        if n.is_container:
            n.position_x = (n.max_x + n.min_x) / 2
            n.position_y = (n.max_y + n.min_y) / 2
            n.width = n.max_x - n.min_x
            n.height = n.max_y - n.min_y


def step(layout_info: LayoutInfo, options: LayoutOptions, trace: bool = False) -> None:
    """One iteration of the physical simulation."""
    calculate_node_forces(layout_info, options, trace)
    calculate_edge_forces(layout_info, options, trace)
    calculate_gravity_forces(layout_info, options, trace)
    propagate_forces(layout_info, trace)
    update_positions(layout_info, trace)
