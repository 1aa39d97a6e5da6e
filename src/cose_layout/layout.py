"""
CoSE (Compound Spring Embedder) layout with complex tiling.

A run goes through five stages:

  1. Build     : sibling groups, ideal edge lengths (``hierarchy``)
  2. Tile      : collapse every complex into a sized block (``tiling``)
  3. Simulate  : repulsion, springs and gravity, with offsets propagated down the
                  hierarchy and containers refitted each step (``forces``)
  4. Write back: final centre and size onto every ``GraphNode``
  5. Repopulate: complex members restored inside their complex

The simulation is annealed: the temperature caps how far a node may move in
one iteration and shrinks by ``cooling_factor`` after every iteration.  The
run ends after ``num_iter`` iterations or as soon as the temperature drops
below ``min_temp``, whichever comes first.

Example::

    graph = parse_yaml(recipe)
    result = CoseLayout(LayoutOptions(randomize=False)).run(graph)
    print(result.geometry["A"].x)
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .forces import step, update_positions
from .hierarchy import LayoutInfo, create_layout_info
from .models import (
    CompoundGraph,
    LayoutOptions,
    LayoutResult,
    NodeGeometry,
    Viewport,
)
from .tiling import collapse_complexes, compute_bounds, repopulate_complexes

logger = logging.getLogger(__name__)


@dataclass
class LayoutProgress:
    """Snapshot handed to the refresh observer."""
    iteration: int
    temperature: float
    geometry: dict[str, NodeGeometry]


RefreshCallback = Callable[[LayoutProgress], None]


class CoseLayout:
    """Runs the tiled CoSE layout over a ``CompoundGraph``.

    Args:
        options:    Layout configuration (defaults if omitted).
        on_refresh: Called with a ``LayoutProgress`` every ``options.refresh``
                    iterations, after positions have been written to the
                    graph.  Never called when ``refresh`` is 0.
        log:        Logger to use instead of this module's logger.

    A ``CoseLayout`` holds no state between runs; the same instance can lay
    out several graphs one after another.  Two runs on the same graph must
    not overlap.
    """

    def __init__(
        self,
        options: Optional[LayoutOptions] = None,
        on_refresh: Optional[RefreshCallback] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.options = options or LayoutOptions()
        self.on_refresh = on_refresh
        self.log = log or logger

    def run(self, graph: CompoundGraph) -> LayoutResult:
        """Lay out ``graph`` in place and return a summary of the run.

        Raises ``LayoutError`` if the graph is inconsistent; in that case the
        graph is left untouched.
        """
        options = self.options
        trace = options.debug
        start = time.perf_counter()

        layout_info = create_layout_info(graph, options)
        node_order = [n.id for n in graph.nodes]
        edge_order = [e.id for e in graph.edges]

        tiled = collapse_complexes(graph, layout_info)

        if trace:
            self.log.debug(layout_info.describe())

        result = LayoutResult(complexes=list(tiled))

        if options.randomize:
            self._randomize_positions(layout_info)
            if options.refresh > 0:
                self._refresh_positions(layout_info, graph, result, -1)

        update_positions(layout_info, trace)

        iterations = 0
        for i in range(options.num_iter):
            if trace:
                self.log.debug(f"STEP: {i}")
            step(layout_info, options, trace)
            iterations = i + 1

            if options.refresh > 0 and i % options.refresh == 0:
                self._refresh_positions(layout_info, graph, result, i)

            layout_info.temperature *= options.cooling_factor
            if trace:
                self.log.debug(f"New temperature: {layout_info.temperature}")

            if layout_info.temperature < options.min_temp:
                self.log.info(
                    f"Temperature dropped below minimum threshold; stopping after step {i}"
                )
                result.converged = True
                break

        self._write_back(layout_info, graph)
        repopulate_complexes(graph, tiled)
        _restore_order(graph, node_order, edge_order)

        result.iterations = iterations
        result.final_temperature = layout_info.temperature
        result.geometry = {
            node.id: NodeGeometry(x=node.x, y=node.y, width=node.width, height=node.height)
            for node in graph.nodes
        }
        if options.fit:
            result.viewport = fit_viewport(graph, options.padding)

        result.elapsed_ms = (time.perf_counter() - start) * 1000
        self.log.info(f"Layout took {result.elapsed_ms:.0f} ms")
        return result

    # --- Internal helpers ---

    def _randomize_positions(self, layout_info: LayoutInfo) -> None:
        """Scatter every node uniformly over the canvas."""
        rng = random.Random(self.options.seed)
        for n in layout_info.layout_nodes:
            n.position_x = rng.random() * layout_info.client_width
            n.position_y = rng.random() * layout_info.client_height
            n.update_extents()

    def _refresh_positions(
        self,
        layout_info: LayoutInfo,
        graph: CompoundGraph,
        result: LayoutResult,
        iteration: int,
    ) -> None:
        """Publish intermediate positions to the graph and the observer."""
        self._write_back(layout_info, graph)
        if result.ready_iteration is None:
            result.ready_iteration = iteration
        if self.on_refresh is not None:
            geometry = {
                n.id: NodeGeometry(n.position_x, n.position_y, n.width, n.height)
                for n in layout_info.layout_nodes
            }
            self.on_refresh(LayoutProgress(
                iteration=iteration,
                temperature=layout_info.temperature,
                geometry=geometry,
            ))

    @staticmethod
    def _write_back(layout_info: LayoutInfo, graph: CompoundGraph) -> None:
        for n in layout_info.layout_nodes:
            node = graph.get_node(n.id)
            if node is None:
                continue
            node.x = n.position_x
            node.y = n.position_y
            node.width = n.width
            node.height = n.height


def _restore_order(graph: CompoundGraph, node_order: list[str], edge_order: list[str]) -> None:
    """Put restored nodes and edges back in their input order."""
    node_rank = {node_id: i for i, node_id in enumerate(node_order)}
    edge_rank = {edge_id: i for i, edge_id in enumerate(edge_order)}
    graph.nodes.sort(key=lambda n: node_rank.get(n.id, len(node_rank)))
    graph.edges.sort(key=lambda e: edge_rank.get(e.id, len(edge_rank)))


def fit_viewport(graph: CompoundGraph, padding: float) -> Optional[Viewport]:
    """The box around every node, grown by ``padding`` on each side."""
    bounds = compute_bounds(graph.nodes)
    if bounds is None:
        return None
    min_x, min_y, max_x, max_y = bounds
    return Viewport(
        x=min_x - padding,
        y=min_y - padding,
        width=max_x - min_x + 2 * padding,
        height=max_y - min_y + 2 * padding,
    )


def layout_graph(
    graph: CompoundGraph,
    options: Optional[LayoutOptions] = None,
    on_refresh: Optional[RefreshCallback] = None,
) -> LayoutResult:
    """Convenience wrapper: ``CoseLayout(options, on_refresh).run(graph)``."""
    return CoseLayout(options, on_refresh=on_refresh).run(graph)
