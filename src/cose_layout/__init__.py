"""Tiled CoSE force-directed layout for compound graphs."""

from .layout import CoseLayout, layout_graph
from .models import (
    CompoundGraph,
    GraphEdge,
    GraphNode,
    LayoutError,
    LayoutOptions,
    LayoutResult,
    Padding,
)
from .parser import graph_to_yaml, parse_file, parse_yaml

__all__ = [
    "CompoundGraph",
    "CoseLayout",
    "GraphEdge",
    "GraphNode",
    "LayoutError",
    "LayoutOptions",
    "LayoutResult",
    "Padding",
    "graph_to_yaml",
    "layout_graph",
    "parse_file",
    "parse_yaml",
]
