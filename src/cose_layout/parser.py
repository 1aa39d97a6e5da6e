"""YAML recipe parser for cose-layout.

A recipe describes one compound graph plus optional layout options:

    title: Glycolysis fragment
    width: 800
    height: 600
    options:
      numIter: 200
      randomize: false
    nodes:
      - id: cytosol
        kind: compartment
        padding: 20
      - id: hk
        parent: cytosol
        kind: complex
      - id: hk-a
        parent: hk
        width: 40
        height: 20
        ports: [hk-a.in]
    edges:
      - source: hk-a.in
        target: glucose

Edges may name ports; they are resolved to the owning node after parsing.
Edge ids are optional and default to ``e<index>``.
"""

from __future__ import annotations
from pathlib import Path
from typing import Optional

import yaml

from .models import (
    CompoundGraph,
    GraphEdge,
    GraphNode,
    LayoutOptions,
    Padding,
)


def parse_yaml(yaml_str: str) -> CompoundGraph:
    """Parse a YAML recipe string into a CompoundGraph."""
    graph, _ = parse_recipe(yaml_str)
    return graph


def parse_file(path: str) -> CompoundGraph:
    """Parse a YAML recipe file into a CompoundGraph."""
    content = Path(path).read_text()
    return parse_yaml(content)


def parse_recipe(yaml_str: str) -> tuple[CompoundGraph, Optional[LayoutOptions]]:
    """Parse a recipe into its graph and, if present, its layout options."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")
    if not isinstance(data, dict):
        raise ValueError("YAML recipe must be a mapping")

    graph = CompoundGraph(
        title=data.get("title", "Untitled Graph"),
        width=float(data.get("width", 1920)),
        height=float(data.get("height", 1080)),
    )

    for node_data in data.get("nodes", []):
        graph.nodes.append(_parse_node(node_data))

    for i, edge_data in enumerate(data.get("edges", [])):
        graph.edges.append(_parse_edge(edge_data, i))

    graph.model_post_init(None)
    graph.resolve_ports()

    options = None
    if "options" in data:
        options = parse_options(data["options"] or {})

    return graph, options


def parse_options(data: dict) -> LayoutOptions:
    """Build LayoutOptions from a mapping using either option spelling."""
    return LayoutOptions.model_validate(data)


def merge_options(base: Optional[LayoutOptions], overrides: Optional[dict]) -> LayoutOptions:
    """Apply ``overrides`` (either spelling) on top of ``base``.

    Only options explicitly set in ``base`` are carried over, so the merged
    result is validated as a whole.
    """
    aliases = {
        info.alias: name
        for name, info in LayoutOptions.model_fields.items()
        if info.alias
    }
    merged = base.model_dump(exclude_unset=True) if base is not None else {}
    for key, value in (overrides or {}).items():
        merged[aliases.get(key, key)] = value
    return LayoutOptions.model_validate(merged)


def _parse_padding(value) -> Padding:
    if value is None:
        return Padding()
    if isinstance(value, (int, float)):
        return Padding.uniform(float(value))
    return Padding(**value)


def _parse_node(data: dict) -> GraphNode:
    """Parse a single node from YAML data."""
    if not isinstance(data, dict) or "id" not in data:
        raise ValueError(f"Node entry needs an id: {data!r}")
    return GraphNode(
        id=str(data["id"]),
        parent=str(data["parent"]) if data.get("parent") is not None else None,
        kind=data.get("kind", "default"),
        label=data.get("label"),
        x=float(data.get("x", 0)),
        y=float(data.get("y", 0)),
        width=float(data.get("width", 30)),
        height=float(data.get("height", 30)),
        padding=_parse_padding(data.get("padding")),
        ports=[str(p) for p in data.get("ports", [])],
        shape=data.get("shape"),
    )


def _parse_edge(data: dict, index: int) -> GraphEdge:
    """Parse a single edge from YAML data."""
    if not isinstance(data, dict) or "source" not in data or "target" not in data:
        raise ValueError(f"Edge {index} needs a source and a target: {data!r}")
    return GraphEdge(
        id=str(data.get("id", f"e{index}")),
        source=str(data["source"]),
        target=str(data["target"]),
        kind=data.get("kind"),
    )


def graph_to_yaml(graph: CompoundGraph, options: Optional[LayoutOptions] = None) -> str:
    """Serialize a CompoundGraph (typically after layout) back to YAML."""
    data: dict = {
        "title": graph.title,
        "width": graph.width,
        "height": graph.height,
    }
    if options is not None:
        data["options"] = options.model_dump(by_alias=True, exclude_defaults=True)

    nodes = []
    for node in graph.nodes:
        node_data = {
            "id": node.id,
            "x": round(node.x, 2),
            "y": round(node.y, 2),
            "width": round(node.width, 2),
            "height": round(node.height, 2),
        }
        if node.parent is not None:
            node_data["parent"] = node.parent
        if node.kind != "default":
            node_data["kind"] = node.kind
        if node.label:
            node_data["label"] = node.label
        if node.shape:
            node_data["shape"] = node.shape
        pad = node.padding
        if any((pad.left, pad.right, pad.top, pad.bottom)):
            if pad.left == pad.right == pad.top == pad.bottom:
                node_data["padding"] = pad.left
            else:
                node_data["padding"] = pad.model_dump()
        if node.ports:
            node_data["ports"] = node.ports
        nodes.append(node_data)
    data["nodes"] = nodes

    edges = []
    for edge in graph.edges:
        edge_data = {"id": edge.id, "source": edge.source, "target": edge.target}
        if edge.kind:
            edge_data["kind"] = edge.kind
        edges.append(edge_data)
    data["edges"] = edges

    return yaml.dump(data, default_flow_style=False, sort_keys=False)
