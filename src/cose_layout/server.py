"""cose-layout server: MCP tools for laying out compound graphs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .layout import CoseLayout
from .models import LayoutError, LayoutOptions
from .parser import graph_to_yaml, merge_options, parse_recipe


# --- Constants ---
OUTPUT_DIR = Path(os.environ.get("COSE_OUTPUT_DIR", Path.home() / ".cose-layout"))
TEMPLATES_DIR = Path(__file__).parent.parent.parent / "templates"

logger = logging.getLogger(__name__)

server = Server("cose-layout")


def _ensure_output_dir():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


# --- Tool definitions ---

@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="layout_graph",
            description=(
                "Lay out a compound graph described by a YAML recipe using the "
                "tiled CoSE force-directed layout. Containers are sized around "
                "their children; members of 'complex' nodes are tiled into rows. "
                "Returns the final centre and size of every node and the "
                "positioned recipe."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "yaml_recipe": {
                        "type": "string",
                        "description": (
                            "YAML string defining the graph. Example:\n"
                            "title: My Pathway\n"
                            "nodes:\n"
                            "  - id: cytosol\n"
                            "    padding: 20\n"
                            "  - id: a\n"
                            "    parent: cytosol\n"
                            "  - id: b\n"
                            "edges:\n"
                            "  - source: a\n"
                            "    target: b\n"
                            "\n"
                            "Nodes with kind 'complex' have their children tiled."
                        ),
                    },
                    "options": {
                        "type": "object",
                        "description": (
                            "Layout option overrides, e.g. {\"numIter\": 200, "
                            "\"randomize\": false}. Applied on top of any "
                            "'options' block in the recipe."
                        ),
                    },
                    "filename": {
                        "type": "string",
                        "description": (
                            "If given, the positioned recipe is also saved as "
                            "<filename>.yaml in the output directory."
                        ),
                    },
                },
                "required": ["yaml_recipe"],
            },
        ),
        Tool(
            name="get_default_options",
            description="Return the default layout options.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="list_templates",
            description="List available graph recipe templates that can be used as starting points.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="get_template",
            description="Get the YAML content of a specific template by name.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Template name (from list_templates output)",
                    },
                },
                "required": ["name"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    if name == "layout_graph":
        return await _layout_graph(arguments)
    elif name == "get_default_options":
        return await _get_default_options(arguments)
    elif name == "list_templates":
        return await _list_templates(arguments)
    elif name == "get_template":
        return await _get_template(arguments)
    else:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]


async def _layout_graph(args: dict) -> list[TextContent]:
    """Lay out a YAML recipe and report the resulting geometry."""
    try:
        graph, recipe_options = parse_recipe(args["yaml_recipe"])
        options = merge_options(recipe_options, args.get("options"))
    except Exception as e:
        return [TextContent(type="text", text=f"Failed to parse YAML recipe: {e}")]

    try:
        result = CoseLayout(options).run(graph)
    except LayoutError as e:
        logger.warning(f"Layout of {graph.title!r} failed: {e}")
        return [TextContent(type="text", text=f"Layout failed: {e}")]

    yaml_content = graph_to_yaml(graph)
    payload = {
        "status": "success",
        "title": graph.title,
        "nodes": len(graph.nodes),
        "edges": len(graph.edges),
        "iterations": result.iterations,
        "converged": result.converged,
        "elapsed_ms": round(result.elapsed_ms, 1),
        "complexes": result.complexes,
        "geometry": {node_id: asdict(geom) for node_id, geom in result.geometry.items()},
        "viewport": asdict(result.viewport) if result.viewport else None,
        "yaml": yaml_content,
    }

    filename = args.get("filename")
    if filename:
        _ensure_output_dir()
        yaml_path = OUTPUT_DIR / f"{filename}.yaml"
        yaml_path.write_text(yaml_content)
        payload["yaml_path"] = str(yaml_path)
        logger.info(f"Saved positioned recipe to {yaml_path}")

    return [TextContent(type="text", text=json.dumps(payload))]


async def _get_default_options(args: dict) -> list[TextContent]:
    return [TextContent(
        type="text",
        text=json.dumps(LayoutOptions().model_dump(by_alias=True)),
    )]


def _template_paths() -> dict[str, Path]:
    """Bundled recipes by name; a .yaml file wins over a .yml of the same name."""
    if not TEMPLATES_DIR.is_dir():
        return {}
    found: dict[str, Path] = {}
    for pattern in ("*.yml", "*.yaml"):
        for path in TEMPLATES_DIR.glob(pattern):
            found[path.stem] = path
    return dict(sorted(found.items()))


async def _list_templates(args: dict) -> list[TextContent]:
    templates = [{"name": name, "path": str(path)} for name, path in _template_paths().items()]
    return [TextContent(type="text", text=json.dumps({"templates": templates}))]


async def _get_template(args: dict) -> list[TextContent]:
    """Return a bundled recipe.  Only plain template names are looked up."""
    name = args["name"]
    path = _template_paths().get(name)
    if path is None:
        return [TextContent(type="text", text=f"Template not found: {name}")]
    return [TextContent(type="text", text=path.read_text())]


def main():
    """Entry point for the MCP server."""
    import asyncio
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_run())


async def _run():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    main()
