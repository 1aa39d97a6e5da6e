"""Tests for YAML recipe parsing, option merging and serialization."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from cose_layout.models import LayoutOptions, Padding
from cose_layout.parser import (
    graph_to_yaml,
    merge_options,
    parse_file,
    parse_recipe,
    parse_yaml,
)

TEMPLATES = Path(__file__).parent.parent / "templates"

RECIPE = """
title: Small pathway
width: 640
height: 480
options:
  numIter: 50
  idealEdgeLength: 25
  randomize: false
nodes:
  - id: cyto
    kind: compartment
    padding: 12
  - id: enzyme
    parent: cyto
    width: 40
    height: 20
    ports: [enzyme.in, enzyme.out]
  - id: atp
    label: ATP
    padding: {left: 1, right: 2, top: 3, bottom: 4}
edges:
  - source: atp
    target: enzyme.in
  - id: out
    source: enzyme.out
    target: atp
    kind: production
"""


def test_recipe_graph_fields():
    graph, _ = parse_recipe(RECIPE)

    assert graph.title == "Small pathway"
    assert (graph.width, graph.height) == (640, 480)
    assert [n.id for n in graph.nodes] == ["cyto", "enzyme", "atp"]
    assert graph.get_node("enzyme").parent == "cyto"
    assert graph.get_node("cyto").kind == "compartment"
    assert graph.get_node("atp").get_label() == "ATP"
    assert graph.get_node("enzyme").get_label() == "enzyme"


def test_missing_sizes_use_defaults():
    graph = parse_yaml("nodes:\n  - id: lonely\n")
    node = graph.get_node("lonely")

    assert (node.width, node.height) == (30, 30)
    assert (graph.width, graph.height) == (1920, 1080)


def test_padding_scalar_and_mapping():
    graph, _ = parse_recipe(RECIPE)

    assert graph.get_node("cyto").padding == Padding.uniform(12)
    assert graph.get_node("atp").padding == Padding(left=1, right=2, top=3, bottom=4)
    assert graph.get_node("enzyme").padding == Padding()


def test_ports_resolved_to_owner():
    graph, _ = parse_recipe(RECIPE)

    assert [(e.source, e.target) for e in graph.edges] == [("atp", "enzyme"), ("enzyme", "atp")]


def test_edge_ids_default_to_index():
    graph, _ = parse_recipe(RECIPE)

    assert [e.id for e in graph.edges] == ["e0", "out"]
    assert graph.edges[1].kind == "production"


def test_options_accept_camel_case():
    _, options = parse_recipe(RECIPE)

    assert options.num_iter == 50
    assert options.ideal_edge_length == 25
    assert options.randomize is False
    assert options.gravity == LayoutOptions().gravity


def test_recipe_without_options():
    _, options = parse_recipe("nodes:\n  - id: a\n")

    assert options is None


def test_empty_input_rejected():
    with pytest.raises(ValueError, match="Empty"):
        parse_yaml("")


def test_node_without_id_rejected():
    with pytest.raises(ValueError, match="id"):
        parse_yaml("nodes:\n  - parent: x\n")


def test_edge_without_target_rejected():
    with pytest.raises(ValueError, match="source and a target"):
        parse_yaml("nodes:\n  - id: a\nedges:\n  - source: a\n")


def test_non_mapping_rejected():
    with pytest.raises(ValueError, match="mapping"):
        parse_yaml("- just\n- a list\n")


def test_bad_option_rejected():
    with pytest.raises(ValidationError):
        parse_recipe("options:\n  coolingFactor: 3\nnodes:\n  - id: a\n")


def test_merge_overrides_recipe_options():
    _, options = parse_recipe(RECIPE)
    merged = merge_options(options, {"numIter": 10, "gravity": 5})

    assert merged.num_iter == 10
    assert merged.gravity == 5
    assert merged.ideal_edge_length == 25


def test_merge_validates_the_combined_schedule():
    base = LayoutOptions(initial_temp=50)

    assert merge_options(base, {"minTemp": 20}).min_temp == 20
    with pytest.raises(ValidationError):
        merge_options(base, {"minTemp": 80})


def test_merge_without_base():
    merged = merge_options(None, {"refresh": 4})

    assert merged.refresh == 4
    assert merged.num_iter == 100


def test_serialized_recipe_parses_back():
    graph, options = parse_recipe(RECIPE)
    graph.get_node("enzyme").x = 12.3456

    text = graph_to_yaml(graph, options)
    data = yaml.safe_load(text)
    again, again_options = parse_recipe(text)

    assert data["nodes"][1]["x"] == 12.35
    assert data["nodes"][0]["padding"] == 12
    assert data["options"] == {"numIter": 50, "idealEdgeLength": 25, "randomize": False}
    assert [n.id for n in again.nodes] == [n.id for n in graph.nodes]
    assert again.get_node("atp").padding == graph.get_node("atp").padding
    assert again.get_node("enzyme").ports == ["enzyme.in", "enzyme.out"]
    assert again_options == options


@pytest.mark.parametrize("name", ["compartment-with-complex", "nested-compartments"])
def test_bundled_templates_parse(name):
    graph = parse_file(str(TEMPLATES / f"{name}.yaml"))

    assert graph.nodes
    node_ids = {n.id for n in graph.nodes}
    for edge in graph.edges:
        assert edge.source in node_ids
        assert edge.target in node_ids
