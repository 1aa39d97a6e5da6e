"""Tests for complex tiling: row packing, complex discovery, collapse/restore."""

from cose_layout.hierarchy import create_layout_info
from cose_layout.models import GraphNode, LayoutOptions
from cose_layout.tiling import (
    Organization,
    can_add_horizontal,
    collapse_complexes,
    find_complexes,
    repopulate_complexes,
    tile_nodes,
)

from conftest import make_graph


def _box(node_id, w, h):
    return GraphNode(id=node_id, width=w, height=h)


def test_four_equal_nodes_tile_into_square():
    nodes = [_box(f"n{i}", 20, 20) for i in range(1, 5)]
    org = tile_nodes(nodes)

    assert org.row_ids() == [["n1", "n2"], ["n3", "n4"]]
    # rows open 10 wide: 10 + 20 + 10 + 20
    assert org.row_width == [60, 60]
    # margin 2 * 10, then (20 + 10) per row
    assert (org.width, org.height) == (60, 80)


def test_single_node_tile_adds_margin():
    org = tile_nodes([_box("only", 30, 12)])

    assert org.row_ids() == [["only"]]
    assert (org.width, org.height) == (40, 42)


def test_tiling_is_idempotent():
    sizes = [(30, 20), (10, 40), (25, 25), (60, 10), (15, 15), (20, 35)]
    first = tile_nodes([_box(f"n{i}", w, h) for i, (w, h) in enumerate(sizes)])
    second = tile_nodes([_box(f"n{i}", w, h) for i, (w, h) in enumerate(sizes)])

    assert first.row_ids() == second.row_ids()
    assert first.width == second.width
    assert first.height == second.height


def test_trailing_node_shifts_to_last_row():
    # b joins the tall node's row; once c opens a short second row, b is
    # moved over because that narrows the block.
    nodes = [_box("A", 40, 40), _box("b", 10, 10), _box("c", 10, 10)]
    org = tile_nodes(nodes)

    assert org.row_ids() == [["A"], ["c", "b"]]
    assert org.row_width == [50, 40]
    assert org.width == 50
    assert org.height == 90


def test_can_add_horizontal_on_empty_organization():
    assert can_add_horizontal(Organization(), 100, 100)


def test_every_node_is_placed_once():
    nodes = [_box(f"n{i}", 10 + i, 30 - i) for i in range(9)]
    org = tile_nodes(nodes)

    placed = [node_id for row in org.row_ids() for node_id in row]
    assert sorted(placed) == sorted(n.id for n in nodes)
    assert all(row for row in org.rows)


def _complex_graph():
    return make_graph(
        nodes=[
            ("cell", None, 0, 0, 0, 0, "compartment", 15),
            ("cx", "cell", 0, 0, 0, 0, "complex", 5),
            ("inner", "cx", 0, 0, 0, 0, "complex"),
            ("i1", "inner", 100, 100, 20, 20),
            ("i2", "inner", 130, 100, 20, 20),
            ("m1", "cx", 200, 200, 30, 20),
            ("m2", "cx", 240, 200, 30, 20),
            ("free", "cell", 400, 300, 30, 30),
            ("out", None, 600, 300, 30, 30),
        ],
        edges=[("m1", "free"), ("i1", "i2"), ("free", "out")],
    )


def test_complexes_found_innermost_first():
    graph = _complex_graph()
    info = create_layout_info(graph, LayoutOptions())

    assert find_complexes(graph, info) == ["inner", "cx"]


def test_collapse_makes_complex_a_sized_leaf():
    graph = _complex_graph()
    info = create_layout_info(graph, LayoutOptions())
    tiled = collapse_complexes(graph, info)

    assert list(tiled) == ["inner", "cx"]
    assert {n.id for n in graph.nodes} == {"cell", "cx", "free", "out"}
    assert [e.id for e in graph.edges] == ["e2"]
    assert set(info.id_to_index) == {"cell", "cx", "free", "out"}

    cx = info.node("cx")
    assert not cx.is_container
    assert cx.width == tiled["cx"].organization.width
    assert cx.height == tiled["cx"].organization.height
    # inner's two members share one row of a 60x50 tile, and cx packs inner
    # at that size: [[inner], [m1, m2]]
    inner = tiled["inner"].organization
    assert inner.row_ids() == [["i1", "i2"]]
    assert (inner.width, inner.height) == (60, 50)
    assert graph.get_node("inner") is None
    assert tiled["cx"].organization.row_ids() == [["inner"], ["m1", "m2"]]
    assert (cx.width, cx.height) == (80, 110)


def test_repopulate_restores_members_inside_complex():
    graph = _complex_graph()
    info = create_layout_info(graph, LayoutOptions())
    tiled = collapse_complexes(graph, info)

    cx = graph.get_node("cx")
    cx.x, cx.y = 321.0, 123.0
    repopulate_complexes(graph, tiled)

    ids = [n.id for n in graph.nodes]
    assert sorted(ids) == sorted(set(ids))
    assert set(ids) == {"cell", "cx", "inner", "i1", "i2", "m1", "m2", "free", "out"}
    assert sorted(e.id for e in graph.edges) == ["e0", "e1", "e2"]
    assert cx.shape == "complex"

    for member_id in ("inner", "m1", "m2"):
        member = graph.get_node(member_id)
        assert member.x - member.width / 2 >= cx.x - cx.width / 2 - 1e-9
        assert member.x + member.width / 2 <= cx.x + cx.width / 2 + 1e-9
        assert member.y - member.height / 2 >= cx.y - cx.height / 2 - 1e-9
        assert member.y + member.height / 2 <= cx.y + cx.height / 2 + 1e-9

    inner = graph.get_node("inner")
    for member_id in ("i1", "i2"):
        member = graph.get_node(member_id)
        assert abs(member.x - inner.x) + member.width / 2 <= inner.width / 2 + 1e-9
        assert abs(member.y - inner.y) + member.height / 2 <= inner.height / 2 + 1e-9
