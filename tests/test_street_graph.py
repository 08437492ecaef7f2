"""
Unit tests for the planar street graph.

Tests cover:
- Node and edge bookkeeping (ids, degrees, duplicate and self-loop handling)
- Traversal and connectivity
- Edge geometry
- Face finding on small reference graphs
- Record round trips
"""

import math

import pytest

from py_citygen.core.records import EdgeRecord, GraphRecord, NodeRecord
from py_citygen.core.street_graph import (
    EdgeType,
    NodeType,
    StreetEdge,
    StreetGraph,
    StreetNode,
    edge_key,
)


def build_square(size=100.0):
    graph = StreetGraph()
    a = graph.create_node(0, 0)
    b = graph.create_node(size, 0)
    c = graph.create_node(size, size)
    d = graph.create_node(0, size)
    graph.add_edge(a.id, b.id)
    graph.add_edge(b.id, c.id)
    graph.add_edge(c.id, d.id)
    graph.add_edge(d.id, a.id)
    return graph


def build_grid(rows=3, cols=3, spacing=10.0):
    graph = StreetGraph()
    ids = {}
    for r in range(rows):
        for c in range(cols):
            ids[(r, c)] = graph.create_node(c * spacing, r * spacing).id
    for r in range(rows):
        for c in range(cols):
            if c + 1 < cols:
                graph.add_edge(ids[(r, c)], ids[(r, c + 1)])
            if r + 1 < rows:
                graph.add_edge(ids[(r, c)], ids[(r + 1, c)])
    return graph


class TestStreetNode:
    """Test node helpers."""

    def test_defaults(self):
        """Test default node values."""
        node = StreetNode()
        assert node.id == 0
        assert node.position == (0.0, 0.0)
        assert node.type == NodeType.MAIN
        assert node.degree == 0

    def test_distance_and_angle(self):
        """Test distance and atan2 angle helpers."""
        a = StreetNode(id=1, position=(0, 0))
        b = StreetNode(id=2, position=(3, 4))
        assert a.distance_to_node(b) == pytest.approx(5)
        assert a.angle_to(0, 1) == pytest.approx(math.pi / 2)
        assert a.angle_to_node(b) == pytest.approx(math.atan2(4, 3))

    def test_clone(self):
        """Test clones are independent copies."""
        node = StreetNode(id=3, position=(1, 2), type=NodeType.GATE)
        copy = node.clone()
        assert copy == node
        assert copy is not node


class TestStreetEdge:
    """Test edge helpers."""

    def test_width_by_type(self):
        """Test default widths per street type."""
        assert StreetEdge(1, 1, 2, EdgeType.MAIN).width == 8.0
        assert StreetEdge(2, 1, 2, EdgeType.DISTRICT).width == 5.0
        assert StreetEdge(3, 1, 2, EdgeType.ALLEY).width == 2.0
        assert StreetEdge(4, 1, 2, EdgeType.ALLEY, width=3.5).width == 3.5

    def test_key_and_other_node(self):
        """Test the canonical key and endpoint lookups."""
        edge = StreetEdge(1, 7, 3)
        assert edge.key == (3, 7)
        assert edge_key(7, 3) == edge_key(3, 7)
        assert edge.connects(7)
        assert not edge.connects(5)
        assert edge.other_node(7) == 3
        assert edge.same_nodes(StreetEdge(2, 3, 7))


class TestNodesAndEdges:
    """Test graph bookkeeping."""

    def setup_method(self):
        """Set up a small graph."""
        self.graph = StreetGraph()
        self.a = self.graph.create_node(0, 0, NodeType.CENTER)
        self.b = self.graph.create_node(10, 0)
        self.c = self.graph.create_node(0, 10)

    def test_sequential_ids(self):
        """Test node ids start at 1 and increase."""
        assert [n.id for n in self.graph.nodes] == [1, 2, 3]
        assert self.graph.next_node_id == 4

    def test_add_node_with_taken_id(self):
        """Test a clashing id is replaced by a fresh one."""
        node = self.graph.add_node(StreetNode(id=1, position=(5, 5)))
        assert node.id == 4

    def test_add_node_with_free_id_advances_counter(self):
        """Test explicit ids push the counter past them."""
        node = self.graph.add_node(StreetNode(id=10, position=(5, 5)))
        assert node.id == 10
        assert self.graph.create_node(1, 1).id == 11

    def test_add_edge_updates_degree(self):
        """Test degrees follow edge insertion."""
        edge = self.graph.add_edge(self.a.id, self.b.id)
        assert edge is not None
        assert self.a.degree == 1
        assert self.b.degree == 1
        assert self.c.degree == 0

    def test_add_edge_idempotent(self):
        """Test adding the same pair twice returns the same edge."""
        first = self.graph.add_edge(self.a.id, self.b.id)
        second = self.graph.add_edge(self.b.id, self.a.id)
        assert first is second
        assert self.graph.edge_count == 1
        assert self.a.degree == 1

    def test_self_loop_rejected(self):
        """Test self-loops return None and change nothing."""
        assert self.graph.add_edge(self.a.id, self.a.id) is None
        assert self.graph.edge_count == 0
        assert self.a.degree == 0

    def test_missing_node_rejected(self):
        """Test edges to unknown nodes return None."""
        assert self.graph.add_edge(self.a.id, 99) is None

    def test_remove_edge(self):
        """Test edge removal decrements degrees."""
        edge = self.graph.add_edge(self.a.id, self.b.id)
        assert self.graph.remove_edge(edge.id)
        assert not self.graph.remove_edge(edge.id)
        assert self.a.degree == 0
        assert not self.graph.has_edge(self.a.id, self.b.id)

    def test_remove_node(self):
        """Test node removal drops incident edges."""
        self.graph.add_edge(self.a.id, self.b.id)
        self.graph.add_edge(self.a.id, self.c.id)
        self.graph.add_edge(self.b.id, self.c.id)

        assert self.graph.remove_node(self.a.id)
        assert self.graph.edge_count == 1
        assert self.b.degree == 1
        assert self.c.degree == 1
        assert not self.graph.remove_node(self.a.id)

    def test_degree_matches_incident_edges(self):
        """Test the degree invariant after mixed operations."""
        d = self.graph.create_node(10, 10)
        self.graph.add_edge(self.a.id, self.b.id)
        self.graph.add_edge(self.b.id, d.id)
        edge = self.graph.add_edge(d.id, self.c.id)
        self.graph.add_edge(self.c.id, self.a.id)
        self.graph.remove_edge(edge.id)

        for node in self.graph.nodes:
            assert node.degree == len(self.graph.edges_at_node(node.id))

    def test_lookups(self):
        """Test edge and node lookups."""
        edge = self.graph.add_edge(self.a.id, self.b.id, EdgeType.DISTRICT)
        assert self.graph.get_edge(edge.id) is edge
        assert self.graph.get_edge_between(self.b.id, self.a.id) is edge
        assert self.graph.edges_by_type(EdgeType.DISTRICT) == [edge]
        assert self.graph.edges_by_type(EdgeType.MAIN) == []
        assert self.graph.nodes_by_type(NodeType.CENTER) == [self.a]
        assert self.graph.neighbors(self.a.id) == [self.b.id]
        assert self.graph.neighbor_nodes(self.a.id) == [self.b]

    def test_find_nearest_node(self):
        """Test nearest node search with and without a radius."""
        assert self.graph.find_nearest_node(9, 1) is self.b
        assert self.graph.find_nearest_node(50, 50, max_distance=5) is None


class TestConnectivity:
    """Test traversal over the graph."""

    def test_empty_and_single_graphs_connected(self):
        """Test trivial graphs count as connected."""
        graph = StreetGraph()
        assert graph.is_connected()
        graph.create_node(0, 0)
        assert graph.is_connected()

    def test_components(self):
        """Test component discovery."""
        graph = StreetGraph()
        a = graph.create_node(0, 0)
        b = graph.create_node(1, 0)
        c = graph.create_node(5, 5)
        graph.add_edge(a.id, b.id)

        assert not graph.is_connected()
        assert graph.connected_components() == [[a.id, b.id], [c.id]]

    def test_square_connected(self):
        """Test a cycle is connected."""
        assert build_square().is_connected()


class TestEdgeGeometry:
    """Test geometric queries on edges."""

    def setup_method(self):
        """Set up a cross of edges."""
        self.graph = StreetGraph()
        self.o = self.graph.create_node(0, 0)
        self.e = self.graph.create_node(10, 0)
        self.n = self.graph.create_node(0, 10)
        self.edge_e = self.graph.add_edge(self.o.id, self.e.id)
        self.edge_n = self.graph.add_edge(self.o.id, self.n.id)

    def test_length_midpoint_angle(self):
        """Test basic edge measurements."""
        assert self.graph.edge_length(self.edge_e.id) == pytest.approx(10)
        assert self.graph.edge_midpoint(self.edge_e.id) == pytest.approx((5, 0))
        assert self.graph.edge_angle(self.edge_n.id) == pytest.approx(math.pi / 2)

    def test_missing_edge_geometry(self):
        """Test missing edges degrade to neutral values."""
        assert self.graph.edge_length(99) == 0.0
        assert self.graph.edge_midpoint(99) is None

    def test_angle_between_edges(self):
        """Test the angle range is [0, 2*pi)."""
        forward = self.graph.angle_between_edges(self.edge_e.id, self.edge_n.id, self.o.id)
        backward = self.graph.angle_between_edges(self.edge_n.id, self.edge_e.id, self.o.id)
        assert forward == pytest.approx(math.pi / 2)
        assert backward == pytest.approx(3 * math.pi / 2)

    def test_edges_intersect(self):
        """Test crossing detection ignores shared endpoints."""
        assert not self.graph.edges_intersect(self.edge_e.id, self.edge_n.id)

        a = self.graph.create_node(5, -5)
        b = self.graph.create_node(5, 5)
        crossing = self.graph.add_edge(a.id, b.id)
        assert self.graph.edges_intersect(self.edge_e.id, crossing.id)
        assert not self.graph.edges_intersect(self.edge_n.id, crossing.id)

    def test_line_intersection(self):
        """Test the static intersection helper."""
        point = StreetGraph.line_intersection((0, 0), (10, 10), (0, 10), (10, 0))
        assert point == pytest.approx((5, 5))
        assert StreetGraph.line_intersection((0, 0), (1, 0), (0, 1), (1, 1)) is None

    def test_total_length_and_bounds(self):
        """Test summary measurements."""
        assert self.graph.total_length() == pytest.approx(20)
        bounds = self.graph.bounds()
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (0, 0, 10, 10)
        assert StreetGraph().bounds() is None


class TestFaceFinding:
    """Test block extraction on reference graphs."""

    def test_square_single_face(self):
        """Test a 100x100 square yields exactly one face."""
        graph = build_square()
        faces = graph.find_faces()
        assert len(faces) == 1
        assert len(faces[0]) == 4
        assert graph.face_area(faces[0]) == pytest.approx(10000)

    def test_square_dropped_by_oversize_threshold(self):
        """Test the optional area cap removes large faces."""
        graph = build_square()
        assert graph.find_faces(max_area=4000) == []

    def test_triangle_single_face(self):
        """Test a triangle yields one face of three nodes."""
        graph = StreetGraph()
        a = graph.create_node(0, 0)
        b = graph.create_node(10, 0)
        c = graph.create_node(5, 8)
        graph.add_edge(a.id, b.id)
        graph.add_edge(b.id, c.id)
        graph.add_edge(c.id, a.id)

        faces = graph.find_faces()
        assert len(faces) == 1
        assert sorted(faces[0]) == [a.id, b.id, c.id]

    def test_path_has_no_faces(self):
        """Test a path graph has no enclosed faces."""
        graph = StreetGraph()
        nodes = [graph.create_node(i * 10, 0) for i in range(4)]
        for first, second in zip(nodes, nodes[1:]):
            graph.add_edge(first.id, second.id)
        assert graph.find_faces() == []

    def test_grid_faces(self):
        """Test a 3x3 grid yields its four cells."""
        graph = build_grid()
        assert graph.node_count == 9
        assert graph.edge_count == 12

        faces = graph.find_faces()
        assert len(faces) >= 4
        for face in faces:
            assert graph.face_area(face) == pytest.approx(100)

    def test_degenerate_graph(self):
        """Test tiny graphs return no faces."""
        graph = StreetGraph()
        a = graph.create_node(0, 0)
        b = graph.create_node(1, 0)
        graph.add_edge(a.id, b.id)
        assert graph.find_faces() == []

    def test_face_polygon(self):
        """Test face coordinates follow node order."""
        graph = build_square(10)
        face = graph.find_faces()[0]
        polygon = graph.face_polygon(face)
        assert len(polygon) == 4
        assert set(polygon) == {(0, 0), (10, 0), (10, 10), (0, 10)}


class TestStats:
    """Test graph statistics."""

    def test_square_stats(self):
        """Test statistics of a square."""
        stats = build_square().stats()
        assert stats["node_count"] == 4
        assert stats["edge_count"] == 4
        assert stats["average_degree"] == 2
        assert stats["max_degree"] == 2
        assert stats["min_degree"] == 2
        assert stats["total_length"] == pytest.approx(400)
        assert stats["is_connected"]
        assert stats["component_count"] == 1
        assert stats["nodes_by_type"] == {"main": 4}
        assert stats["edges_by_type"] == {"main": 4}

    def test_empty_stats(self):
        """Test statistics of an empty graph."""
        stats = StreetGraph().stats()
        assert stats["node_count"] == 0
        assert stats["average_degree"] == 0.0


class TestGraphRecords:
    """Test graph serialization."""

    def test_round_trip(self):
        """Test ids, counters and degrees survive a round trip."""
        graph = build_grid()
        graph.remove_node(5)
        restored = StreetGraph.from_record(graph.to_record())

        assert restored.node_count == graph.node_count
        assert restored.edge_count == graph.edge_count
        assert restored.next_node_id == graph.next_node_id
        assert restored.next_edge_id == graph.next_edge_id
        for node in graph.nodes:
            assert restored.get_node(node.id).degree == node.degree
            assert restored.get_node(node.id).position == node.position

    def test_json_round_trip(self):
        """Test the record survives JSON serialization."""
        graph = build_square()
        record = GraphRecord.model_validate_json(graph.to_record().model_dump_json())
        restored = StreetGraph.from_record(record)
        assert len(restored.find_faces()) == 1

    def test_stale_degrees_recomputed(self):
        """Test degrees come from the restored edges, not the record."""
        record = GraphRecord(
            nodes=[
                NodeRecord(id=1, position=(0, 0), degree=7),
                NodeRecord(id=2, position=(1, 0), degree=0),
            ],
            edges=[
                EdgeRecord(id=1, node_a=1, node_b=2),
                EdgeRecord(id=2, node_a=2, node_b=1),
                EdgeRecord(id=3, node_a=1, node_b=1),
                EdgeRecord(id=4, node_a=1, node_b=9),
            ],
        )
        graph = StreetGraph.from_record(record)
        assert graph.edge_count == 1
        assert graph.get_node(1).degree == 1
        assert graph.get_node(2).degree == 1
        assert graph.next_node_id == 3
        assert graph.next_edge_id == 2

    def test_clone_is_independent(self):
        """Test clones do not share state."""
        graph = build_square()
        copy = graph.clone()
        copy.remove_node(1)
        assert graph.node_count == 4
        assert copy.node_count == 3

    def test_clear(self):
        """Test clear resets nodes, edges and counters."""
        graph = build_square()
        graph.clear()
        assert graph.node_count == 0
        assert graph.edge_count == 0
        assert graph.create_node(0, 0).id == 1
