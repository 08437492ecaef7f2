"""
Unit tests for building placement in street blocks.
"""

import itertools
import math

import pytest
from pydantic import ValidationError

from py_citygen.config.settlement_types import SettlementParams, get_settlement_params
from py_citygen.core.alea_prng import AleaPRNG
from py_citygen.core.block_filling import (
    BUILDING_DEFAULTS,
    BlockFiller,
    BlockFillingOptions,
    Building,
    BuildingType,
    RoofType,
)
from py_citygen.core.geometry import inset_polygon, point_in_polygon
from py_citygen.core.street_graph import StreetGraph


def build_grid(rows=3, cols=3, spacing=40.0):
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


def build_square(size):
    graph = StreetGraph()
    nodes = [
        graph.create_node(0, 0),
        graph.create_node(size, 0),
        graph.create_node(size, size),
        graph.create_node(0, size),
    ]
    for first, second in zip(nodes, nodes[1:] + nodes[:1]):
        graph.add_edge(first.id, second.id)
    return graph


class TestBuilding:
    """Test the building footprint model."""

    def test_from_footprint_uses_type_defaults(self):
        """Test height and roof come from the type table."""
        building = Building.from_footprint(1, BuildingType.TEMPLE, (0.0, 0.0), 20, 25, 0)
        assert building.height == 2.5
        assert building.roof_type == RoofType.DOME
        assert len(building.vertices) == 4

    def test_defaults_table(self):
        """Test the default dimensions of every building type."""
        assert BUILDING_DEFAULTS[BuildingType.HOUSE] == (8, 10, 1.0, RoofType.PEAKED)
        assert BUILDING_DEFAULTS[BuildingType.SHOP] == (10, 12, 1.2, RoofType.FLAT)
        assert BUILDING_DEFAULTS[BuildingType.TAVERN] == (15, 15, 1.5, RoofType.PEAKED)
        assert BUILDING_DEFAULTS[BuildingType.WAREHOUSE] == (20, 30, 2.0, RoofType.FLAT)
        assert BUILDING_DEFAULTS[BuildingType.MARKET] == (25, 25, 0.5, RoofType.FLAT)
        assert BUILDING_DEFAULTS[BuildingType.CASTLE] == (40, 40, 4.0, RoofType.FLAT)
        assert len(BUILDING_DEFAULTS) == len(BuildingType)

    def test_bounds_and_contains(self):
        """Test the bounding box and point containment."""
        building = Building.from_footprint(1, BuildingType.HOUSE, (10.0, 10.0), 8, 10, 0)
        bounds = building.bounds()
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (6, 5, 14, 15)
        assert building.contains_point(10, 10)
        assert not building.contains_point(20, 10)

    def test_rotated_bounds(self):
        """Test a 45 degree rotation widens the bounding box."""
        building = Building.from_footprint(1, BuildingType.HOUSE, (0.0, 0.0), 10, 10, math.pi / 4)
        assert building.bounds().width == pytest.approx(10 * math.sqrt(2))

    def test_frozen(self):
        """Test buildings cannot be changed once placed."""
        building = Building.from_footprint(1, BuildingType.HOUSE, (0.0, 0.0), 8, 10, 0)
        with pytest.raises(ValidationError):
            building.width = 20

    def test_record_round_trip(self):
        """Test records restore an equal building."""
        building = Building.from_footprint(
            3, BuildingType.SHOP, (5.0, 6.0), 10, 12, math.pi / 2, block_id=2
        )
        record = building.to_record()
        assert record.type == "shop"
        assert record.roof_type == "flat"
        assert Building.from_record(record) == building


class TestBuildingCount:
    """Test per-block target counts."""

    def setup_method(self):
        """Set up a filler with default options."""
        self.filler = BlockFiller()

    def test_density_estimate(self):
        """Test the density estimate inside the per-block range."""
        params = SettlementParams(building_density=0.6, min_buildings=20, max_buildings=60)
        # floor(1000 * 0.6 / 120) = 5, range [2, 12]
        assert self.filler.calculate_building_count(1000, params) == 5

    def test_clamped_to_minimum(self):
        """Test small blocks still get the per-block minimum."""
        params = SettlementParams(building_density=0.6, min_buildings=20, max_buildings=60)
        assert self.filler.calculate_building_count(50, params) == 2

    def test_clamped_to_maximum(self):
        """Test huge blocks are capped by the per-block maximum."""
        params = get_settlement_params("village")
        # ceil(20 / 5) = 4
        assert self.filler.calculate_building_count(100000, params) == 4

    def test_minimum_is_at_least_one(self):
        """Test the per-block minimum never drops below one."""
        params = SettlementParams(building_density=0.0, min_buildings=0, max_buildings=0)
        assert self.filler.calculate_building_count(1000, params) == 1


class TestPlacement:
    """Test rejection sampling inside one polygon."""

    def setup_method(self):
        """Set up a filler and a block."""
        self.filler = BlockFiller()
        self.block = [(0.0, 0.0), (60.0, 0.0), (60.0, 60.0), (0.0, 60.0)]

    def test_buildings_inside_and_apart(self):
        """Test placed buildings fit and keep their spacing."""
        buildings = self.filler.place_buildings(self.block, 8, AleaPRNG("place"), block_id=0)
        assert 0 < len(buildings) <= 8
        for building in buildings:
            for vertex in building.vertices:
                assert point_in_polygon(vertex, self.block)
        for a, b in itertools.combinations(buildings, 2):
            assert not a.bounds().padded(2).overlaps(b.bounds().padded(2))

    def test_ids_follow_start_id(self):
        """Test placement ids continue from the given start."""
        buildings = self.filler.place_buildings(self.block, 3, AleaPRNG("ids"), start_id=10)
        assert [b.id for b in buildings] == list(range(10, 10 + len(buildings)))

    def test_attempt_budget(self):
        """Test at most attempts_per_building x count placements are tried."""
        prng = AleaPRNG("budget")
        tiny = [(0.0, 0.0), (3.0, 0.0), (3.0, 3.0), (0.0, 3.0)]
        assert self.filler.place_buildings(tiny, 2, prng) == []
        # Seven draws per attempt, twenty attempts
        assert prng.call_count == 7 * 20

    def test_zero_count(self):
        """Test nothing is placed for a zero target."""
        assert self.filler.place_buildings(self.block, 0, AleaPRNG("zero")) == []

    def test_custom_weights(self):
        """Test the type weights drive the building mix."""
        filler = BlockFiller(BlockFillingOptions(building_weights={BuildingType.HOUSE: 1}))
        buildings = filler.place_buildings(self.block, 5, AleaPRNG("houses"))
        assert buildings
        assert all(b.type == BuildingType.HOUSE for b in buildings)

    def test_rotations_are_quarter_or_eighth_turns(self):
        """Test rotations are multiples of 45 degrees."""
        buildings = self.filler.place_buildings(self.block, 10, AleaPRNG("rotations"))
        for building in buildings:
            steps = building.rotation / (math.pi / 4)
            assert steps == pytest.approx(round(steps))


class TestBlockFiller:
    """Test filling a whole street graph."""

    def setup_method(self):
        """Set up a grid of 40x40 blocks."""
        self.filler = BlockFiller()
        self.graph = build_grid()
        self.params = get_settlement_params("town")

    def test_generate_fills_blocks(self):
        """Test each block receives buildings inside its inset polygon."""
        buildings = self.filler.generate(self.graph, self.params, AleaPRNG("fill"))
        faces = self.graph.find_faces(max_area=self.filler.options.max_face_area)

        assert buildings
        assert [b.id for b in buildings] == list(range(1, len(buildings) + 1))
        for building in buildings:
            inset = inset_polygon(self.graph.face_polygon(faces[building.block_id]), 3)
            for vertex in building.vertices:
                assert point_in_polygon(vertex, inset)

    def test_no_overlap_within_block(self):
        """Test padded boxes never overlap inside one block."""
        buildings = self.filler.generate(self.graph, self.params, AleaPRNG("overlap"))
        by_block = {}
        for building in buildings:
            by_block.setdefault(building.block_id, []).append(building)
        for group in by_block.values():
            for a, b in itertools.combinations(group, 2):
                assert not a.bounds().padded(2).overlaps(b.bounds().padded(2))

    def test_determinism(self):
        """Test identical seeds give identical building lists."""
        first = self.filler.generate(self.graph, self.params, AleaPRNG("same"))
        second = self.filler.generate(self.graph, self.params, AleaPRNG("same"))
        assert first == second

    def test_graph_without_blocks(self):
        """Test a graph without faces yields no buildings."""
        graph = StreetGraph()
        a = graph.create_node(0, 0)
        b = graph.create_node(10, 0)
        graph.add_edge(a.id, b.id)
        assert self.filler.generate(graph, self.params, AleaPRNG("empty")) == []

    def test_small_block_skipped(self):
        """Test blocks below the minimum area are skipped."""
        assert self.filler.generate(build_square(8), self.params, AleaPRNG("small")) == []

    def test_oversized_face_skipped(self):
        """Test faces above the oversize threshold are treated as artifacts."""
        assert self.filler.generate(build_square(100), self.params, AleaPRNG("large")) == []

    def test_large_block_skipped(self):
        """Test blocks above the maximum usable area are skipped."""
        # 3600 is under the oversize threshold but over the usable maximum
        assert self.filler.generate(build_square(60), self.params, AleaPRNG("wide")) == []
