"""
Street network growth for a single settlement.

Builds a planar street graph inside a settlement boundary, threading main
roads from the gates where world roads cross the boundary to the settlement
centre, then filling in district streets under degree, angle and crossing
constraints.

Process:
1. place_center_node() - Seed the settlement focal point
2. place_gate_nodes() - Derive gates from external road crossings
3. generate_candidate_nodes() - Jittered grid of potential intersections
4. connect_main_roads() - Greedy gate-to-centre through-routes
5. add_district_streets() - Score-ordered greedy infill
6. remove_isolated_nodes() - Drop unconnected intersections
"""

import math
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, Field
from sklearn.neighbors import KDTree

from .alea_prng import AleaPRNG
from .geometry import (
    BoundingBox,
    angle_between,
    closest_point_on_segment,
    distance,
    point_in_polygon,
    polygon_bounds,
    polygon_centroid,
    segment_intersection,
    segments_cross,
)
from .street_graph import EdgeType, NodeType, StreetEdge, StreetGraph, StreetNode

logger = structlog.get_logger()


class StreetGrowthOptions(BaseModel):
    """Street growth parameters."""

    min_angle: float = Field(
        default=55.0, gt=0, lt=180, description="Minimum angle between streets at a node (degrees)"
    )
    max_degree: int = Field(default=4, ge=1, description="Maximum streets per intersection")
    min_node_distance: float = Field(
        default=15.0, gt=0, description="Minimum distance between intersections"
    )
    candidate_grid_spacing: float = Field(
        default=25.0, gt=0, description="Grid spacing for candidate intersections"
    )
    jitter_amount: float = Field(
        default=8.0, ge=0, description="Max random offset of candidate positions"
    )

    # Gate and main road parameters
    gate_dedupe_factor: float = Field(
        default=2.0, description="Gates closer than this x min_node_distance are merged"
    )
    path_search_radius_factor: float = Field(
        default=2.5, description="Max hop length as a multiple of grid spacing"
    )
    path_arrival_factor: float = Field(
        default=2.0, description="Connect straight to the target inside this x grid spacing"
    )
    path_hop_weight: float = Field(
        default=0.3, description="Weight of hop length in the next-hop score"
    )
    max_path_steps: int = Field(default=20, ge=1, description="Hop cap per gate road")
    radial_street_count: int = Field(
        default=4, ge=1, description="Sectors used for centre streets when there are no gates"
    )

    # District infill parameters
    district_link_factor: float = Field(
        default=2.0, description="Max district street length as a multiple of grid spacing"
    )
    center_score_factor: float = Field(default=0.5, description="Score scale for pairs touching the centre")
    gate_score_factor: float = Field(default=0.7, description="Score scale for pairs touching a gate")
    busy_node_score_factor: float = Field(
        default=1.2, description="Score scale per endpoint already at degree >= 3"
    )
    short_edge_score_factor: float = Field(
        default=1.3, description="Score scale for edges shorter than 1.2 x min_node_distance"
    )


class RoadCrossing(NamedTuple):
    """A world road leaving the settlement: tile centre inside, neighbour centre outside."""
    inside: Tuple[float, float]
    outside: Tuple[float, float]


@dataclass
class SettlementSite:
    """Geometric input of one street growth run."""

    center: Optional[Tuple[float, float]] = None
    boundary: List[Tuple[float, float]] = field(default_factory=list)
    bounds: Optional[BoundingBox] = None
    crossings: List[RoadCrossing] = field(default_factory=list)

    def __post_init__(self):
        self.boundary = [(float(x), float(y)) for x, y in self.boundary]
        if self.center is None:
            self.center = polygon_centroid(self.boundary)
        if self.bounds is None:
            self.bounds = self.calculate_bounds()

    def calculate_bounds(self) -> Optional[BoundingBox]:
        """Bounds of the boundary, or None when it is not a polygon."""
        if len(self.boundary) < 3:
            return None
        return polygon_bounds(self.boundary)

    def contains_point(self, x: float, y: float) -> bool:
        """Whether a point lies inside the settlement."""
        if len(self.boundary) < 3 or self.bounds is None:
            return False
        if not self.bounds.contains(x, y):
            return False
        return point_in_polygon((x, y), self.boundary)


class StreetGrowth:
    """Grows a street graph for a settlement site."""

    def __init__(self, options: Optional[StreetGrowthOptions] = None) -> None:
        self.options = options or StreetGrowthOptions()

    def generate(self, site: SettlementSite, prng: AleaPRNG) -> StreetGraph:
        """
        Generate the complete street graph.

        Args:
            site: Settlement boundary, bounds, centre and road crossings
            prng: Settlement PRNG, advanced by the candidate jitter draws

        Returns:
            Street graph containing at least the centre node
        """
        logger.info("Starting street growth")
        graph = StreetGraph()

        center = self.place_center_node(site, graph)
        gates = self.place_gate_nodes(site, graph)
        candidates = self.generate_candidate_nodes(site, graph, prng)
        self.connect_main_roads(graph, center, gates, candidates)
        self.add_district_streets(graph)
        removed = self.remove_isolated_nodes(graph)

        logger.info(
            f"Grew {graph.node_count} intersections and {graph.edge_count} streets "
            f"({len(gates)} gates, {removed} isolated nodes removed)"
        )
        return graph

    def place_center_node(self, site: SettlementSite, graph: StreetGraph) -> StreetNode:
        return graph.create_node(site.center[0], site.center[1], NodeType.CENTER)

    def place_gate_nodes(self, site: SettlementSite, graph: StreetGraph) -> List[StreetNode]:
        """
        Place a gate wherever a world road crosses the settlement boundary.

        Returns:
            Gate nodes, at most one per cluster of nearby crossings
        """
        gates: List[StreetNode] = []
        min_gap = self.options.min_node_distance * self.options.gate_dedupe_factor

        for crossing in site.crossings:
            position = self.find_boundary_intersection(
                crossing.inside, crossing.outside, site.boundary
            )
            if position is None:
                continue

            if any(distance(gate.position, position) < min_gap for gate in gates):
                continue

            gates.append(graph.create_node(position[0], position[1], NodeType.GATE))

        if site.crossings and not gates:
            logger.warning("Road crossings given but no gate could be placed")
        return gates

    def find_boundary_intersection(
        self, p1, p2, polygon: Sequence[Tuple[float, float]]
    ) -> Optional[Tuple[float, float]]:
        """
        Where segment p1-p2 meets the polygon boundary.

        Falls back to the boundary point closest to the segment midpoint when
        the segment misses every boundary edge.
        """
        if len(polygon) < 3:
            return None

        for i in range(len(polygon)):
            hit = segment_intersection(p1, p2, polygon[i], polygon[(i + 1) % len(polygon)])
            if hit is not None:
                return hit

        return self.closest_point_on_boundary(p1, p2, polygon)

    def closest_point_on_boundary(self, p1, p2, polygon) -> Optional[Tuple[float, float]]:
        if len(polygon) < 3:
            return None

        mid = ((p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2)
        best_point = None
        best_dist = math.inf
        for i in range(len(polygon)):
            closest = closest_point_on_segment(mid, polygon[i], polygon[(i + 1) % len(polygon)])
            dist = distance(mid, closest)
            if dist < best_dist:
                best_dist = dist
                best_point = closest
        return best_point

    def generate_candidate_nodes(
        self, site: SettlementSite, graph: StreetGraph, prng: AleaPRNG
    ) -> List[StreetNode]:
        """
        Lay a jittered grid of district intersections inside the boundary.

        Every grid point consumes two draws (x then y jitter) whether or not it
        is accepted, so the stream position only depends on the bounds.
        A site without bounds yields no candidates and consumes no draws.
        """
        spacing = self.options.candidate_grid_spacing
        jitter = self.options.jitter_amount
        min_dist = self.options.min_node_distance
        bounds = site.bounds
        if bounds is None:
            logger.warning("Settlement has no boundary, skipping candidate intersections")
            return []

        positions = [list(node.position) for node in graph.nodes]
        candidates: List[StreetNode] = []

        x = bounds.min_x + spacing / 2
        while x < bounds.max_x:
            y = bounds.min_y + spacing / 2
            while y < bounds.max_y:
                jx = x + prng.range(-jitter, jitter)
                jy = y + prng.range(-jitter, jitter)
                y += spacing

                if not site.contains_point(jx, jy):
                    continue

                if positions:
                    tree = KDTree(np.asarray(positions))
                    distances, _ = tree.query([[jx, jy]], k=1)
                    if distances[0][0] < min_dist:
                        continue

                candidates.append(graph.create_node(jx, jy, NodeType.DISTRICT))
                positions.append([jx, jy])
            x += spacing

        logger.info(f"Placed {len(candidates)} candidate intersections")
        return candidates

    def connect_main_roads(
        self,
        graph: StreetGraph,
        center: StreetNode,
        gates: List[StreetNode],
        candidates: List[StreetNode],
    ) -> None:
        """Thread a main road from every gate to the centre."""
        for gate in gates:
            self.connect_gate_to_center(graph, gate, center, candidates)

        if not gates and candidates:
            for node in self.select_directional_nodes(
                center, candidates, self.options.radial_street_count
            ):
                self.try_add_edge(graph, center.id, node.id, EdgeType.MAIN)

        logger.info(f"Main roads: {len(graph.edges_by_type(EdgeType.MAIN))} segments")

    def connect_gate_to_center(
        self,
        graph: StreetGraph,
        gate: StreetNode,
        center: StreetNode,
        candidates: List[StreetNode],
    ) -> None:
        path = self.find_path_through_nodes(gate, center, candidates, graph)

        if len(path) >= 2:
            for start, end in zip(path, path[1:]):
                self.try_add_edge(graph, start.id, end.id, EdgeType.MAIN)
        else:
            self.try_add_edge(graph, gate.id, center.id, EdgeType.MAIN)

    def find_path_through_nodes(
        self,
        start: StreetNode,
        end: StreetNode,
        intermediates: List[StreetNode],
        graph: StreetGraph,
    ) -> List[StreetNode]:
        """
        Greedy walk from start towards end through intermediate nodes.

        Each hop goes to the unused intermediate within reach that is strictly
        closer to the target, does not cross a main road, and minimises
        ``distance_to_target + hop_weight * hop_length``.
        """
        opts = self.options
        reach = opts.candidate_grid_spacing * opts.path_search_radius_factor
        arrival = opts.candidate_grid_spacing * opts.path_arrival_factor

        path = [start]
        current = start
        used = {start.id, end.id}
        main_edges = graph.edges_by_type(EdgeType.MAIN)

        for _ in range(opts.max_path_steps):
            dist_to_end = current.distance_to_node(end)
            if dist_to_end < arrival:
                path.append(end)
                return path

            best_node = None
            best_score = math.inf
            for node in intermediates:
                if node.id in used:
                    continue

                hop = current.distance_to_node(node)
                if hop > reach:
                    continue

                remaining = node.distance_to_node(end)
                if remaining >= dist_to_end:
                    continue

                if self._crosses_edges(graph, current, node, main_edges):
                    continue

                score = remaining + hop * opts.path_hop_weight
                if score < best_score:
                    best_score = score
                    best_node = node

            if best_node is None:
                if not self._crosses_edges(graph, current, end, main_edges):
                    path.append(end)
                return path

            path.append(best_node)
            used.add(best_node.id)
            current = best_node

        path.append(end)
        return path

    def select_directional_nodes(
        self, center: StreetNode, candidates: List[StreetNode], count: int
    ) -> List[StreetNode]:
        """Nearest candidate in each of ``count`` equal angular sectors around the centre."""
        if len(candidates) <= count:
            return list(candidates)

        sector_angle = 2 * math.pi / count
        sectors: List[List[StreetNode]] = [[] for _ in range(count)]
        for node in candidates:
            angle = center.angle_to_node(node) + math.pi
            sectors[int(angle // sector_angle) % count].append(node)

        result = []
        for sector in sectors:
            if sector:
                result.append(min(sector, key=lambda n: (center.distance_to_node(n), n.id)))
        return result

    def add_district_streets(self, graph: StreetGraph) -> int:
        """
        Greedily add district streets between nearby unconnected nodes.

        Returns:
            Number of streets added
        """
        nodes = graph.nodes
        if len(nodes) < 2:
            return 0

        max_link = self.options.candidate_grid_spacing * self.options.district_link_factor
        points = np.asarray([node.position for node in nodes], dtype=np.float64)
        tree = KDTree(points)
        neighborhoods = tree.query_radius(points, r=max_link)

        potential = []
        for i, neighbors in enumerate(neighborhoods):
            node_a = nodes[i]
            for j in sorted(int(j) for j in neighbors):
                if j <= i:
                    continue
                node_b = nodes[j]
                if graph.has_edge(node_a.id, node_b.id):
                    continue

                dist = node_a.distance_to_node(node_b)
                if dist > max_link:
                    continue

                score = self.score_connection(node_a, node_b, dist)
                first, second = sorted((node_a.id, node_b.id))
                potential.append((score, first, second))

        # Total order so equal scores never depend on enumeration order
        potential.sort()

        added = 0
        for _, id_a, id_b in potential:
            if self.try_add_edge(graph, id_a, id_b, EdgeType.DISTRICT) is not None:
                added += 1

        logger.info(f"Added {added} district streets from {len(potential)} candidates")
        return added

    def score_connection(self, node_a: StreetNode, node_b: StreetNode, dist: float) -> float:
        """Score a potential district street (lower is better)."""
        opts = self.options
        score = dist

        types = (node_a.type, node_b.type)
        if NodeType.CENTER in types:
            score *= opts.center_score_factor
        if NodeType.GATE in types:
            score *= opts.gate_score_factor

        if node_a.degree >= 3:
            score *= opts.busy_node_score_factor
        if node_b.degree >= 3:
            score *= opts.busy_node_score_factor

        if dist < opts.min_node_distance * 1.2:
            score *= opts.short_edge_score_factor

        return score

    def can_add_connection(self, graph: StreetGraph, node_a: StreetNode, node_b: StreetNode) -> bool:
        """Full constraint check for a district or alley street."""
        if node_a.degree >= self.options.max_degree or node_b.degree >= self.options.max_degree:
            return False

        if not self.check_angle_constraint(graph, node_a, node_b.position):
            return False
        if not self.check_angle_constraint(graph, node_b, node_a.position):
            return False

        return not self._crosses_edges(graph, node_a, node_b, graph.edges)

    def check_angle_constraint(self, graph: StreetGraph, node: StreetNode, new_neighbor_pos) -> bool:
        """Whether a new street from ``node`` keeps min_angle to all its streets."""
        for edge in graph.edges_at_node(node.id):
            other = graph.get_node(edge.other_node(node.id))
            if other is None:
                continue
            if angle_between(node.position, other.position, new_neighbor_pos) < self.options.min_angle:
                return False
        return True

    def try_add_edge(
        self, graph: StreetGraph, node_id_a: int, node_id_b: int, edge_type: EdgeType
    ) -> Optional[StreetEdge]:
        """
        Add a street if the policy for its type allows it.

        Main roads only have to avoid crossing other main roads and the degree
        cap; other streets go through the full constraint check.

        Returns:
            The new edge, or None if it exists already or violates a constraint
        """
        node_a = graph.get_node(node_id_a)
        node_b = graph.get_node(node_id_b)
        if node_a is None or node_b is None:
            return None
        if graph.has_edge(node_id_a, node_id_b):
            return None

        if EdgeType(edge_type) == EdgeType.MAIN:
            if node_a.degree >= self.options.max_degree or node_b.degree >= self.options.max_degree:
                return None
            for edge in graph.edges_by_type(EdgeType.MAIN):
                n1 = graph.get_node(edge.node_a)
                n2 = graph.get_node(edge.node_b)
                if n1 is None or n2 is None:
                    continue
                if segments_cross(node_a.position, node_b.position, n1.position, n2.position):
                    return None
            return graph.add_edge(node_id_a, node_id_b, edge_type)

        if not self.can_add_connection(graph, node_a, node_b):
            return None
        return graph.add_edge(node_id_a, node_id_b, edge_type)

    def remove_isolated_nodes(self, graph: StreetGraph) -> int:
        """Remove unconnected nodes other than the centre and gates."""
        to_remove = [
            node.id
            for node in graph.nodes
            if node.degree == 0 and node.type not in (NodeType.CENTER, NodeType.GATE)
        ]
        for node_id in to_remove:
            graph.remove_node(node_id)
        return len(to_remove)

    def _crosses_edges(
        self,
        graph: StreetGraph,
        node_a: StreetNode,
        node_b: StreetNode,
        edges: Sequence[StreetEdge],
    ) -> bool:
        # Edges sharing an endpoint meet there and cannot cross
        for edge in edges:
            if edge.connects(node_a.id) or edge.connects(node_b.id):
                continue
            n1 = graph.get_node(edge.node_a)
            n2 = graph.get_node(edge.node_b)
            if n1 is None or n2 is None:
                continue
            if segments_cross(node_a.position, node_b.position, n1.position, n2.position):
                return True
        return False
