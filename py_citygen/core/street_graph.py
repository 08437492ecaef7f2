"""
Planar street graph for settlement layouts.

Nodes are intersections and edges are street segments. The graph keeps
adjacency and node degree consistent through a single pair of link/unlink
methods, and can extract the minimal enclosed faces ("city blocks") of its
straight-line embedding.

Face finding:
1. Build the rotation system (neighbours of every node sorted by angle)
2. Walk every unused directed half-edge, always taking the neighbour just
   before the arrival edge in the rotation, until the walk closes
3. Drop the outer boundary (negative signed area) and, optionally, faces
   larger than an oversize threshold
"""

import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog

from .geometry import (
    BoundingBox,
    polygon_area,
    segment_intersection,
    segments_intersect,
    signed_area,
)
from .records import EdgeRecord, GraphRecord, NodeRecord

logger = structlog.get_logger()


class NodeType(str, Enum):
    """Intersection categories."""

    CENTER = "center"
    GATE = "gate"
    MAIN = "main"
    DISTRICT = "district"
    ALLEY = "alley"


class EdgeType(str, Enum):
    """Street segment categories."""

    MAIN = "main"
    DISTRICT = "district"
    ALLEY = "alley"


# Street width in world units per edge type
EDGE_WIDTHS: Dict[EdgeType, float] = {
    EdgeType.MAIN: 8.0,
    EdgeType.DISTRICT: 5.0,
    EdgeType.ALLEY: 2.0,
}


def edge_key(node_a: int, node_b: int) -> Tuple[int, int]:
    """Canonical key of an undirected edge (smaller id first)."""
    return (node_a, node_b) if node_a < node_b else (node_b, node_a)


@dataclass
class StreetNode:
    """An intersection in the street graph."""

    id: int = 0
    position: Tuple[float, float] = (0.0, 0.0)
    type: NodeType = NodeType.MAIN
    _degree: int = field(default=0, init=False, repr=False, compare=False)

    @property
    def degree(self) -> int:
        """Number of incident edges, maintained by the owning graph."""
        return self._degree

    @property
    def x(self) -> float:
        return self.position[0]

    @property
    def y(self) -> float:
        return self.position[1]

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.position[0] - x, self.position[1] - y)

    def distance_to_node(self, other: "StreetNode") -> float:
        return self.distance_to(other.position[0], other.position[1])

    def angle_to(self, x: float, y: float) -> float:
        """Angle in radians from this node to a point (atan2 convention)."""
        return math.atan2(y - self.position[1], x - self.position[0])

    def angle_to_node(self, other: "StreetNode") -> float:
        return self.angle_to(other.position[0], other.position[1])

    def clone(self) -> "StreetNode":
        """Copy of the node without degree bookkeeping."""
        return StreetNode(id=self.id, position=tuple(self.position), type=self.type)


@dataclass
class StreetEdge:
    """A street segment between two intersections."""

    id: int
    node_a: int
    node_b: int
    type: EdgeType = EdgeType.MAIN
    width: Optional[float] = None

    def __post_init__(self):
        self.type = EdgeType(self.type)
        if self.width is None:
            self.width = EDGE_WIDTHS.get(self.type, 5.0)

    @property
    def key(self) -> Tuple[int, int]:
        return edge_key(self.node_a, self.node_b)

    def connects(self, node_id: int) -> bool:
        return self.node_a == node_id or self.node_b == node_id

    def other_node(self, node_id: int) -> int:
        """The endpoint opposite ``node_id``."""
        return self.node_b if self.node_a == node_id else self.node_a

    def same_nodes(self, other: "StreetEdge") -> bool:
        return self.key == other.key

    def clone(self) -> "StreetEdge":
        return StreetEdge(
            id=self.id,
            node_a=self.node_a,
            node_b=self.node_b,
            type=self.type,
            width=self.width,
        )


class StreetGraph:
    """Graph of street nodes and edges with face extraction."""

    def __init__(self) -> None:
        self._nodes: Dict[int, StreetNode] = {}
        self._edges: Dict[int, StreetEdge] = {}
        self._edges_by_key: Dict[Tuple[int, int], int] = {}
        self._node_edges: Dict[int, Set[int]] = {}
        self.next_node_id = 1
        self.next_edge_id = 1

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    # Nodes

    def add_node(self, node: StreetNode) -> StreetNode:
        """
        Add a node, assigning a fresh id when it has none or its id is taken.

        Returns:
            The added node
        """
        if node.id == 0 or node.id in self._nodes:
            node.id = self.next_node_id
            self.next_node_id += 1
        else:
            self.next_node_id = max(self.next_node_id, node.id + 1)

        node.type = NodeType(node.type)
        node._degree = 0
        self._nodes[node.id] = node
        self._node_edges[node.id] = set()
        return node

    def create_node(
        self, x: float, y: float, node_type: NodeType = NodeType.MAIN
    ) -> StreetNode:
        """Create and add a node at (x, y)."""
        return self.add_node(StreetNode(position=(float(x), float(y)), type=node_type))

    def get_node(self, node_id: int) -> Optional[StreetNode]:
        return self._nodes.get(node_id)

    def remove_node(self, node_id: int) -> bool:
        """
        Remove a node together with every edge touching it.

        Returns:
            True if the node existed
        """
        if node_id not in self._nodes:
            return False

        for edge_id in sorted(self._node_edges.get(node_id, ())):
            self.remove_edge(edge_id)

        del self._nodes[node_id]
        del self._node_edges[node_id]
        return True

    @property
    def nodes(self) -> List[StreetNode]:
        """All nodes in insertion order."""
        return list(self._nodes.values())

    def nodes_by_type(self, node_type: NodeType) -> List[StreetNode]:
        node_type = NodeType(node_type)
        return [node for node in self._nodes.values() if node.type == node_type]

    def find_nearest_node(
        self, x: float, y: float, max_distance: float = math.inf
    ) -> Optional[StreetNode]:
        """Nearest node strictly closer than ``max_distance``, or None."""
        nearest = None
        best = max_distance
        for node in self._nodes.values():
            dist = node.distance_to(x, y)
            if dist < best:
                best = dist
                nearest = node
        return nearest

    # Edges

    def add_edge(
        self, node_a: int, node_b: int, edge_type: EdgeType = EdgeType.MAIN
    ) -> Optional[StreetEdge]:
        """
        Connect two nodes.

        Returns:
            The new edge, the already existing edge for the same node pair, or
            None when a node is missing or the request is a self-loop
        """
        if node_a not in self._nodes or node_b not in self._nodes:
            return None
        if node_a == node_b:
            return None

        existing = self._edges_by_key.get(edge_key(node_a, node_b))
        if existing is not None:
            return self._edges[existing]

        edge = StreetEdge(id=self.next_edge_id, node_a=node_a, node_b=node_b, type=edge_type)
        self.next_edge_id += 1
        self._link_edge(edge)
        return edge

    def _link_edge(self, edge: StreetEdge) -> None:
        # Only place where degrees go up
        self._edges[edge.id] = edge
        self._edges_by_key[edge.key] = edge.id
        for node_id in (edge.node_a, edge.node_b):
            self._node_edges[node_id].add(edge.id)
            self._nodes[node_id]._degree += 1

    def _unlink_edge(self, edge: StreetEdge) -> None:
        # Only place where degrees go down
        del self._edges[edge.id]
        self._edges_by_key.pop(edge.key, None)
        for node_id in (edge.node_a, edge.node_b):
            incident = self._node_edges.get(node_id)
            if incident is not None and edge.id in incident:
                incident.discard(edge.id)
                self._nodes[node_id]._degree -= 1

    def get_edge(self, edge_id: int) -> Optional[StreetEdge]:
        return self._edges.get(edge_id)

    def has_edge(self, node_a: int, node_b: int) -> bool:
        return edge_key(node_a, node_b) in self._edges_by_key

    def get_edge_between(self, node_a: int, node_b: int) -> Optional[StreetEdge]:
        edge_id = self._edges_by_key.get(edge_key(node_a, node_b))
        return self._edges[edge_id] if edge_id is not None else None

    def remove_edge(self, edge_id: int) -> bool:
        edge = self._edges.get(edge_id)
        if edge is None:
            return False
        self._unlink_edge(edge)
        return True

    @property
    def edges(self) -> List[StreetEdge]:
        """All edges in insertion order."""
        return list(self._edges.values())

    def edges_by_type(self, edge_type: EdgeType) -> List[StreetEdge]:
        edge_type = EdgeType(edge_type)
        return [edge for edge in self._edges.values() if edge.type == edge_type]

    def edges_at_node(self, node_id: int) -> List[StreetEdge]:
        """Edges incident to a node, ordered by edge id."""
        edge_ids = self._node_edges.get(node_id)
        if not edge_ids:
            return []
        return [self._edges[edge_id] for edge_id in sorted(edge_ids)]

    # Traversal

    def neighbors(self, node_id: int) -> List[int]:
        return [edge.other_node(node_id) for edge in self.edges_at_node(node_id)]

    def neighbor_nodes(self, node_id: int) -> List[StreetNode]:
        return [self._nodes[n] for n in self.neighbors(node_id) if n in self._nodes]

    def is_connected(self) -> bool:
        """True when every node is reachable from every other one."""
        if len(self._nodes) <= 1:
            return True
        return len(self.connected_components()) == 1

    def connected_components(self) -> List[List[int]]:
        """Node id lists of every connected component, BFS order."""
        visited: Set[int] = set()
        components = []

        for start in self._nodes:
            if start in visited:
                continue

            component = []
            queue = deque([start])
            visited.add(start)
            while queue:
                current = queue.popleft()
                component.append(current)
                for neighbor in self.neighbors(current):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        queue.append(neighbor)

            components.append(component)

        return components

    # Faces

    def find_faces(self, max_area: Optional[float] = None) -> List[List[int]]:
        """
        Find the minimal enclosed faces (city blocks) of the graph.

        Args:
            max_area: Optional oversize threshold; faces with a larger absolute
                area are treated as boundary artifacts and dropped

        Returns:
            List of faces, each a cyclic list of node ids. Degenerate graphs
            yield an empty list and traces that cannot close are skipped.
        """
        if len(self._nodes) < 3 or len(self._edges) < 3:
            return []

        rotation = self._build_rotation_system()
        used: Set[Tuple[int, int]] = set()
        faces = []
        dropped = 0

        for node_id, neighbors in rotation.items():
            for neighbor_id in neighbors:
                if (node_id, neighbor_id) in used:
                    continue

                face = self._trace_face(node_id, neighbor_id, rotation, used)
                if face is None:
                    dropped += 1
                    continue
                if len(face) < 3:
                    continue
                if self._is_outer_boundary(face, max_area):
                    continue
                faces.append(face)

        logger.debug(
            "Faces extracted", faces=len(faces), dropped_traces=dropped
        )
        return faces

    def _build_rotation_system(self) -> Dict[int, List[int]]:
        """Neighbours of each node sorted by angle, ties broken by id."""
        rotation = {}
        for node_id, node in self._nodes.items():
            neighbors = self.neighbors(node_id)
            neighbors.sort(
                key=lambda other: (node.angle_to_node(self._nodes[other]), other)
            )
            rotation[node_id] = neighbors
        return rotation

    def _trace_face(
        self,
        start: int,
        first: int,
        rotation: Dict[int, List[int]],
        used: Set[Tuple[int, int]],
    ) -> Optional[List[int]]:
        face = [start]
        current, nxt = start, first
        max_iterations = len(self._nodes) + 1

        for _ in range(max_iterations):
            half_edge = (current, nxt)
            if half_edge in used:
                return None
            used.add(half_edge)

            if nxt == start:
                return face
            face.append(nxt)

            neighbors = rotation.get(nxt)
            if not neighbors or current not in neighbors:
                return None

            # Turn towards the interior: the neighbour just before the arrival edge
            arrival = neighbors.index(current)
            current, nxt = nxt, neighbors[(arrival - 1) % len(neighbors)]

        return None

    def _is_outer_boundary(self, face: Sequence[int], max_area: Optional[float]) -> bool:
        area = signed_area(self.face_polygon(face))
        if area < 0:
            return True
        # Oversized faces are usually semi-enclosed boundary artifacts
        if max_area is not None and abs(area) > max_area:
            return True
        return False

    def face_polygon(self, face: Sequence[int]) -> List[Tuple[float, float]]:
        """Coordinates of the nodes of a face, skipping unknown ids."""
        return [
            tuple(self._nodes[node_id].position)
            for node_id in face
            if node_id in self._nodes
        ]

    def face_area(self, face: Sequence[int]) -> float:
        return polygon_area(self.face_polygon(face))

    # Geometry

    def _endpoints(self, edge_id: int):
        edge = self._edges.get(edge_id)
        if edge is None:
            return None
        node_a = self._nodes.get(edge.node_a)
        node_b = self._nodes.get(edge.node_b)
        if node_a is None or node_b is None:
            return None
        return node_a, node_b

    def edge_length(self, edge_id: int) -> float:
        ends = self._endpoints(edge_id)
        if ends is None:
            return 0.0
        return ends[0].distance_to_node(ends[1])

    def edge_midpoint(self, edge_id: int) -> Optional[Tuple[float, float]]:
        ends = self._endpoints(edge_id)
        if ends is None:
            return None
        a, b = ends
        return ((a.position[0] + b.position[0]) / 2, (a.position[1] + b.position[1]) / 2)

    def edge_angle(self, edge_id: int) -> float:
        """Direction of an edge from node_a to node_b, in radians."""
        ends = self._endpoints(edge_id)
        if ends is None:
            return 0.0
        return ends[0].angle_to_node(ends[1])

    def angle_between_edges(self, edge_id_1: int, edge_id_2: int, shared_node_id: int) -> float:
        """
        Counter-clockwise angle from edge 1 to edge 2 around a shared node.

        Returns:
            Angle in radians in [0, 2*pi), 0 if anything is missing
        """
        edge_1 = self._edges.get(edge_id_1)
        edge_2 = self._edges.get(edge_id_2)
        shared = self._nodes.get(shared_node_id)
        if edge_1 is None or edge_2 is None or shared is None:
            return 0.0

        other_1 = self._nodes.get(edge_1.other_node(shared_node_id))
        other_2 = self._nodes.get(edge_2.other_node(shared_node_id))
        if other_1 is None or other_2 is None:
            return 0.0

        diff = shared.angle_to_node(other_2) - shared.angle_to_node(other_1)
        return diff % (2 * math.pi)

    def edges_intersect(self, edge_id_1: int, edge_id_2: int) -> bool:
        """True if two edges intersect anywhere other than a shared endpoint."""
        edge_1 = self._edges.get(edge_id_1)
        edge_2 = self._edges.get(edge_id_2)
        if edge_1 is None or edge_2 is None:
            return False

        if edge_1.connects(edge_2.node_a) or edge_1.connects(edge_2.node_b):
            return False

        ends_1 = self._endpoints(edge_id_1)
        ends_2 = self._endpoints(edge_id_2)
        if ends_1 is None or ends_2 is None:
            return False

        return segments_intersect(
            ends_1[0].position, ends_1[1].position,
            ends_2[0].position, ends_2[1].position,
        )

    @staticmethod
    def line_intersection(p1, p2, p3, p4) -> Optional[Tuple[float, float]]:
        """Intersection point of two segments, None if they do not meet."""
        return segment_intersection(p1, p2, p3, p4)

    # Summary

    def total_length(self) -> float:
        return sum(self.edge_length(edge_id) for edge_id in self._edges)

    def stats(self) -> Dict:
        """Summary statistics of the graph."""
        degrees = [node.degree for node in self._nodes.values()]
        node_types: Dict[str, int] = {}
        for node in self._nodes.values():
            node_types[node.type.value] = node_types.get(node.type.value, 0) + 1
        edge_types: Dict[str, int] = {}
        for edge in self._edges.values():
            edge_types[edge.type.value] = edge_types.get(edge.type.value, 0) + 1

        return {
            "node_count": len(self._nodes),
            "edge_count": len(self._edges),
            "average_degree": sum(degrees) / len(degrees) if degrees else 0.0,
            "max_degree": max(degrees, default=0),
            "min_degree": min(degrees, default=0),
            "total_length": self.total_length(),
            "is_connected": self.is_connected(),
            "component_count": len(self.connected_components()),
            "nodes_by_type": node_types,
            "edges_by_type": edge_types,
        }

    def bounds(self) -> Optional[BoundingBox]:
        if not self._nodes:
            return None
        xs = [node.position[0] for node in self._nodes.values()]
        ys = [node.position[1] for node in self._nodes.values()]
        return BoundingBox(min(xs), min(ys), max(xs), max(ys))

    # Lifecycle

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._edges_by_key.clear()
        self._node_edges.clear()
        self.next_node_id = 1
        self.next_edge_id = 1

    def clone(self) -> "StreetGraph":
        """Deep copy preserving node ids, edge ids and counters."""
        return StreetGraph.from_record(self.to_record())

    def to_record(self) -> GraphRecord:
        return GraphRecord(
            nodes=[
                NodeRecord(
                    id=node.id,
                    position=node.position,
                    type=node.type.value,
                    degree=node.degree,
                )
                for node in self._nodes.values()
            ],
            edges=[
                EdgeRecord(
                    id=edge.id,
                    node_a=edge.node_a,
                    node_b=edge.node_b,
                    type=edge.type.value,
                    width=edge.width,
                )
                for edge in self._edges.values()
            ],
            next_node_id=self.next_node_id,
            next_edge_id=self.next_edge_id,
        )

    @classmethod
    def from_record(cls, record: GraphRecord) -> "StreetGraph":
        """
        Rebuild a graph from its record.

        Edges referencing unknown nodes, self-loops and duplicate node pairs
        are skipped. Degrees follow from the restored edges, so a stale degree
        field in the record is ignored.
        """
        graph = cls()
        for node_record in record.nodes:
            node = StreetNode(
                id=node_record.id,
                position=tuple(node_record.position),
                type=NodeType(node_record.type),
            )
            graph._nodes[node.id] = node
            graph._node_edges[node.id] = set()

        skipped = 0
        for edge_record in record.edges:
            edge = StreetEdge(
                id=edge_record.id,
                node_a=edge_record.node_a,
                node_b=edge_record.node_b,
                type=EdgeType(edge_record.type),
                width=edge_record.width,
            )
            if (
                edge.node_a == edge.node_b
                or edge.node_a not in graph._nodes
                or edge.node_b not in graph._nodes
                or edge.key in graph._edges_by_key
                or edge.id in graph._edges
            ):
                skipped += 1
                continue
            graph._link_edge(edge)

        if skipped:
            logger.warning("Skipped invalid edges while restoring graph", skipped=skipped)

        graph.next_node_id = max(
            [record.next_node_id] + [node_id + 1 for node_id in graph._nodes]
        )
        graph.next_edge_id = max(
            [record.next_edge_id] + [edge_id + 1 for edge_id in graph._edges]
        )
        return graph
