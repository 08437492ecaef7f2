"""
Settlement layout orchestration.

Turns a settlement on the world map into a complete layout: the occupied
world tiles are gathered, their outer outline becomes the settlement
boundary, world roads leaving that outline become crossings, and the street
and block engines run on one settlement PRNG. Finished plans are cached per
settlement so each settlement is generated at most once.
"""

from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import structlog

from ..config.config import settings
from ..config.settlement_types import (
    SettlementParams,
    SettlementType,
    get_settlement_params,
    get_tile_occupation,
)
from ..utils.random import create_settlement_prng, derive_settlement_seed
from .block_filling import BlockFiller, Building
from .geometry import BoundingBox, polygon_area
from .records import SettlementRecord
from .street_graph import StreetGraph
from .street_growth import RoadCrossing, SettlementSite, StreetGrowth

logger = structlog.get_logger()

# Tolerance for matching tile vertices shared between neighbouring tiles
VERTEX_EPSILON = 0.001


@dataclass
class WorldTile:
    """A world map cell as seen by the settlement planner."""
    id: int
    center: Tuple[float, float]
    vertices: List[Tuple[float, float]] = field(default_factory=list)
    neighbors: List[int] = field(default_factory=list)
    is_water: bool = False
    road_edges: List[int] = field(default_factory=list)  # neighbour ids reached by a road


class TileSource(Protocol):
    """Anything that can look up world tiles by id."""

    def get_tile(self, tile_id: int) -> Optional[WorldTile]:
        ...


class World:
    """In-memory tile source."""

    def __init__(self, tiles: Sequence[WorldTile] = ()) -> None:
        self.tiles: Dict[int, WorldTile] = {tile.id: tile for tile in tiles}

    def add_tile(self, tile: WorldTile) -> WorldTile:
        self.tiles[tile.id] = tile
        return tile

    def get_tile(self, tile_id: int) -> Optional[WorldTile]:
        return self.tiles.get(tile_id)

    def __len__(self) -> int:
        return len(self.tiles)


@dataclass
class SettlementRequest:
    """A settlement placed on the world map that needs a layout."""
    id: int
    name: str
    type: str
    position: Tuple[float, float]
    tile_id: int


class SettlementPlan:
    """Generated layout of one settlement."""

    def __init__(
        self,
        id: int,
        name: str = "Unknown",
        type: str = SettlementType.VILLAGE.value,
        seed: str = "",
        center: Tuple[float, float] = (0.0, 0.0),
        boundary: Optional[List[Tuple[float, float]]] = None,
        occupied_tile_ids: Optional[List[int]] = None,
        params: Optional[SettlementParams] = None,
    ) -> None:
        self.id = id
        self.name = name
        self.type = type
        self.seed = seed
        self.center = (float(center[0]), float(center[1]))
        self.boundary = [(float(x), float(y)) for x, y in (boundary or [])]
        self.occupied_tile_ids = list(occupied_tile_ids or [])
        self.params = params or get_settlement_params(type)

        self.site = SettlementSite(center=self.center, boundary=self.boundary)
        self.streets: Optional[StreetGraph] = None
        self.buildings: List[Building] = []
        self.generation_state: Dict[str, bool] = {"streets": False, "buildings": False}

    @property
    def bounds(self) -> Optional[BoundingBox]:
        return self.site.bounds

    def is_fully_generated(self) -> bool:
        return all(self.generation_state.values())

    def contains_point(self, x: float, y: float) -> bool:
        """Whether a point lies inside the settlement boundary."""
        return self.site.contains_point(x, y)

    def to_record(self) -> SettlementRecord:
        return SettlementRecord(
            id=self.id,
            name=self.name,
            type=self.type,
            seed=self.seed,
            center=self.center,
            boundary=self.boundary,
            occupied_tile_ids=self.occupied_tile_ids,
            params=self.params,
            streets=self.streets.to_record() if self.streets is not None else None,
            buildings=[building.to_record() for building in self.buildings],
            streets_generated=self.generation_state["streets"],
            buildings_generated=self.generation_state["buildings"],
        )

    @classmethod
    def from_record(cls, record: SettlementRecord) -> "SettlementPlan":
        plan = cls(
            id=record.id,
            name=record.name,
            type=record.type,
            seed=record.seed,
            center=record.center,
            boundary=record.boundary,
            occupied_tile_ids=record.occupied_tile_ids,
            params=record.params,
        )
        if record.streets is not None:
            plan.streets = StreetGraph.from_record(record.streets)
        plan.buildings = [Building.from_record(b) for b in record.buildings]
        plan.generation_state = {
            "streets": record.streets_generated,
            "buildings": record.buildings_generated,
        }
        return plan

    def __repr__(self) -> str:
        return (
            f"SettlementPlan(id={self.id}, name={self.name!r}, type={self.type!r}, "
            f"buildings={len(self.buildings)})"
        )


class SettlementPlanner:
    """Generates and caches settlement plans."""

    def __init__(
        self,
        street_growth: Optional[StreetGrowth] = None,
        block_filler: Optional[BlockFiller] = None,
        cache_size: Optional[int] = None,
    ) -> None:
        self.street_growth = street_growth or StreetGrowth()
        self.block_filler = block_filler or BlockFiller()
        self.cache_size = settings.plan_cache_size if cache_size is None else cache_size
        self._cache: "OrderedDict[int, SettlementPlan]" = OrderedDict()

    def generate(
        self,
        request: SettlementRequest,
        world: TileSource,
        world_seed: Optional[str] = None,
    ) -> SettlementPlan:
        """
        Generate the layout of a settlement, or return the cached one.

        Args:
            request: Settlement to lay out
            world: Tile source used for the boundary and road crossings
            world_seed: World seed, defaults to the configured default seed

        Returns:
            The settlement plan with streets and buildings generated
        """
        cached = self._cache.get(request.id)
        if cached is not None:
            self._cache.move_to_end(request.id)
            return cached

        if world_seed is None:
            world_seed = settings.default_world_seed

        seed = derive_settlement_seed(world_seed, request.id)
        prng = create_settlement_prng(world_seed, request.id)

        logger.info(f"Generating {request.type} '{request.name}' (id {request.id})")

        boundary, tile_ids = self.calculate_boundary(request, world)
        if len(boundary) < 3:
            logger.warning(
                f"Settlement {request.id} has no usable boundary, only its centre will be laid out"
            )

        plan = SettlementPlan(
            id=request.id,
            name=request.name,
            type=request.type,
            seed=seed,
            center=request.position,
            boundary=boundary,
            occupied_tile_ids=tile_ids,
        )
        plan.site.crossings = self.road_crossings(tile_ids, world)

        self.generate_streets(plan, prng)
        self.generate_buildings(plan, prng)

        self._store(plan)
        return plan

    def generate_streets(self, plan: SettlementPlan, prng) -> None:
        plan.streets = self.street_growth.generate(plan.site, prng)
        plan.generation_state["streets"] = True

    def generate_buildings(self, plan: SettlementPlan, prng) -> None:
        if plan.streets is None:
            return
        plan.buildings = self.block_filler.generate(plan.streets, plan.params, prng)
        plan.generation_state["buildings"] = True

    def _store(self, plan: SettlementPlan) -> None:
        self._cache[plan.id] = plan
        if self.cache_size and len(self._cache) > self.cache_size:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Evicted settlement plan {evicted} from cache")

    # Boundary extraction

    def calculate_boundary(
        self, request: SettlementRequest, world: TileSource
    ) -> Tuple[List[Tuple[float, float]], List[int]]:
        """
        Boundary polygon and occupied tile ids of a settlement.

        Returns:
            (boundary, tile_ids); both empty when the centre tile is unknown
        """
        center_tile = world.get_tile(request.tile_id)
        if center_tile is None:
            return [], []

        rings = get_tile_occupation(request.type)
        tile_ids = self.find_occupied_tiles(center_tile, world, rings)
        boundary = self.extract_boundary_polygon(tile_ids, world)
        return boundary, tile_ids

    def find_occupied_tiles(
        self, center_tile: WorldTile, world: TileSource, max_rings: int
    ) -> List[int]:
        """Breadth-first search over land tiles up to ``max_rings`` rings out."""
        visited = {center_tile.id}
        result = []
        queue = deque([(center_tile.id, 0)])

        while queue:
            tile_id, ring = queue.popleft()
            result.append(tile_id)

            if ring >= max_rings:
                continue
            tile = world.get_tile(tile_id)
            if tile is None:
                continue

            for neighbor_id in tile.neighbors:
                if neighbor_id in visited:
                    continue
                visited.add(neighbor_id)
                neighbor = world.get_tile(neighbor_id)
                if neighbor is not None and not neighbor.is_water:
                    queue.append((neighbor_id, ring + 1))

        return result

    def extract_boundary_polygon(
        self, tile_ids: Sequence[int], world: TileSource
    ) -> List[Tuple[float, float]]:
        """
        Outer outline of a group of tiles.

        An edge is on the outline unless an occupied neighbour carries the same
        edge in reverse. The outline edges are chained into a polygon; if none
        are found the first tile's own vertices are used.
        """
        if not tile_ids:
            return []

        occupied = set(tile_ids)
        boundary_edges = []

        for tile_id in tile_ids:
            tile = world.get_tile(tile_id)
            if tile is None or len(tile.vertices) < 3:
                continue

            vertices = tile.vertices
            for i, v1 in enumerate(vertices):
                v2 = vertices[(i + 1) % len(vertices)]
                if not self._edge_shared(v1, v2, tile, occupied, world):
                    boundary_edges.append((v1, v2))

        if not boundary_edges:
            first = world.get_tile(tile_ids[0])
            return [tuple(v) for v in first.vertices] if first is not None else []

        return self.chain_edges_to_polygon(boundary_edges)

    def _edge_shared(self, v1, v2, tile: WorldTile, occupied, world: TileSource) -> bool:
        for neighbor_id in tile.neighbors:
            if neighbor_id not in occupied:
                continue
            neighbor = world.get_tile(neighbor_id)
            if neighbor is None:
                continue

            verts = neighbor.vertices
            for i, nv1 in enumerate(verts):
                nv2 = verts[(i + 1) % len(verts)]
                if vertices_match(v1, nv2) and vertices_match(v2, nv1):
                    return True
        return False

    def chain_edges_to_polygon(self, edges) -> List[Tuple[float, float]]:
        """
        Chain loose edges into an ordered vertex ring.

        Edges are chained into closed loops until all are used. Tile groups
        surrounding a water tile have a hole in their outline, so the loop
        with the largest area is returned as the outer ring.
        """
        if not edges:
            return []

        used = set()
        loops = []
        for start, (first_a, first_b) in enumerate(edges):
            if start in used:
                continue
            used.add(start)
            ring = self._chain_loop(edges, [tuple(first_a), tuple(first_b)], used)
            if len(ring) > 1 and vertices_match(ring[0], ring[-1]):
                ring.pop()
            loops.append(ring)

        if len(loops) > 1:
            logger.debug(f"Tile outline has {len(loops)} loops, keeping the largest")
        # max() keeps the first of equal areas
        return max(loops, key=polygon_area)

    def _chain_loop(self, edges, ring, used):
        while not (len(ring) > 2 and vertices_match(ring[0], ring[-1])):
            last = ring[-1]
            found = False
            for i, (a, b) in enumerate(edges):
                if i in used:
                    continue
                if vertices_match(a, last):
                    ring.append(tuple(b))
                elif vertices_match(b, last):
                    ring.append(tuple(a))
                else:
                    continue
                used.add(i)
                found = True
                break
            if not found:
                break
        return ring

    def road_crossings(self, tile_ids: Sequence[int], world: TileSource) -> List[RoadCrossing]:
        """World roads that run from an occupied tile to a tile outside."""
        occupied = set(tile_ids)
        crossings = []
        for tile_id in tile_ids:
            tile = world.get_tile(tile_id)
            if tile is None:
                continue
            for neighbor_id in tile.road_edges:
                if neighbor_id in occupied:
                    continue
                neighbor = world.get_tile(neighbor_id)
                if neighbor is None:
                    continue
                crossings.append(RoadCrossing(tuple(tile.center), tuple(neighbor.center)))
        return crossings

    # Cache

    def has_plan(self, settlement_id: int) -> bool:
        return settlement_id in self._cache

    def get_plan(self, settlement_id: int) -> Optional[SettlementPlan]:
        return self._cache.get(settlement_id)

    def clear_cache(self, settlement_id: Optional[int] = None) -> None:
        if settlement_id is None:
            self._cache.clear()
        else:
            self._cache.pop(settlement_id, None)


def vertices_match(a, b, epsilon: float = VERTEX_EPSILON) -> bool:
    return abs(a[0] - b[0]) < epsilon and abs(a[1] - b[1]) < epsilon
