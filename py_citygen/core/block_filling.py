"""
Building placement inside street blocks.

Blocks are the enclosed faces of a settlement's street graph. Each usable
block is shrunk away from its streets and filled with rectangular building
footprints by rejection sampling.

Process:
1. find blocks - Faces of the street graph within the area limits
2. inset - Pull block vertices toward the centroid by the street margin
3. calculate_building_count() - Target count from area and settlement density
4. place_buildings() - Random footprints kept only when inside and apart
"""

import math
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..config.settlement_types import SettlementParams
from .alea_prng import AleaPRNG
from .geometry import (
    BoundingBox,
    inset_polygon,
    point_in_polygon,
    polygon_area,
    polygon_bounds,
    rotated_rectangle,
)
from .records import BuildingRecord
from .street_graph import StreetGraph

logger = structlog.get_logger()


class BuildingType(str, Enum):
    """Building categories."""

    HOUSE = "house"
    SHOP = "shop"
    TAVERN = "tavern"
    WAREHOUSE = "warehouse"
    MARKET = "market"
    TEMPLE = "temple"
    CASTLE = "castle"


class RoofType(str, Enum):
    FLAT = "flat"
    PEAKED = "peaked"
    DOME = "dome"


class BuildingDefaults(NamedTuple):
    width: float
    depth: float
    height: float
    roof_type: RoofType


BUILDING_DEFAULTS: Dict[BuildingType, BuildingDefaults] = {
    BuildingType.HOUSE: BuildingDefaults(8, 10, 1.0, RoofType.PEAKED),
    BuildingType.SHOP: BuildingDefaults(10, 12, 1.2, RoofType.FLAT),
    BuildingType.TEMPLE: BuildingDefaults(20, 25, 2.5, RoofType.DOME),
    BuildingType.TAVERN: BuildingDefaults(15, 15, 1.5, RoofType.PEAKED),
    BuildingType.WAREHOUSE: BuildingDefaults(20, 30, 2.0, RoofType.FLAT),
    BuildingType.MARKET: BuildingDefaults(25, 25, 0.5, RoofType.FLAT),
    BuildingType.CASTLE: BuildingDefaults(40, 40, 4.0, RoofType.FLAT),
}

# Iteration order matters: the weighted draw walks the weights in this order
DEFAULT_BUILDING_WEIGHTS: Dict[BuildingType, float] = {
    BuildingType.HOUSE: 50,
    BuildingType.SHOP: 20,
    BuildingType.WAREHOUSE: 10,
    BuildingType.TAVERN: 8,
    BuildingType.TEMPLE: 5,
    BuildingType.MARKET: 5,
    BuildingType.CASTLE: 2,
}


class Building(BaseModel):
    """A placed building footprint."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Building ID, sequential over the settlement")
    type: BuildingType = Field(default=BuildingType.HOUSE)
    position: Tuple[float, float] = Field(description="Footprint centre")
    width: float = Field(gt=0)
    depth: float = Field(gt=0)
    rotation: float = Field(default=0.0, description="Rotation in radians")
    height: float = Field(default=1.0, description="Relative height for shading")
    roof_type: RoofType = Field(default=RoofType.FLAT)
    vertices: Tuple[Tuple[float, float], ...] = Field(
        default=(), description="Rotated rectangle corners"
    )
    block_id: Optional[int] = Field(default=None, description="Index of the source block")

    @classmethod
    def from_footprint(
        cls,
        building_id: int,
        building_type: BuildingType,
        position: Tuple[float, float],
        width: float,
        depth: float,
        rotation: float,
        block_id: Optional[int] = None,
    ) -> "Building":
        """Create a building with type defaults and its rectangle vertices."""
        defaults = BUILDING_DEFAULTS[building_type]
        return cls(
            id=building_id,
            type=building_type,
            position=position,
            width=width,
            depth=depth,
            rotation=rotation,
            height=defaults.height,
            roof_type=defaults.roof_type,
            vertices=tuple(rotated_rectangle(position, width, depth, rotation)),
            block_id=block_id,
        )

    def bounds(self) -> BoundingBox:
        """Axis-aligned bounding box of the footprint."""
        if not self.vertices:
            cx, cy = self.position
            return BoundingBox(
                cx - self.width / 2, cy - self.depth / 2,
                cx + self.width / 2, cy + self.depth / 2,
            )
        return polygon_bounds(self.vertices)

    def contains_point(self, x: float, y: float) -> bool:
        return point_in_polygon((x, y), self.vertices)

    def to_record(self) -> BuildingRecord:
        return BuildingRecord(
            id=self.id,
            type=self.type.value,
            position=self.position,
            width=self.width,
            depth=self.depth,
            rotation=self.rotation,
            height=self.height,
            roof_type=self.roof_type.value,
            vertices=list(self.vertices),
            block_id=self.block_id,
        )

    @classmethod
    def from_record(cls, record: BuildingRecord) -> "Building":
        vertices = record.vertices or rotated_rectangle(
            record.position, record.width, record.depth, record.rotation
        )
        return cls(
            id=record.id,
            type=BuildingType(record.type),
            position=record.position,
            width=record.width,
            depth=record.depth,
            rotation=record.rotation,
            height=record.height,
            roof_type=RoofType(record.roof_type),
            vertices=tuple(tuple(v) for v in vertices),
            block_id=record.block_id,
        )


class BlockFillingOptions(BaseModel):
    """Block filling parameters."""

    min_block_area: float = Field(default=100.0, ge=0, description="Smallest usable block area")
    max_block_area: float = Field(default=3000.0, gt=0, description="Largest usable block area")
    max_face_area: float = Field(
        default=4000.0, gt=0, description="Faces above this area are treated as boundary artifacts"
    )
    street_margin: float = Field(default=3.0, ge=0, description="Inset distance from streets")
    min_inset_area: float = Field(default=40.0, ge=0, description="Smallest usable inset area")
    building_spacing: float = Field(default=2.0, ge=0, description="Minimum gap between buildings")
    average_building_size: float = Field(
        default=120.0, gt=0, description="Average footprint area used for target counts"
    )
    attempts_per_building: int = Field(
        default=10, ge=1, description="Placement attempts per targeted building"
    )
    axis_aligned_probability: float = Field(
        default=0.8, ge=0, le=1, description="Chance a building is axis-aligned"
    )
    size_jitter: float = Field(
        default=0.2, ge=0, lt=1, description="Relative width/depth variation"
    )
    building_weights: Dict[BuildingType, float] = Field(
        default_factory=lambda: dict(DEFAULT_BUILDING_WEIGHTS),
        description="Weighted building type selection",
    )


class BlockFiller:
    """Places buildings in the blocks of a street graph."""

    def __init__(self, options: Optional[BlockFillingOptions] = None) -> None:
        self.options = options or BlockFillingOptions()

    def generate(
        self, graph: StreetGraph, params: SettlementParams, prng: AleaPRNG
    ) -> List[Building]:
        """
        Fill every usable block of a street graph with buildings.

        Args:
            graph: Completed street graph
            params: Settlement type parameters (density and building range)
            prng: Settlement PRNG, shared with street growth

        Returns:
            Buildings in placement order with ids starting at 1
        """
        options = self.options
        faces = graph.find_faces(max_area=options.max_face_area)
        if not faces:
            logger.warning("No blocks found in street graph, no buildings placed")
            return []

        buildings: List[Building] = []
        used_blocks = 0

        for block_id, face in enumerate(faces):
            block = graph.face_polygon(face)
            if len(block) < 3:
                continue

            area = polygon_area(block)
            if area < options.min_block_area or area > options.max_block_area:
                logger.debug(f"Skipping block {block_id} with area {area:.1f}")
                continue

            inset = inset_polygon(block, options.street_margin)
            if len(inset) < 3:
                continue
            inset_area = polygon_area(inset)
            if inset_area < options.min_inset_area:
                continue

            target = self.calculate_building_count(inset_area, params)
            placed = self.place_buildings(
                inset, target, prng, start_id=len(buildings) + 1, block_id=block_id
            )
            logger.debug(f"Block {block_id}: placed {len(placed)}/{target} buildings")

            buildings.extend(placed)
            used_blocks += 1

        logger.info(
            f"Placed {len(buildings)} buildings in {used_blocks} of {len(faces)} blocks"
        )
        return buildings

    def calculate_building_count(self, area: float, params: SettlementParams) -> int:
        """
        Target building count for one block.

        The settlement-wide building range is split across an assumed 5 to 10
        blocks and the density estimate is clamped into that per-block range.
        """
        per_block_min = max(1, math.floor(params.min_buildings / 10))
        per_block_max = max(per_block_min, math.ceil(params.max_buildings / 5))
        fit = math.floor(area * params.building_density / self.options.average_building_size)
        return max(per_block_min, min(per_block_max, fit))

    def place_buildings(
        self,
        block: Sequence[Tuple[float, float]],
        count: int,
        prng: AleaPRNG,
        start_id: int = 1,
        block_id: Optional[int] = None,
    ) -> List[Building]:
        """
        Place up to ``count`` buildings inside a polygon by rejection sampling.

        Args:
            block: Inset block polygon
            count: Target number of buildings
            prng: Random stream
            start_id: ID of the first placed building
            block_id: Source block index stored on each building

        Returns:
            Accepted buildings; fewer than ``count`` when attempts run out
        """
        options = self.options
        bounds = polygon_bounds(block)
        if bounds is None or count <= 0:
            return []

        buildings: List[Building] = []
        placed_boxes: List[BoundingBox] = []
        max_attempts = count * options.attempts_per_building
        attempts = 0

        while len(buildings) < count and attempts < max_attempts:
            attempts += 1

            x = prng.range(bounds.min_x, bounds.max_x)
            y = prng.range(bounds.min_y, bounds.max_y)
            building_type = self.random_building_type(prng)
            defaults = BUILDING_DEFAULTS[building_type]

            jitter = options.size_jitter
            width = defaults.width * prng.range(1 - jitter, 1 + jitter)
            depth = defaults.depth * prng.range(1 - jitter, 1 + jitter)

            if prng.random() < options.axis_aligned_probability:
                rotation = math.floor(prng.random() * 4) * (math.pi / 2)
            else:
                rotation = math.floor(prng.random() * 8) * (math.pi / 4)

            building = Building.from_footprint(
                start_id + len(buildings), building_type, (x, y), width, depth, rotation,
                block_id=block_id,
            )

            if not self.building_fits_in_block(building, block):
                continue
            if self.overlaps_existing(building, placed_boxes):
                continue

            buildings.append(building)
            placed_boxes.append(building.bounds().padded(options.building_spacing))

        return buildings

    def random_building_type(self, prng: AleaPRNG) -> BuildingType:
        return prng.weighted_choice(self.options.building_weights)

    def building_fits_in_block(self, building: Building, block: Sequence[Tuple[float, float]]) -> bool:
        """All four corners must lie inside the block polygon."""
        return all(point_in_polygon(vertex, block) for vertex in building.vertices)

    def overlaps_existing(self, building: Building, placed_boxes: Sequence[BoundingBox]) -> bool:
        """Whether the padded footprint box overlaps any already padded box."""
        box = building.bounds().padded(self.options.building_spacing)
        return any(box.overlaps(other) for other in placed_boxes)
