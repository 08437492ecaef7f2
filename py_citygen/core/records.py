"""
Plain record models for persisting generated settlement layouts.

Records carry node/edge lists, building lists and the identifier counters so
a layout can be written out (``model_dump_json``) and restored without
regenerating it.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..config.settlement_types import SettlementParams


class NodeRecord(BaseModel):
    """Serialized street node."""

    id: int = Field(description="Node identifier")
    position: Tuple[float, float] = Field(description="Node position [x, y]")
    type: str = Field(default="main", description="Node type")
    degree: int = Field(default=0, description="Degree at save time")


class EdgeRecord(BaseModel):
    """Serialized street edge."""

    id: int = Field(description="Edge identifier")
    node_a: int = Field(description="First endpoint node ID")
    node_b: int = Field(description="Second endpoint node ID")
    type: str = Field(default="main", description="Edge type")
    width: Optional[float] = Field(default=None, description="Street width")


class GraphRecord(BaseModel):
    """Serialized street graph."""

    nodes: List[NodeRecord] = Field(default_factory=list)
    edges: List[EdgeRecord] = Field(default_factory=list)
    next_node_id: int = Field(default=1, description="Next node ID to assign")
    next_edge_id: int = Field(default=1, description="Next edge ID to assign")


class BuildingRecord(BaseModel):
    """Serialized building footprint."""

    id: int
    type: str = "house"
    position: Tuple[float, float]
    width: float
    depth: float
    rotation: float = 0.0
    height: float = 1.0
    roof_type: str = "flat"
    vertices: List[Tuple[float, float]] = Field(default_factory=list)
    block_id: Optional[int] = None


class SettlementRecord(BaseModel):
    """Serialized settlement plan with its generated content."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = "Unknown"
    type: str = "village"
    seed: str = ""
    center: Tuple[float, float] = (0.0, 0.0)
    boundary: List[Tuple[float, float]] = Field(default_factory=list)
    occupied_tile_ids: List[int] = Field(default_factory=list)
    params: Optional[SettlementParams] = Field(
        default=None, description="Layout parameters, type defaults when missing"
    )
    streets: Optional[GraphRecord] = None
    buildings: List[BuildingRecord] = Field(default_factory=list)
    streets_generated: bool = False
    buildings_generated: bool = False
