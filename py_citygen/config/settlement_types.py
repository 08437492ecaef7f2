"""
Settlement type parameters.

This module defines the per-type parameters that drive street and building
density, along with how many rings of world tiles each type occupies.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field, model_validator


class SettlementType(str, Enum):
    """Settlement categories a layout can be generated for."""

    VILLAGE = "village"
    TOWN = "town"
    CITY = "city"
    CAPITAL = "capital"
    PORT = "port"


class SettlementParams(BaseModel):
    """Layout parameters for one settlement type."""

    street_density: float = Field(default=0.3, ge=0, le=1, description="Relative street density")
    building_density: float = Field(
        default=0.4, ge=0, description="Share of block area intended for buildings"
    )
    has_walls: bool = Field(default=False, description="Whether the settlement is walled")
    has_districts: bool = Field(default=False, description="Whether the settlement has districts")
    has_docks: bool = Field(default=False, description="Whether the settlement has docks")
    min_buildings: int = Field(default=5, ge=0, description="Minimum buildings in the settlement")
    max_buildings: int = Field(default=20, ge=0, description="Maximum buildings in the settlement")

    @model_validator(mode="after")
    def check_building_range(self) -> "SettlementParams":
        if self.max_buildings < self.min_buildings:
            raise ValueError("max_buildings must not be below min_buildings")
        return self


SETTLEMENT_PARAMS: Dict[SettlementType, SettlementParams] = {
    SettlementType.VILLAGE: SettlementParams(
        street_density=0.3, building_density=0.4, min_buildings=5, max_buildings=20
    ),
    SettlementType.TOWN: SettlementParams(
        street_density=0.5,
        building_density=0.6,
        has_districts=True,
        min_buildings=20,
        max_buildings=60,
    ),
    SettlementType.CITY: SettlementParams(
        street_density=0.7,
        building_density=0.75,
        has_walls=True,
        has_districts=True,
        min_buildings=60,
        max_buildings=150,
    ),
    SettlementType.CAPITAL: SettlementParams(
        street_density=0.8,
        building_density=0.85,
        has_walls=True,
        has_districts=True,
        min_buildings=100,
        max_buildings=300,
    ),
    SettlementType.PORT: SettlementParams(
        street_density=0.6,
        building_density=0.65,
        has_walls=True,
        has_districts=True,
        has_docks=True,
        min_buildings=40,
        max_buildings=120,
    ),
}

# Rings of neighbouring world tiles a settlement spreads over (0 = own tile only)
TILE_OCCUPATION: Dict[SettlementType, int] = {
    SettlementType.VILLAGE: 0,
    SettlementType.TOWN: 1,
    SettlementType.CITY: 1,
    SettlementType.CAPITAL: 2,
    SettlementType.PORT: 1,
}


def get_settlement_params(settlement_type) -> SettlementParams:
    """
    Get the layout parameters for a settlement type.

    Args:
        settlement_type: SettlementType or its string value

    Returns:
        A copy of the type's parameters; unknown types get village parameters
    """
    try:
        key = SettlementType(settlement_type)
    except ValueError:
        key = SettlementType.VILLAGE
    return SETTLEMENT_PARAMS[key].model_copy()


def get_tile_occupation(settlement_type) -> int:
    """Occupation ring count for a settlement type (0 for unknown types)."""
    try:
        return TILE_OCCUPATION[SettlementType(settlement_type)]
    except ValueError:
        return 0
