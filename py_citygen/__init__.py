"""
Procedural street and building layouts for settlements on a world map.
"""

from .core import (
    BlockFiller,
    Building,
    StreetGraph,
    StreetGrowth,
)
from .core.settlement_plan import (
    SettlementPlan,
    SettlementPlanner,
    SettlementRequest,
    World,
    WorldTile,
)

__version__ = "0.1.0"

__all__ = ['BlockFiller', 'Building', 'StreetGraph', 'StreetGrowth',
           'SettlementPlan', 'SettlementPlanner', 'SettlementRequest', 'World', 'WorldTile']
