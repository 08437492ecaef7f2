"""
Core settlement layout functionality.
"""

from .alea_prng import AleaPRNG
from .street_graph import EdgeType, NodeType, StreetEdge, StreetGraph, StreetNode
from .street_growth import RoadCrossing, SettlementSite, StreetGrowth, StreetGrowthOptions
from .block_filling import BlockFiller, BlockFillingOptions, Building, BuildingType, RoofType

__all__ = ['AleaPRNG', 'EdgeType', 'NodeType', 'StreetEdge', 'StreetGraph', 'StreetNode',
           'RoadCrossing', 'SettlementSite', 'StreetGrowth', 'StreetGrowthOptions',
           'BlockFiller', 'BlockFillingOptions', 'Building', 'BuildingType', 'RoofType']
