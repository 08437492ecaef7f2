"""
Configuration for settlement layout generation.
"""

from .config import Settings, configure_logging, settings
from .settlement_types import (
    SETTLEMENT_PARAMS,
    TILE_OCCUPATION,
    SettlementParams,
    SettlementType,
    get_settlement_params,
    get_tile_occupation,
)

__all__ = ['Settings', 'configure_logging', 'settings',
           'SETTLEMENT_PARAMS', 'TILE_OCCUPATION', 'SettlementParams', 'SettlementType',
           'get_settlement_params', 'get_tile_occupation']
