"""
Random number generation utilities.

Every settlement gets its own Alea stream seeded from the world seed and the
settlement identifier. Python's random and NumPy's random should not be used
in layout code.
"""

from ..core.alea_prng import AleaPRNG


def derive_settlement_seed(world_seed: str, settlement_id) -> str:
    """
    Build the deterministic seed string for one settlement.

    Args:
        world_seed: The world's base seed
        settlement_id: Settlement (point of interest) identifier

    Returns:
        Seed string unique to the (world, settlement) pair
    """
    return f"city-{world_seed}-poi{settlement_id}"


def create_settlement_prng(world_seed: str, settlement_id) -> AleaPRNG:
    """
    Create a fresh Alea PRNG for a settlement.

    Returns:
        AleaPRNG instance positioned at the start of the settlement's stream
    """
    return AleaPRNG(derive_settlement_seed(world_seed, settlement_id))
