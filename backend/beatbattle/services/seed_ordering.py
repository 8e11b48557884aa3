"""
Entrant ordering prior to pairing.

Two policies:
- "random": uniform Fisher-Yates shuffle driven by an injected random source.
- "seeded": ascending seed (1 = best); unseeded entrants follow in submission order.

standard_seed_positions() yields the classic bracket layout where seed s meets
seed (size + 1 - s) in round 1 and the top two seeds can only meet in the final.
"""
import random
from typing import Any, List, Optional, Sequence

from beatbattle.models.tournament import POLICY_RANDOM, POLICY_SEEDED
from beatbattle.services.errors import ConfigurationError

PAIRING_POLICIES = (POLICY_RANDOM, POLICY_SEEDED)

MIN_ENTRANTS = 2


def validate_policy(policy: str) -> str:
    if policy not in PAIRING_POLICIES:
        raise ConfigurationError(f"Unknown pairing policy '{policy}' (expected one of {', '.join(PAIRING_POLICIES)})")
    return policy


def validate_entrant_count(count: int) -> None:
    if count < MIN_ENTRANTS:
        raise ConfigurationError(f"At least {MIN_ENTRANTS} entrants are required, got {count}")


def _seed_key(indexed):
    index, entrant = indexed
    seed: Optional[int] = getattr(entrant, "seed", None)
    return (seed is None, seed if seed is not None else 0, index)


def order_entrants(entrants: Sequence[Any], policy: str, rng: Optional[random.Random] = None) -> List[Any]:
    """Return a new list of the entrants in pairing order. The input is not mutated."""
    validate_policy(policy)
    validate_entrant_count(len(entrants))

    if policy == POLICY_SEEDED:
        return [e for _, e in sorted(enumerate(entrants), key=_seed_key)]

    rng = rng or random.SystemRandom()
    ordered = list(entrants)
    # Fisher-Yates, high index down
    for i in range(len(ordered) - 1, 0, -1):
        j = rng.randint(0, i)
        ordered[i], ordered[j] = ordered[j], ordered[i]
    return ordered


def standard_seed_positions(size: int) -> List[int]:
    """
    Seeds in slot order for a power-of-two bracket.

    size=2 -> [1, 2]
    size=4 -> [1, 4, 2, 3]
    size=8 -> [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if size < 2 or size & (size - 1):
        raise ConfigurationError(f"Bracket size must be a power of two >= 2, got {size}")
    positions = [1, 2]
    while len(positions) < size:
        n = len(positions) * 2
        expanded: List[int] = []
        for seed in positions:
            expanded.extend((seed, n + 1 - seed))
        positions = expanded
    return positions
