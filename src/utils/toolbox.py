"""Random helpers used by the selection heuristics."""

import random
from typing import Any, Collection, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def make_rng(seed: Optional[int] = None) -> random.Random:
    return random.Random(seed)


def random_choice(rng: random.Random, items: Collection[T]) -> Optional[T]:
    """Pick one element uniformly; ``None`` for an empty collection."""
    if not items:
        return None
    if isinstance(items, Sequence):
        return items[rng.randrange(len(items))]
    return list(items)[rng.randrange(len(items))]


def roulette(rng: random.Random, items: Sequence[T], weights: Sequence[int]) -> Optional[T]:
    """Roulette-wheel selection over integer weights.

    Falls back to a uniform pick when every weight is zero.
    """
    if not items:
        return None
    total = sum(weights)
    if total <= 0:
        return random_choice(rng, items)
    points = rng.randrange(total)
    cumulative = 0
    for item, weight in zip(items, weights):
        cumulative += weight
        if cumulative > points:
            return item
    return items[-1]


def dict_to_string(info: dict, indent: int = 1) -> str:
    pad = "  " * indent
    lines: List[str] = []
    for key in sorted(info):
        value: Any = info[key]
        lines.append(f"{pad}{key}: {value}")
    return "\n" + "\n".join(lines)
