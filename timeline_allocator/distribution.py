from __future__ import annotations

from typing import Iterable, List, Sequence


def normalize_weights(seq: Iterable[float]) -> List[float]:
    values = [float(x) for x in seq]
    if not values:
        raise ValueError("weights must contain at least one value")
    if any(v < 0 for v in values):
        raise ValueError("weights must be non-negative")
    total = sum(values)
    if total <= 0:
        raise ValueError("weights must sum to a positive number")
    return [v / total for v in values]


def uniform_weights(size: int) -> List[float]:
    if size <= 0:
        raise ValueError("uniform weight count must be positive")
    weight = 1.0 / size
    return [weight] * size


def distribute(total: float, weights: Sequence[float]) -> List[float]:
    """Split ``total`` proportionally to ``weights``.

    The last share absorbs the floating-point remainder so the shares always sum
    back to ``total``.
    """
    if total < 0:
        raise ValueError("cannot distribute a negative total")
    normalized = normalize_weights(weights)
    shares = [total * weight for weight in normalized]
    shares[-1] = max(0.0, total - sum(shares[:-1]))
    return shares


def spread_evenly(total: float, buckets: int) -> List[float]:
    return distribute(total, uniform_weights(buckets))
