"""
Random number generation utilities.

All sampling code draws from a NumPy ``Generator`` so that a whole game can be
replayed from a single seed. Python's ``random`` module is not used.
"""

from typing import Optional

import numpy as np

from ..config import settings

# Global generator instance
_rng = None


def set_random_seed(seed: Optional[int]) -> None:
    """
    Reset the shared generator.

    Args:
        seed: Integer seed, or None for fresh OS entropy
    """
    global _rng
    _rng = np.random.default_rng(seed)


def get_rng() -> np.random.Generator:
    """
    Get the shared generator, creating it from ``settings.random_seed`` on first use.

    Returns:
        numpy Generator instance
    """
    global _rng
    if _rng is None:
        _rng = np.random.default_rng(settings.random_seed)
    return _rng


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Return a dedicated generator for one session, or the shared one when unseeded."""
    if seed is None:
        return get_rng()
    return np.random.default_rng(seed)
