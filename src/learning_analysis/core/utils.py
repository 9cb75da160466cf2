"""
Core numerical utilities shared by the model and fit modules.
"""

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

# Exponent clipping bounds to prevent overflow
EXPONENT_CLIP_MIN = -30.0
EXPONENT_CLIP_MAX = 30.0


def get_rng(seed: int | np.random.SeedSequence | None = None) -> Generator:
    """
    Create a numpy random Generator with optional seed.

    Args:
        seed: Random seed or seed sequence for reproducibility. If None,
            uses entropy.

    Returns:
        A numpy random Generator instance.
    """
    return np.random.default_rng(seed)


def spawn_rngs(seed: int | None, n_streams: int) -> list[Generator]:
    """
    Split one seed into independent random streams.

    Stream i depends only on the seed and on i, so work assigned to
    stream i is reproducible whatever order (or worker) it runs in.

    Args:
        seed: Root seed. If None, uses entropy.
        n_streams: Number of streams to create.

    Returns:
        List of n_streams Generator instances.
    """
    children = np.random.SeedSequence(seed).spawn(n_streams)
    return [get_rng(child) for child in children]


def logistic(x: NDArray[np.floating]) -> NDArray[np.float64]:
    """Numerically stable logistic function."""
    clipped = np.clip(x, EXPONENT_CLIP_MIN, EXPONENT_CLIP_MAX)
    result: NDArray[np.float64] = 1.0 / (1.0 + np.exp(-clipped))
    return result


def safe_log(probs: NDArray[np.floating]) -> NDArray[np.float64]:
    """
    Elementwise log that maps non-positive (or NaN) probabilities to -inf.

    Args:
        probs: Array of probabilities or densities.

    Returns:
        Array of the same shape with log values.
    """
    probs = np.asarray(probs, dtype=np.float64)
    positive = probs > 0
    result: NDArray[np.float64] = np.full(probs.shape, -np.inf)
    result[positive] = np.log(probs[positive])
    return result
