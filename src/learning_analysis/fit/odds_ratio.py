"""
Item-pair odds ratios of binary response matrices.

For items j and j' with joint counts n_ab (a = response to j, b = response
to j'), the odds ratio is

    OR = (n00 * n11) / (n01 * n10)

An empty cell gives +inf or NaN, which is returned as is.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

from learning_analysis.core.exceptions import DimensionMismatchError


def odds_ratio(y1: ArrayLike, y2: ArrayLike) -> float:
    """
    Odds ratio of two binary response vectors.

    Subjects missing (NaN) on either item are ignored.
    """
    a = np.asarray(y1, dtype=np.float64)
    b = np.asarray(y2, dtype=np.float64)
    if a.shape != b.shape:
        raise DimensionMismatchError(
            f"Response vectors differ in shape: {a.shape} vs {b.shape}"
        )
    both = ~np.isnan(a) & ~np.isnan(b)
    a, b = a[both], b[both]

    n00 = np.float64(np.sum((a == 0) & (b == 0)))
    n01 = np.float64(np.sum((a == 0) & (b == 1)))
    n10 = np.float64(np.sum((a == 1) & (b == 0)))
    n11 = np.float64(np.sum((a == 1) & (b == 1)))

    with np.errstate(divide="ignore", invalid="ignore"):
        return float((n00 * n11) / (n01 * n10))


def odds_ratio_matrix(responses: ArrayLike) -> NDArray[np.float64]:
    """
    Odds ratios of every pair of items.

    Args:
        responses: Binary responses of shape (N, J), NaN where a subject
            did not see the item.

    Returns:
        Symmetric array of shape (J, J) with a NaN diagonal.
    """
    y = np.asarray(responses, dtype=np.float64)
    if y.ndim != 2:
        raise DimensionMismatchError(
            f"responses must be 2D (N, J), got shape {y.shape}"
        )
    observed = ~np.isnan(y)
    ones = np.where(observed, y, 0.0)
    zeros = np.where(observed, 1.0 - y, 0.0)

    # Joint counts over subjects observed on both items of each pair
    n11 = ones.T @ ones
    n00 = zeros.T @ zeros
    n10 = ones.T @ zeros
    n01 = zeros.T @ ones

    with np.errstate(divide="ignore", invalid="ignore"):
        result: NDArray[np.float64] = (n00 * n11) / (n01 * n10)
    np.fill_diagonal(result, np.nan)
    return result
