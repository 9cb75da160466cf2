"""
Decoding of posterior trajectory draws into attribute-profile estimates.

A trajectory code has K * T bits; bit t * K + k is skill k at time t.
Decoded trajectories are returned as alphas of shape (N, K, T).
"""

import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray

from learning_analysis.core.codec import decode_trajectories
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import DecodingMethod
from learning_analysis.core.exceptions import EmptyDrawSetError

logger = logging.getLogger(__name__)

EAP_THRESHOLD = 0.5


def most_frequent_code(codes: ArrayLike) -> float:
    """
    Most frequent value among one subject's trajectory codes.

    Ties go to the smallest code.
    """
    values, counts = np.unique(np.asarray(codes), return_counts=True)
    # argmax returns the first maximum of the sorted unique values
    return float(values[np.argmax(counts)])


def decode_eap(
    trajectories: NDArray[np.floating], n_skills: int, n_times: int
) -> NDArray[np.int8]:
    """
    Pointwise-majority decoding.

    Each (subject, skill, time) coordinate is 1 when the share of draws
    with that bit set strictly exceeds one half. The result need not be
    a trajectory that appears in any draw.

    Args:
        trajectories: Trajectory codes, shape (N, n_its).
        n_skills: Number of skills K.
        n_times: Number of time points T.

    Returns:
        Array of shape (N, K, T).
    """
    n_subjects, n_its = trajectories.shape
    if n_its == 0:
        raise EmptyDrawSetError()

    totals = np.zeros((n_subjects, n_skills, n_times), dtype=np.int64)
    for it in range(n_its):
        totals += decode_trajectories(trajectories[:, it], n_skills, n_times)
    result: NDArray[np.int8] = (totals / n_its > EAP_THRESHOLD).astype(
        np.int8
    )
    return result


def decode_map(
    trajectories: NDArray[np.floating], n_skills: int, n_times: int
) -> NDArray[np.int8]:
    """
    Joint-mode decoding: each subject's most frequent trajectory code.

    Args:
        trajectories: Trajectory codes, shape (N, n_its).
        n_skills: Number of skills K.
        n_times: Number of time points T.

    Returns:
        Array of shape (N, K, T).
    """
    if trajectories.shape[1] == 0:
        raise EmptyDrawSetError()
    modes = np.array([most_frequent_code(row) for row in trajectories])
    return decode_trajectories(modes, n_skills, n_times)


def estimate_trajectories(
    draws: DrawSet,
    n_skills: int,
    n_times: int,
    method: DecodingMethod | str = DecodingMethod.EAP,
) -> NDArray[np.int8]:
    """
    Point estimate of every subject's trajectory.

    Raises:
        EmptyDrawSetError: If the draw set holds no draws.
    """
    method = DecodingMethod(method)
    logger.debug(
        "Decoding %d trajectories from %d draws (%s)",
        draws.n_subjects,
        draws.n_its,
        method.value,
    )
    if method == DecodingMethod.MAP:
        return decode_map(draws.trajectories, n_skills, n_times)
    return decode_eap(draws.trajectories, n_skills, n_times)
