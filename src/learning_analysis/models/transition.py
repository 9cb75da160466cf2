"""
Transition models for attribute profiles between consecutive time points.

All models evaluate log P(alpha(t+1) | alpha(t)) for every subject at once.
There is no transition term out of the final time point, so callers only
evaluate t = 0 .. T - 2.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

import numpy as np
from numpy.typing import NDArray

from learning_analysis.core.codec import class_index
from learning_analysis.core.exceptions import DimensionMismatchError
from learning_analysis.core.utils import logistic, safe_log


@dataclass(frozen=True)
class HigherOrderParameters:
    """
    Attributes:
        lambdas: Learning-rate coefficients, shape (L,).
        thetas: Subject learning abilities, shape (N,).
    """

    lambdas: NDArray[np.float64]
    thetas: NDArray[np.float64]


@dataclass(frozen=True)
class IndependentParameters:
    """Skill acquisition probabilities tau, shape (K,)."""

    taus: NDArray[np.float64]


@dataclass(frozen=True)
class FirstOrderParameters:
    """Class transition matrix omega, shape (2^K, 2^K)."""

    omega: NDArray[np.float64]


TransitionParameters = (
    HigherOrderParameters | IndependentParameters | FirstOrderParameters
)


def profile_transition_log_prob(
    acquire: NDArray[np.float64],
    prev: NDArray[np.floating],
    post: NDArray[np.floating],
) -> NDArray[np.float64]:
    """
    Log-probability of moving from prev to post given acquisition rates.

    Mastered skills are kept with probability 1, so losing a skill has
    probability 0.

    Args:
        acquire: P(skill k acquired | not yet mastered), shape (n, K).
        prev: Profiles at time t, shape (n, K).
        post: Profiles at time t + 1, shape (n, K).

    Returns:
        Array of shape (n,).
    """
    p_mastered = np.where(prev == 1, 1.0, acquire)
    probs = np.where(post == 1, p_mastered, 1.0 - p_mastered)
    result: NDArray[np.float64] = np.sum(safe_log(probs), axis=-1)
    return result


P = TypeVar("P", bound=TransitionParameters)


class TransitionModel(ABC, Generic[P]):
    """Abstract base class for transition models."""

    @abstractmethod
    def log_prob_batch(
        self,
        prev: NDArray[np.integer],
        post: NDArray[np.integer],
        t: int,
        params: P,
    ) -> NDArray[np.float64]:
        """
        Transition log-probability for every subject.

        Args:
            prev: Profiles of all subjects at time t, shape (N, K).
            post: Profiles of all subjects at time t + 1, shape (N, K).
            t: 0-based time index of prev.
            params: Transition parameters for one draw.

        Returns:
            Array of shape (N,).
        """
        ...

    def log_likelihood(
        self,
        alphas: NDArray[np.integer],
        params: P,
    ) -> float:
        """
        Total transition log-likelihood of all subjects' trajectories.

        Args:
            alphas: Profiles, shape (N, K, T).
            params: Transition parameters for one draw.

        Returns:
            Sum over subjects and t = 0 .. T - 2.
        """
        total = 0.0
        for t in range(alphas.shape[2] - 1):
            total += float(
                np.sum(
                    self.log_prob_batch(
                        alphas[:, :, t], alphas[:, :, t + 1], t, params
                    )
                )
            )
        return total


class HigherOrderTransition(TransitionModel[HigherOrderParameters]):
    """
    Higher-order learning model driven by a latent learning ability.

    For a skill not yet mastered,
        logit P(alpha_ik(t+1) = 1) = lambda . x_ik(t)
    with covariates
        separate speed: x = (1, theta_i, sum_k alpha_ik(t), practice_ik(t))
        joint speed:    x = (1, theta_i, practice_ik(t))
    where practice_ik(t) counts items administered through time t that
    require skill k. A skill that no administered item has required yet
    cannot be acquired.
    """

    def __init__(
        self,
        q_examinee: NDArray[np.floating],
        n_items_per_block: int,
        include_profile_total: bool,
    ) -> None:
        """
        Args:
            q_examinee: Per-subject Q-matrix of administered items in order,
                shape (N, T * Jt, K).
            n_items_per_block: Items per block Jt.
            include_profile_total: Whether the number of mastered skills
                is a covariate (separate-speed variant).
        """
        q_examinee = np.asarray(q_examinee, dtype=np.float64)
        n_subjects, n_rows, n_skills = q_examinee.shape
        if n_rows % n_items_per_block != 0:
            raise DimensionMismatchError(
                f"q_examinee has {n_rows} rows, not a multiple of "
                f"{n_items_per_block} items per block"
            )
        n_times = n_rows // n_items_per_block
        per_time = q_examinee.reshape(
            n_subjects, n_times, n_items_per_block, n_skills
        ).sum(axis=2)
        # practice[i, k, t]: items requiring k administered at times 0..t
        self.practice = np.cumsum(per_time, axis=1).transpose(0, 2, 1)
        self.include_profile_total = include_profile_total

    @property
    def n_lambdas(self) -> int:
        return 4 if self.include_profile_total else 3

    def acquisition_probabilities(
        self,
        prev: NDArray[np.integer],
        t: int,
        params: HigherOrderParameters,
    ) -> NDArray[np.float64]:
        """P(acquire skill k by t + 1 | not mastered at t), shape (N, K)."""
        lambdas = params.lambdas
        if lambdas.shape[0] < self.n_lambdas:
            raise DimensionMismatchError(
                f"Expected {self.n_lambdas} lambdas, got {lambdas.shape[0]}"
            )
        practice = self.practice[:, :, t]  # (N, K)
        thetas = np.asarray(params.thetas, dtype=np.float64)[:, np.newaxis]
        logit = lambdas[0] + lambdas[1] * thetas
        if self.include_profile_total:
            total = np.sum(prev, axis=1, keepdims=True)
            logit = logit + lambdas[2] * total + lambdas[3] * practice
        else:
            logit = logit + lambdas[2] * practice
        acquire = logistic(np.broadcast_to(logit, practice.shape))
        result: NDArray[np.float64] = np.where(practice > 0, acquire, 0.0)
        return result

    def log_prob_batch(
        self,
        prev: NDArray[np.integer],
        post: NDArray[np.integer],
        t: int,
        params: HigherOrderParameters,
    ) -> NDArray[np.float64]:
        acquire = self.acquisition_probabilities(prev, t, params)
        return profile_transition_log_prob(acquire, prev, post)


class IndependentTransition(TransitionModel[IndependentParameters]):
    """
    Skill-wise independent learning constrained by a skill hierarchy.

    A skill not yet mastered is acquired with probability tau_k, but only
    when every prerequisite of k was already mastered at time t.
    """

    def __init__(self, reachability: NDArray[np.floating]) -> None:
        """
        Args:
            reachability: Array of shape (K, K). Entry (k', k) = 1 means
                skill k' is a prerequisite of skill k. The diagonal is
                ignored.
        """
        prerequisites = np.asarray(reachability, dtype=np.float64) > 0
        np.fill_diagonal(prerequisites, False)
        self.prerequisites = prerequisites

    def log_prob_batch(
        self,
        prev: NDArray[np.integer],
        post: NDArray[np.integer],
        t: int,
        params: IndependentParameters,
    ) -> NDArray[np.float64]:
        prev = np.asarray(prev)
        # Number of unmet prerequisites of each skill, shape (N, K)
        unmet = (1 - prev).astype(np.int64) @ self.prerequisites.astype(
            np.int64
        )
        acquire = np.where(unmet == 0, params.taus[np.newaxis, :], 0.0)
        return profile_transition_log_prob(acquire, prev, post)


class FirstOrderTransition(TransitionModel[FirstOrderParameters]):
    """First-order hidden Markov model over latent classes."""

    def log_prob_batch(
        self,
        prev: NDArray[np.integer],
        post: NDArray[np.integer],
        t: int,
        params: FirstOrderParameters,
    ) -> NDArray[np.float64]:
        class_prev = class_index(prev)
        class_post = class_index(post)
        return safe_log(params.omega[class_prev, class_post])
