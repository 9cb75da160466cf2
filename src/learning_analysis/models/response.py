"""
Item-response models for binary responses given attribute profiles.

Every model reduces to an item success probability
    p_ij = P(Y_ij = 1 | alpha_i, block_i, item parameters)
from which the log-likelihood and simulated responses follow:
    log P(Y_i) = sum_j log(y_ij * p_ij + (1 - y_ij) * (1 - p_ij))

Item parameters for the DINA and rRUM models are stacked by block:
rows b*Jt .. (b+1)*Jt - 1 belong to block b.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

from learning_analysis.core.codec import class_index, decode_many
from learning_analysis.core.utils import safe_log


def ideal_response_table(q_matrix: NDArray[np.floating]) -> NDArray[np.int8]:
    """
    Ideal (noise-free) responses of every latent class to every item.

    Args:
        q_matrix: Binary Q-matrix of shape (Jt, K).

    Returns:
        Array of shape (Jt, 2^K). Entry (j, c) is 1 if class c masters
        every skill item j requires.
    """
    q = np.asarray(q_matrix, dtype=np.int64)
    n_skills = q.shape[1]
    profiles = decode_many(np.arange(2**n_skills), n_skills).astype(np.int64)
    # Item j is answered ideally when no required skill is missing
    missing = q @ (1 - profiles).T  # (Jt, 2^K)
    result: NDArray[np.int8] = (missing == 0).astype(np.int8)
    return result


def build_eta_cube(q_matrices: NDArray[np.floating]) -> NDArray[np.int8]:
    """
    Ideal response tables for all blocks, computed once.

    Args:
        q_matrices: Array of shape (B, Jt, K).

    Returns:
        Array of shape (B, Jt, 2^K).
    """
    return np.stack([ideal_response_table(q) for q in q_matrices])


def bernoulli_log_likelihood(
    probs: NDArray[np.float64], responses: NDArray[np.floating]
) -> NDArray[np.float64]:
    """
    Row-wise log-likelihood of binary responses.

    Args:
        probs: Success probabilities, shape (n, J).
        responses: Observed 0/1 responses, shape (n, J).

    Returns:
        Array of shape (n,). Items with a non-positive implied probability
        contribute -inf.
    """
    with np.errstate(invalid="ignore"):
        item_probs = responses * probs + (1.0 - responses) * (1.0 - probs)
    result: NDArray[np.float64] = np.sum(safe_log(item_probs), axis=-1)
    return result


@dataclass(frozen=True)
class DINAParameters:
    """Item slip and guess parameters, each of shape (B * Jt,)."""

    slip: NDArray[np.float64]
    guess: NDArray[np.float64]


@dataclass(frozen=True)
class RRUMParameters:
    """
    rRUM item parameters.

    Attributes:
        r_star: Penalties for each missing required skill, shape (B * Jt, K).
        pi_star: Success probability given full mastery, shape (B * Jt,).
    """

    r_star: NDArray[np.float64]
    pi_star: NDArray[np.float64]


@dataclass(frozen=True)
class NIDAParameters:
    """Skill-level slip and guess parameters, each of shape (K,)."""

    slip: NDArray[np.float64]
    guess: NDArray[np.float64]


ItemParameters = DINAParameters | RRUMParameters | NIDAParameters


P = TypeVar("P", bound=ItemParameters)


class ItemResponseModel(ABC, Generic[P]):
    """Abstract base class for item-response models."""

    def __init__(self, q_matrices: NDArray[np.floating]) -> None:
        self.q_matrices = np.asarray(q_matrices, dtype=np.float64)

    @property
    def n_items_per_block(self) -> int:
        return self.q_matrices.shape[1]

    @abstractmethod
    def success_probabilities(
        self,
        profiles: NDArray[np.integer],
        blocks: NDArray[np.integer],
        params: P,
    ) -> NDArray[np.float64]:
        """
        Probability of a correct response to every item of the seen block.

        Args:
            profiles: Attribute profiles, shape (n, K).
            blocks: 0-based block seen by each profile, shape (n,).
            params: Item parameters for one draw.

        Returns:
            Array of shape (n, Jt).
        """
        ...

    def log_likelihood_batch(
        self,
        profiles: NDArray[np.integer],
        responses: NDArray[np.floating],
        blocks: NDArray[np.integer],
        params: P,
    ) -> NDArray[np.float64]:
        """
        Log-likelihood of each subject's responses to its block.

        Args:
            profiles: Attribute profiles, shape (n, K).
            responses: Observed responses, shape (n, Jt).
            blocks: 0-based block seen by each subject, shape (n,).
            params: Item parameters for one draw.

        Returns:
            Array of shape (n,).
        """
        probs = self.success_probabilities(profiles, blocks, params)
        return bernoulli_log_likelihood(probs, np.asarray(responses))

    def log_likelihood(
        self,
        profile: NDArray[np.integer],
        responses: NDArray[np.floating],
        block: int,
        params: P,
    ) -> float:
        """Log-likelihood of one subject's responses to one block."""
        result = self.log_likelihood_batch(
            np.asarray(profile)[np.newaxis, :],
            np.asarray(responses)[np.newaxis, :],
            np.array([block], dtype=np.int64),
            params,
        )
        return float(result[0])

    def simulate(
        self,
        profiles: NDArray[np.integer],
        blocks: NDArray[np.integer],
        params: P,
        rng: Generator,
    ) -> NDArray[np.int8]:
        """
        Sample item-wise Bernoulli responses.

        Consumes one uniform variate per (subject, item), in row-major order.

        Returns:
            Array of shape (n, Jt) with 0/1 responses.
        """
        probs = self.success_probabilities(profiles, blocks, params)
        u = rng.random(probs.shape)
        result: NDArray[np.int8] = (u < probs).astype(np.int8)
        return result

    def _block_rows(
        self, values: NDArray[np.float64], blocks: NDArray[np.integer]
    ) -> NDArray[np.float64]:
        """Select the block-stacked item rows of each subject's block."""
        n_items = self.n_items_per_block
        stacked = values.reshape(-1, n_items, *values.shape[1:])
        result: NDArray[np.float64] = stacked[np.asarray(blocks)]
        return result


class DINAModel(ItemResponseModel[DINAParameters]):
    """
    Deterministic-Input, Noisy-AND model.

        P(Y_ij = 1) = 1 - s_j   if alpha_i masters all skills of item j
                      g_j       otherwise
    """

    def __init__(
        self,
        q_matrices: NDArray[np.floating],
        eta: NDArray[np.integer] | None = None,
    ) -> None:
        super().__init__(q_matrices)
        self.eta = build_eta_cube(self.q_matrices) if eta is None else eta

    def success_probabilities(
        self,
        profiles: NDArray[np.integer],
        blocks: NDArray[np.integer],
        params: DINAParameters,
    ) -> NDArray[np.float64]:
        blocks = np.asarray(blocks, dtype=np.int64)
        classes = class_index(profiles)
        # eta[b_i, :, c_i] for each subject i
        eta = self.eta[blocks, :, classes]
        slip = self._block_rows(params.slip, blocks)
        guess = self._block_rows(params.guess, blocks)
        result: NDArray[np.float64] = eta * (1.0 - slip) + (1 - eta) * guess
        return result


class RRUMModel(ItemResponseModel[RRUMParameters]):
    """
    Reduced Reparameterized Unified Model.

        P(Y_ij = 1) = pi*_j * prod_k r*_jk ^ (q_jk * (1 - alpha_ik))
    """

    def success_probabilities(
        self,
        profiles: NDArray[np.integer],
        blocks: NDArray[np.integer],
        params: RRUMParameters,
    ) -> NDArray[np.float64]:
        blocks = np.asarray(blocks, dtype=np.int64)
        profiles = np.asarray(profiles, dtype=np.float64)
        q = self.q_matrices[blocks]  # (n, Jt, K)
        r_star = self._block_rows(params.r_star, blocks)  # (n, Jt, K)
        pi_star = self._block_rows(params.pi_star, blocks)  # (n, Jt)
        exponents = q * (1.0 - profiles[:, np.newaxis, :])
        with np.errstate(invalid="ignore", divide="ignore"):
            penalties = np.prod(r_star**exponents, axis=2)
        result: NDArray[np.float64] = pi_star * penalties
        return result


class NIDAModel(ItemResponseModel[NIDAParameters]):
    """
    Noisy Inputs, Deterministic-AND model.

    Slip and guess belong to skills, not items:
        P(Y_ij = 1) = prod_k [(1 - s_k)^alpha_ik * g_k^(1 - alpha_ik)]^q_jk
    """

    def success_probabilities(
        self,
        profiles: NDArray[np.integer],
        blocks: NDArray[np.integer],
        params: NIDAParameters,
    ) -> NDArray[np.float64]:
        blocks = np.asarray(blocks, dtype=np.int64)
        profiles = np.asarray(profiles, dtype=np.float64)
        q = self.q_matrices[blocks]  # (n, Jt, K)
        skill_probs = np.where(
            profiles == 1, 1.0 - params.slip, params.guess
        )  # (n, K)
        with np.errstate(invalid="ignore", divide="ignore"):
            result: NDArray[np.float64] = np.prod(
                skill_probs[:, np.newaxis, :] ** q, axis=2
            )
        return result
