"""
Log-normal response-time model with a fluency covariate.

    log L_ijt ~ Normal(gamma_j - tau_i - phi * G_ijt, 1 / a_j)

where gamma_j is the item time intensity, a_j the item time
discrimination (inverse residual standard deviation), tau_i the subject's
latent speed and phi the fluency slope. The covariate G_ijt is one of:

    1 (MASTERY):    ideal response eta_ijt (all required skills mastered)
    2 (PRACTICE):   number of earlier items, answerable with the subject's
                    mastered skills at the time, sharing a required skill
                    with item j
    3 (TIME_BLOCK): (t + 1) / T, the same for every subject and item
"""

from dataclasses import dataclass

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray
from scipy import stats

from learning_analysis.core.codec import class_index
from learning_analysis.core.data_models import TestDesign
from learning_analysis.core.enums import GVersion


@dataclass(frozen=True)
class ResponseTimeParameters:
    """
    Attributes:
        a: Item time discriminations, shape (B * Jt,).
        gamma: Item time intensities, shape (B * Jt,).
        taus: Subject latent speeds, shape (N,).
        phi: Fluency slope.
    """

    a: NDArray[np.float64]
    gamma: NDArray[np.float64]
    taus: NDArray[np.float64]
    phi: float


def item_incidence(q_matrices: NDArray[np.floating]) -> NDArray[np.int8]:
    """
    Whether two items share at least one required skill.

    Args:
        q_matrices: Array of shape (B, Jt, K).

    Returns:
        Array of shape (B, B, Jt, Jt). Entry (b, b', j, j') is 1 if item j
        of block b and item j' of block b' require a common skill.
    """
    q = np.asarray(q_matrices, dtype=np.float64)
    shared = np.einsum("bjk,cmk->bcjm", q, q)
    result: NDArray[np.int8] = (shared > 0).astype(np.int8)
    return result


class LogNormalResponseTimeModel:
    """Response-time model evaluated one time point at a time."""

    def __init__(
        self,
        eta: NDArray[np.integer],
        q_matrices: NDArray[np.floating],
        design: TestDesign,
        g_version: GVersion,
    ) -> None:
        """
        Args:
            eta: Ideal response tables, shape (B, Jt, 2^K).
            q_matrices: Q-matrices, shape (B, Jt, K).
            design: Block administration design.
            g_version: Which fluency covariate to use.
        """
        self.eta = eta
        self.design = design
        self.g_version = GVersion(g_version)
        self.n_items_per_block = eta.shape[1]
        self.incidence = (
            item_incidence(q_matrices)
            if self.g_version == GVersion.PRACTICE
            else None
        )

    def fluency_covariate(
        self, alphas: NDArray[np.integer], t: int
    ) -> NDArray[np.float64]:
        """
        Covariate G for every subject and item at time t.

        Args:
            alphas: Profiles of all subjects over all times, shape (N, K, T).
            t: 0-based time index.

        Returns:
            Array of shape (N, Jt).
        """
        n_subjects, _, n_times = alphas.shape
        blocks = self.design.blocks

        if self.g_version == GVersion.MASTERY:
            classes = class_index(alphas[:, :, t])
            result: NDArray[np.float64] = self.eta[
                blocks[:, t], :, classes
            ].astype(np.float64)
            return result

        if self.g_version == GVersion.TIME_BLOCK:
            return np.full(
                (n_subjects, self.n_items_per_block), (t + 1.0) / n_times
            )

        assert self.incidence is not None
        covariate = np.zeros((n_subjects, self.n_items_per_block))
        for prev_t in range(t):
            classes = class_index(alphas[:, :, prev_t])
            # Earlier items answerable with the skills mastered back then
            applied = self.eta[blocks[:, prev_t], :, classes]  # (N, Jt)
            shared = self.incidence[
                blocks[:, t], blocks[:, prev_t]
            ]  # (N, Jt, Jt)
            covariate += np.einsum("ijm,im->ij", shared, applied)
        return covariate

    def _means_and_scales(
        self,
        covariate: NDArray[np.float64],
        blocks: NDArray[np.integer],
        params: ResponseTimeParameters,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        n_items = self.n_items_per_block
        a = params.a.reshape(-1, n_items)[blocks]
        gamma = params.gamma.reshape(-1, n_items)[blocks]
        taus = np.asarray(params.taus, dtype=np.float64)[:, np.newaxis]
        means = gamma - taus - params.phi * covariate
        with np.errstate(divide="ignore"):
            scales = 1.0 / a
        return means, scales

    def log_density_batch(
        self,
        covariate: NDArray[np.float64],
        latencies: NDArray[np.floating],
        blocks: NDArray[np.integer],
        params: ResponseTimeParameters,
    ) -> NDArray[np.float64]:
        """
        Log-normal log-density of each subject's latencies at one time point.

        Args:
            covariate: Fluency covariate, shape (N, Jt).
            latencies: Observed response times, shape (N, Jt).
            blocks: 0-based block seen by each subject, shape (N,).
            params: Response-time parameters for one draw.

        Returns:
            Array of shape (N,). Non-positive latencies or scales give -inf.
        """
        means, scales = self._means_and_scales(covariate, blocks, params)
        latencies = np.asarray(latencies, dtype=np.float64)
        valid = (latencies > 0) & (scales > 0) & np.isfinite(scales)
        log_l = np.log(np.where(valid, latencies, 1.0))
        safe_scales = np.where(valid, scales, 1.0)
        log_density = stats.norm.logpdf(log_l, loc=means, scale=safe_scales)
        log_density = np.where(valid, log_density - log_l, -np.inf)
        result: NDArray[np.float64] = np.sum(log_density, axis=1)
        return result

    def log_likelihood(
        self,
        alphas: NDArray[np.integer],
        latencies: NDArray[np.floating],
        params: ResponseTimeParameters,
    ) -> float:
        """
        Total latency log-likelihood over subjects and time points.

        The covariate is always recomputed from the given profiles.

        Args:
            alphas: Profiles, shape (N, K, T).
            latencies: Observed response times, shape (N, Jt, T).
            params: Response-time parameters.
        """
        total = 0.0
        for t in range(alphas.shape[2]):
            covariate = self.fluency_covariate(alphas, t)
            total += float(
                np.sum(
                    self.log_density_batch(
                        covariate,
                        latencies[:, :, t],
                        self.design.blocks[:, t],
                        params,
                    )
                )
            )
        return total

    def simulate_log(
        self,
        covariate: NDArray[np.float64],
        blocks: NDArray[np.integer],
        params: ResponseTimeParameters,
        rng: Generator,
    ) -> NDArray[np.float64]:
        """
        Sample log-latencies for one time point.

        Returns:
            Array of shape (N, Jt) in log space.
        """
        means, scales = self._means_and_scales(covariate, blocks, params)
        result: NDArray[np.float64] = rng.normal(means, scales)
        return result
