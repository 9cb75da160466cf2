"""
Posterior-predictive checks.

Every draw simulates a full data set from that draw's decoded profiles and
parameters. The simulated data are collapsed into block order, so column
b * Jt + j holds item j of block b for every subject that saw block b and
NaN otherwise, and then summarized per draw.
"""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray

from learning_analysis.core.data_models import TestDesign
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.exceptions import EmptyDrawSetError
from learning_analysis.core.utils import spawn_rngs
from learning_analysis.fit.odds_ratio import odds_ratio_matrix
from learning_analysis.models.variants import ModelEvaluator, PosteriorDraw

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PosteriorPredictiveSummary:
    """
    Per-draw posterior-predictive statistics.

    Attributes:
        item_means: Column means of the collapsed responses,
            shape (B * Jt, n_its).
        odds_ratios: Item-pair odds ratios, shape (B * Jt, B * Jt, n_its).
        total_scores: Number correct per subject and time point,
            shape (N, T, n_its).
        rt_means: Column means of the collapsed latencies,
            shape (B * Jt, n_its), for response-time models.
        total_times: Summed latency per subject and time point,
            shape (N, T, n_its), for response-time models.
    """

    item_means: NDArray[np.float64]
    odds_ratios: NDArray[np.float64]
    total_scores: NDArray[np.float64]
    rt_means: NDArray[np.float64] | None = None
    total_times: NDArray[np.float64] | None = None

    @property
    def n_its(self) -> int:
        return self.item_means.shape[1]

    @property
    def has_response_time(self) -> bool:
        return self.rt_means is not None

    def mean_item_means(self) -> NDArray[np.float64]:
        """Item means averaged over draws, shape (B * Jt,)."""
        result: NDArray[np.float64] = np.mean(self.item_means, axis=1)
        return result

    def mean_rt_means(self) -> NDArray[np.float64] | None:
        if self.rt_means is None:
            return None
        result: NDArray[np.float64] = np.mean(self.rt_means, axis=1)
        return result


def collapse_to_blocks(
    values: NDArray[np.floating], design: TestDesign, n_blocks: int
) -> NDArray[np.float64]:
    """
    Rearrange administered-order data into block order.

    Args:
        values: Data of shape (N, Jt, T); slice t holds the items of the
            block each subject saw at time t.
        design: Block administration design.
        n_blocks: Number of item blocks B.

    Returns:
        Array of shape (N, B * Jt). Blocks a subject never saw are NaN.
    """
    n_subjects, n_items, n_times = values.shape
    collapsed = np.full((n_subjects, n_blocks * n_items), np.nan)
    rows = np.arange(n_subjects)[:, np.newaxis]
    offsets = np.arange(n_items)[np.newaxis, :]
    for t in range(n_times):
        columns = design.blocks[:, t, np.newaxis] * n_items + offsets
        collapsed[rows, columns] = values[:, :, t]
    return collapsed


def column_means(collapsed: NDArray[np.float64]) -> NDArray[np.float64]:
    """Mean of each column over the subjects that have a value."""
    observed = ~np.isnan(collapsed)
    totals = np.where(observed, collapsed, 0.0).sum(axis=0)
    counts = observed.sum(axis=0)
    with np.errstate(divide="ignore", invalid="ignore"):
        result: NDArray[np.float64] = totals / counts
    return result


class PosteriorPredictiveAccumulator:
    """Simulates one data set per draw and records its summaries."""

    def __init__(
        self, evaluator: ModelEvaluator, n_its: int, seed: int | None = None
    ) -> None:
        data = evaluator.data
        self.evaluator = evaluator
        self.rngs: list[Generator] = spawn_rngs(seed, n_its)

        n_columns = data.n_blocks * data.n_items_per_block
        self.item_means = np.full((n_columns, n_its), np.nan)
        self.odds_ratios = np.full((n_columns, n_columns, n_its), np.nan)
        self.total_scores = np.full(
            (data.n_subjects, data.n_times, n_its), np.nan
        )
        self.rt_means = None
        self.total_times = None
        if evaluator.model.has_response_time:
            self.rt_means = np.full((n_columns, n_its), np.nan)
            self.total_times = np.full(
                (data.n_subjects, data.n_times, n_its), np.nan
            )

    def add(self, draw: PosteriorDraw) -> None:
        data = self.evaluator.data
        it = draw.it
        simulated = self.evaluator.simulate(
            draw.alphas, draw.params, self.rngs[it]
        )

        responses = collapse_to_blocks(
            simulated.responses, data.design, data.n_blocks
        )
        self.item_means[:, it] = column_means(responses)
        self.odds_ratios[:, :, it] = odds_ratio_matrix(responses)
        self.total_scores[:, :, it] = simulated.responses.sum(axis=1)

        if simulated.latencies is not None:
            assert self.rt_means is not None
            assert self.total_times is not None
            latencies = collapse_to_blocks(
                simulated.latencies, data.design, data.n_blocks
            )
            self.rt_means[:, it] = column_means(latencies)
            self.total_times[:, :, it] = simulated.latencies.sum(axis=1)

    def summary(self) -> PosteriorPredictiveSummary:
        return PosteriorPredictiveSummary(
            item_means=self.item_means,
            odds_ratios=self.odds_ratios,
            total_scores=self.total_scores,
            rt_means=self.rt_means,
            total_times=self.total_times,
        )


def posterior_predictive(
    evaluator: ModelEvaluator,
    draws: DrawSet,
    seed: int | None = None,
) -> PosteriorPredictiveSummary:
    """
    Simulate and summarize one data set per posterior draw.

    Draw `it` uses its own generator, the `it`-th child of
    `SeedSequence(seed)`, so results do not depend on execution order.

    Args:
        evaluator: Model variant bound to the observed data.
        draws: Posterior draws.
        seed: Seed for the per-draw random streams.
    """
    evaluator.validate_draws(draws)
    if draws.n_its == 0:
        raise EmptyDrawSetError()
    accumulator = PosteriorPredictiveAccumulator(evaluator, draws.n_its, seed)
    for draw in evaluator.iter_draws(draws):
        accumulator.add(draw)
    return accumulator.summary()
