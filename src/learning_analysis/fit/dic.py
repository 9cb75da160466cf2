"""
Deviance Information Criterion split by model component.

For each component c (transition, response time, response, joint prior):

    D_bar(c)        = -2 * mean over draws of log L_c(draw)
    D(theta_bar)(c) = -2 * log L_c(point estimate)
    DIC(c)          = 2 * D_bar(c) - D(theta_bar)(c)

The point estimate uses posterior means of every parameter and a decoded
trajectory estimate. The Total column sums the components the model has.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from learning_analysis.core.draws import DrawSet
from learning_analysis.core.exceptions import EmptyDrawSetError
from learning_analysis.models.variants import (
    LogLikelihoodComponents,
    ModelEvaluator,
    PosteriorDraw,
)

logger = logging.getLogger(__name__)

ROW_LABELS = ("D_bar", "D(theta_bar)", "DIC")
COMPONENT_LABELS = ("Transition", "Response_Time", "Response", "Joint")
TOTAL_LABEL = "Total"

_FIELDS = dict(
    zip(
        COMPONENT_LABELS,
        ("transition", "response_time", "response", "joint"),
        strict=True,
    )
)


@dataclass(frozen=True)
class DeviancePartition:
    """
    Per-draw log-likelihood components, each of shape (n_its,).

    `response_time` is all NaN for models without latencies.
    """

    transition: NDArray[np.float64]
    response_time: NDArray[np.float64]
    response: NDArray[np.float64]
    joint: NDArray[np.float64]
    has_response_time: bool

    @classmethod
    def from_components(
        cls,
        components: list[LogLikelihoodComponents],
        has_response_time: bool,
    ) -> "DeviancePartition":
        return cls(
            transition=np.array([c.transition for c in components]),
            response_time=np.array([c.response_time for c in components]),
            response=np.array([c.response for c in components]),
            joint=np.array([c.joint for c in components]),
            has_response_time=has_response_time,
        )

    @property
    def n_its(self) -> int:
        return self.transition.shape[0]

    @property
    def applicable(self) -> tuple[str, ...]:
        """Column labels of the components this model defines."""
        if self.has_response_time:
            return COMPONENT_LABELS
        return tuple(c for c in COMPONENT_LABELS if c != "Response_Time")

    def column(self, label: str) -> NDArray[np.float64]:
        result: NDArray[np.float64] = getattr(self, _FIELDS[label])
        return result

    def total(self) -> NDArray[np.float64]:
        """Per-draw sum of the applicable components."""
        result: NDArray[np.float64] = np.sum(
            [self.column(label) for label in self.applicable], axis=0
        )
        return result


class DevianceComponent(BaseModel):
    """One column of the deviance table."""

    model_config = ConfigDict(frozen=True)

    component: str
    d_bar: float
    d_hat: float
    dic: float


def _component_total(
    components: LogLikelihoodComponents, applicable: tuple[str, ...]
) -> float:
    return float(
        sum(getattr(components, _FIELDS[label]) for label in applicable)
    )


def deviance_table(
    partition: DeviancePartition, at_point: LogLikelihoodComponents
) -> pd.DataFrame:
    """
    Build the 3 x 5 deviance table.

    Args:
        partition: Per-draw log-likelihood components.
        at_point: Log-likelihood components at the point estimate.

    Returns:
        DataFrame indexed by ROW_LABELS with columns COMPONENT_LABELS plus
        Total. Response_Time is NaN for models without latencies.
    """
    if partition.n_its == 0:
        raise EmptyDrawSetError()

    table = pd.DataFrame(
        np.nan,
        index=list(ROW_LABELS),
        columns=[*COMPONENT_LABELS, TOTAL_LABEL],
    )
    for label in partition.applicable:
        d_bar = -2.0 * float(np.mean(partition.column(label)))
        d_hat = -2.0 * float(getattr(at_point, _FIELDS[label]))
        table.loc[:, label] = [d_bar, d_hat, 2.0 * d_bar - d_hat]

    d_bar = -2.0 * float(np.mean(partition.total()))
    d_hat = -2.0 * _component_total(at_point, partition.applicable)
    table.loc[:, TOTAL_LABEL] = [d_bar, d_hat, 2.0 * d_bar - d_hat]
    return table


def table_components(table: pd.DataFrame) -> list[DevianceComponent]:
    """Deviance table columns as serializable records."""
    return [
        DevianceComponent(
            component=str(label),
            d_bar=float(table.loc["D_bar", label]),
            d_hat=float(table.loc["D(theta_bar)", label]),
            dic=float(table.loc["DIC", label]),
        )
        for label in table.columns
    ]


class DevianceAccumulator:
    """Collects per-draw log-likelihood components."""

    def __init__(self, evaluator: ModelEvaluator) -> None:
        self.evaluator = evaluator
        self._components: list[LogLikelihoodComponents] = []

    def add(self, draw: PosteriorDraw) -> None:
        components = self.evaluator.decompose_loglik(draw.alphas, draw.params)
        logger.debug("Draw %d log-likelihoods: %s", draw.it, components)
        self._components.append(components)

    def partition(self) -> DeviancePartition:
        return DeviancePartition.from_components(
            self._components,
            has_response_time=self.evaluator.model.has_response_time,
        )


@dataclass(frozen=True)
class DICResult:
    """
    Attributes:
        table: The 3 x 5 deviance table.
        partition: Per-draw log-likelihood components.
        at_point: Log-likelihood components at the point estimate.
    """

    table: pd.DataFrame
    partition: DeviancePartition
    at_point: LogLikelihoodComponents

    @property
    def dic(self) -> float:
        """Total DIC."""
        return float(self.table.loc["DIC", TOTAL_LABEL])

    def components(self) -> list[DevianceComponent]:
        return table_components(self.table)


def finalize_dic(
    evaluator: ModelEvaluator,
    partition: DeviancePartition,
    draws: DrawSet,
    point_alphas: NDArray[np.integer],
) -> DICResult:
    """
    Evaluate the point-estimate pass and assemble the deviance table.

    Response-time covariates are computed from `point_alphas`.
    """
    point_params = evaluator.model.posterior_means(draws)
    at_point = evaluator.decompose_loglik(point_alphas, point_params)
    table = deviance_table(partition, at_point)

    non_finite = [
        label
        for label in partition.applicable
        if not np.isfinite(table.loc["DIC", label])
    ]
    if non_finite:
        logger.warning(
            "Non-finite DIC for %s components: %s",
            evaluator.model.name.value,
            ", ".join(non_finite),
        )
    return DICResult(table=table, partition=partition, at_point=at_point)


def compute_dic(
    evaluator: ModelEvaluator,
    draws: DrawSet,
    point_alphas: NDArray[np.integer],
) -> DICResult:
    """
    Two-pass DIC: every draw against the observed data, then the point
    estimate.

    Args:
        evaluator: Model variant bound to the observed data.
        draws: Posterior draws.
        point_alphas: Decoded trajectory estimate, shape (N, K, T).
    """
    evaluator.validate_draws(draws)
    if draws.n_its == 0:
        raise EmptyDrawSetError()
    accumulator = DevianceAccumulator(evaluator)
    for draw in evaluator.iter_draws(draws):
        accumulator.add(draw)
    return finalize_dic(evaluator, accumulator.partition(), draws, point_alphas)
