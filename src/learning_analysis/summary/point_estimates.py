"""
Point estimates of trajectories and model parameters from posterior draws.
"""

import logging
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from learning_analysis.core.codec import check_codes
from learning_analysis.core.draws import PIS, DrawSet
from learning_analysis.core.enums import DecodingMethod, ModelName
from learning_analysis.core.exceptions import (
    DimensionMismatchError,
    EmptyDrawSetError,
)
from learning_analysis.models.variants import LearningModel, get_model
from learning_analysis.summary.decoding import estimate_trajectories

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointEstimates:
    """
    Posterior point estimates for one fitted learning model.

    Attributes:
        model: Model variant the draws belong to.
        decoding: How trajectories were decoded.
        alphas: Decoded attribute profiles, shape (N, K, T).
        pis: Posterior mean of the initial class probabilities, shape (2^K,).
        parameters: Posterior mean of every model-specific parameter,
            keyed by draw field name.
    """

    model: ModelName
    decoding: DecodingMethod
    alphas: NDArray[np.int8]
    pis: NDArray[np.float64]
    parameters: dict[str, NDArray[np.float64]] = field(default_factory=dict)

    def __getitem__(self, name: str) -> NDArray[np.float64]:
        if name == PIS:
            return self.pis
        return self.parameters[name]

    @property
    def n_subjects(self) -> int:
        return self.alphas.shape[0]

    @property
    def n_skills(self) -> int:
        return self.alphas.shape[1]

    @property
    def n_times(self) -> int:
        return self.alphas.shape[2]


def infer_n_skills(draws: DrawSet) -> int:
    """Number of skills K implied by the 2^K rows of `pis`."""
    n_classes = draws.pis.shape[0]
    n_skills = int(np.log2(n_classes)) if n_classes > 0 else -1
    if n_skills < 0 or 2**n_skills != n_classes:
        raise DimensionMismatchError(
            f"pis has {n_classes} rows, which is not a power of two"
        )
    return n_skills


def point_estimates(
    draws: DrawSet,
    model: str | ModelName | LearningModel,
    *,
    n_times: int,
    n_skills: int | None = None,
    decoding: DecodingMethod | str = DecodingMethod.EAP,
) -> PointEstimates:
    """
    Summarize posterior draws into point estimates.

    Args:
        draws: Posterior draws of the fitted model.
        model: Model variant name, e.g. "DINA_HO".
        n_times: Number of time points T.
        n_skills: Number of skills K. Inferred from `pis` when omitted.
        decoding: EAP (pointwise majority) or MAP (most frequent code)
            trajectory decoding.

    Returns:
        PointEstimates with the decoded trajectories, the posterior mean of
        `pis` and of every field the model variant defines.

    Raises:
        UnknownModelError: If the model name is not recognized.
        MissingParameterError: If a required draw field is absent.
        ContractError: If a trajectory code is not a valid code of
            K * T bits.
        EmptyDrawSetError: If the draw set holds no draws.
    """
    learning_model = get_model(model)
    draws.require(learning_model.required_fields, learning_model.name.value)
    if draws.n_its == 0:
        raise EmptyDrawSetError()
    if n_skills is None:
        n_skills = infer_n_skills(draws)
    check_codes(draws.trajectories, n_skills * n_times)

    decoding = DecodingMethod(decoding)
    logger.info(
        "Computing %s point estimates for %s from %d draws",
        decoding.value.upper(),
        learning_model.name.value,
        draws.n_its,
    )

    alphas = estimate_trajectories(draws, n_skills, n_times, decoding)
    parameters = {
        name: draws.mean(name) for name in learning_model.point_estimate_fields
    }

    return PointEstimates(
        model=learning_model.name,
        decoding=decoding,
        alphas=alphas,
        pis=draws.mean(PIS),
        parameters=parameters,
    )
