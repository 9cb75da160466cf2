"""
Model fit summary for a fitted learning model.

Validates every input up front, then makes a single pass over the
posterior draws that feeds both the DIC and the posterior-predictive
accumulators.
"""

import logging
import time
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from learning_analysis.core.data_models import LearningData
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import ModelName
from learning_analysis.core.exceptions import EmptyDrawSetError
from learning_analysis.fit.dic import (
    DevianceAccumulator,
    DevianceComponent,
    DICResult,
    finalize_dic,
)
from learning_analysis.fit.posterior_predictive import (
    PosteriorPredictiveAccumulator,
    PosteriorPredictiveSummary,
)
from learning_analysis.models.variants import LearningModel, get_model
from learning_analysis.summary.config import SummaryConfig
from learning_analysis.summary.decoding import estimate_trajectories

logger = logging.getLogger(__name__)


class FitReport(BaseModel):
    """Serializable scalar summary of a fit."""

    model_config = ConfigDict(frozen=True)

    model: ModelName
    n_its: int
    dic: float
    components: tuple[DevianceComponent, ...]
    model_version: str


@dataclass(frozen=True)
class LearningFitResult:
    """
    Attributes:
        model: Model variant the draws belong to.
        dic: Deviance table and per-draw partition.
        posterior_predictive: Posterior-predictive statistics.
        model_version: Version string for reproducibility tracking.
    """

    model: ModelName
    dic: DICResult
    posterior_predictive: PosteriorPredictiveSummary
    model_version: str

    def report(self) -> FitReport:
        return FitReport(
            model=self.model,
            n_its=self.dic.partition.n_its,
            dic=self.dic.dic,
            components=tuple(self.dic.components()),
            model_version=self.model_version,
        )


def learning_fit(
    draws: DrawSet,
    model: str | ModelName | LearningModel,
    data: LearningData,
    config: SummaryConfig | None = None,
) -> LearningFitResult:
    """
    DIC and posterior-predictive summaries of a fitted learning model.

    Args:
        draws: Posterior draws of the fitted model.
        model: Model variant name, e.g. "DINA_HO_RT_joint".
        data: Observed responses, design and model-specific inputs.
        config: Decoding and seeding settings.

    Returns:
        LearningFitResult with the deviance table and the
        posterior-predictive statistics.

    Raises:
        UnknownModelError: If the model name is not recognized.
        MissingParameterError: If a draw field or model input is absent.
        DimensionMismatchError: If draws and data disagree in shape.
        EmptyDrawSetError: If the draw set holds no draws.
    """
    if config is None:
        config = SummaryConfig()

    learning_model = get_model(model)
    learning_model.validate_inputs(data)
    learning_model.validate_draws(draws, data)
    if draws.n_its == 0:
        raise EmptyDrawSetError()

    logger.info(
        "Fitting %s: %d draws, %d subjects, %d time points",
        learning_model.name.value,
        draws.n_its,
        data.n_subjects,
        data.n_times,
    )
    start = time.perf_counter()

    evaluator = learning_model.prepare(data)
    deviance = DevianceAccumulator(evaluator)
    predictive = PosteriorPredictiveAccumulator(
        evaluator, draws.n_its, config.seed
    )
    for draw in evaluator.iter_draws(draws):
        deviance.add(draw)
        predictive.add(draw)

    point_alphas = estimate_trajectories(
        draws, data.n_skills, data.n_times, config.fit_decoding
    )
    dic = finalize_dic(evaluator, deviance.partition(), draws, point_alphas)

    logger.info(
        "Finished %s in %.2fs (DIC = %.2f)",
        learning_model.name.value,
        time.perf_counter() - start,
        dic.dic,
    )

    return LearningFitResult(
        model=learning_model.name,
        dic=dic,
        posterior_predictive=predictive.summary(),
        model_version=config.model_version,
    )
