"""
Model fit statistics: DIC and posterior-predictive checks.
"""

from learning_analysis.fit.dic import (
    DevianceComponent,
    DeviancePartition,
    DICResult,
    compute_dic,
    deviance_table,
)
from learning_analysis.fit.odds_ratio import odds_ratio, odds_ratio_matrix
from learning_analysis.fit.pipeline import (
    FitReport,
    LearningFitResult,
    learning_fit,
)
from learning_analysis.fit.posterior_predictive import (
    PosteriorPredictiveSummary,
    collapse_to_blocks,
    posterior_predictive,
)

__all__ = [
    "DICResult",
    "DevianceComponent",
    "DeviancePartition",
    "FitReport",
    "LearningFitResult",
    "PosteriorPredictiveSummary",
    "collapse_to_blocks",
    "compute_dic",
    "deviance_table",
    "learning_fit",
    "odds_ratio",
    "odds_ratio_matrix",
    "posterior_predictive",
]
