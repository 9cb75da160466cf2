"""
Posterior summaries and fit statistics for hidden-Markov learning CDMs.

This package provides:
- Point estimates of attribute trajectories and model parameters
- Deviance Information Criterion decomposed by model component
- Posterior-predictive item means, odds ratios and total scores
"""

import logging
import sys

# Console handler shared by every logger that has none of its own
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
console_handler.setFormatter(formatter)

# Per-draw progress is logged at DEBUG
root_logger = logging.getLogger()
root_logger.setLevel(logging.INFO)
root_logger.addHandler(console_handler)

from learning_analysis.fit import LearningFitResult, learning_fit  # noqa: E402
from learning_analysis.summary import (  # noqa: E402
    PointEstimates,
    point_estimates,
)

__all__ = [
    "LearningFitResult",
    "PointEstimates",
    "learning_fit",
    "point_estimates",
]
