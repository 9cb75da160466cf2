"""
Posterior point estimates of trajectories and parameters.
"""

from learning_analysis.summary.config import SummaryConfig, default_config
from learning_analysis.summary.decoding import (
    decode_eap,
    decode_map,
    decode_trajectories,
    estimate_trajectories,
)
from learning_analysis.summary.point_estimates import (
    PointEstimates,
    point_estimates,
)

__all__ = [
    "PointEstimates",
    "SummaryConfig",
    "decode_eap",
    "decode_map",
    "decode_trajectories",
    "default_config",
    "estimate_trajectories",
    "point_estimates",
]
