"""
Configuration for posterior summaries and fit statistics.
"""

from dataclasses import dataclass, field
from importlib import metadata

import toml

from learning_analysis.core.enums import DecodingMethod
from learning_analysis.core.paths import ProjectRootNotFound, get_project_root_dir

# Trajectory decoding for the DIC point-estimate pass
DEFAULT_FIT_DECODING = DecodingMethod.MAP

# Trajectory decoding for reported point estimates
DEFAULT_POINT_ESTIMATE_DECODING = DecodingMethod.EAP

DISTRIBUTION_NAME = "learning-analysis"


def _get_package_version() -> str:
    """
    Version from this project's pyproject.toml, or from the installed
    distribution when the nearest pyproject.toml belongs to another project.
    """
    try:
        root_dir = get_project_root_dir()
    except ProjectRootNotFound:
        return metadata.version(DISTRIBUTION_NAME)

    with open(root_dir / "pyproject.toml") as f:
        data = toml.load(f)

    project = data.get("project", {})
    if project.get("name") != DISTRIBUTION_NAME:
        return metadata.version(DISTRIBUTION_NAME)

    version = project.get("version")

    if not version:
        raise ValueError("Version not found in pyproject.toml")

    assert isinstance(version, str)
    return version


@dataclass(frozen=True)
class SummaryConfig:
    """
    Settings shared by the point-estimate and fit summaries.

    Attributes:
        fit_decoding: How trajectories are decoded for the DIC
            point-estimate pass.
        point_estimate_decoding: How trajectories are decoded for
            reported point estimates.
        seed: Seed for posterior-predictive simulation. None draws fresh
            entropy from the OS.
        model_version: Version string for reproducibility tracking.
    """

    fit_decoding: DecodingMethod = DEFAULT_FIT_DECODING
    point_estimate_decoding: DecodingMethod = DEFAULT_POINT_ESTIMATE_DECODING
    seed: int | None = None
    model_version: str = field(default_factory=_get_package_version)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "fit_decoding", DecodingMethod(self.fit_decoding)
        )
        object.__setattr__(
            self,
            "point_estimate_decoding",
            DecodingMethod(self.point_estimate_decoding),
        )


def default_config() -> SummaryConfig:
    """Create a default summary configuration."""
    return SummaryConfig()
