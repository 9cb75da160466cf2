"""
Loading and saving utilities for sampler output and assessment data.

Draws and data are exchanged as numpy `.npz` archives whose keys are the
field names used throughout the package.
"""

from pathlib import Path

import numpy as np
import pandas as pd

from learning_analysis.core.data_models import LearningData, TestDesign
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.exceptions import MissingParameterError

DATA_REQUIRED_KEYS = ("responses", "q_matrices", "test_order", "test_versions")
DATA_OPTIONAL_KEYS = ("latencies", "q_examinee", "reachability")


def load_draw_set(path: Path) -> DrawSet:
    """Load posterior draws from an .npz archive, one array per field."""
    with np.load(path) as archive:
        fields = {name: archive[name] for name in archive.files}
    return DrawSet(fields)


def save_draw_set(draws: DrawSet, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, **dict(draws))


def load_learning_data(path: Path) -> LearningData:
    """
    Load observed data from an .npz archive.

    Expected keys:
        - responses (N, Jt, T), q_matrices (B, Jt, K)
        - test_order (V, T), test_versions (N,), both 1-based
        - optionally latencies, g_version, q_examinee, reachability

    Raises:
        MissingParameterError: If a required key is absent.
        DimensionMismatchError: If the arrays are inconsistent.
    """
    with np.load(path) as archive:
        arrays = {name: archive[name] for name in archive.files}

    for key in DATA_REQUIRED_KEYS:
        if key not in arrays:
            raise MissingParameterError(key)

    g_version = None
    if "g_version" in arrays:
        g_version = int(np.ravel(arrays["g_version"])[0])

    return LearningData(
        responses=arrays["responses"],
        q_matrices=arrays["q_matrices"],
        design=TestDesign(
            test_order=arrays["test_order"],
            test_versions=arrays["test_versions"],
        ),
        g_version=g_version,  # type: ignore[arg-type]
        **{key: arrays.get(key) for key in DATA_OPTIONAL_KEYS},
    )


def save_learning_data(data: LearningData, path: Path) -> None:
    arrays = {
        "responses": data.responses,
        "q_matrices": data.q_matrices,
        "test_order": data.design.test_order,
        "test_versions": data.design.test_versions,
    }
    for key in DATA_OPTIONAL_KEYS:
        value = getattr(data, key)
        if value is not None:
            arrays[key] = value
    if data.g_version is not None:
        arrays["g_version"] = np.array(int(data.g_version))
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, **arrays)


def save_deviance_table(table: pd.DataFrame, path: Path) -> None:
    """Write a deviance table to CSV, keeping the row labels."""
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, index_label="Statistic")


def load_deviance_table(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, index_col="Statistic")
