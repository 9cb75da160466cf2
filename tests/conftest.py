"""
Shared builders for small learning-model data sets and posterior draws.
"""

from collections.abc import Callable

import numpy as np
import pytest
from numpy.typing import NDArray

from learning_analysis.core.codec import class_index
from learning_analysis.core.data_models import LearningData, TestDesign
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import GVersion, ModelName

N_SUBJECTS = 4
N_ITEMS_PER_BLOCK = 2
N_TIMES = 2
N_SKILLS = 2

# Two blocks, two versions seeing them in opposite order
Q_MATRICES = np.array(
    [
        [[1, 0], [0, 1]],
        [[1, 1], [0, 1]],
    ],
    dtype=np.float64,
)
TEST_ORDER = np.array([[1, 2], [2, 1]])
TEST_VERSIONS = np.array([1, 2, 1, 2])
REACHABILITY = np.array([[1, 1], [0, 1]], dtype=np.float64)


def make_learning_data(
    rng: np.random.Generator,
    g_version: GVersion | None = None,
    with_reachability: bool = False,
) -> LearningData:
    """Random responses (and latencies when g_version is given)."""
    shape = (N_SUBJECTS, N_ITEMS_PER_BLOCK, N_TIMES)
    latencies = None
    if g_version is not None:
        latencies = rng.lognormal(mean=0.5, sigma=0.3, size=shape)
    return LearningData(
        responses=rng.integers(0, 2, size=shape).astype(np.float64),
        q_matrices=Q_MATRICES,
        design=TestDesign(test_order=TEST_ORDER, test_versions=TEST_VERSIONS),
        latencies=latencies,
        g_version=g_version,
        reachability=REACHABILITY if with_reachability else None,
    )


def monotone_trajectory_codes(
    rng: np.random.Generator, n_subjects: int, n_skills: int, n_times: int
) -> NDArray[np.float64]:
    """Codes of random trajectories in which no skill is lost."""
    alphas = np.zeros((n_subjects, n_skills, n_times), dtype=np.int64)
    alphas[:, :, 0] = rng.integers(0, 2, size=(n_subjects, n_skills))
    for t in range(1, n_times):
        gained = rng.integers(0, 2, size=(n_subjects, n_skills))
        alphas[:, :, t] = alphas[:, :, t - 1] | gained
    codes = np.zeros(n_subjects, dtype=np.int64)
    for t in range(n_times):
        codes = codes * 2**n_skills + class_index(alphas[:, :, t])
    return codes.astype(np.float64)


def make_draw_fields(
    model: ModelName,
    data: LearningData,
    n_its: int,
    rng: np.random.Generator,
) -> dict[str, NDArray[np.float64]]:
    """Plausible posterior draws for every field the model reads."""
    n_items = data.n_items
    n_classes = data.n_classes
    fields: dict[str, NDArray[np.float64]] = {
        "trajectories": np.column_stack(
            [
                monotone_trajectory_codes(
                    rng, data.n_subjects, data.n_skills, data.n_times
                )
                for _ in range(n_its)
            ]
        ),
        "pis": rng.dirichlet(np.ones(n_classes), size=n_its).T,
    }

    if model in (
        ModelName.DINA_HO,
        ModelName.DINA_HO_RT_SEP,
        ModelName.DINA_HO_RT_JOINT,
        ModelName.DINA_FOHM,
    ):
        fields["ss"] = rng.uniform(0.05, 0.25, size=(n_items, n_its))
        fields["gs"] = rng.uniform(0.05, 0.25, size=(n_items, n_its))

    if model in (
        ModelName.DINA_HO,
        ModelName.DINA_HO_RT_SEP,
        ModelName.DINA_HO_RT_JOINT,
    ):
        n_lambdas = 3 if model == ModelName.DINA_HO_RT_JOINT else 4
        fields["thetas"] = rng.normal(size=(data.n_subjects, n_its))
        fields["lambdas"] = rng.normal(0.0, 0.5, size=(n_lambdas, n_its))

    if model in (ModelName.DINA_HO_RT_SEP, ModelName.DINA_HO_RT_JOINT):
        fields["as"] = rng.uniform(1.0, 3.0, size=(n_items, n_its))
        fields["gammas"] = rng.normal(0.5, 0.2, size=(n_items, n_its))
        fields["taus"] = rng.normal(0.0, 0.3, size=(data.n_subjects, n_its))
        fields["phis"] = rng.uniform(0.0, 0.5, size=n_its)

    if model == ModelName.DINA_HO_RT_SEP:
        fields["tauvar"] = rng.uniform(0.5, 1.5, size=n_its)

    if model == ModelName.DINA_HO_RT_JOINT:
        sigma = np.array([[1.0, 0.3], [0.3, 0.8]])
        fields["Sigs"] = np.repeat(sigma[:, :, np.newaxis], n_its, axis=2)

    if model == ModelName.RRUM_INDEPT:
        fields["r_stars"] = rng.uniform(
            0.2, 0.9, size=(n_items, data.n_skills, n_its)
        )
        fields["pi_stars"] = rng.uniform(0.7, 0.95, size=(n_items, n_its))

    if model == ModelName.NIDA_INDEPT:
        fields["ss"] = rng.uniform(0.05, 0.25, size=(data.n_skills, n_its))
        fields["gs"] = rng.uniform(0.05, 0.25, size=(data.n_skills, n_its))

    if model in (ModelName.RRUM_INDEPT, ModelName.NIDA_INDEPT):
        fields["taus"] = rng.uniform(0.2, 0.8, size=(data.n_skills, n_its))

    if model == ModelName.DINA_FOHM:
        omegas = np.stack(
            [rng.dirichlet(np.ones(n_classes), size=n_classes) for _ in range(n_its)],
            axis=2,
        )
        fields["omegas"] = omegas

    return fields


def data_for_model(
    model: ModelName, rng: np.random.Generator
) -> LearningData:
    """Observed data carrying the inputs the model variant needs."""
    if model in (ModelName.DINA_HO_RT_SEP, ModelName.DINA_HO_RT_JOINT):
        return make_learning_data(rng, g_version=GVersion.MASTERY)
    if model in (ModelName.RRUM_INDEPT, ModelName.NIDA_INDEPT):
        return make_learning_data(rng, with_reachability=True)
    return make_learning_data(rng)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20240611)


@pytest.fixture
def model_inputs(
    rng: np.random.Generator,
) -> Callable[[ModelName, int], tuple[DrawSet, LearningData]]:
    """Factory returning (draws, data) for a model variant."""

    def build(model: ModelName, n_its: int = 5) -> tuple[DrawSet, LearningData]:
        data = data_for_model(model, rng)
        draws = DrawSet(make_draw_fields(model, data, n_its, rng))
        return draws, data

    return build
