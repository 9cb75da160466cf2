"""
End-to-end checks of a fit summary against hand-computed values.

Two subjects, two skills, two time points and two items per block, with
every posterior draw identical so that D_bar equals D(theta_bar).
"""

import importlib

import numpy as np
import pytest

from learning_analysis import learning_fit, point_estimates
from learning_analysis.core.data_models import LearningData, TestDesign
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import DecodingMethod, ModelName
from learning_analysis.fit.dic import TOTAL_LABEL
from learning_analysis.fit.pipeline import LearningFitResult
from learning_analysis.models.variants import get_model
from learning_analysis.summary.config import SummaryConfig

posterior_predictive_module = importlib.import_module(
    "learning_analysis.fit.posterior_predictive"
)

SEED = 2024
N_ITS = 2

Q_MATRICES = np.array(
    [
        [[1, 0], [0, 1]],
        [[1, 1], [1, 0]],
    ]
)

# Subject 0: (1, 0) then (1, 1), code 2 * 4 + 3
# Subject 1: (0, 0) then (0, 1), code 0 * 4 + 1
CODES = np.array([11, 1])
ALPHAS = np.array(
    [
        [[1, 1], [0, 1]],
        [[0, 0], [0, 1]],
    ]
)

# P(correct) per subject, item and time with slip = guess = 0.1
PROBS = np.array(
    [
        [[0.9, 0.9], [0.1, 0.9]],
        [[0.1, 0.1], [0.1, 0.1]],
    ]
)

# Every response matches the ideal response
RESPONSES = np.array(
    [
        [[1, 1], [0, 1]],
        [[0, 0], [0, 0]],
    ],
    dtype=np.float64,
)


def make_data() -> LearningData:
    return LearningData(
        responses=RESPONSES,
        q_matrices=Q_MATRICES,
        design=TestDesign(
            test_order=np.array([[1, 2]]), test_versions=np.array([1, 1])
        ),
    )


def make_draws() -> DrawSet:
    return DrawSet(
        {
            "trajectories": np.repeat(CODES[:, np.newaxis], N_ITS, axis=1),
            "pis": np.full((4, N_ITS), 0.25),
            "ss": np.full((4, N_ITS), 0.1),
            "gs": np.full((4, N_ITS), 0.1),
            "omegas": np.full((4, 4, N_ITS), 0.25),
        }
    )


def expected_simulation(it: int) -> np.ndarray:
    rng = np.random.default_rng(np.random.SeedSequence(SEED).spawn(N_ITS)[it])
    simulated = np.empty((2, 2, 2), dtype=np.int8)
    for t in range(2):
        simulated[:, :, t] = rng.random((2, 2)) < PROBS[:, :, t]
    return simulated


class TestFirstOrderEndToEnd:
    @pytest.fixture
    def result(self) -> LearningFitResult:
        config = SummaryConfig(seed=SEED, model_version="test")
        return learning_fit(
            make_draws(), ModelName.DINA_FOHM, make_data(), config
        )

    def test_point_estimates(self) -> None:
        estimates = point_estimates(
            make_draws(), ModelName.DINA_FOHM, n_times=2, n_skills=2
        )
        np.testing.assert_array_equal(estimates.alphas, ALPHAS)
        np.testing.assert_allclose(estimates["ss"], np.full(4, 0.1))

    def test_deviance(self, result: LearningFitResult) -> None:
        table = result.dic.table
        response = -2.0 * 8 * np.log(0.9)
        transition = -2.0 * 2 * np.log(0.25)
        joint = -2.0 * 2 * np.log(0.25)

        assert table.loc["D_bar", "Response"] == pytest.approx(response)
        assert table.loc["D_bar", "Transition"] == pytest.approx(transition)
        assert table.loc["D_bar", "Joint"] == pytest.approx(joint)
        assert np.isnan(table.loc["D_bar", "Response_Time"])
        # Identical draws: no effective parameters
        for column in ("Transition", "Response", "Joint", TOTAL_LABEL):
            assert table.loc["DIC", column] == pytest.approx(
                table.loc["D(theta_bar)", column]
            )
        assert result.dic.dic == pytest.approx(response + transition + joint)

    def test_simulated_item_means(self, result: LearningFitResult) -> None:
        predictive = result.posterior_predictive
        for it in range(N_ITS):
            simulated = expected_simulation(it)
            # One test version: block 1 at time 0, block 2 at time 1
            collapsed = np.concatenate(
                [simulated[:, :, 0], simulated[:, :, 1]], axis=1
            )
            np.testing.assert_allclose(
                predictive.item_means[:, it], collapsed.mean(axis=0)
            )
            np.testing.assert_array_equal(
                predictive.total_scores[:, :, it], simulated.sum(axis=1)
            )

    def test_eap_and_map_agree_for_identical_draws(self) -> None:
        data = make_data()
        by_map = learning_fit(
            make_draws(),
            ModelName.DINA_FOHM,
            data,
            SummaryConfig(seed=SEED, model_version="test"),
        )
        by_eap = learning_fit(
            make_draws(),
            ModelName.DINA_FOHM,
            data,
            SummaryConfig(
                fit_decoding=DecodingMethod.EAP,
                seed=SEED,
                model_version="test",
            ),
        )
        assert by_map.dic.dic == pytest.approx(by_eap.dic.dic)


class FixedUniforms:
    """Stands in for a Generator, returning preset uniform variates."""

    def __init__(self, blocks: list[list[list[float]]]) -> None:
        self.blocks = [np.array(block) for block in blocks]

    def random(self, size: tuple[int, ...]) -> np.ndarray:
        block = self.blocks.pop(0)
        assert block.shape == size
        return block


# Uniforms per draw, one (subject, item) block per time point
UNIFORMS = [
    [[[0.50, 0.05], [0.95, 0.30]], [[0.95, 0.20], [0.08, 0.60]]],
    [[[0.10, 0.70], [0.40, 0.99]], [[0.30, 0.89], [0.50, 0.09]]],
]

# Simulated responses (N, Jt, T) implied by UNIFORMS and PROBS
SIMULATED = [
    np.array([[[1, 0], [1, 1]], [[0, 1], [0, 0]]]),
    np.array([[[1, 1], [0, 1]], [[0, 0], [0, 1]]]),
]

# Collapsed columns: block 1 items 1-2, then block 2 items 1-2
ITEM_MEANS = np.array(
    [
        [0.5, 0.5],
        [0.5, 0.0],
        [0.5, 0.5],
        [0.5, 1.0],
    ]
)
TOTAL_SCORES = np.array(
    [
        [[2, 1], [1, 2]],
        [[0, 0], [1, 1]],
    ]
)


class TestPrecomputedReference:
    def test_simulated_data_and_item_means(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            posterior_predictive_module,
            "spawn_rngs",
            lambda seed, n_streams: [FixedUniforms(u) for u in UNIFORMS],
        )
        result = learning_fit(
            make_draws(),
            ModelName.DINA_FOHM,
            make_data(),
            SummaryConfig(seed=SEED, model_version="test"),
        )
        predictive = result.posterior_predictive

        np.testing.assert_array_equal(predictive.item_means, ITEM_MEANS)
        np.testing.assert_array_equal(predictive.total_scores, TOTAL_SCORES)
        np.testing.assert_allclose(
            predictive.mean_item_means(), [0.5, 0.25, 0.5, 0.75]
        )

    def test_reference_responses(self) -> None:
        evaluator = get_model(ModelName.DINA_FOHM).prepare(make_data())
        draws = list(evaluator.iter_draws(make_draws()))
        for draw, uniforms in zip(draws, UNIFORMS, strict=True):
            simulated = evaluator.simulate(
                draw.alphas,
                draw.params,
                FixedUniforms(uniforms),  # type: ignore[arg-type]
            )
            np.testing.assert_array_equal(
                simulated.responses, SIMULATED[draw.it]
            )
