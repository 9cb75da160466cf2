"""
Tests for the six learning-model variants.
"""

from collections.abc import Callable

import numpy as np
import pytest
from scipy import stats

from learning_analysis.core.codec import class_index
from learning_analysis.core.data_models import LearningData
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import ModelName
from learning_analysis.core.exceptions import (
    DimensionMismatchError,
    MissingParameterError,
    UnknownModelError,
)
from learning_analysis.models.response import (
    DINAParameters,
    NIDAParameters,
    RRUMParameters,
)
from learning_analysis.models.transition import (
    FirstOrderParameters,
    HigherOrderParameters,
    IndependentParameters,
)
from learning_analysis.models.variants import (
    MODEL_REGISTRY,
    DINAHigherOrderJointRT,
    DINAHigherOrderSeparateRT,
    get_model,
)

ModelInputs = Callable[..., tuple[DrawSet, LearningData]]

EXPECTED_FIELDS = {
    ModelName.DINA_HO: ("ss", "gs", "thetas", "lambdas"),
    ModelName.DINA_HO_RT_SEP: (
        "ss", "gs", "as", "gammas", "thetas", "taus", "lambdas", "phis",
        "tauvar",
    ),
    ModelName.DINA_HO_RT_JOINT: (
        "ss", "gs", "as", "gammas", "thetas", "taus", "lambdas", "phis",
        "Sigs",
    ),
    ModelName.RRUM_INDEPT: ("r_stars", "pi_stars", "taus"),
    ModelName.NIDA_INDEPT: ("ss", "gs", "taus"),
    ModelName.DINA_FOHM: ("ss", "gs", "omegas"),
}


class TestRegistry:
    def test_every_variant_is_registered(self) -> None:
        assert set(MODEL_REGISTRY) == set(ModelName)

    @pytest.mark.parametrize("name", [m.value for m in ModelName])
    def test_lookup_by_string(self, name: str) -> None:
        assert get_model(name).name.value == name

    def test_unknown_model(self) -> None:
        with pytest.raises(UnknownModelError, match="DINA_XYZ"):
            get_model("DINA_XYZ")

    def test_instance_passes_through(self) -> None:
        model = get_model(ModelName.DINA_FOHM)
        assert get_model(model) is model

    @pytest.mark.parametrize("name", list(ModelName))
    def test_point_estimate_fields(self, name: ModelName) -> None:
        model = get_model(name)
        assert set(model.point_estimate_fields) == set(EXPECTED_FIELDS[name])
        assert model.required_fields[:2] == ("trajectories", "pis")

    def test_response_time_flags(self) -> None:
        with_rt = {m for m in ModelName if get_model(m).has_response_time}
        assert with_rt == {ModelName.DINA_HO_RT_SEP, ModelName.DINA_HO_RT_JOINT}


class TestParameters:
    @pytest.mark.parametrize(
        ("name", "item_type", "transition_type"),
        [
            (ModelName.DINA_HO, DINAParameters, HigherOrderParameters),
            (ModelName.DINA_HO_RT_SEP, DINAParameters, HigherOrderParameters),
            (ModelName.RRUM_INDEPT, RRUMParameters, IndependentParameters),
            (ModelName.NIDA_INDEPT, NIDAParameters, IndependentParameters),
            (ModelName.DINA_FOHM, DINAParameters, FirstOrderParameters),
        ],
    )
    def test_parameter_types(
        self,
        model_inputs: ModelInputs,
        name: ModelName,
        item_type: type,
        transition_type: type,
    ) -> None:
        draws, _ = model_inputs(name)
        params = get_model(name).parameters_at(draws, 0)
        assert isinstance(params.item, item_type)
        assert isinstance(params.transition, transition_type)

    def test_draw_and_mean(self, model_inputs: ModelInputs) -> None:
        draws, _ = model_inputs(ModelName.DINA_HO_RT_SEP, 4)
        model = get_model(ModelName.DINA_HO_RT_SEP)

        params = model.parameters_at(draws, 2)
        assert isinstance(params.item, DINAParameters)
        np.testing.assert_array_equal(params.item.slip, draws["ss"][:, 2])
        assert params.response_time is not None
        assert params.response_time.phi == pytest.approx(draws["phis"][2])
        assert params.tau_variance == pytest.approx(draws["tauvar"][2])

        means = model.posterior_means(draws)
        np.testing.assert_allclose(means.pis, draws["pis"].mean(axis=1))
        assert means.response_time is not None
        assert means.response_time.phi == pytest.approx(draws["phis"].mean())


class TestValidation:
    def test_response_time_models_need_latencies(
        self, model_inputs: ModelInputs
    ) -> None:
        _, data = model_inputs(ModelName.DINA_HO)
        with pytest.raises(MissingParameterError, match="latencies"):
            get_model(ModelName.DINA_HO_RT_JOINT).validate_inputs(data)

    def test_independent_models_need_reachability(
        self, model_inputs: ModelInputs
    ) -> None:
        _, data = model_inputs(ModelName.DINA_HO)
        with pytest.raises(MissingParameterError, match="reachability"):
            get_model(ModelName.RRUM_INDEPT).prepare(data)

    def test_missing_draw_field(self, model_inputs: ModelInputs) -> None:
        draws, data = model_inputs(ModelName.DINA_FOHM)
        with pytest.raises(MissingParameterError, match="thetas"):
            get_model(ModelName.DINA_HO).validate_draws(draws, data)

    def test_wrong_field_shape(self, model_inputs: ModelInputs) -> None:
        draws, data = model_inputs(ModelName.NIDA_INDEPT)
        # NIDA slips are per skill; DINA expects one per item
        fields = dict(draws)
        fields["omegas"] = np.ones((4, 4, draws.n_its))
        with pytest.raises(DimensionMismatchError, match="ss"):
            get_model(ModelName.DINA_FOHM).validate_draws(
                DrawSet(fields), data
            )

    @pytest.mark.parametrize("name", list(ModelName))
    def test_consistent_inputs_pass(
        self, model_inputs: ModelInputs, name: ModelName
    ) -> None:
        draws, data = model_inputs(name)
        model = get_model(name)
        model.validate_inputs(data)
        model.validate_draws(draws, data)


class TestEvaluator:
    @pytest.mark.parametrize("name", list(ModelName))
    def test_decomposition(
        self, model_inputs: ModelInputs, name: ModelName
    ) -> None:
        draws, data = model_inputs(name)
        evaluator = get_model(name).prepare(data)
        draw = next(evaluator.iter_draws(draws))
        components = evaluator.decompose_loglik(draw.alphas, draw.params)

        assert np.isfinite(components.response)
        assert np.isfinite(components.joint)
        assert components.response < 0
        if evaluator.model.has_response_time:
            assert np.isfinite(components.response_time)
        else:
            assert np.isnan(components.response_time)

    def test_iter_draws_decodes_every_draw(
        self, model_inputs: ModelInputs
    ) -> None:
        draws, data = model_inputs(ModelName.DINA_FOHM, 3)
        evaluator = get_model(ModelName.DINA_FOHM).prepare(data)
        decoded = list(evaluator.iter_draws(draws))
        assert [d.it for d in decoded] == [0, 1, 2]
        assert decoded[1].alphas.shape == (
            data.n_subjects,
            data.n_skills,
            data.n_times,
        )

    def test_response_term_matches_item_model(
        self, model_inputs: ModelInputs
    ) -> None:
        draws, data = model_inputs(ModelName.DINA_FOHM)
        evaluator = get_model(ModelName.DINA_FOHM).prepare(data)
        draw = next(evaluator.iter_draws(draws))
        components = evaluator.decompose_loglik(draw.alphas, draw.params)

        expected = 0.0
        for i in range(data.n_subjects):
            for t in range(data.n_times):
                expected += evaluator.item_model.log_likelihood(
                    draw.alphas[i, :, t],
                    data.responses[i, :, t],
                    data.design.block_index(i, t),
                    draw.params.item,
                )
        assert components.response == pytest.approx(expected)

    def test_separate_speed_joint_prior(
        self, model_inputs: ModelInputs
    ) -> None:
        draws, data = model_inputs(ModelName.DINA_HO_RT_SEP)
        model = DINAHigherOrderSeparateRT()
        evaluator = model.prepare(data)
        draw = next(evaluator.iter_draws(draws))
        params = draw.params
        assert params.response_time is not None
        assert params.tau_variance is not None

        classes = class_index(draw.alphas[:, :, 0])
        expected = np.sum(np.log(params.pis[classes])) + np.sum(
            stats.norm.logpdf(
                params.response_time.taus,
                scale=np.sqrt(params.tau_variance),
            )
        )
        components = evaluator.decompose_loglik(draw.alphas, params)
        assert components.joint == pytest.approx(expected)

    def test_degenerate_covariance_gives_negative_infinity(
        self, model_inputs: ModelInputs
    ) -> None:
        draws, data = model_inputs(ModelName.DINA_HO_RT_JOINT)
        fields = dict(draws)
        fields["Sigs"] = np.zeros((2, 2, draws.n_its))
        evaluator = DINAHigherOrderJointRT().prepare(data)
        draw = next(evaluator.iter_draws(DrawSet(fields)))
        components = evaluator.decompose_loglik(draw.alphas, draw.params)
        assert np.isneginf(components.joint)

    @pytest.mark.parametrize("name", list(ModelName))
    def test_simulation_shapes(
        self, model_inputs: ModelInputs, name: ModelName
    ) -> None:
        draws, data = model_inputs(name)
        evaluator = get_model(name).prepare(data)
        draw = next(evaluator.iter_draws(draws))
        simulated = evaluator.simulate(
            draw.alphas, draw.params, np.random.default_rng(1)
        )
        assert simulated.responses.shape == data.responses.shape
        assert set(np.unique(simulated.responses)) <= {0, 1}
        if evaluator.model.has_response_time:
            assert simulated.latencies is not None
            assert simulated.latencies.shape == data.responses.shape
            assert np.all(simulated.latencies > 0)
        else:
            assert simulated.latencies is None
