"""
The six learning-model variants.

Each variant fixes an item-response model, a transition model, whether
response times are modeled, and the form of the joint prior term:

    Model              Responses  Transition             Latency  Joint prior
    DINA_HO            DINA       higher-order (sep)     -        log pi
    DINA_HO_RT_sep     DINA       higher-order (sep)     yes      + N(tau; 0, tauvar)
    DINA_HO_RT_joint   DINA       higher-order (joint)   yes      + MVN((theta, tau); 0, Sigma)
    rRUM_indept        rRUM       independent + R        -        log pi
    NIDA_indept        NIDA       independent + R        -        log pi
    DINA_FOHM          DINA       first-order HMM        -        log pi

A variant is looked up once with `get_model` and then bound to the
observed data with `prepare`, which builds the ETA tables and component
models a single time for all draws.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import ClassVar

import numpy as np
from numpy.random import Generator
from numpy.typing import NDArray
from scipy import stats

from learning_analysis.core.codec import (
    check_codes,
    class_index,
    decode_trajectories,
)
from learning_analysis.core.data_models import LearningData
from learning_analysis.core.draws import PIS, TRAJECTORIES, DrawSet
from learning_analysis.core.enums import ModelName
from learning_analysis.core.exceptions import (
    DimensionMismatchError,
    MissingParameterError,
    UnknownModelError,
)
from learning_analysis.core.utils import safe_log
from learning_analysis.models.response import (
    DINAModel,
    DINAParameters,
    ItemParameters,
    ItemResponseModel,
    NIDAModel,
    NIDAParameters,
    RRUMModel,
    RRUMParameters,
    build_eta_cube,
)
from learning_analysis.models.response_time import (
    LogNormalResponseTimeModel,
    ResponseTimeParameters,
)
from learning_analysis.models.transition import (
    FirstOrderParameters,
    FirstOrderTransition,
    HigherOrderParameters,
    HigherOrderTransition,
    IndependentParameters,
    IndependentTransition,
    TransitionModel,
    TransitionParameters,
)

logger = logging.getLogger(__name__)

FieldGetter = Callable[[str], NDArray[np.float64]]


@dataclass(frozen=True)
class ModelParameters:
    """
    Parameters of one draw (or their posterior means).

    Attributes:
        pis: Initial latent class probabilities, shape (2^K,).
        item: Item-response parameters.
        transition: Transition parameters.
        response_time: Latency parameters, for response-time variants.
        tau_variance: Variance of the latent speed (separate-speed variant).
        covariance: Covariance of (theta, tau), shape (2, 2)
            (joint-speed variant).
    """

    pis: NDArray[np.float64]
    item: ItemParameters
    transition: TransitionParameters
    response_time: ResponseTimeParameters | None = None
    tau_variance: float | None = None
    covariance: NDArray[np.float64] | None = None


@dataclass(frozen=True)
class LogLikelihoodComponents:
    """
    Log-likelihood contributions of one parameter set.

    `response_time` is NaN for variants without a latency model.
    """

    transition: float
    response_time: float
    response: float
    joint: float


@dataclass(frozen=True)
class SimulatedData:
    """
    Posterior-predictive data in administered order.

    Attributes:
        responses: Binary responses, shape (N, Jt, T).
        latencies: Response times, shape (N, Jt, T), or None.
    """

    responses: NDArray[np.int8]
    latencies: NDArray[np.float64] | None = None


@dataclass(frozen=True)
class PosteriorDraw:
    """One posterior draw with its trajectories decoded to (N, K, T)."""

    it: int
    alphas: NDArray[np.int8]
    params: ModelParameters


def _scalar(values: NDArray[np.float64]) -> float:
    return float(np.ravel(values)[0])


class LearningModel(ABC):
    """Abstract base class for the learning-model variants."""

    name: ClassVar[ModelName]
    point_estimate_fields: ClassVar[tuple[str, ...]]
    has_response_time: ClassVar[bool] = False
    needs_reachability: ClassVar[bool] = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    @property
    def required_fields(self) -> tuple[str, ...]:
        """All DrawSet fields this variant reads."""
        return (TRAJECTORIES, PIS) + self.point_estimate_fields

    @abstractmethod
    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        """Per-draw shape of every required field."""
        ...

    @abstractmethod
    def _build_parameters(self, get: FieldGetter) -> ModelParameters: ...

    @abstractmethod
    def _item_model(
        self, data: LearningData, eta: NDArray[np.int8]
    ) -> ItemResponseModel:  # type: ignore[type-arg]
        ...

    @abstractmethod
    def _transition_model(self, data: LearningData) -> TransitionModel:  # type: ignore[type-arg]
        ...

    def parameters_at(self, draws: DrawSet, it: int) -> ModelParameters:
        """Parameters of draw `it`."""
        return self._build_parameters(lambda name: draws.draw(name, it))

    def posterior_means(self, draws: DrawSet) -> ModelParameters:
        """Posterior means (EAP) of all parameters."""
        return self._build_parameters(draws.mean)

    def validate_inputs(self, data: LearningData) -> None:
        """
        Check the observed data carries what this variant needs.

        Raises:
            MissingParameterError: If latencies, the G version or the
                reachability matrix is required but absent.
        """
        if self.has_response_time:
            if data.latencies is None:
                raise MissingParameterError("latencies", self.name.value)
            if data.g_version is None:
                raise MissingParameterError("g_version", self.name.value)
        if self.needs_reachability and data.reachability is None:
            raise MissingParameterError("reachability", self.name.value)

    def validate_draws(self, draws: DrawSet, data: LearningData) -> None:
        """
        Check every required draw field exists and matches the data.

        Raises:
            MissingParameterError: If a field is absent.
            DimensionMismatchError: If a field has the wrong shape.
            ContractError: If a trajectory code is not a valid code of
                K * T bits.
        """
        draws.require(self.required_fields, self.name.value)
        expected = {
            TRAJECTORIES: (data.n_subjects,),
            PIS: (data.n_classes,),
            **self.expected_shapes(data),
        }
        for name, shape in expected.items():
            actual = draws[name].shape[:-1]
            if shape == () and actual == (1,):
                continue
            if actual != shape:
                raise DimensionMismatchError(
                    f"Draw field {name!r} has per-draw shape {actual}, "
                    f"expected {shape}"
                )
        check_codes(draws.trajectories, data.n_skills * data.n_times)

    def prepare(self, data: LearningData) -> "ModelEvaluator":
        """Bind the variant to observed data, building ETA tables once."""
        self.validate_inputs(data)
        eta = build_eta_cube(data.q_matrices)
        response_time_model = None
        if self.has_response_time:
            assert data.g_version is not None
            response_time_model = LogNormalResponseTimeModel(
                eta, data.q_matrices, data.design, data.g_version
            )
        return ModelEvaluator(
            model=self,
            data=data,
            eta=eta,
            item_model=self._item_model(data, eta),
            transition_model=self._transition_model(data),
            response_time_model=response_time_model,
        )

    def joint_log_prior(
        self, alphas: NDArray[np.integer], params: ModelParameters
    ) -> float:
        """Log-probability of every subject's initial latent class."""
        classes = class_index(alphas[:, :, 0])
        return float(np.sum(safe_log(params.pis[classes])))


@dataclass(frozen=True)
class ModelEvaluator:
    """A learning-model variant bound to observed data."""

    model: LearningModel
    data: LearningData
    eta: NDArray[np.int8]
    item_model: ItemResponseModel  # type: ignore[type-arg]
    transition_model: TransitionModel  # type: ignore[type-arg]
    response_time_model: LogNormalResponseTimeModel | None = None

    def validate_draws(self, draws: DrawSet) -> None:
        """Check the draws against the bound data before any draw is used."""
        self.model.validate_draws(draws, self.data)

    def iter_draws(self, draws: DrawSet) -> Iterator[PosteriorDraw]:
        """Decoded profiles and parameters of every draw, in order."""
        n_skills, n_times = self.data.n_skills, self.data.n_times
        for it in range(draws.n_its):
            alphas = decode_trajectories(
                draws.trajectories[:, it], n_skills, n_times
            )
            yield PosteriorDraw(
                it=it,
                alphas=alphas,
                params=self.model.parameters_at(draws, it),
            )

    def decompose_loglik(
        self, alphas: NDArray[np.integer], params: ModelParameters
    ) -> LogLikelihoodComponents:
        """
        Log-likelihood of the observed data split by model component.

        Args:
            alphas: Profiles, shape (N, K, T).
            params: Parameters of one draw or their posterior means.
        """
        data = self.data
        blocks = data.design.blocks

        response = 0.0
        for t in range(data.n_times):
            response += float(
                np.sum(
                    self.item_model.log_likelihood_batch(
                        alphas[:, :, t],
                        data.responses[:, :, t],
                        blocks[:, t],
                        params.item,
                    )
                )
            )

        transition = self.transition_model.log_likelihood(
            alphas, params.transition
        )

        response_time = float("nan")
        if self.response_time_model is not None:
            assert data.latencies is not None
            assert params.response_time is not None
            response_time = self.response_time_model.log_likelihood(
                alphas, data.latencies, params.response_time
            )

        return LogLikelihoodComponents(
            transition=transition,
            response_time=response_time,
            response=response,
            joint=self.model.joint_log_prior(alphas, params),
        )

    def simulate(
        self,
        alphas: NDArray[np.integer],
        params: ModelParameters,
        rng: Generator,
    ) -> SimulatedData:
        """
        Simulate responses (and latencies) in administered order.

        Random numbers are consumed time point by time point for the
        responses, then time point by time point for the latencies.
        """
        data = self.data
        blocks = data.design.blocks
        shape = (data.n_subjects, data.n_items_per_block, data.n_times)

        responses = np.empty(shape, dtype=np.int8)
        for t in range(data.n_times):
            responses[:, :, t] = self.item_model.simulate(
                alphas[:, :, t], blocks[:, t], params.item, rng
            )

        latencies = None
        if self.response_time_model is not None:
            assert params.response_time is not None
            latencies = np.empty(shape, dtype=np.float64)
            for t in range(data.n_times):
                covariate = self.response_time_model.fluency_covariate(
                    alphas, t
                )
                log_latencies = self.response_time_model.simulate_log(
                    covariate, blocks[:, t], params.response_time, rng
                )
                latencies[:, :, t] = np.exp(log_latencies)

        return SimulatedData(responses=responses, latencies=latencies)


class _DINAItems:
    """Mixin for variants with DINA responses."""

    def _item_model(
        self, data: LearningData, eta: NDArray[np.int8]
    ) -> DINAModel:
        return DINAModel(data.q_matrices, eta=eta)


class _HigherOrderTransitions:
    """Mixin for variants with the higher-order transition model."""

    include_profile_total: ClassVar[bool] = True

    def _transition_model(self, data: LearningData) -> HigherOrderTransition:
        return HigherOrderTransition(
            data.examinee_q_matrices(),
            data.n_items_per_block,
            include_profile_total=self.include_profile_total,
        )

    def _lambda_shape(self) -> tuple[int, ...]:
        return (4,) if self.include_profile_total else (3,)


class _IndependentTransitions:
    """Mixin for variants with the independent transition model."""

    needs_reachability: ClassVar[bool] = True

    def _transition_model(self, data: LearningData) -> IndependentTransition:
        assert data.reachability is not None
        return IndependentTransition(data.reachability)


class DINAHigherOrder(_DINAItems, _HigherOrderTransitions, LearningModel):
    name = ModelName.DINA_HO
    point_estimate_fields = ("ss", "gs", "thetas", "lambdas")

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            "ss": (data.n_items,),
            "gs": (data.n_items,),
            "thetas": (data.n_subjects,),
            "lambdas": self._lambda_shape(),
        }

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=DINAParameters(slip=get("ss"), guess=get("gs")),
            transition=HigherOrderParameters(
                lambdas=get("lambdas"), thetas=get("thetas")
            ),
        )


class DINAHigherOrderSeparateRT(DINAHigherOrder):
    """Response times with latent speed independent of learning ability."""

    name = ModelName.DINA_HO_RT_SEP
    point_estimate_fields = (
        "ss",
        "gs",
        "as",
        "gammas",
        "thetas",
        "taus",
        "lambdas",
        "phis",
        "tauvar",
    )
    has_response_time = True

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            **super().expected_shapes(data),
            "as": (data.n_items,),
            "gammas": (data.n_items,),
            "taus": (data.n_subjects,),
            "phis": (),
            "tauvar": (),
        }

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=DINAParameters(slip=get("ss"), guess=get("gs")),
            transition=HigherOrderParameters(
                lambdas=get("lambdas"), thetas=get("thetas")
            ),
            response_time=ResponseTimeParameters(
                a=get("as"),
                gamma=get("gammas"),
                taus=get("taus"),
                phi=_scalar(get("phis")),
            ),
            tau_variance=_scalar(get("tauvar")),
        )

    def joint_log_prior(
        self, alphas: NDArray[np.integer], params: ModelParameters
    ) -> float:
        log_prior = super().joint_log_prior(alphas, params)
        assert params.response_time is not None
        assert params.tau_variance is not None
        if not params.tau_variance > 0:
            return -np.inf
        speed = stats.norm.logpdf(
            params.response_time.taus,
            loc=0.0,
            scale=np.sqrt(params.tau_variance),
        )
        return log_prior + float(np.sum(speed))


class DINAHigherOrderJointRT(DINAHigherOrder):
    """Response times with (theta, tau) drawn from a bivariate normal."""

    name = ModelName.DINA_HO_RT_JOINT
    point_estimate_fields = (
        "ss",
        "gs",
        "as",
        "gammas",
        "thetas",
        "taus",
        "lambdas",
        "phis",
        "Sigs",
    )
    has_response_time = True
    include_profile_total = False

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            **super().expected_shapes(data),
            "as": (data.n_items,),
            "gammas": (data.n_items,),
            "taus": (data.n_subjects,),
            "phis": (),
            "Sigs": (2, 2),
        }

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=DINAParameters(slip=get("ss"), guess=get("gs")),
            transition=HigherOrderParameters(
                lambdas=get("lambdas"), thetas=get("thetas")
            ),
            response_time=ResponseTimeParameters(
                a=get("as"),
                gamma=get("gammas"),
                taus=get("taus"),
                phi=_scalar(get("phis")),
            ),
            covariance=get("Sigs"),
        )

    def joint_log_prior(
        self, alphas: NDArray[np.integer], params: ModelParameters
    ) -> float:
        log_prior = super().joint_log_prior(alphas, params)
        assert params.response_time is not None
        assert params.covariance is not None
        assert isinstance(params.transition, HigherOrderParameters)
        speeds = np.column_stack(
            [params.transition.thetas, params.response_time.taus]
        )
        try:
            density = stats.multivariate_normal.logpdf(
                speeds, mean=np.zeros(2), cov=params.covariance
            )
        except (np.linalg.LinAlgError, ValueError):
            logger.debug("Degenerate speed covariance %s", params.covariance)
            return -np.inf
        return log_prior + float(np.sum(density))


class RRUMIndependent(_IndependentTransitions, LearningModel):
    name = ModelName.RRUM_INDEPT
    point_estimate_fields = ("r_stars", "pi_stars", "taus")

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            "r_stars": (data.n_items, data.n_skills),
            "pi_stars": (data.n_items,),
            "taus": (data.n_skills,),
        }

    def _item_model(
        self, data: LearningData, eta: NDArray[np.int8]
    ) -> RRUMModel:
        return RRUMModel(data.q_matrices)

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=RRUMParameters(r_star=get("r_stars"), pi_star=get("pi_stars")),
            transition=IndependentParameters(taus=get("taus")),
        )


class NIDAIndependent(_IndependentTransitions, LearningModel):
    name = ModelName.NIDA_INDEPT
    point_estimate_fields = ("ss", "gs", "taus")

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            "ss": (data.n_skills,),
            "gs": (data.n_skills,),
            "taus": (data.n_skills,),
        }

    def _item_model(
        self, data: LearningData, eta: NDArray[np.int8]
    ) -> NIDAModel:
        return NIDAModel(data.q_matrices)

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=NIDAParameters(slip=get("ss"), guess=get("gs")),
            transition=IndependentParameters(taus=get("taus")),
        )


class DINAFirstOrder(_DINAItems, LearningModel):
    name = ModelName.DINA_FOHM
    point_estimate_fields = ("ss", "gs", "omegas")

    def expected_shapes(
        self, data: LearningData
    ) -> dict[str, tuple[int, ...]]:
        return {
            "ss": (data.n_items,),
            "gs": (data.n_items,),
            "omegas": (data.n_classes, data.n_classes),
        }

    def _transition_model(self, data: LearningData) -> FirstOrderTransition:
        return FirstOrderTransition()

    def _build_parameters(self, get: FieldGetter) -> ModelParameters:
        return ModelParameters(
            pis=get(PIS),
            item=DINAParameters(slip=get("ss"), guess=get("gs")),
            transition=FirstOrderParameters(omega=get("omegas")),
        )


MODEL_REGISTRY: dict[ModelName, type[LearningModel]] = {
    model.name: model
    for model in (
        DINAHigherOrder,
        DINAHigherOrderSeparateRT,
        DINAHigherOrderJointRT,
        RRUMIndependent,
        NIDAIndependent,
        DINAFirstOrder,
    )
}


def get_model(name: str | ModelName | LearningModel) -> LearningModel:
    """
    Look up a learning-model variant by name.

    Args:
        name: One of the ModelName values, e.g. "DINA_FOHM".

    Raises:
        UnknownModelError: If the name is not a known variant.
    """
    if isinstance(name, LearningModel):
        return name
    try:
        model_name = ModelName(name)
    except ValueError as e:
        raise UnknownModelError(str(name)) from e
    return MODEL_REGISTRY[model_name]()
