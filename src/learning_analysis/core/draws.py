"""
Posterior draws produced by the learning-model sampler.

Every field keeps the draw axis last, so draw `it` of field `name` is
`draws[name][..., it]` and its posterior mean is the mean over axis -1.
"""

from collections.abc import Iterable, Iterator, Mapping

import numpy as np
from numpy.typing import ArrayLike, NDArray

from learning_analysis.core.exceptions import (
    DimensionMismatchError,
    MissingParameterError,
)

TRAJECTORIES = "trajectories"
PIS = "pis"


class DrawSet(Mapping[str, NDArray[np.float64]]):
    """
    Read-only mapping from parameter name to posterior draws.

    Always contains `trajectories` (N, n_its) with integer trajectory
    codes and `pis` (2^K, n_its) with latent class probabilities.

    Per-draw scalars stored as a column of shape (n_its, 1) are
    flattened to (n_its,), also when there are no draws. With a single
    draw the column layout is indistinguishable from a length-one vector
    and is kept as is.
    """

    def __init__(self, fields: Mapping[str, ArrayLike]) -> None:
        for name in (TRAJECTORIES, PIS):
            if name not in fields:
                raise MissingParameterError(name)

        trajectories = np.asarray(fields[TRAJECTORIES], dtype=np.float64)
        if trajectories.ndim != 2:
            raise DimensionMismatchError(
                f"trajectories must be 2D (N, n_its), got shape "
                f"{trajectories.shape}"
            )
        n_its = trajectories.shape[1]

        self._fields: dict[str, NDArray[np.float64]] = {}
        for name, values in fields.items():
            arr = np.array(values, dtype=np.float64)
            if n_its != 1 and arr.shape == (n_its, 1):
                arr = arr[:, 0]
            if arr.ndim == 0 or arr.shape[-1] != n_its:
                raise DimensionMismatchError(
                    f"Field {name!r} has shape {arr.shape}; the last axis "
                    f"must hold the {n_its} draws"
                )
            arr.setflags(write=False)
            self._fields[name] = arr

    def __getitem__(self, name: str) -> NDArray[np.float64]:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        shapes = ", ".join(
            f"{name}={arr.shape}" for name, arr in self._fields.items()
        )
        return f"DrawSet({shapes})"

    @property
    def n_its(self) -> int:
        """Number of posterior draws."""
        return self._fields[TRAJECTORIES].shape[1]

    @property
    def n_subjects(self) -> int:
        return self._fields[TRAJECTORIES].shape[0]

    @property
    def trajectories(self) -> NDArray[np.float64]:
        return self._fields[TRAJECTORIES]

    @property
    def pis(self) -> NDArray[np.float64]:
        return self._fields[PIS]

    def require(self, names: Iterable[str], model: str | None = None) -> None:
        """
        Check that all named fields are present.

        Raises:
            MissingParameterError: For the first missing field.
        """
        for name in names:
            if name not in self._fields:
                raise MissingParameterError(name, model)

    def draw(self, name: str, it: int) -> NDArray[np.float64]:
        """Draw `it` of a field (the draw axis removed)."""
        result: NDArray[np.float64] = self._fields[name][..., it]
        return result

    def mean(self, name: str) -> NDArray[np.float64]:
        """Posterior mean of a field (arithmetic mean over draws)."""
        result: NDArray[np.float64] = np.mean(self._fields[name], axis=-1)
        return result
