"""
Data models for learning-model summaries.

This module defines the observed-data structures:
- TestDesign: which item block each subject sees at each time point
- LearningData: responses, Q-matrices and optional latency/hierarchy inputs

Axis order is fixed throughout the package:
    responses, latencies: (n_subjects, n_items_per_block, n_times)
    q_matrices:           (n_blocks, n_items_per_block, n_skills)
    q_examinee:           (n_subjects, n_times * n_items_per_block, n_skills)
"""

from dataclasses import dataclass
from functools import cached_property

import numpy as np
from numpy.typing import NDArray

from learning_analysis.core.enums import GVersion
from learning_analysis.core.exceptions import DimensionMismatchError


@dataclass(frozen=True)
class TestDesign:
    """
    Permuted block administration design.

    Attributes:
        test_order: Array of shape (n_versions, n_times). Entry (v, t) is
            the 1-based block id seen by version v at time t.
        test_versions: Array of shape (n_subjects,) with the 1-based test
            version of each subject.
    """

    __test__ = False

    test_order: NDArray[np.int64]
    test_versions: NDArray[np.int64]

    def __post_init__(self) -> None:
        """Validate the design."""
        order = np.asarray(self.test_order)
        versions = np.asarray(self.test_versions).ravel()
        if order.ndim != 2:
            raise DimensionMismatchError(
                f"test_order must be 2D, got shape {order.shape}"
            )
        if np.any(np.mod(order, 1) != 0) or np.any(np.mod(versions, 1) != 0):
            raise DimensionMismatchError(
                "test_order and test_versions must contain integer ids"
            )
        if order.size and order.min() < 1:
            raise DimensionMismatchError(
                f"Block ids are 1-based, got min {order.min()}"
            )
        if versions.size and (
            versions.min() < 1 or versions.max() > order.shape[0]
        ):
            raise DimensionMismatchError(
                f"Test versions must be in [1, {order.shape[0]}], got range "
                f"[{versions.min()}, {versions.max()}]"
            )
        object.__setattr__(self, "test_order", order.astype(np.int64))
        object.__setattr__(self, "test_versions", versions.astype(np.int64))

    @property
    def n_subjects(self) -> int:
        return self.test_versions.shape[0]

    @property
    def n_times(self) -> int:
        return self.test_order.shape[1]

    @property
    def n_versions(self) -> int:
        return self.test_order.shape[0]

    @property
    def max_block_id(self) -> int:
        return int(self.test_order.max()) if self.test_order.size else 0

    @cached_property
    def blocks(self) -> NDArray[np.int64]:
        """0-based block index for each (subject, time), shape (N, T)."""
        result: NDArray[np.int64] = (
            self.test_order[self.test_versions - 1, :] - 1
        )
        return result

    def block_index(self, subject: int, t: int) -> int:
        """0-based block index seen by a subject at time t."""
        return int(self.blocks[subject, t])


@dataclass(frozen=True)
class LearningData:
    """
    Observed data for a learning model.

    Attributes:
        responses: Binary responses, shape (N, Jt, T). Slice t holds the
            responses at time t in administered order.
        q_matrices: Q-matrix of each block, shape (B, Jt, K).
        design: Block administration design.
        latencies: Optional response times, shape (N, Jt, T).
        g_version: Fluency covariate for the response-time model.
        q_examinee: Optional per-subject Q-matrix of all administered
            items in order, shape (N, T * Jt, K). Derived from the design
            when not given.
        reachability: Optional skill hierarchy, shape (K, K). Entry
            (k', k) = 1 means skill k' is a prerequisite of skill k.
    """

    responses: NDArray[np.float64]
    q_matrices: NDArray[np.float64]
    design: TestDesign
    latencies: NDArray[np.float64] | None = None
    g_version: GVersion | None = None
    q_examinee: NDArray[np.float64] | None = None
    reachability: NDArray[np.float64] | None = None

    def __post_init__(self) -> None:
        """Validate shapes against each other."""
        responses = np.asarray(self.responses, dtype=np.float64)
        q_matrices = np.asarray(self.q_matrices, dtype=np.float64)
        if responses.ndim != 3:
            raise DimensionMismatchError(
                f"responses must be 3D (N, Jt, T), got shape {responses.shape}"
            )
        if q_matrices.ndim != 3:
            raise DimensionMismatchError(
                f"q_matrices must be 3D (B, Jt, K), got shape {q_matrices.shape}"
            )
        n_subjects, n_items, n_times = responses.shape
        if q_matrices.shape[1] != n_items:
            raise DimensionMismatchError(
                f"Q-matrices have {q_matrices.shape[1]} items per block, "
                f"responses have {n_items}"
            )
        if self.design.n_subjects != n_subjects:
            raise DimensionMismatchError(
                f"Design has {self.design.n_subjects} subjects, "
                f"responses have {n_subjects}"
            )
        if self.design.n_times != n_times:
            raise DimensionMismatchError(
                f"Design has {self.design.n_times} time points, "
                f"responses have {n_times}"
            )
        if self.design.max_block_id > q_matrices.shape[0]:
            raise DimensionMismatchError(
                f"Design refers to block {self.design.max_block_id}, "
                f"only {q_matrices.shape[0]} Q-matrices given"
            )
        object.__setattr__(self, "responses", responses)
        object.__setattr__(self, "q_matrices", q_matrices)

        if self.latencies is not None:
            latencies = np.asarray(self.latencies, dtype=np.float64)
            if latencies.shape != responses.shape:
                raise DimensionMismatchError(
                    f"latencies shape {latencies.shape} does not match "
                    f"responses shape {responses.shape}"
                )
            object.__setattr__(self, "latencies", latencies)

        if self.g_version is not None:
            object.__setattr__(self, "g_version", GVersion(self.g_version))

        if self.q_examinee is not None:
            q_examinee = np.asarray(self.q_examinee, dtype=np.float64)
            expected = (n_subjects, n_times * n_items, self.n_skills)
            if q_examinee.shape != expected:
                raise DimensionMismatchError(
                    f"q_examinee must have shape {expected}, "
                    f"got {q_examinee.shape}"
                )
            object.__setattr__(self, "q_examinee", q_examinee)

        if self.reachability is not None:
            reachability = np.asarray(self.reachability, dtype=np.float64)
            if reachability.shape != (self.n_skills, self.n_skills):
                raise DimensionMismatchError(
                    f"reachability must have shape "
                    f"{(self.n_skills, self.n_skills)}, got {reachability.shape}"
                )
            object.__setattr__(self, "reachability", reachability)

    @property
    def n_subjects(self) -> int:
        return self.responses.shape[0]

    @property
    def n_items_per_block(self) -> int:
        return self.responses.shape[1]

    @property
    def n_times(self) -> int:
        return self.responses.shape[2]

    @property
    def n_blocks(self) -> int:
        return self.q_matrices.shape[0]

    @property
    def n_skills(self) -> int:
        return self.q_matrices.shape[2]

    @property
    def n_classes(self) -> int:
        return 2**self.n_skills

    @property
    def n_items(self) -> int:
        """Total number of items across all blocks."""
        return self.n_blocks * self.n_items_per_block

    def examinee_q_matrices(self) -> NDArray[np.float64]:
        """
        Q-matrix of the items each subject was administered, in order.

        Returns:
            Array of shape (N, T * Jt, K). Rows t*Jt .. (t+1)*Jt - 1 hold
            the Q-matrix of the block seen at time t.
        """
        if self.q_examinee is not None:
            return self.q_examinee
        stacked = self.q_matrices[self.design.blocks]  # (N, T, Jt, K)
        result: NDArray[np.float64] = stacked.reshape(
            self.n_subjects, self.n_times * self.n_items_per_block, -1
        )
        return result
