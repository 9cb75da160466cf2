"""
Core shared types and utilities for the learning analysis service.

This module provides foundational components used across the model,
summary and fit subpackages: the trajectory codec, observed-data
containers, the posterior draw set and random number helpers.
"""

from learning_analysis.core.data_models import LearningData, TestDesign
from learning_analysis.core.draws import DrawSet
from learning_analysis.core.enums import DecodingMethod, GVersion, ModelName
from learning_analysis.core.utils import get_rng, spawn_rngs

__all__ = [
    "DecodingMethod",
    "DrawSet",
    "GVersion",
    "LearningData",
    "ModelName",
    "TestDesign",
    "get_rng",
    "spawn_rngs",
]
