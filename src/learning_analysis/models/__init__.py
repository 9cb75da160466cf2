"""
Likelihood components of the hidden-Markov learning models.

This module provides:
- Item-response models (DINA, rRUM, NIDA)
- Attribute transition models (higher-order, independent, first-order)
- The log-normal response-time model
- The six model variants combining them
"""

from learning_analysis.models.variants import (
    MODEL_REGISTRY,
    LearningModel,
    LogLikelihoodComponents,
    ModelEvaluator,
    ModelParameters,
    PosteriorDraw,
    SimulatedData,
    get_model,
)

__all__ = [
    "MODEL_REGISTRY",
    "LearningModel",
    "LogLikelihoodComponents",
    "ModelEvaluator",
    "ModelParameters",
    "PosteriorDraw",
    "SimulatedData",
    "get_model",
]
