"""
Errors raised by the learning analysis service.

All of these are raised eagerly, before any per-draw work starts.
Degenerate probabilities inside the draw loop are not errors: they
show up as negative infinite log-likelihoods.
"""


class LearningAnalysisError(Exception):
    pass


class UnknownModelError(LearningAnalysisError):
    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unknown model: {model!r}")


class MissingParameterError(LearningAnalysisError):
    def __init__(self, name: str, model: str | None = None) -> None:
        self.name = name
        self.model = model
        if model is None:
            message = f"Missing required input: {name!r}"
        else:
            message = f"Model {model} requires {name!r}, which was not provided"
        super().__init__(message)


class DimensionMismatchError(LearningAnalysisError, ValueError):
    pass


class EmptyDrawSetError(LearningAnalysisError):
    def __init__(self) -> None:
        super().__init__("Draw set contains no posterior draws")


class ContractError(LearningAnalysisError, ValueError):
    pass
