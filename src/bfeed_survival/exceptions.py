"""
Exception types raised by the analysis pipeline.

Every one of these is fatal for the report: the narrative depends on each
reported estimate being valid, so callers let them propagate.
"""


class BFeedAnalysisError(Exception):
    """Base class for analysis errors."""


class DataIntegrityError(BFeedAnalysisError, ValueError):
    """The observation table is missing fields or contains missing values."""


class DegenerateStratumError(BFeedAnalysisError, ValueError):
    """A group used for stratification has no observed events."""

    def __init__(self, column: str, level, n_obs: int):
        self.column = column
        self.level = level
        self.n_obs = n_obs
        super().__init__(
            f"Stratum {column}={level} has no observed events (n={n_obs})"
        )


class ModelFitError(BFeedAnalysisError, RuntimeError):
    """The Cox partial-likelihood optimizer failed to converge."""


class RegressionStateError(BFeedAnalysisError, RuntimeError):
    """A regression workflow step was requested out of order."""
