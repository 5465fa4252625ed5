class ForecastError(Exception):
    """Base error for the forecast engine"""


class ForecastGenerationError(ForecastError):
    """A forecast run could not be completed; callers map this to a 500."""


class InsufficientDataError(ForecastGenerationError):
    """The input series cannot seed a forecast (empty, or non-positive price)."""
