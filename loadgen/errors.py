"""Exception hierarchy for the load harness."""


class LoadgenError(Exception):
    """Base class for harness errors."""


class ConfigurationError(LoadgenError):
    """Run parameters are invalid; raised before any request is sent."""


class ReportError(LoadgenError):
    """A run report could not be produced."""


class NoSamplesError(ReportError):
    """Aggregation was asked to summarize zero latency samples."""

    def __init__(self, message: str = "no latency samples recorded") -> None:
        super().__init__(message)
