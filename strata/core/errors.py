"""Exceptions raised across the Strata core."""


class StrataError(Exception):
    """Base class for errors that cross the core boundary."""


class ProviderConfigurationError(StrataError):
    """The generation service cannot be used (missing key, missing SDK)."""


class GenerationError(StrataError):
    """The generation service failed while streaming a response."""


class PlanDecodeError(StrataError):
    """The completed stream never became a valid plan document."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class GenerationInProgressError(StrataError):
    """A generation is already running for this interaction surface."""
