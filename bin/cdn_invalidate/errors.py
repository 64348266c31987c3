"""Exceptions raised while invalidating CloudFront distributions."""


class InvalidationHookError(Exception):
    """Base exception for the invalidation hook."""

    pass


class ConfigurationError(InvalidationHookError):
    """A target is missing the field that identifies its distribution."""

    pass


class ResolutionError(InvalidationHookError):
    """The distribution id could not be read from the stack outputs."""

    pass


class InvalidationError(InvalidationHookError):
    """CloudFront rejected an invalidation request."""

    pass


class StartupError(InvalidationHookError):
    """Fatal problem detected before any target is processed."""

    pass
