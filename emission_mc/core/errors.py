"""Exception types raised by the sampling layer."""


class NoSourceError(RuntimeError):
    """Raised when a candidate is requested from an empty source list."""


class DegenerateWeightsError(ValueError):
    """Raised when drawing from a weighted set whose total weight is zero."""
