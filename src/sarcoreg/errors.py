from __future__ import annotations


class CoregistrationError(ValueError):
    """Base class for caller misconfiguration detected before correlating."""


class DimensionMismatch(CoregistrationError):
    """Master and mask patches differ in shape."""


class InvalidDimension(CoregistrationError):
    """A patch dimension, accuracy window or oversampling factor is not a power of two."""


class InsufficientWindowSize(CoregistrationError):
    """Space-domain correlation window is smaller than 4 after removing the search margins."""
