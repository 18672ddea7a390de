"""sarcoreg: sub-pixel co-registration of complex image patches.

Spectral (FFT) and space-domain correlators for estimating the offset between two
equal-sized SLC patches, with frequency-domain oversampling for sub-pixel peaks.
Install from the repo root and use via `sarcoreg.*` and `python -m sarcoreg.cli.*`.
"""

from .errors import (
    CoregistrationError,
    DimensionMismatch,
    InsufficientWindowSize,
    InvalidDimension,
)
from .correlate.pipeline import (
    CorrelationConfig,
    Correlator,
    OffsetEstimate,
    correlate,
)

__all__ = [
    "__version__",
    "CoregistrationError",
    "DimensionMismatch",
    "InsufficientWindowSize",
    "InvalidDimension",
    "CorrelationConfig",
    "Correlator",
    "OffsetEstimate",
    "correlate",
]

__version__ = "0.1.0"
