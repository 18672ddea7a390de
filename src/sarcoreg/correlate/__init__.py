from .common import OffsetEstimate, magnitude
from .refine import first_argmax, oversample, refine_peak
from .ncc import ncc_surface, normalized_cross_correlation
from .incoherent import BlockSpectrumCache, block_spectrum, cross_correlate_fft, incoherent_surface
from .space import coherence_surface, cross_correlate_space
from .pipeline import CorrelationConfig, Correlator, correlate

__all__ = [
    "OffsetEstimate",
    "magnitude",
    "first_argmax",
    "oversample",
    "refine_peak",
    "ncc_surface",
    "normalized_cross_correlation",
    "BlockSpectrumCache",
    "block_spectrum",
    "cross_correlate_fft",
    "incoherent_surface",
    "coherence_surface",
    "cross_correlate_space",
    "CorrelationConfig",
    "Correlator",
    "correlate",
]
