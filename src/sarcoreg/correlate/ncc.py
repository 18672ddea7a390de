"""Normalized cross-correlation of magnitude patches via the convolution theorem.

The master magnitude is rotated by 180 degrees so that a plain spectral product
yields the cross-correlation for every shift in ``[-(L-1), L-1] x [-(P-1), P-1]``.
Per-shift normalization uses integral-image local sums of the mask, so the whole
surface costs a few FFTs plus O(LP) bookkeeping.
"""

from __future__ import annotations

import logging

import numpy as np

from ..core.localsum import local_sum
from ..core.spectral import check_power2, forward_fft2d, inverse_fft2d, zeros_complex
from ..core.window import Window, embed, extract
from ..errors import InvalidDimension
from .common import OffsetEstimate, check_pair, magnitude
from .refine import first_argmax, refine_peak


LOG = logging.getLogger(__name__)

# Running maximum starts here; cells at or below it never become the peak
COARSE_FLOOR = -999.0


def ncc_surface(master: np.ndarray, mask: np.ndarray, *, backend: str = "numpy") -> np.ndarray:
    """Normalized cross-correlation surface of shape ``(2L-1, 2P-1)``.

    Cell ``[l, p]`` corresponds to the shift ``(l + 1 - L, p + 1 - P)``. Cells whose
    normalization denominator is exactly zero keep the value 0.
    """
    L, P = check_pair(master, mask)
    check_power2("mask, master size", L, P)

    mag_master = magnitude(master)
    mag_mask = magnitude(mask)
    n = np.float64(L * P)
    origin = Window.full((L, P))

    # A 2L x 2P buffer holds the (2L-1) x (2P-1) linear correlation without wrap-around
    mask2 = embed(zeros_complex((2 * L, 2 * P)), mag_mask, origin)
    master2 = embed(zeros_complex((2 * L, 2 * P)), mag_master[::-1, ::-1], origin)
    forward_fft2d(master2, backend=backend)
    forward_fft2d(mask2, backend=backend)
    mask2 *= master2
    inverse_fft2d(mask2, backend=backend)
    raw = mask2.real[: 2 * L - 1, : 2 * P - 1]

    sum_mask = local_sum(mag_mask)
    sum_mask2 = local_sum(mag_mask * mag_mask)

    master_mean = mag_master.mean()
    master_std = np.sqrt(np.mean((mag_master - master_mean) ** 2) * n / (n - 1.0))

    surface = np.zeros((2 * L - 1, 2 * P - 1), dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        numerator = (raw - sum_mask * master_mean) / (n - 1.0)
        # Clamp rounding noise so flat regions hit the zero-denominator guard
        local_var = np.maximum((sum_mask2 - sum_mask * sum_mask / n) / (n - 1.0), 0.0)
        denominator = np.sqrt(local_var) * master_std
        np.divide(numerator, denominator, out=surface, where=denominator != 0.0)
    return surface


def normalized_cross_correlation(
    master: np.ndarray,
    mask: np.ndarray,
    oversampling: int = 16,
    acc_l: int = 8,
    acc_p: int = 8,
    *,
    backend: str = "numpy",
) -> OffsetEstimate:
    """Offset of ``mask`` relative to ``master`` from the normalized correlation peak.

    With ``oversampling > 1`` a chip of up to ``2*acc_l x 2*acc_p`` cells around the
    integer peak (clipped to the surface) is interpolated and its maximum replaces
    the coarse estimate.
    """
    check_pair(master, mask)
    check_power2("oversampling factor", oversampling)
    if oversampling > 1 and (acc_l < 1 or acc_p < 1):
        raise InvalidDimension(f"accuracy window must be positive, got ({acc_l}, {acc_p})")

    surface = ncc_surface(master, mask, backend=backend)
    L, P = np.asarray(master).shape
    nl, np_ = surface.shape

    hit = first_argmax(surface, COARSE_FLOOR)
    (peak_l, peak_p), score = hit if hit is not None else ((0, 0), COARSE_FLOOR)
    offset_l = float(peak_l + 1 - L)
    offset_p = float(peak_p + 1 - P)
    LOG.debug("ncc coarse peak at %s (offset %.0f, %.0f, corr=%.4f)", (peak_l, peak_p), offset_l, offset_p, score)

    if oversampling > 1:
        win = Window(
            max(peak_l - acc_l, 0),
            min(peak_l + acc_l - 1, nl - 1),
            max(peak_p - acc_p, 0),
            min(peak_p + acc_p - 1, np_ - 1),
        )
        _, idx, value = refine_peak(extract(surface, win), oversampling, backend=backend)
        if idx is not None:
            score = value
            offset_l = win.line_lo + idx[0] / float(oversampling) + 1 - L
            offset_p = win.pix_lo + idx[1] / float(oversampling) + 1 - P

    return OffsetEstimate(float(offset_l), float(offset_p), float(score))
