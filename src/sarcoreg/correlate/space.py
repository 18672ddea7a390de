from __future__ import annotations

import logging

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from ..core.spectral import check_power2
from ..core.window import Window, extract
from ..errors import InsufficientWindowSize
from .common import OffsetEstimate, check_pair, magnitude
from .refine import refine_peak


LOG = logging.getLogger(__name__)

MIN_WINDOW = 4


def _window_size(L: int, P: int, acc_l: int, acc_p: int):
    check_power2("AccL, AccP", acc_l, acc_p)
    size_l, size_p = L - 2 * acc_l, P - 2 * acc_p
    if size_l < MIN_WINDOW or size_p < MIN_WINDOW:
        raise InsufficientWindowSize(
            f"correlation window too small (<{MIN_WINDOW}; size = winsize - 2*Acc = {size_l}x{size_p})"
        )
    return size_l, size_p


def coherence_surface(master: np.ndarray, mask: np.ndarray, acc_l: int, acc_p: int) -> np.ndarray:
    """Brute-force coherence for the ``2*acc_l x 2*acc_p`` integer shifts.

    The central ``(L - 2*acc_l) x (P - 2*acc_p)`` part of the demeaned mask is held
    fixed while the same-sized master window slides; cell ``[i, j]`` compares master
    window ``i, j`` (top-left corner) against it and lies in ``[-1, 1]``; cells with a
    zero-variance window keep the default value 0.
    """
    L, P = check_pair(master, mask)
    size_l, size_p = _window_size(L, P, acc_l, acc_p)

    mag_mask = magnitude(mask)
    mag_mask = mag_mask - mag_mask.mean()
    mask2 = extract(mag_mask, Window(acc_l, acc_l + size_l - 1, acc_p, acc_p + size_p - 1))
    norm_mask = float(np.sum(mask2 * mask2))

    mag_master = magnitude(master)
    mag_master = mag_master - mag_master.mean()
    windows = sliding_window_view(mag_master, (size_l, size_p))[: 2 * acc_l, : 2 * acc_p]
    cross = np.einsum("ijkl,kl->ij", windows, mask2)
    power = np.einsum("ijkl,ijkl->ij", windows, windows)
    denominator = np.sqrt(np.maximum(power * norm_mask, 0.0))
    # Zero-variance windows keep the default coherence 0
    return np.divide(cross, denominator, out=np.zeros_like(cross), where=denominator != 0.0)


def cross_correlate_space(
    master: np.ndarray,
    mask: np.ndarray,
    acc_l: int = 8,
    acc_p: int = 8,
    oversampling: int = 16,
    *,
    backend: str = "numpy",
) -> OffsetEstimate:
    """Offset of ``mask`` relative to ``master`` searched within ``[-acc+1, acc]`` per axis.

    No FFT is needed for the coarse surface; the small coherence surface is then
    oversampled and the peak converted with ``offset = acc - index / oversampling``.
    """
    L, P = check_pair(master, mask)
    _window_size(L, P, acc_l, acc_p)
    check_power2("oversampling factor", oversampling)

    coher = coherence_surface(master, mask, acc_l, acc_p)
    _, idx, score = refine_peak(coher, oversampling, backend=backend)
    if idx is None:
        idx = (0, 0)
    offset_l = acc_l - idx[0] / float(oversampling)
    offset_p = acc_p - idx[1] / float(oversampling)

    LOG.info("Oversampling factor: %d", oversampling)
    LOG.info("Sub-pixel level offset: %.4f, %.4f (corr=%.4f)", offset_l, offset_p, score)
    return OffsetEstimate(float(offset_l), float(offset_p), float(score))
