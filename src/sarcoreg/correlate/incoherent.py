"""Incoherent (magnitude) cross-correlation in the spectral domain.

Zero-mean magnitudes are correlated through double-size zero-padded buffers. The
per-shift energies of both patches come out of a single extra FFT: the flipped
master power goes in the real channel, the mask power in the imaginary channel,
and both are correlated with a block of ones at once.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Tuple

import numpy as np

from ..core.spectral import check_power2, forward_fft2d, inverse_fft2d, zeros_complex
from ..core.window import Window, embed, extract
from ..errors import InsufficientWindowSize, InvalidDimension
from .common import OffsetEstimate, check_pair, magnitude
from .refine import first_argmax, refine_peak


LOG = logging.getLogger(__name__)

COARSE_FLOOR = -999.0


def block_spectrum(L: int, P: int, *, backend: str = "numpy") -> np.ndarray:
    """Conjugate spectrum of a ``2L x 2P`` array holding an L x P block of ones at its center.

    The returned array is read-only.
    """
    half_l, half_p = L // 2, P // 2
    block = zeros_complex((2 * L, 2 * P))
    block[half_l:half_l + L, half_p:half_p + P] = 1.0
    forward_fft2d(block, backend=backend)
    np.conjugate(block, out=block)
    block.setflags(write=False)
    return block


class BlockSpectrumCache:
    """Thread-safe, size-keyed cache of :func:`block_spectrum` results.

    Owned by the caller; entries are immutable once stored, so concurrent readers
    never observe a partially written spectrum.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blocks: Dict[Tuple[int, int, str], np.ndarray] = {}

    def get(self, L: int, P: int, *, backend: str = "numpy") -> np.ndarray:
        key = (int(L), int(P), str(backend))
        with self._lock:
            blk = self._blocks.get(key)
        if blk is not None:
            return blk
        LOG.debug("block spectrum cache miss for patch size %dx%d (%s)", L, P, backend)
        blk = block_spectrum(L, P, backend=backend)
        with self._lock:
            # Another thread may have won the race; keep the first stored entry
            return self._blocks.setdefault(key, blk)

    def clear(self) -> None:
        with self._lock:
            self._blocks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._blocks)

    def __contains__(self, size: object) -> bool:
        with self._lock:
            return any(k[:2] == size for k in self._blocks)


def incoherent_surface(
    master: np.ndarray,
    mask: np.ndarray,
    *,
    block_cache: Optional[BlockSpectrumCache] = None,
    backend: str = "numpy",
) -> np.ndarray:
    """Correlation of zero-mean magnitudes for shifts ``-L/2 .. L/2`` (and pixels likewise).

    Returns an ``(L+1, P+1)`` array; cell ``[l, p]`` is the shift ``(l - L/2, p - P/2)``.
    Cells with zero energy keep the default value 0.
    """
    L, P = check_pair(master, mask)
    check_power2("mask, master size", L, P)
    half_l, half_p = L // 2, P // 2

    mag_master = magnitude(master)
    mag_mask = magnitude(mask)
    mag_master = mag_master - mag_master.mean()
    mag_mask = mag_mask - mag_mask.mean()

    # (1) cross products; the 2L x 2P padding prevents periodic wrap-around
    master2 = embed(zeros_complex((2 * L, 2 * P)), mag_master, Window.full((L, P)))
    mask2 = embed(zeros_complex((2 * L, 2 * P)), mag_mask, Window(half_l, half_l + L - 1, half_p, half_p + P - 1))
    forward_fft2d(master2, backend=backend)
    forward_fft2d(mask2, backend=backend)
    np.conjugate(master2, out=master2)
    mask2 *= master2
    inverse_fft2d(mask2, backend=backend)

    # (2) energies for every shift: flipped master power in re, mask power in im
    power = zeros_complex((2 * L, 2 * P))
    power[L:, P:] = mag_master[::-1, ::-1] ** 2 + 1j * mag_mask ** 2
    if block_cache is not None:
        block = block_cache.get(L, P, backend=backend)
    else:
        block = block_spectrum(L, P, backend=backend)
    forward_fft2d(power, backend=backend)
    power *= block
    inverse_fft2d(power, backend=backend)

    cross = mask2.real[: L + 1, : P + 1]
    energy = power[: L + 1, : P + 1]
    # Rounding can leave tiny negative energies where the true value is 0
    denominator = np.sqrt(np.maximum(energy.real * energy.imag, 0.0))
    return np.divide(cross, denominator, out=np.zeros_like(cross), where=denominator != 0.0)


def cross_correlate_fft(
    master: np.ndarray,
    mask: np.ndarray,
    oversampling: int = 16,
    acc_l: int = 8,
    acc_p: int = 8,
    *,
    block_cache: Optional[BlockSpectrumCache] = None,
    backend: str = "numpy",
) -> OffsetEstimate:
    """Offset of ``mask`` relative to ``master`` from the incoherent correlation peak.

    During refinement the chip center is moved (never rejected) so that the
    ``2*acc_l x 2*acc_p`` chip stays inside the ``(L+1) x (P+1)`` surface.
    """
    L, P = check_pair(master, mask)
    check_power2("oversampling factor", oversampling)
    if oversampling > 1:
        if acc_l < 1 or acc_p < 1:
            raise InvalidDimension(f"accuracy window must be positive, got ({acc_l}, {acc_p})")
        if 2 * acc_l > L or 2 * acc_p > P:
            raise InsufficientWindowSize(
                f"accuracy window ({acc_l}, {acc_p}) does not fit a {L}x{P} patch; decrease Acc or increase the patch"
            )

    covar = incoherent_surface(master, mask, block_cache=block_cache, backend=backend)
    half_l, half_p = L // 2, P // 2

    hit = first_argmax(covar, COARSE_FLOOR)
    (peak_l, peak_p), score = hit if hit is not None else ((0, 0), COARSE_FLOOR)
    offset_l = float(peak_l - half_l)
    offset_p = float(peak_p - half_p)
    LOG.debug("fft coarse peak at %s (offset %.0f, %.0f, corr=%.4f)", (peak_l, peak_p), offset_l, offset_p, score)

    if oversampling > 1:
        center_l = min(max(peak_l, acc_l), L - acc_l)
        center_p = min(max(peak_p, acc_p), P - acc_p)
        if (center_l, center_p) != (peak_l, peak_p):
            LOG.debug(
                "peak %s too close to the border for Acc=(%d, %d); chip centered at %s",
                (peak_l, peak_p), acc_l, acc_p, (center_l, center_p),
            )
        win = Window(center_l - acc_l, center_l + acc_l - 1, center_p - acc_p, center_p + acc_p - 1)
        _, idx, value = refine_peak(extract(covar, win), oversampling, backend=backend)
        if idx is not None:
            score = value
            offset_l = -half_l + center_l - acc_l + idx[0] / float(oversampling)
            offset_p = -half_p + center_p - acc_p + idx[1] / float(oversampling)

    return OffsetEstimate(float(offset_l), float(offset_p), float(score))
