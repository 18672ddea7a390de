"""Integral images (summed-area tables) for O(1) windowed sums."""

from __future__ import annotations

import numpy as np

from .window import Window


def build_integral(a: np.ndarray) -> np.ndarray:
    """Summed-area table ``S`` with ``S[l, p] = sum(a[:l+1, :p+1])``.

    Equivalent to the recurrence ``S[l,p] = a[l,p] + S[l-1,p] + S[l,p-1] - S[l-1,p-1]``
    with zeros at negative indices.
    """
    a = np.asarray(a, dtype=np.float64)
    if a.ndim != 2:
        raise ValueError(f"integral image needs a 2D array, got shape {a.shape}")
    return a.cumsum(axis=0).cumsum(axis=1)


def window_sum(table: np.ndarray, win: Window) -> float:
    """Sum of the original array over ``win`` (inclusive bounds) from its integral image."""
    if win.line_lo < 0 or win.pix_lo < 0 or win.line_hi >= table.shape[0] or win.pix_hi >= table.shape[1]:
        raise ValueError(f"window {win} outside integral image of shape {table.shape}")
    l0, l1, p0, p1 = win.line_lo, win.line_hi, win.pix_lo, win.pix_hi
    total = table[l1, p1]
    if l0 > 0:
        total -= table[l0 - 1, p1]
    if p0 > 0:
        total -= table[l1, p0 - 1]
    if l0 > 0 and p0 > 0:
        total += table[l0 - 1, p0 - 1]
    return float(total)


def local_sum(a: np.ndarray) -> np.ndarray:
    """Sums of ``a`` (L x P) under an L x P footprint for every shift.

    Returns a ``(2L-1, 2P-1)`` array whose cell ``[l, p]`` is the sum of ``a`` over
    rows ``l-L+1 .. l`` and columns ``p-P+1 .. p`` (out-of-range rows/columns count
    as zero), i.e. the part of ``a`` overlapped by a master patch at shift
    ``(l+1-L, p+1-P)``.
    """
    a = np.asarray(a, dtype=np.float64)
    L, P = a.shape
    padded = np.zeros((3 * L - 1, 3 * P - 1), dtype=np.float64)
    padded[L:2 * L, P:2 * P] = a
    S = build_integral(padded)
    nl, np_ = 2 * L - 1, 2 * P - 1
    return (
        S[L:L + nl, P:P + np_]
        - S[0:nl, P:P + np_]
        - S[L:L + nl, 0:np_]
        + S[0:nl, 0:np_]
    )
