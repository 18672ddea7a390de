"""Sub-pixel peak refinement by band-limited (zero-padded spectrum) interpolation."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from ..core.spectral import check_power2, fft2, ifft2


def first_argmax(surface: np.ndarray, floor: float = -np.inf) -> Optional[Tuple[Tuple[int, int], float]]:
    """Row-major scan keeping the first cell strictly greater than the running maximum.

    The running maximum starts at ``floor``; ties keep the earliest cell (lowest line,
    then lowest pixel) and NaN cells never win. Returns ``((line, pixel), value)`` or
    None when no cell exceeds ``floor``.
    """
    s = np.asarray(surface, dtype=np.float64)
    if s.size == 0:
        return None
    with np.errstate(invalid="ignore"):
        cand = np.where(s > floor, s, -np.inf)
    flat = int(np.argmax(cand))
    if not cand.flat[flat] > floor:
        return None
    line, pixel = np.unravel_index(flat, s.shape)
    return (int(line), int(pixel)), float(s.flat[flat])


def oversample(
    chip: np.ndarray,
    factor_line: int,
    factor_pixel: Optional[int] = None,
    *,
    backend: str = "numpy",
) -> np.ndarray:
    """Interpolate a real 2D chip onto a grid ``factor`` times denser per axis.

    The spectrum is embedded in a larger zero array (positive frequencies at the
    start, negative ones at the end of each axis) and transformed back. Input
    samples reappear unchanged at indices ``(i * factor_line, j * factor_pixel)``.
    """
    fl = int(factor_line)
    fp = fl if factor_pixel is None else int(factor_pixel)
    check_power2("oversampling factor", fl, fp)
    chip = np.asarray(chip)
    if chip.ndim != 2:
        raise ValueError(f"oversample needs a 2D chip, got shape {chip.shape}")
    if fl == 1 and fp == 1:
        return np.array(chip.real, dtype=np.float64, copy=True)

    l, p = chip.shape
    L2, P2 = fl * l, fp * p
    # Positive half includes DC; the Nyquist bin of even sizes lands on the negative side
    hl, hp = (l + 1) // 2, (p + 1) // 2
    tl, tp = l - hl, p - hp

    spec = fft2(chip.astype(np.complex128), backend=backend)
    padded = np.zeros((L2, P2), dtype=np.complex128)
    padded[:hl, :hp] = spec[:hl, :hp]
    padded[:hl, P2 - tp:] = spec[:hl, hp:]
    padded[L2 - tl:, :hp] = spec[hl:, :hp]
    padded[L2 - tl:, P2 - tp:] = spec[hl:, hp:]
    out = ifft2(padded, backend=backend) * float(fl * fp)
    return np.ascontiguousarray(out.real, dtype=np.float64)


def refine_peak(
    chip: np.ndarray,
    factor: int,
    *,
    backend: str = "numpy",
) -> Tuple[np.ndarray, Optional[Tuple[int, int]], float]:
    """Oversample ``chip`` and locate its maximum.

    Returns ``(grid, (line, pixel), value)`` in oversampled-grid indices; the index is
    None (and value NaN) when the grid holds no finite maximum.
    """
    grid = oversample(chip, factor, factor, backend=backend)
    hit = first_argmax(grid)
    if hit is None:
        return grid, None, float("nan")
    idx, value = hit
    return grid, idx, value
