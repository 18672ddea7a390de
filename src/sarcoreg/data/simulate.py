"""Synthetic complex patches with known offsets (tests, demos, benchmarks)."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np


def _lowpass(z: np.ndarray, sigma: float) -> np.ndarray:
    # Gaussian blur applied as a spectral multiply keeps the field band limited
    fl = np.fft.fftfreq(z.shape[0])[:, None]
    fp = np.fft.fftfreq(z.shape[1])[None, :]
    H = np.exp(-2.0 * (np.pi * sigma) ** 2 * (fl * fl + fp * fp))
    return np.fft.ifft2(np.fft.fft2(z) * H)


def speckle_scene(shape: Tuple[int, int], *, seed: int = 0, smooth: Optional[float] = None) -> np.ndarray:
    """Circular-Gaussian complex field (fully developed speckle), unit mean intensity.

    With ``smooth`` (pixels) the field is low-pass filtered, giving correlated texture.
    """
    rng = np.random.default_rng(seed)
    z = (rng.normal(size=shape) + 1j * rng.normal(size=shape)) / np.sqrt(2.0)
    if smooth:
        z = _lowpass(z, float(smooth))
        z /= np.sqrt(np.mean(np.abs(z) ** 2))
    return z.astype(np.complex128)


def gaussian_blob(
    shape: Tuple[int, int],
    *,
    center: Optional[Tuple[float, float]] = None,
    sigma: float = 3.0,
    background: float = 0.1,
) -> np.ndarray:
    L, P = shape
    cl, cp = center if center is not None else ((L - 1) / 2.0, (P - 1) / 2.0)
    ll = np.arange(L, dtype=np.float64)[:, None]
    pp = np.arange(P, dtype=np.float64)[None, :]
    blob = np.exp(-((ll - cl) ** 2 + (pp - cp) ** 2) / (2.0 * sigma * sigma))
    return (blob + background).astype(np.complex128)


def fractional_shift(patch: np.ndarray, d_line: float, d_pixel: float) -> np.ndarray:
    """Circularly shift ``patch`` by a (fractional) offset with a spectral phase ramp.

    The result satisfies ``out[n] = patch[n - d]``.
    """
    patch = np.asarray(patch, dtype=np.complex128)
    fl = np.fft.fftfreq(patch.shape[0])[:, None]
    fp = np.fft.fftfreq(patch.shape[1])[None, :]
    ramp = np.exp(-2j * np.pi * (fl * float(d_line) + fp * float(d_pixel)))
    return np.fft.ifft2(np.fft.fft2(patch) * ramp)


def shifted_pair(
    size: Tuple[int, int],
    shift: Tuple[int, int],
    *,
    seed: int = 0,
    smooth: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Master/mask crops of one speckle scene with ``mask[n] = master[n - shift]``."""
    L, P = int(size[0]), int(size[1])
    dl, dp = int(shift[0]), int(shift[1])
    m = max(abs(dl), abs(dp)) + 1
    scene = speckle_scene((L + 2 * m, P + 2 * m), seed=seed, smooth=smooth)
    master = scene[m:m + L, m:m + P].copy()
    mask = scene[m - dl:m - dl + L, m - dp:m - dp + P].copy()
    return master, mask
