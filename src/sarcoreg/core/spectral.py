"""Spectral engine: in-place 2D FFTs over complex numpy buffers.

The public transforms consume and overwrite the caller's buffer, mirroring the
in-place FFTs of classic SAR processors, and insist on power-of-two dimensions.
``fft2`` / ``ifft2`` are the unchecked, out-of-place primitives used where the
caller controls sizes (e.g. oversampling an odd-sized chip).

Two backends are available: ``"numpy"`` (double precision, default) and ``"jax"``
(``jax.numpy.fft``; single precision unless ``jax_enable_x64`` is set).
"""

from __future__ import annotations

from typing import Iterable

import numpy as np
import jax.numpy as jnp

from ..errors import InvalidDimension


BACKENDS = ("numpy", "jax")


def is_power2(n: int) -> bool:
    n = int(n)
    return n > 0 and (n & (n - 1)) == 0


def check_power2(name: str, *values: int) -> None:
    """Raise InvalidDimension unless every value is a positive power of two."""
    bad = [int(v) for v in values if not is_power2(v)]
    if bad:
        raise InvalidDimension(f"{name} must be a power of 2, got {bad if len(values) > 1 else bad[0]}")


def _check_backend(backend: str) -> str:
    b = str(backend).lower()
    if b not in BACKENDS:
        raise ValueError(f"Unknown FFT backend {backend!r}; expected one of {BACKENDS}")
    return b


def fft2(a: np.ndarray, *, backend: str = "numpy") -> np.ndarray:
    if _check_backend(backend) == "jax":
        return np.asarray(jnp.fft.fft2(jnp.asarray(a)))
    return np.fft.fft2(a)


def ifft2(a: np.ndarray, *, backend: str = "numpy") -> np.ndarray:
    if _check_backend(backend) == "jax":
        return np.asarray(jnp.fft.ifft2(jnp.asarray(a)))
    return np.fft.ifft2(a)


def _check_buffer(buf: np.ndarray) -> None:
    if not isinstance(buf, np.ndarray) or buf.ndim != 2:
        raise InvalidDimension("FFT buffer must be a 2D numpy array")
    if not np.iscomplexobj(buf):
        raise TypeError(f"in-place FFT needs a complex buffer, got dtype {buf.dtype}")
    check_power2("FFT dimensions", *buf.shape)


def forward_fft2d(buf: np.ndarray, *, backend: str = "numpy") -> np.ndarray:
    """Forward 2D DFT of ``buf``, written back into ``buf``. Returns ``buf``."""
    _check_buffer(buf)
    buf[...] = fft2(buf, backend=backend)
    return buf


def inverse_fft2d(buf: np.ndarray, *, backend: str = "numpy") -> np.ndarray:
    """Inverse 2D DFT (scaled by 1/N) of ``buf``, written back into ``buf``. Returns ``buf``."""
    _check_buffer(buf)
    buf[...] = ifft2(buf, backend=backend)
    return buf


def zeros_complex(shape: Iterable[int]) -> np.ndarray:
    return np.zeros(tuple(int(s) for s in shape), dtype=np.complex128)
