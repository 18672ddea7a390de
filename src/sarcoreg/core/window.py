from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Window:
    """Rectangular region with inclusive bounds, in (line, pixel) order."""

    line_lo: int
    line_hi: int
    pix_lo: int
    pix_hi: int

    @classmethod
    def full(cls, shape: Tuple[int, int]) -> "Window":
        return cls(0, int(shape[0]) - 1, 0, int(shape[1]) - 1)

    @property
    def lines(self) -> int:
        return self.line_hi - self.line_lo + 1

    @property
    def pixels(self) -> int:
        return self.pix_hi - self.pix_lo + 1

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.lines, self.pixels)

    def slices(self) -> Tuple[slice, slice]:
        return (slice(self.line_lo, self.line_hi + 1), slice(self.pix_lo, self.pix_hi + 1))


def _check_inside(win: Window, shape: Tuple[int, ...], what: str) -> None:
    if win.lines <= 0 or win.pixels <= 0:
        raise ValueError(f"empty window {win}")
    if win.line_lo < 0 or win.pix_lo < 0 or win.line_hi >= shape[0] or win.pix_hi >= shape[1]:
        raise ValueError(f"window {win} outside {what} of shape {tuple(shape)}")


def embed(dst: np.ndarray, src: np.ndarray, win: Window) -> np.ndarray:
    """Copy ``src`` into ``dst[win]`` in place; cells outside ``win`` are untouched.

    Used with a freshly zeroed ``dst`` this is zero padding. Returns ``dst``.
    """
    _check_inside(win, dst.shape, "destination")
    if tuple(src.shape[:2]) != win.shape:
        raise ValueError(f"source shape {src.shape} does not fit window {win.shape}")
    dst[win.slices()] = src
    return dst


def extract(src: np.ndarray, win: Window) -> np.ndarray:
    """Return a copy of ``src[win]``."""
    _check_inside(win, src.shape, "source")
    return np.array(src[win.slices()], copy=True)
