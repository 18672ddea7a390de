from __future__ import annotations

from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..errors import DimensionMismatch, InvalidDimension


@dataclass(frozen=True)
class OffsetEstimate:
    """Offset of the mask patch relative to the master patch.

    A positive ``offset_line`` means the mask content sits further down than in the
    master (``mask[n] ~ master[n - offset]``).
    """

    offset_line: float
    offset_pixel: float
    peak_score: float
    accepted: bool = True

    def gated(self, threshold: Optional[float]) -> "OffsetEstimate":
        if threshold is None:
            return self
        # NaN scores never pass the gate
        return replace(self, accepted=bool(self.peak_score >= float(threshold)))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def magnitude(patch: np.ndarray) -> np.ndarray:
    return np.abs(np.asarray(patch)).astype(np.float64, copy=False)


def check_pair(master: np.ndarray, mask: np.ndarray) -> Tuple[int, int]:
    """Validate a master/mask pair and return its (lines, pixels)."""
    m = np.asarray(master)
    s = np.asarray(mask)
    if m.ndim != 2 or s.ndim != 2:
        raise InvalidDimension(f"patches must be 2D, got {m.shape} and {s.shape}")
    if m.shape != s.shape:
        raise DimensionMismatch(f"mask, master not same size: {m.shape} vs {s.shape}")
    return int(m.shape[0]), int(m.shape[1])
