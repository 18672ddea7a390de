from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
import logging
import numbers
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core.spectral import BACKENDS
from ..utils.logging import format_duration, progress_iter
from .common import OffsetEstimate
from .incoherent import BlockSpectrumCache, cross_correlate_fft
from .ncc import normalized_cross_correlation
from .space import cross_correlate_space


LOG = logging.getLogger(__name__)

METHODS = ("ncc", "fft", "space")


@dataclass
class CorrelationConfig:
    # Correlator: "ncc" (normalized spectral), "fft" (incoherent spectral), "space" (space-domain coherence)
    method: str = "ncc"
    oversampling: int = 16  # power of 2; 1 disables sub-pixel refinement for ncc/fft
    acc_l: int = 8  # accuracy window (half chip size / search half-width for "space")
    acc_p: int = 8
    fft_backend: str = "numpy"  # numpy | jax
    # Peaks below this score are flagged as not accepted (None: accept all)
    score_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        self.method = str(self.method).lower()
        self.fft_backend = str(self.fft_backend).lower()
        if self.method not in METHODS:
            raise ValueError(f"Unknown correlation method {self.method!r}; expected one of {METHODS}")
        if self.fft_backend not in BACKENDS:
            raise ValueError(f"Unknown FFT backend {self.fft_backend!r}; expected one of {BACKENDS}")
        for name in ("oversampling", "acc_l", "acc_p"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            setattr(self, name, int(value))
        if self.score_threshold is not None:
            self.score_threshold = float(self.score_threshold)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CorrelationConfig":
        known = {f.name for f in fields(cls)}
        extra = sorted(k for k in d if k not in known)
        if extra:
            LOG.warning("Ignoring unknown correlation config keys: %s", ", ".join(extra))
        return cls(**{k: v for k, v in d.items() if k in known})


def correlate(
    master: np.ndarray,
    mask: np.ndarray,
    cfg: CorrelationConfig | None = None,
    *,
    block_cache: BlockSpectrumCache | None = None,
) -> OffsetEstimate:
    """Estimate the (line, pixel) offset of ``mask`` relative to ``master``.

    Dispatches to the correlator named by ``cfg.method`` and applies the optional
    score gate. Validation errors propagate unchanged.
    """
    if cfg is None:
        cfg = CorrelationConfig()
    if cfg.method == "ncc":
        est = normalized_cross_correlation(
            master, mask, cfg.oversampling, cfg.acc_l, cfg.acc_p, backend=cfg.fft_backend
        )
    elif cfg.method == "fft":
        est = cross_correlate_fft(
            master, mask, cfg.oversampling, cfg.acc_l, cfg.acc_p,
            block_cache=block_cache, backend=cfg.fft_backend,
        )
    else:
        est = cross_correlate_space(
            master, mask, cfg.acc_l, cfg.acc_p, cfg.oversampling, backend=cfg.fft_backend
        )
    return est.gated(cfg.score_threshold)


class Correlator:
    """Reusable correlator bound to one config and one block-spectrum cache.

    Safe to share across threads: each call allocates its own working buffers and
    the cache only ever hands out read-only spectra.
    """

    def __init__(self, cfg: CorrelationConfig | None = None, *, block_cache: BlockSpectrumCache | None = None):
        self.cfg = cfg if cfg is not None else CorrelationConfig()
        self.block_cache = block_cache if block_cache is not None else BlockSpectrumCache()

    def correlate(self, master: np.ndarray, mask: np.ndarray) -> OffsetEstimate:
        return correlate(master, mask, self.cfg, block_cache=self.block_cache)

    __call__ = correlate

    def correlate_many(
        self,
        pairs: Iterable[Tuple[np.ndarray, np.ndarray]],
        *,
        workers: int = 1,
    ) -> List[OffsetEstimate]:
        """Correlate independent patch pairs; results keep the input order."""
        pairs = list(pairs)
        t0 = time.perf_counter()
        if workers <= 1:
            results = [self.correlate(m, s) for m, s in progress_iter(pairs, total=len(pairs), desc="correlate")]
        else:
            with ThreadPoolExecutor(max_workers=int(workers)) as pool:
                futures = [pool.submit(self.correlate, m, s) for m, s in pairs]
                results = [f.result() for f in progress_iter(futures, total=len(futures), desc="correlate")]
        n_ok = sum(1 for r in results if r.accepted)
        LOG.info(
            "Correlated %d pairs (%d accepted) with method=%s in %s",
            len(results), n_ok, self.cfg.method, format_duration(time.perf_counter() - t0),
        )
        return results


def stack_pairs(master: np.ndarray, mask: np.ndarray) -> Sequence[Tuple[np.ndarray, np.ndarray]]:
    """Split 2D or stacked 3D (n, L, P) master/mask arrays into a list of pairs."""
    m = np.asarray(master)
    s = np.asarray(mask)
    if m.ndim == 2 and s.ndim == 2:
        return [(m, s)]
    if m.ndim == 3 and s.ndim == 3 and m.shape[0] == s.shape[0]:
        return [(m[i], s[i]) for i in range(m.shape[0])]
    raise ValueError(f"expected matching 2D or (n, L, P) stacks, got {m.shape} and {s.shape}")
