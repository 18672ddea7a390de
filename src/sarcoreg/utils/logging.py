from __future__ import annotations

import logging
import math
import os
from typing import Iterable, Iterator, Optional

import numpy as np


def setup_logging(level: str = "INFO") -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=lvl, format="%(asctime)s | %(levelname)s | %(message)s")


def log_fft_env(backend: str) -> None:
    if backend != "jax":
        logging.info("FFT backend: numpy %s", np.__version__)
        return
    import jax

    logging.info("FFT backend: jax (%s, x64=%s)", jax.default_backend(), bool(jax.config.jax_enable_x64))
    logging.info("Devices: %s", jax.devices())


PROGRESS_ENV = "SARCOREG_PROGRESS"


def _progress_enabled() -> bool:
    return os.environ.get(PROGRESS_ENV, "0").lower() in ("1", "true", "yes", "on")


def progress_iter(iterable: Iterable, *, total: Optional[int] = None, desc: str = "") -> Iterator:
    """Wrap ``iterable`` in a tqdm bar when progress is enabled and tqdm is installed.

    Enable with ``SARCOREG_PROGRESS=1`` or the CLI flag ``--progress``.
    """
    if _progress_enabled():
        try:
            from tqdm import tqdm  # type: ignore
        except ImportError:
            logging.getLogger(__name__).debug("progress requested but tqdm is not installed")
        else:
            return iter(tqdm(iterable, total=total, desc=desc, dynamic_ncols=True, leave=False))
    return iter(iterable)


def format_duration(seconds: float) -> str:
    """Short wall-clock string for batch summaries: ``"850µs"``, ``"12ms"``, ``"3.40s"``, ``"2m05.0s"``."""
    value = max(float(seconds), 0.0)
    if not math.isfinite(value):
        return "-"
    if value < 1e-3:
        return f"{value * 1e6:.0f}µs"
    if value < 0.1:
        return f"{value * 1e3:.0f}ms"
    if value < 60.0:
        return f"{value:.2f}s"
    minutes, rest = divmod(value, 60.0)
    return f"{int(minutes)}m{rest:04.1f}s"
