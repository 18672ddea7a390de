"""Patch-pair loading (.npz / HDF5) and offset export (JSON)."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Iterable, Optional, Tuple

import numpy as np
import h5py

from ..correlate.common import OffsetEstimate


LOG = logging.getLogger(__name__)

HDF5_SUFFIXES = (".h5", ".hdf5", ".hdf", ".nxs")


def load_patch_pair(path: str, *, master_key: str = "master", mask_key: str = "mask") -> Tuple[np.ndarray, np.ndarray]:
    """Read master and mask arrays (2D, or stacked 3D ``(n, L, P)``) from ``path``."""
    path = str(path)
    if path.lower().endswith(HDF5_SUFFIXES):
        with h5py.File(path, "r") as f:
            for key in (master_key, mask_key):
                if key not in f:
                    raise KeyError(f"{path}: missing dataset '{key}'")
            master = np.asarray(f[master_key][()])
            mask = np.asarray(f[mask_key][()])
    elif path.lower().endswith(".npz"):
        with np.load(path) as data:
            for key in (master_key, mask_key):
                if key not in data:
                    raise KeyError(f"{path}: missing array '{key}'")
            master = np.asarray(data[master_key])
            mask = np.asarray(data[mask_key])
    else:
        raise ValueError(f"Unsupported patch file {path}; expected .npz or HDF5 ({', '.join(HDF5_SUFFIXES)})")
    LOG.info("Loaded patches %s / %s from %s", master.shape, mask.shape, path)
    return master, mask


def save_patch_pair(path: str, master: np.ndarray, mask: np.ndarray) -> None:
    path = str(path)
    if path.lower().endswith(HDF5_SUFFIXES):
        with h5py.File(path, "w") as f:
            f.create_dataset("master", data=np.asarray(master))
            f.create_dataset("mask", data=np.asarray(mask))
    else:
        np.savez(path, master=np.asarray(master), mask=np.asarray(mask))


def _finite_or_none(v: Any) -> Any:
    if isinstance(v, float) and not np.isfinite(v):
        return None
    return v


def offsets_to_records(estimates: Iterable[OffsetEstimate]) -> list[Dict[str, Any]]:
    """Plain dicts for JSON; non-finite scores become None."""
    return [
        {"index": i, **{k: _finite_or_none(v) for k, v in est.to_dict().items()}}
        for i, est in enumerate(estimates)
    ]


def write_offsets(path: str, estimates: Iterable[OffsetEstimate], *, config: Optional[Dict[str, Any]] = None) -> None:
    """Write offsets (and the config that produced them) as a JSON document."""
    doc: Dict[str, Any] = {"offsets": offsets_to_records(estimates)}
    if config is not None:
        doc["config"] = config
    os.makedirs(os.path.dirname(os.path.abspath(str(path))), exist_ok=True)
    with open(path, "w") as f:
        json.dump(doc, f, indent=2)
    LOG.info("Wrote %d offsets to %s", len(doc["offsets"]), path)
