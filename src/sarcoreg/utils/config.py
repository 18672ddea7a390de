from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any, Dict


def load_config(path: str) -> Dict[str, Any]:
    """Load a JSON or YAML config file into a dict.

    A top-level ``correlation`` section is unwrapped if present. YAML needs PyYAML.
    """
    path = str(path)
    if path.endswith((".yaml", ".yml")):
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError("YAML config requested but PyYAML not installed") from exc
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    else:
        with open(path, "r") as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"config {path} must contain a mapping, got {type(data).__name__}")
    section = data.get("correlation")
    return dict(section) if isinstance(section, dict) else data


def dump_config(cfg: Any) -> Dict[str, Any]:
    """Plain dict view of a config dataclass (or an already-plain mapping)."""
    if is_dataclass(cfg) and not isinstance(cfg, type):
        return asdict(cfg)
    if isinstance(cfg, dict):
        return dict(cfg)
    raise TypeError(f"cannot dump config of type {type(cfg).__name__}")
