# src/springnet/utils.py
from __future__ import annotations

import json
import os
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np


@dataclass
class RunResult:
    """Common container for simulation outputs (dynamic or static)."""

    positions: Optional[np.ndarray] = None
    stiffness: Optional[np.ndarray] = None
    stress: Optional[np.ndarray] = None
    strain: Optional[np.ndarray] = None
    time: Optional[np.ndarray] = None
    nonaffinity: Optional[np.ndarray] = None
    energy: Optional[float] = None
    status: str = "ok"
    error: Optional[Exception] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Build the generator shared by disorder, motors and thermal noise.

    A seed of ``None`` or ``0`` draws fresh entropy, like the time-based
    seeding of the command-line tools.
    """
    if seed is None or seed == 0:
        return np.random.default_rng()
    return np.random.default_rng(seed)


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


_ARRAY_FIELDS = ("positions", "stiffness", "stress", "strain", "time", "nonaffinity")


def save_result(
    path: str | os.PathLike[str], result: RunResult, *, overwrite: bool = True
) -> None:
    """Serialize a RunResult to a compressed .npz file."""
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    for name in _ARRAY_FIELDS:
        value = getattr(result, name)
        if value is not None:
            out[name] = np.asarray(value, dtype=np.float64)

    meta = dict(result.meta)
    meta["status"] = result.status
    if result.energy is not None:
        meta["energy"] = float(result.energy)
    if result.error is not None:
        meta["error"] = str(result.error)
    out["meta"] = meta

    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    np.savez_compressed(path, **out)


def load_result(path: str | os.PathLike[str]) -> RunResult:
    """Load a .npz written by save_result back into a RunResult."""
    data = np.load(path, allow_pickle=True)
    arrays = {name: data[name].astype(float) for name in _ARRAY_FIELDS if name in data}
    meta: Dict[str, Any] = {}
    if "meta" in data:
        meta_raw = data["meta"]
        meta = meta_raw.item() if hasattr(meta_raw, "item") else dict(meta_raw)
    status = meta.pop("status", "ok")
    energy = meta.pop("energy", None)
    return RunResult(status=status, energy=energy, meta=meta, **arrays)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    suffix = Path(path).suffix.lower()
    if suffix not in {".json", "", ".toml", ".tml"}:
        raise ValueError(f"Unsupported parameter file format: {suffix}")
    with open(path, "rb") as fh:
        data = fh.read()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    return tomllib.loads(data.decode("utf-8"))
