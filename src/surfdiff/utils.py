# src/surfdiff/utils.py
from __future__ import annotations

import json
import os
import time
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np


@dataclass
class WalkResult:
    """Common container for surface walk outputs."""

    positions: Optional[np.ndarray] = None
    msd: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def save_walk_result(
    path: str | os.PathLike[str], result: WalkResult, *, overwrite: bool = True
) -> None:
    """Serialize a WalkResult to a compressed .npz file."""
    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.positions is not None:
        out["positions"] = np.asarray(result.positions, dtype=np.float64)
    if result.msd is not None:
        out["msd"] = np.asarray(result.msd, dtype=np.float64)

    # numpy arrays in meta go to the top level, the rest is pickled as a dict
    meta = result.meta or {}
    meta_clean = {}
    for key, value in meta.items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean

    np.savez_compressed(path, **out)


def load_walk_result(path: str | os.PathLike[str]) -> WalkResult:
    """Load a .npz written by :func:`save_walk_result`."""
    data = np.load(path, allow_pickle=True)
    positions = data["positions"].astype(float) if "positions" in data else None
    msd = data["msd"].astype(float) if "msd" in data else None
    meta: Dict[str, Any] = {}
    if "meta" in data:
        meta_raw = data["meta"]
        if hasattr(meta_raw, "item"):
            try:
                meta = meta_raw.item()
            except ValueError:
                meta = {}
    for key in data.files:
        if key not in ("positions", "msd", "meta") and key not in meta:
            meta[key] = data[key]
    return WalkResult(positions=positions, msd=msd, meta=meta)


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load simulation parameters from JSON or TOML.
    """
    path = str(path)
    with open(path, "rb") as fh:
        data = fh.read()
    suffix = Path(path).suffix.lower()
    if suffix in {".json", ""}:
        return json.loads(data.decode("utf-8"))
    if suffix in {".toml", ".tml"}:
        return tomllib.loads(data.decode("utf-8"))
    raise ValueError(f"Unsupported parameter file format: {suffix}")
