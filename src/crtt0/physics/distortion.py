# src/crtt0/physics/distortion.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, Protocol, Tuple

import numpy as np
from scipy.interpolate import RegularGridInterpolator

# --- Interfaces -------------------------------------------------------------

class DistortionCorrection(Protocol):
    """Spatial (space-charge) position correction field."""

    def enabled(self) -> bool:
        ...

    def offset_at(self, point: np.ndarray, volume_id: int) -> np.ndarray:
        """(dx, dy, dz) [cm] to add to a reconstructed position."""
        ...

# --- Implementations --------------------------------------------------------

class NoDistortion:
    def enabled(self) -> bool:
        return False

    def offset_at(self, point, volume_id):
        return np.zeros(3, dtype=np.float64)


GridAxes = Tuple[np.ndarray, np.ndarray, np.ndarray]


class GridDistortion:
    """
    Offsets tabulated on a regular (x, y, z) grid per drift volume and
    interpolated trilinearly. Points outside a grid, or in volume -1, get a
    zero offset.
    """

    def __init__(self, grids: Dict[int, Tuple[GridAxes, np.ndarray]], active: bool = True):
        self._active = bool(active)
        self._interp: Dict[int, RegularGridInterpolator] = {}
        for vol, (axes, offsets) in grids.items():
            offsets = np.asarray(offsets, dtype=np.float64)
            shape = tuple(len(a) for a in axes) + (3,)
            if offsets.shape != shape:
                raise ValueError(
                    f"Offset grid for volume {vol} has shape {offsets.shape}, expected {shape}"
                )
            self._interp[int(vol)] = RegularGridInterpolator(
                tuple(np.asarray(a, dtype=np.float64) for a in axes),
                offsets,
                method="linear",
                bounds_error=False,
                fill_value=0.0,
            )

    def enabled(self) -> bool:
        return self._active

    def offset_at(self, point, volume_id):
        interp = self._interp.get(int(volume_id))
        if interp is None:
            return np.zeros(3, dtype=np.float64)
        p = np.asarray(point, dtype=np.float64).reshape(1, 3)
        return interp(p)[0]


def load_grid_distortion(path: str | Path, active: bool = True) -> GridDistortion:
    """
    Load a GridDistortion from an .npz file with, per volume v,
    arrays ``x_v``, ``y_v``, ``z_v`` (grid axes) and ``offsets_v`` (nx, ny, nz, 3).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Distortion map not found: {p}")
    grids: Dict[int, Tuple[GridAxes, np.ndarray]] = {}
    with np.load(p) as z:
        keys = set(z.files)
        vols = sorted(int(k.split("_", 1)[1]) for k in keys if k.startswith("offsets_"))
        if not vols:
            raise KeyError(f"No offsets_<volume> arrays in {p.name}. Found keys: {sorted(keys)}")
        for v in vols:
            axes = (z[f"x_{v}"], z[f"y_{v}"], z[f"z_{v}"])
            grids[v] = (axes, z[f"offsets_{v}"])
    return GridDistortion(grids, active=active)
