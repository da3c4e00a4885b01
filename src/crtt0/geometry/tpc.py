# src/crtt0/geometry/tpc.py
from __future__ import annotations
from dataclasses import dataclass
from typing import NamedTuple, Protocol, Sequence

import numpy as np


class VolumeLookup(Protocol):
    def locate(self, point: np.ndarray) -> int:
        """Return the index of the volume containing `point`, or -1."""


class DriftContext(NamedTuple):
    """Drift sign of a track (0 = stitched/ambiguous) and the x extent of its TPC(s)."""
    drift_direction: int
    x_limits: tuple[float, float]


@dataclass(frozen=True)
class TPCVolume:
    box_min: np.ndarray  # (3,) [cm]
    box_max: np.ndarray  # (3,) [cm]
    drift_direction: int  # +1 / -1

    @classmethod
    def from_cfg(cls, box_min, box_max, drift_direction: int) -> "TPCVolume":
        lo = np.asarray(box_min, dtype=np.float64)
        hi = np.asarray(box_max, dtype=np.float64)
        if lo.shape != (3,) or hi.shape != (3,):
            raise ValueError("TPC bounds must be 3-vectors")
        if np.any(hi < lo):
            raise ValueError(f"TPC max {hi.tolist()} below min {lo.tolist()}")
        if drift_direction not in (-1, 1):
            raise ValueError(f"drift_direction must be +1 or -1, got {drift_direction}")
        return cls(lo, hi, int(drift_direction))

    def contains(self, point: np.ndarray) -> bool:
        p = np.asarray(point, dtype=np.float64)
        return bool(np.all(p >= self.box_min) and np.all(p <= self.box_max))


class TPCGeometry:
    """
    Minimal TPC layout: a list of drift volumes.

    Provides the point -> volume lookup used before distortion queries, and
    the drift direction / x-limit derivation from a track's measurement
    points.
    """

    def __init__(self, volumes: Sequence[TPCVolume]):
        self.volumes = list(volumes)

    @classmethod
    def from_cfg(cls, tpcs) -> "TPCGeometry":
        return cls([TPCVolume.from_cfg(t.min, t.max, t.drift_direction) for t in tpcs])

    def locate(self, point: np.ndarray) -> int:
        for i, vol in enumerate(self.volumes):
            if vol.contains(point):
                return i
        return -1

    def _volumes_for(self, points: np.ndarray) -> list[int]:
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        seen: list[int] = []
        for p in pts:
            i = self.locate(p)
            if i >= 0 and i not in seen:
                seen.append(i)
        return seen

    def drift_direction_from_points(self, points: np.ndarray) -> int:
        """Common drift sign of the volumes holding `points`; 0 if mixed or none."""
        signs = {self.volumes[i].drift_direction for i in self._volumes_for(points)}
        if len(signs) != 1:
            return 0
        return signs.pop()

    def x_limits_from_points(self, points: np.ndarray) -> tuple[float, float]:
        """x extent of all volumes holding `points`; (0, 0) if none."""
        idx = self._volumes_for(points)
        if not idx:
            return 0.0, 0.0
        lo = min(float(self.volumes[i].box_min[0]) for i in idx)
        hi = max(float(self.volumes[i].box_max[0]) for i in idx)
        return lo, hi

    def drift_context(self, points: np.ndarray) -> DriftContext:
        return DriftContext(
            self.drift_direction_from_points(points),
            self.x_limits_from_points(points),
        )
