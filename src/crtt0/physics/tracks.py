# src/crtt0/physics/tracks.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import numpy as np


def _finite_difference_directions(points: np.ndarray) -> np.ndarray:
    if len(points) < 2:
        return np.zeros_like(points)
    d = np.gradient(points, axis=0)
    n = np.linalg.norm(d, axis=1, keepdims=True)
    return np.divide(d, n, out=np.zeros_like(d), where=n > 0)


@dataclass(slots=True)
class Track:
    """
    Reconstructed TPC track (read-only input to the matcher).

    points: (N, 3) trajectory positions [cm], ordered start -> end
    directions: (N, 3) local unit directions; estimated from the points
        by finite differences when not given
    valid: (N,) per-point validity flags; invalid points are skipped when
        averaging directions and when summing the length
    """
    points: np.ndarray
    directions: Optional[np.ndarray] = None
    valid: Optional[np.ndarray] = None
    track_id: int = -1

    def __post_init__(self) -> None:
        self.points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        if self.directions is None:
            self.directions = _finite_difference_directions(self.points)
        else:
            self.directions = np.asarray(self.directions, dtype=np.float64).reshape(-1, 3)
        if self.valid is None:
            self.valid = np.ones(len(self.points), dtype=bool)
        else:
            self.valid = np.asarray(self.valid, dtype=bool).reshape(-1)
        if len(self.directions) != len(self.points) or len(self.valid) != len(self.points):
            raise ValueError(
                f"Track arrays disagree in length: points={len(self.points)}, "
                f"directions={len(self.directions)}, valid={len(self.valid)}"
            )

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def start(self) -> np.ndarray:
        return self.points[0].copy()

    @property
    def end(self) -> np.ndarray:
        return self.points[-1].copy()

    def location_at_point(self, i: int) -> np.ndarray:
        return self.points[i].copy()

    def direction_at_point(self, i: int) -> np.ndarray:
        return self.directions[i].copy()

    def valid_points(self) -> np.ndarray:
        return self.points[self.valid]

    def valid_directions(self) -> np.ndarray:
        return self.directions[self.valid]

    @property
    def length(self) -> float:
        """Path length summed over consecutive valid points [cm]."""
        pts = self.valid_points()
        if len(pts) < 2:
            return 0.0
        return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())
