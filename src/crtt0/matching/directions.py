from __future__ import annotations
import math
import numpy as np

from ..physics.drift import DriftShifter
from ..physics.tracks import Track

# --- Interfaces -------------------------------------------------------------

class DirectionStrategy:
    """
    Base protocol: (start_dir, end_dir) for a track, each pointing outward
    from its endpoint, evaluated for a candidate t0 [us].
    """
    name: str

    def __call__(
        self,
        track: Track,
        t0: float,
        drift_direction: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError


def _normalized(v: np.ndarray) -> np.ndarray:
    # zero vectors are returned as-is; callers check the length
    n = np.linalg.norm(v)
    if n > 0:
        return v / n
    return v


def _n_average(n_valid: int, frac: float) -> int:
    return int(math.floor(n_valid * frac))

# --- Implementations --------------------------------------------------------

class TrajectoryAverageDirection(DirectionStrategy):
    """Mean of the local track directions over the first/last fraction of valid points."""
    name = "trajectory_average"

    def __init__(self, frac: float):
        self.frac = frac

    def __call__(self, track, t0, drift_direction):
        dirs = track.valid_directions()
        k = _n_average(len(dirs), self.frac)
        if k == 0:
            return np.zeros(3), np.zeros(3)
        start_dir = -dirs[:k].sum(axis=0) / k
        end_dir = dirs[len(dirs) - k:].sum(axis=0) / k
        return _normalized(start_dir), _normalized(end_dir)


class EndpointMidpointDirection(DirectionStrategy):
    """
    Chords from a fractional midpoint to each endpoint, after the drift
    shift for t0 (and the distortion correction, when enabled).
    """
    name = "endpoint_midpoint"

    def __init__(self, frac: float, shifter: DriftShifter):
        self.frac = frac
        self.shifter = shifter

    def __call__(self, track, t0, drift_direction):
        mid_idx = min(_n_average(track.n_points, self.frac), track.n_points - 1)
        start = self.shifter(track.start, drift_direction, t0)
        end = self.shifter(track.end, drift_direction, t0)
        mid = self.shifter(track.location_at_point(mid_idx), drift_direction, t0)
        return _normalized(mid - start), _normalized(mid - end)


class TrajectoryPointsDirection(DirectionStrategy):
    """Chord over the first/last fraction of valid trajectory points."""
    name = "trajectory_points"

    def __init__(self, frac: float):
        self.frac = frac

    def __call__(self, track, t0, drift_direction):
        pts = track.valid_points()
        k = _n_average(len(pts), self.frac)
        if k == 0:
            return np.zeros(3), np.zeros(3)
        start_dir = pts[0] - pts[k - 1]
        end_dir = pts[-1] - pts[len(pts) - k]
        return _normalized(start_dir), _normalized(end_dir)

# --- Factory ----------------------------------------------------------------

def make_direction_strategy(cfg_match, shifter: DriftShifter) -> DirectionStrategy:
    if cfg_match.dir_method == "endpoint_midpoint":
        return EndpointMidpointDirection(cfg_match.track_direction_frac, shifter)
    elif cfg_match.dir_method == "trajectory_average":
        return TrajectoryAverageDirection(cfg_match.track_direction_frac)
    elif cfg_match.dir_method == "trajectory_points":
        return TrajectoryPointsDirection(cfg_match.track_direction_frac)
    else:
        raise ValueError(f"Unknown direction method {cfg_match.dir_method}")
