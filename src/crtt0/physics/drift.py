# src/crtt0/physics/drift.py
from __future__ import annotations
from typing import NamedTuple, Optional, Protocol

import numpy as np

from ..geometry.tpc import VolumeLookup
from .distortion import DistortionCorrection, NoDistortion


class DriftVelocityProvider(Protocol):
    def drift_velocity(self) -> float:
        """Electron drift velocity [cm/us]."""


class ConstantDriftVelocity:
    def __init__(self, v_cm_per_us: float):
        if v_cm_per_us <= 0:
            raise ValueError(f"Drift velocity must be positive, got {v_cm_per_us}")
        self.v = float(v_cm_per_us)

    def drift_velocity(self) -> float:
        return self.v


class TimeWindow(NamedTuple):
    """Admissible t0 interval [us] for a track."""
    t0_min: float
    t0_max: float

    @property
    def is_degenerate(self) -> bool:
        # (0, 0) from a stitched track: no temporal constraint
        return self.t0_min == self.t0_max

    def contains(self, t: float, pad: float = 0.0) -> bool:
        return self.t0_min - pad <= t <= self.t0_max + pad


def track_t0_range(
    start_x: float,
    end_x: float,
    drift_direction: int,
    x_limits: tuple[float, float],
    drift_velocity: float,
) -> TimeWindow:
    """
    Range of t0 values that keep the track inside the drift volume.

    The most positive end is shifted to the most positive x limit and the
    most negative end to the most negative one; each shift is converted to
    a time with the signed drift velocity. A stitched track
    (drift_direction == 0) returns (0, 0).
    """
    if drift_direction == 0:
        return TimeWindow(0.0, 0.0)

    vd = drift_direction * drift_velocity

    max_shift = max(x_limits) - max(start_x, end_x)
    min_shift = min(x_limits) - min(start_x, end_x)
    t0max = max_shift / vd
    t0min = min_shift / vd
    return TimeWindow(min(t0min, t0max), max(t0min, t0max))


class DriftShifter:
    """
    Moves a reconstructed position to where it sits for a given t0:
    x += drift_direction * t0 * v, followed by the distortion offset when the
    correction field is enabled and `apply_correction` is set.
    """

    def __init__(
        self,
        drift: DriftVelocityProvider,
        volumes: Optional[VolumeLookup] = None,
        distortion: Optional[DistortionCorrection] = None,
        apply_correction: bool = True,
    ):
        self.drift = drift
        self.volumes = volumes
        self.distortion = distortion or NoDistortion()
        self.apply_correction = apply_correction

    @property
    def correcting(self) -> bool:
        return bool(self.apply_correction and self.volumes is not None and self.distortion.enabled())

    def x_shift(self, drift_direction: int, t0: float) -> float:
        return drift_direction * t0 * self.drift.drift_velocity()

    def correct(self, point: np.ndarray) -> np.ndarray:
        p = np.asarray(point, dtype=np.float64)
        if not self.correcting:
            return p
        vol = self.volumes.locate(p)
        return p + np.asarray(self.distortion.offset_at(p, vol), dtype=np.float64)

    def __call__(self, point: np.ndarray, drift_direction: int, t0: float) -> np.ndarray:
        p = np.array(point, dtype=np.float64)
        p[0] += self.x_shift(drift_direction, t0)
        return self.correct(p)
