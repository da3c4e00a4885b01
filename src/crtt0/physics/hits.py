from __future__ import annotations
from dataclasses import dataclass
import numpy as np

@dataclass(frozen=True, slots=True)
class CRTHit:
    """
    Calibrated CRT (tagger) hit.

    x, y, z: position [cm]
    x_err, y_err, z_err: symmetric half-width of the hit in each axis [cm]
    ts0_ns, ts1_ns: timestamps in the two clock domains [ns]
    pe: light yield [PE]
    """
    x: float
    y: float
    z: float
    x_err: float = 0.0
    y_err: float = 0.0
    z_err: float = 0.0
    ts0_ns: int = 0
    ts1_ns: int = 0
    pe: float = 0.0
    hit_id: int = -1

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @property
    def errors(self) -> np.ndarray:
        return np.array([self.x_err, self.y_err, self.z_err], dtype=np.float64)
