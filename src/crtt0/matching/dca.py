from __future__ import annotations
import numpy as np

from ..geometry.primitives import box_dca, point_dca
from ..physics.hits import CRTHit

# --- Interfaces -------------------------------------------------------------

class DCAStrategy:
    """Distance of closest approach between an extrapolated track line and a CRT hit."""
    name: str

    def __call__(self, hit: CRTHit, track_pos: np.ndarray, track_dir: np.ndarray) -> float:
        raise NotImplementedError

# --- Implementations --------------------------------------------------------

class PointDCA(DCAStrategy):
    name = "point"

    def __call__(self, hit, track_pos, track_dir):
        return point_dca(hit, track_pos, track_dir)


class BoxDCA(DCAStrategy):
    """Hit is a box of half-widths (x_err, y_err, z_err)."""
    name = "box"

    def __call__(self, hit, track_pos, track_dir):
        return box_dca(hit, track_pos, np.asarray(track_pos) + np.asarray(track_dir))

# --- Factory ----------------------------------------------------------------

def make_dca_strategy(cfg_match) -> DCAStrategy:
    if cfg_match.dca_shape == "point":
        return PointDCA()
    elif cfg_match.dca_shape == "box":
        return BoxDCA()
    else:
        raise ValueError(f"Unknown DCA shape {cfg_match.dca_shape}")
