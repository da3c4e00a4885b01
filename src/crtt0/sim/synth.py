from __future__ import annotations
import numpy as np
from ..physics.hits import CRTHit
from ..physics.tracks import Track


def straight_track(
    start: np.ndarray,
    end: np.ndarray,
    n_points: int = 50,
    track_id: int = 0,
) -> Track:
    """Evenly sampled straight track from start to end, with exact local directions."""
    start = np.asarray(start, dtype=np.float64)
    end = np.asarray(end, dtype=np.float64)
    s = np.linspace(0.0, 1.0, n_points)[:, None]
    pts = start + s * (end - start)
    u = (end - start) / np.linalg.norm(end - start)
    dirs = np.repeat(u[None, :], n_points, axis=0)
    return Track(points=pts, directions=dirs, track_id=track_id)


def synth_crossing_muon(
    true_start: np.ndarray,
    true_end: np.ndarray,
    t0_us: float,
    drift_direction: int,
    drift_velocity: float,
    crt_distance_cm: float = 50.0,
    crt_err_cm: tuple[float, float, float] = (5.0, 0.5, 5.0),
    pe: float = 100.0,
    n_points: int = 50,
    rng: np.random.Generator | None = None,
    smear_cm: float = 0.0,
) -> tuple[Track, CRTHit]:
    """
    Generate a straight cosmic track as the TPC reconstructs it without
    t0 (x displaced by -drift_direction * t0 * v) and the CRT hit it left
    `crt_distance_cm` upstream of its true start.

    The CRT timestamps (both clock domains) are set to t0 in ns.
    """
    rng = rng or np.random.default_rng()
    true_start = np.asarray(true_start, dtype=np.float64)
    true_end = np.asarray(true_end, dtype=np.float64)
    u = (true_end - true_start) / np.linalg.norm(true_end - true_start)

    crt_pos = true_start - crt_distance_cm * u
    if smear_cm > 0:
        crt_pos = crt_pos + rng.normal(scale=smear_cm, size=3)

    shift = np.array([drift_direction * t0_us * drift_velocity, 0.0, 0.0])
    track = straight_track(true_start - shift, true_end - shift, n_points=n_points)

    ts_ns = int(round(t0_us * 1e3))
    hit = CRTHit(
        x=float(crt_pos[0]), y=float(crt_pos[1]), z=float(crt_pos[2]),
        x_err=crt_err_cm[0], y_err=crt_err_cm[1], z_err=crt_err_cm[2],
        ts0_ns=ts_ns, ts1_ns=ts_ns, pe=pe,
    )
    return track, hit
