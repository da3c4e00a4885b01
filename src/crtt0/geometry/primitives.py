from __future__ import annotations
import numpy as np

from ..physics.hits import CRTHit

SENTINEL = -99999.0
SMALL_NUM = 1e-5

# Returned by cube_intersection when the line misses the box
NO_INTERSECTION = (np.full(3, SENTINEL), np.full(3, SENTINEL))


def _vec(v) -> np.ndarray:
    return np.asarray(v, dtype=np.float64)


def point_line_distance(point, line_start, line_direction) -> float:
    """
    Perpendicular distance from `point` to the infinite line through
    `line_start` with direction `line_direction`.

    A zero-length direction gives nan; callers guard against it.
    """
    p = _vec(point)
    s = _vec(line_start)
    d = _vec(line_direction)
    e = s + d
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.linalg.norm(np.cross(p - s, p - e)) / np.linalg.norm(d))


def segment_line_distance(seg_start, seg_end, line_start, line_end) -> float:
    """
    Minimum distance between the finite segment (seg_start, seg_end) and the
    infinite line through (line_start, line_end).

    Closest-point construction between two lines with the segment parameter
    clamped to [0, 1]. The line parameter is never clamped.
    """
    s1 = _vec(seg_start)
    s2 = _vec(line_start)
    u = _vec(seg_end) - s1   # segment
    v = _vec(line_end) - s2  # infinite line
    w = s1 - s2

    a = float(u @ u)
    b = float(u @ v)
    c = float(v @ v)
    d = float(u @ w)
    e = float(v @ w)
    D = a * c - b * b
    sD = D
    tD = D

    if D < SMALL_NUM:
        # nearly parallel: pin the segment start and project onto the line
        sN, sD = 0.0, 1.0
        tN, tD = e, c
    else:
        sN = b * e - c * d
        tN = a * e - b * d
        if sN < 0.0:
            sN = 0.0
            tN, tD = e, c
        elif sN > sD:
            sN = sD
            tN, tD = e + b, c

    sc = 0.0 if abs(sN) < SMALL_NUM else sN / sD
    tc = 0.0 if abs(tN) < SMALL_NUM else tN / tD
    dP = w + sc * u - tc * v
    return float(np.linalg.norm(dP))


def _slab(lo: float, hi: float, start: float, inv: float) -> tuple[float, float]:
    if inv >= 0:
        return (lo - start) * inv, (hi - start) * inv
    return (hi - start) * inv, (lo - start) * inv


def cube_intersection(box_min, box_max, start, end) -> tuple[np.ndarray, np.ndarray]:
    """
    Intersect the infinite line through (start, end) with an axis-aligned box.

    Returns (enter, exit) ordered by line parameter, or NO_INTERSECTION
    (both points filled with -99999) when the line misses the box.
    Zero direction components propagate as IEEE infinities.
    """
    lo = _vec(box_min)
    hi = _vec(box_max)
    p = _vec(start)
    direction = _vec(end) - p

    with np.errstate(divide="ignore", invalid="ignore"):
        inv = 1.0 / direction
        tmin, tmax = _slab(lo[0], hi[0], p[0], inv[0])
        tymin, tymax = _slab(lo[1], hi[1], p[1], inv[1])

        if tmin > tymax or tymin > tmax:
            return NO_INTERSECTION[0].copy(), NO_INTERSECTION[1].copy()
        if tymin > tmin:
            tmin = tymin
        if tymax < tmax:
            tmax = tymax

        tzmin, tzmax = _slab(lo[2], hi[2], p[2], inv[2])
        if tmin > tzmax or tzmin > tmax:
            return NO_INTERSECTION[0].copy(), NO_INTERSECTION[1].copy()
        if tzmin > tmin:
            tmin = tzmin
        if tzmax < tmax:
            tmax = tzmax

        enter = p + tmin * direction
        exit_ = p + tmax * direction
    return enter, exit_


def intersects(box_min, box_max, start, end) -> bool:
    enter, _ = cube_intersection(box_min, box_max, start, end)
    return enter[0] != SENTINEL


def point_dca(hit: CRTHit, track_point, track_direction) -> float:
    """Distance from the hit centre to the infinite track line."""
    return point_line_distance(hit.position, track_point, track_direction)


def _face_vertices(hit: CRTHit) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    x, y, z = hit.x, hit.y, hit.z
    ex, ey, ez = hit.x_err, hit.y_err, hit.z_err

    # The thinnest axis is taken as the tagger plane normal; x unless y or z
    # is strictly the smallest.
    if ez < ex and ez < ey:
        return (np.array([x - ex, y - ey, z]), np.array([x + ex, y - ey, z]),
                np.array([x - ex, y + ey, z]), np.array([x + ex, y + ey, z]))
    if ey < ex and ey < ez:
        return (np.array([x - ex, y, z - ez]), np.array([x + ex, y, z - ez]),
                np.array([x - ex, y, z + ez]), np.array([x + ex, y, z + ez]))
    return (np.array([x, y - ey, z - ez]), np.array([x, y + ey, z - ez]),
            np.array([x, y - ey, z + ez]), np.array([x, y + ey, z + ez]))


def box_dca(hit: CRTHit, seg_start, seg_end) -> float:
    """
    Distance from the infinite line through (seg_start, seg_end) to the hit
    treated as a box of half-widths (x_err, y_err, z_err).

    0 when the line passes through the box; otherwise the closest edge of
    the face normal to the thinnest axis.
    """
    pos = hit.position
    err = hit.errors
    if intersects(pos - err, pos + err, seg_start, seg_end):
        return 0.0

    v1, v2, v3, v4 = _face_vertices(hit)
    return min(
        segment_line_distance(v1, v2, seg_start, seg_end),
        segment_line_distance(v1, v3, seg_start, seg_end),
        segment_line_distance(v4, v2, seg_start, seg_end),
        segment_line_distance(v4, v3, seg_start, seg_end),
    )
