# src/crtt0/matching/matcher.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from ..geometry.primitives import SENTINEL
from ..geometry.tpc import DriftContext, VolumeLookup
from ..physics.distortion import DistortionCorrection
from ..physics.drift import DriftShifter, DriftVelocityProvider, TimeWindow, track_t0_range
from ..physics.hits import CRTHit
from ..physics.tracks import Track
from .dca import make_dca_strategy
from .directions import make_direction_strategy

# Failure value of T0AndDCA-style queries; differs from SENTINEL on purpose,
# downstream consumers test for each.
PAIR_SENTINEL = -9999.0


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """
    One CRT hit considered for a track.

    t0: CRT time [us]; dca: distance of closest approach [cm];
    extrap_len: distance from the chosen (shifted) track end to the hit [cm].
    A null candidate (no match) has hit=None and all numbers at -99999.
    """
    hit: Optional[CRTHit]
    t0: float
    dca: float
    extrap_len: float

    @property
    def is_null(self) -> bool:
        return not self.dca >= 0

    @property
    def dca_over_length(self) -> float:
        if self.extrap_len == 0:
            return 0.0 if self.dca == 0 else float("inf")
        return self.dca / self.extrap_len


def null_candidate() -> MatchCandidate:
    return MatchCandidate(hit=None, t0=SENTINEL, dca=SENTINEL, extrap_len=SENTINEL)


def _by_dca(c: MatchCandidate) -> float:
    return c.dca


def _by_dca_over_length(c: MatchCandidate) -> float:
    return c.dca_over_length


_SELECTION_KEYS: dict[str, Callable[[MatchCandidate], float]] = {
    "dca": _by_dca,
    "dca_over_length": _by_dca_over_length,
}


def select_best(
    candidates: Sequence[MatchCandidate],
    key: Callable[[MatchCandidate], float] = _by_dca,
) -> MatchCandidate:
    """
    Smallest `key` among candidates with non-negative DCA; a candidate with
    negative (or nan) DCA never replaces a valid one. Ties keep the earlier
    candidate.
    """
    if not candidates:
        return null_candidate()
    best = candidates[0]
    for cand in candidates:
        if not best.dca >= 0:
            best = cand
        elif cand.dca >= 0 and key(cand) < key(best):
            best = cand
    return best


class CRTT0Matcher:
    """
    Matches a TPC track to the CRT hit most consistent with it in time and
    space, giving the track t0 and the match quality.

    Holds only read-only state: configuration, the collaborators and the
    strategies derived from them. Safe to reuse across tracks and threads.
    """

    def __init__(
        self,
        cfg,
        drift: DriftVelocityProvider,
        volumes: Optional[VolumeLookup] = None,
        distortion: Optional[DistortionCorrection] = None,
    ):
        self.cfg = cfg
        self.drift = drift
        self.shifter = DriftShifter(drift, volumes, distortion, apply_correction=cfg.sce_pos_corr)
        self.directions = make_direction_strategy(cfg, self.shifter)
        self.dca = make_dca_strategy(cfg)
        self.select_key = _SELECTION_KEYS[cfg.tie_break]

    # ---- building blocks ---------------------------------------------------

    def crt_time(self, hit: CRTHit) -> float:
        """Hit time [us] in the configured clock domain, plus the fixed correction."""
        ts_ns = hit.ts1_ns if self.cfg.ts_mode == 1 else hit.ts0_ns
        return float(int(ts_ns)) * 1e-3 + self.cfg.time_correction_us

    def track_t0_range(
        self,
        start_x: float,
        end_x: float,
        drift_direction: int,
        x_limits: tuple[float, float],
    ) -> TimeWindow:
        return track_t0_range(start_x, end_x, drift_direction, x_limits, self.drift.drift_velocity())

    def window_for(self, track: Track, context: DriftContext) -> TimeWindow:
        return self.track_t0_range(
            float(track.start[0]), float(track.end[0]), context.drift_direction, context.x_limits
        )

    def dist_of_closest_approach(
        self,
        track_pos: np.ndarray,
        track_dir: np.ndarray,
        hit: CRTHit,
        drift_direction: int,
        t0: float,
    ) -> float:
        pos = self.shifter(track_pos, drift_direction, t0)
        return self.dca(hit, pos, track_dir)

    def _passes_quality(self, hit: CRTHit) -> bool:
        if hit.pe < self.cfg.pe_cut:
            return False
        lim = self.cfg.max_uncert
        return not (hit.x_err > lim or hit.y_err > lim or hit.z_err > lim)

    def _candidate(
        self,
        track: Track,
        hit: CRTHit,
        crt_time: float,
        drift_direction: int,
    ) -> Optional[MatchCandidate]:
        start, end = track.start, track.end
        start_dir, end_dir = self.directions(track, crt_time, drift_direction)

        start_dist = self.dist_of_closest_approach(start, start_dir, hit, drift_direction, crt_time)
        end_dist = self.dist_of_closest_approach(end, end_dir, hit, drift_direction, crt_time)
        if not (start_dist < self.cfg.distance_limit or end_dist < self.cfg.distance_limit):
            return None

        this_start = self.shifter(start, drift_direction, crt_time)
        this_end = self.shifter(end, drift_direction, crt_time)
        crt_point = hit.position
        dist_s = float(np.linalg.norm(crt_point - this_start))
        dist_e = float(np.linalg.norm(crt_point - this_end))

        if dist_s <= dist_e:
            dca, extrap_len = start_dist, dist_s
        else:
            dca, extrap_len = end_dist, dist_e
        # a zero-length direction at the chosen end leaves its DCA undefined
        if not np.isfinite(dca):
            return None
        return MatchCandidate(hit, crt_time, dca, extrap_len)

    # ---- matching ----------------------------------------------------------

    def candidates(
        self,
        track: Track,
        window: TimeWindow,
        crt_hits: Iterable[CRTHit],
        drift_direction: int,
    ) -> List[MatchCandidate]:
        """All CRT hits passing the time, quality and proximity gates."""
        window = TimeWindow(*window)
        out: List[MatchCandidate] = []
        for hit in crt_hits:
            crt_time = self.crt_time(hit)
            # stitched tracks (degenerate window) accept every hit time
            if not (window.contains(crt_time, self.cfg.time_pad_us) or window.is_degenerate):
                continue
            if not self._passes_quality(hit):
                continue
            cand = self._candidate(track, hit, crt_time, drift_direction)
            if cand is not None:
                out.append(cand)
        return out

    def get_closest_crt_hit(
        self,
        track: Track,
        window: TimeWindow,
        crt_hits: Iterable[CRTHit],
        drift_direction: int,
    ) -> MatchCandidate:
        """Best candidate by the configured policy, or the null candidate."""
        return select_best(self.candidates(track, window, crt_hits, drift_direction), self.select_key)

    def get_closest_crt_hit_from_context(
        self,
        track: Track,
        crt_hits: Iterable[CRTHit],
        context: DriftContext,
    ) -> MatchCandidate:
        window = self.window_for(track, context)
        return self.get_closest_crt_hit(track, window, crt_hits, context.drift_direction)

    # ---- query facade ------------------------------------------------------

    def is_accepted(self, best: MatchCandidate) -> bool:
        """
        Acceptance thresholds on DCA and DCA/length; the null candidate never
        passes. A hit sitting exactly on the shifted track end (zero
        extrapolation length) is rejected: its DCA/length is undefined.
        """
        if not best.dca >= 0 or best.extrap_len == 0:
            return False
        return best.dca < self.cfg.distance_limit and best.dca_over_length < self.cfg.dover_l_limit

    def t0_from_crt_hits(
        self,
        track: Track,
        crt_hits: Iterable[CRTHit],
        context: DriftContext,
    ) -> float:
        """Matched t0 [us], or -99999."""
        if track.length < self.cfg.min_track_length:
            return SENTINEL
        best = self.get_closest_crt_hit_from_context(track, crt_hits, context)
        if not self.is_accepted(best):
            return SENTINEL
        return best.t0

    def t0_and_dca_from_crt_hits(
        self,
        track: Track,
        crt_hits: Iterable[CRTHit],
        context: DriftContext,
    ) -> tuple[float, float]:
        """(t0 [us], dca [cm]) of the accepted match, or (-9999, -9999)."""
        if track.length < self.cfg.min_track_length:
            return PAIR_SENTINEL, PAIR_SENTINEL
        best = self.get_closest_crt_hit_from_context(track, crt_hits, context)
        if not self.is_accepted(best):
            return PAIR_SENTINEL, PAIR_SENTINEL
        return best.t0, best.dca

    def closest_crt_hit(
        self,
        track: Track,
        crt_hits: Iterable[CRTHit],
        context: DriftContext,
    ) -> tuple[Optional[CRTHit], float]:
        """Raw best match (hit, dca) without the acceptance thresholds."""
        best = self.get_closest_crt_hit_from_context(track, crt_hits, context)
        return best.hit, best.dca
