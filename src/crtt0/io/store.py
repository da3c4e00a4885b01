from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Sequence
import h5py
import numpy as np
from datetime import datetime, timezone

from crtt0.physics.hits import CRTHit
from crtt0.physics.tracks import Track

FORMAT_VERSION = "1.0"

_CRT_COLUMNS = ("x", "y", "z", "x_err", "y_err", "z_err", "ts0_ns", "ts1_ns", "pe")


@dataclass
class MatchEvent:
    """Tracks and CRT hits of one readout event."""
    event_id: int
    tracks: List[Track] = field(default_factory=list)
    crt_hits: List[CRTHit] = field(default_factory=list)


@dataclass
class MatchRecord:
    event_id: int
    track_id: int
    t0_us: float
    dca_cm: float
    extrap_len_cm: float
    crt_hit_id: int
    accepted: bool


def _require(f: h5py.File, name: str) -> np.ndarray:
    if name not in f:
        raise KeyError(f"/{name} not found in {f.filename}")
    return np.asarray(f[name])


def read_events(path: str) -> List[MatchEvent]:
    """
    Read an event file.

    Layout:
      /tracks/points   (M, 3) float, all track points concatenated
      /tracks/valid    (M,)   bool, optional
      /tracks/offsets  (T+1,) int, track k owns points[offsets[k]:offsets[k+1]]
      /tracks/event    (T,)   int
      /tracks/track_id (T,)   int, optional
      /crt/<column>    (K,)   one dataset per CRTHit field, plus /crt/event
    """
    with h5py.File(path, "r") as f:
        points = _require(f, "tracks/points").astype(np.float64)
        offsets = _require(f, "tracks/offsets").astype(np.int64)
        trk_event = _require(f, "tracks/event").astype(np.int64)
        valid = np.asarray(f["tracks/valid"], dtype=bool) if "tracks/valid" in f else np.ones(len(points), dtype=bool)
        track_ids = (
            np.asarray(f["tracks/track_id"], dtype=np.int64)
            if "tracks/track_id" in f
            else np.arange(len(trk_event), dtype=np.int64)
        )
        crt_cols = {c: _require(f, f"crt/{c}") for c in _CRT_COLUMNS}
        crt_event = _require(f, "crt/event").astype(np.int64)

    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"/tracks/points must be (M, 3), got {points.shape}")
    if len(offsets) != len(trk_event) + 1:
        raise ValueError(
            f"/tracks/offsets has {len(offsets)} entries for {len(trk_event)} tracks"
        )

    events: Dict[int, MatchEvent] = {}

    def _event(eid: int) -> MatchEvent:
        if eid not in events:
            events[eid] = MatchEvent(event_id=eid)
        return events[eid]

    for k, eid in enumerate(trk_event):
        lo, hi = int(offsets[k]), int(offsets[k + 1])
        _event(int(eid)).tracks.append(
            Track(points=points[lo:hi], valid=valid[lo:hi], track_id=int(track_ids[k]))
        )

    for j, eid in enumerate(crt_event):
        _event(int(eid)).crt_hits.append(CRTHit(
            x=float(crt_cols["x"][j]), y=float(crt_cols["y"][j]), z=float(crt_cols["z"][j]),
            x_err=float(crt_cols["x_err"][j]), y_err=float(crt_cols["y_err"][j]), z_err=float(crt_cols["z_err"][j]),
            ts0_ns=int(crt_cols["ts0_ns"][j]), ts1_ns=int(crt_cols["ts1_ns"][j]),
            pe=float(crt_cols["pe"][j]),
            hit_id=j,
        ))

    return [events[k] for k in sorted(events)]


def write_events(path: str, events: Sequence[MatchEvent]) -> None:
    """Inverse of read_events; used to prepare inputs."""
    all_pts, all_valid, offsets, trk_event, trk_ids = [], [], [0], [], []
    crt_rows: Dict[str, list] = {c: [] for c in _CRT_COLUMNS}
    crt_event = []
    for ev in events:
        for trk in ev.tracks:
            all_pts.append(trk.points)
            all_valid.append(trk.valid)
            offsets.append(offsets[-1] + trk.n_points)
            trk_event.append(ev.event_id)
            trk_ids.append(trk.track_id)
        for h in ev.crt_hits:
            for c in _CRT_COLUMNS:
                crt_rows[c].append(getattr(h, c))
            crt_event.append(ev.event_id)

    with h5py.File(path, "w") as f:
        f.attrs["format_version"] = FORMAT_VERSION
        trk = f.create_group("tracks")
        trk.create_dataset("points", data=np.concatenate(all_pts) if all_pts else np.zeros((0, 3)))
        trk.create_dataset("valid", data=np.concatenate(all_valid) if all_valid else np.zeros(0, dtype=bool))
        trk.create_dataset("offsets", data=np.asarray(offsets, dtype=np.int64))
        trk.create_dataset("event", data=np.asarray(trk_event, dtype=np.int64))
        trk.create_dataset("track_id", data=np.asarray(trk_ids, dtype=np.int64))
        crt = f.create_group("crt")
        for c in _CRT_COLUMNS:
            dtype = np.int64 if c.startswith("ts") else np.float64
            crt.create_dataset(c, data=np.asarray(crt_rows[c], dtype=dtype))
        crt.create_dataset("event", data=np.asarray(crt_event, dtype=np.int64))


def write_matches(path: str, records: Sequence[MatchRecord], config_text: str = "") -> None:
    """
    Store per-track match results under /match, one row per track.
    Unmatched tracks carry the -99999 sentinels and crt_hit_id = -1.
    """
    with h5py.File(path, "w") as f:
        f.attrs["format_version"] = FORMAT_VERSION
        f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
        f.attrs["software"] = "crtt0 0.1.0"
        f.attrs["config_text"] = config_text

        grp = f.create_group("match")
        grp.create_dataset("event", data=np.asarray([r.event_id for r in records], dtype=np.int64), compression="gzip")
        grp.create_dataset("track_id", data=np.asarray([r.track_id for r in records], dtype=np.int64), compression="gzip")
        grp.create_dataset("t0_us", data=np.asarray([r.t0_us for r in records], dtype=np.float64), compression="gzip")
        grp.create_dataset("dca_cm", data=np.asarray([r.dca_cm for r in records], dtype=np.float64), compression="gzip")
        grp.create_dataset("extrap_len_cm", data=np.asarray([r.extrap_len_cm for r in records], dtype=np.float64), compression="gzip")
        grp.create_dataset("crt_hit_id", data=np.asarray([r.crt_hit_id for r in records], dtype=np.int64), compression="gzip")
        grp.create_dataset("accepted", data=np.asarray([r.accepted for r in records], dtype=bool), compression="gzip")


def read_matches(path: str) -> Dict[str, np.ndarray]:
    with h5py.File(path, "r") as f:
        if "match" not in f:
            raise KeyError(f"/match not found in {path}")
        return {k: np.array(v) for k, v in f["match"].items()}
