import numpy as np
import pytest

from crtt0.io.store import MatchEvent, read_events, read_matches, write_events
from crtt0.pipelines.core import run_pipeline
from crtt0.physics.hits import CRTHit
from crtt0.sim.synth import straight_track, synth_crossing_muon


def _events():
    track, hit = synth_crossing_muon(
        true_start=[50.0, 150.0, 0.0],
        true_end=[50.0, -150.0, 0.0],
        t0_us=100.0,
        drift_direction=1,
        drift_velocity=0.1,
    )
    decoy = CRTHit(x=140.0, y=200.0, z=300.0, x_err=5.0, y_err=0.5, z_err=5.0,
                   ts0_ns=400000, ts1_ns=400000, pe=80.0)
    short = straight_track([20.0, 0.0, 0.0], [20.0, 5.0, 0.0], n_points=5, track_id=1)
    return [
        MatchEvent(event_id=7, tracks=[track, short], crt_hits=[decoy, hit]),
        MatchEvent(event_id=8, tracks=[], crt_hits=[decoy]),
    ]


def test_event_file_roundtrip(tmp_path):
    path = str(tmp_path / "events.h5")
    write_events(path, _events())
    events = read_events(path)
    assert [ev.event_id for ev in events] == [7, 8]
    ev = events[0]
    assert len(ev.tracks) == 2 and len(ev.crt_hits) == 2
    assert ev.tracks[0].n_points == 50
    assert ev.crt_hits[1].ts1_ns == 100000
    assert ev.crt_hits[1].hit_id == 1


def test_read_events_missing_dataset(tmp_path):
    import h5py
    path = tmp_path / "broken.h5"
    with h5py.File(path, "w") as f:
        f.create_dataset("tracks/points", data=np.zeros((0, 3)))
    with pytest.raises(KeyError):
        read_events(str(path))


def test_pipeline_writes_matches(tmp_path):
    events_path = tmp_path / "events.h5"
    out_path = tmp_path / "out" / "matches.h5"
    write_events(str(events_path), _events())
    cfg_path = tmp_path / "cfg.toml"
    cfg_path.write_text(f"""
[run]
diagnostics_level = 0

[io]
input_path = "{events_path.as_posix()}"
output_path = "{out_path.as_posix()}"

[detector]
drift_velocity_cm_per_us = 0.1

[[detector.tpcs]]
min = [0.0, -300.0, -100.0]
max = [150.0, 300.0, 100.0]
drift_direction = 1
""")
    written = run_pipeline(str(cfg_path))
    assert written == out_path

    m = read_matches(str(out_path))
    assert list(m["track_id"]) == [0, 1]
    assert bool(m["accepted"][0]) and not bool(m["accepted"][1])
    assert m["t0_us"][0] == pytest.approx(100.0)
    assert m["crt_hit_id"][0] == 1
    assert m["t0_us"][1] == -99999
