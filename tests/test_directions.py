import numpy as np

from crtt0.config.schemas import MatchCfg
from crtt0.matching.directions import (
    EndpointMidpointDirection,
    TrajectoryAverageDirection,
    TrajectoryPointsDirection,
    make_direction_strategy,
)
from crtt0.physics.drift import ConstantDriftVelocity, DriftShifter
from crtt0.physics.tracks import Track
from crtt0.sim.synth import straight_track


def test_trajectory_average_points_outward():
    trk = straight_track([0, 0, 0], [0, 0, 100], n_points=21)
    s, e = TrajectoryAverageDirection(0.3)(trk, 0.0, 1)
    assert np.allclose(s, [0, 0, -1])
    assert np.allclose(e, [0, 0, 1])


def test_trajectory_average_skips_invalid_points():
    pts = np.stack([np.zeros(10), np.zeros(10), np.linspace(0, 90, 10)], axis=1)
    dirs = np.tile([0.0, 0.0, 1.0], (10, 1))
    dirs[0] = [1.0, 0.0, 0.0]   # garbage on an invalid point
    dirs[-1] = [0.0, 1.0, 0.0]
    valid = np.ones(10, dtype=bool)
    valid[0] = valid[-1] = False
    trk = Track(points=pts, directions=dirs, valid=valid)
    s, e = TrajectoryAverageDirection(0.5)(trk, 0.0, 1)
    assert np.allclose(s, [0, 0, -1])
    assert np.allclose(e, [0, 0, 1])


def test_endpoint_midpoint_chords_point_to_middle():
    trk = straight_track([0, 0, 0], [0, 0, 100], n_points=51)
    strat = EndpointMidpointDirection(0.5, DriftShifter(ConstantDriftVelocity(0.1)))
    s, e = strat(trk, 250.0, 1)  # a pure x shift leaves the chords unchanged
    assert np.allclose(s, [0, 0, 1])
    assert np.allclose(e, [0, 0, -1])
    assert abs(np.linalg.norm(s) - 1.0) < 1e-12


def test_endpoint_midpoint_zero_length_left_unnormalized():
    trk = Track(points=np.tile([5.0, 5.0, 5.0], (4, 1)))
    strat = EndpointMidpointDirection(0.5, DriftShifter(ConstantDriftVelocity(0.1)))
    s, e = strat(trk, 10.0, -1)
    assert np.all(s == 0.0) and np.all(e == 0.0)


def test_trajectory_points_chords():
    trk = straight_track([0, 0, 0], [30, 40, 0], n_points=11)
    s, e = TrajectoryPointsDirection(0.5)(trk, 0.0, 0)
    assert np.allclose(s, [-0.6, -0.8, 0])
    assert np.allclose(e, [0.6, 0.8, 0])


def test_factory_picks_strategy_from_config():
    sh = DriftShifter(ConstantDriftVelocity(0.1))
    assert make_direction_strategy(MatchCfg(), sh).name == "endpoint_midpoint"
    assert make_direction_strategy(MatchCfg(dir_method=2), sh).name == "trajectory_average"
    assert make_direction_strategy(MatchCfg(dir_method="trajectory_points"), sh).name == "trajectory_points"
