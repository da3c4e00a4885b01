from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional, List

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    TOML:

    [io]
    input_path  = "events.h5"
    output_path = "matches.h5"
    """

    input_path: str
    output_path: str


class TPCCfg(BaseModel):
    min: List[float]
    max: List[float]
    drift_direction: Literal[-1, 1]

    @field_validator("min", "max")
    def _three(cls, v: List[float]) -> List[float]:
        if len(v) != 3:
            raise ValueError("TPC bounds must have 3 components")
        return v


class DetectorCfg(BaseModel):
    """
    TOML:

    [detector]
    drift_velocity_cm_per_us = 0.157

    [[detector.tpcs]]
    min = [-358.5, -181.9, -894.9]
    max = [-210.3, 134.9, 894.9]
    drift_direction = -1
    """

    drift_velocity_cm_per_us: float = 0.157
    tpcs: List[TPCCfg] = Field(default_factory=list)

    @field_validator("drift_velocity_cm_per_us")
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("drift_velocity_cm_per_us must be positive")
        return v


class DistortionCfg(BaseModel):
    enabled: bool = False
    path: Optional[str] = None  # .npz offset grids, see physics.distortion


DirMethod = Literal["endpoint_midpoint", "trajectory_average", "trajectory_points"]
DCAShape = Literal["point", "box"]
TieBreak = Literal["dca", "dca_over_length"]

# Integer codes used by older configuration files
_DIR_METHOD_CODES = {1: "endpoint_midpoint", 2: "trajectory_average"}


class MatchCfg(BaseModel):
    """
    Matching thresholds and strategy selectors. Immutable once built.

    ts_mode: 1 selects the ts1 clock domain, anything else ts0.
    time_correction_us: added to every CRT time.
    sce_pos_corr: apply the spatial distortion correction (if the field is enabled).
    """

    model_config = ConfigDict(frozen=True)

    min_track_length: float = 20.0  # cm
    track_direction_frac: float = 0.5
    distance_limit: float = 100.0  # cm
    ts_mode: int = 1
    time_correction_us: float = 0.0
    sce_pos_corr: bool = True
    dir_method: DirMethod = "endpoint_midpoint"
    dca_shape: DCAShape = "point"
    tie_break: TieBreak = "dca"
    dover_l_limit: float = 1.0
    pe_cut: float = 0.0
    max_uncert: float = 1000.0  # cm
    time_pad_us: float = 10.0

    @field_validator("dir_method", mode="before")
    def _dir_code(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            if v not in _DIR_METHOD_CODES:
                raise ValueError(f"dir_method code must be 1 or 2, got {v}")
            return _DIR_METHOD_CODES[v]
        return v

    @field_validator("dca_shape", mode="before")
    def _box_flag(cls, v):
        # DCAuseBox-style boolean
        if isinstance(v, bool):
            return "box" if v else "point"
        return v

    @field_validator("tie_break", mode="before")
    def _dol_flag(cls, v):
        # DCAoverLength-style boolean
        if isinstance(v, bool):
            return "dca_over_length" if v else "dca"
        return v

    @field_validator("track_direction_frac")
    def _frac_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("track_direction_frac must be in (0, 1]")
        return v


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    detector: DetectorCfg = Field(default_factory=DetectorCfg)
    distortion: DistortionCfg = Field(default_factory=DistortionCfg)
    match: MatchCfg = Field(default_factory=MatchCfg)
