from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional
import typer

from crtt0.config.load import load_config, snapshot_config_toml
from crtt0.config.schemas import Config
from crtt0.geometry.primitives import SENTINEL
from crtt0.geometry.tpc import DriftContext, TPCGeometry
from crtt0.io.store import MatchEvent, MatchRecord, read_events, write_matches
from crtt0.matching.matcher import CRTT0Matcher
from crtt0.physics.distortion import DistortionCorrection, NoDistortion, load_grid_distortion
from crtt0.physics.drift import ConstantDriftVelocity


def build_distortion(cfg: Config) -> DistortionCorrection:
    if not cfg.distortion.enabled:
        return NoDistortion()
    if not cfg.distortion.path:
        raise ValueError("[distortion] enabled = true requires a path to an offset map")
    return load_grid_distortion(cfg.distortion.path, active=True)


def build_matcher(cfg: Config) -> tuple[CRTT0Matcher, TPCGeometry]:
    """Wire the matcher and its collaborators from a loaded Config."""
    geometry = TPCGeometry.from_cfg(cfg.detector.tpcs)
    matcher = CRTT0Matcher(
        cfg.match,
        drift=ConstantDriftVelocity(cfg.detector.drift_velocity_cm_per_us),
        volumes=geometry,
        distortion=build_distortion(cfg),
    )
    return matcher, geometry


def match_events(
    matcher: CRTT0Matcher,
    geometry: TPCGeometry,
    events: Iterable[MatchEvent],
    diagnostics_level: int = 0,
) -> List[MatchRecord]:
    """
    One record per track. Tracks shorter than the minimum length are not
    matched and carry the null values.
    """
    records: List[MatchRecord] = []
    n_tracks = n_accepted = 0
    for ev in events:
        for trk in ev.tracks:
            n_tracks += 1
            if trk.length < matcher.cfg.min_track_length:
                records.append(MatchRecord(ev.event_id, trk.track_id, SENTINEL, SENTINEL, SENTINEL, -1, False))
                continue
            context: DriftContext = geometry.drift_context(trk.points)
            best = matcher.get_closest_crt_hit_from_context(trk, ev.crt_hits, context)
            accepted = matcher.is_accepted(best)
            n_accepted += int(accepted)
            records.append(MatchRecord(
                event_id=ev.event_id,
                track_id=trk.track_id,
                t0_us=best.t0,
                dca_cm=best.dca,
                extrap_len_cm=best.extrap_len,
                crt_hit_id=best.hit.hit_id if best.hit is not None else -1,
                accepted=accepted,
            ))
            if diagnostics_level >= 2:
                print(f"[match] event {ev.event_id} track {trk.track_id}: "
                      f"drift={context.drift_direction} t0={best.t0:.3f} dca={best.dca:.2f} accepted={accepted}")
    if diagnostics_level >= 1:
        print(f"[match] {n_accepted}/{n_tracks} tracks matched to a CRT hit")
    return records


def run_pipeline(cfg_path: str, *, output_path: Optional[str] = None) -> Path:
    """
    Match every track of the configured input file and write /match to
    the output HDF5 file.

    Returns
    -------
    Path to written HDF5 file.
    """
    cfg = load_config(cfg_path)
    diag_level = cfg.run.diagnostics_level

    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] input={cfg.io.input_path} -> output={output_path or cfg.io.output_path}")
        print(f"[run] dir_method={cfg.match.dir_method} dca_shape={cfg.match.dca_shape} "
              f"tie_break={cfg.match.tie_break}")

    matcher, geometry = build_matcher(cfg)
    if not geometry.volumes and diag_level >= 1:
        print("[run] No TPC volumes configured; every track is treated as stitched.")

    events = read_events(cfg.io.input_path)
    if cfg.run.max_events is not None:
        events = events[: cfg.run.max_events]
    if diag_level >= 1:
        print(f"[pipeline] Got {len(events)} events")

    records = match_events(matcher, geometry, events, diagnostics_level=diag_level)

    out_path = Path(output_path or cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    write_matches(str(out_path), records, config_text=snapshot_config_toml(cfg_path))
    if diag_level >= 1:
        print(f"[pipeline] Wrote {len(records)} match records to {out_path}")
    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="CRT/TPC track t0 matching (crtt0.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    out: Optional[str] = typer.Option(
        None,
        "--out",
        "-o",
        help="Override [io].output_path",
    ),
):
    """
    Run CRT t0 matching for a single config.
    """
    out_path = run_pipeline(cfg_path, output_path=out)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
