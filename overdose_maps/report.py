#!/usr/bin/env python3
"""
report.py
=========
Drug-overdose share of all deaths by US state, 12 months ending August
2015–2017, from the CDC VSRR provisional counts.

Pipeline:
    load_vsrr → normalize_causes → pooled / split proportions
              → join to state polygons → maps + cause breakdown charts

USAGE
-----
    pull-vsrr                 # data/VSRR_Provisional_Drug_Overdose_Death_Counts.csv
    pull-state-polygons       # data/state_polygons.parquet
    overdose-report [--data ...] [--polygons ...] [--out-dir ...]
                    [--month August] [--label-overrides overrides.json]

Outputs (in OUT_DIR):
    map_proportion.png          drug-related / all deaths, one panel per year
    map_proportion_diff.png     year-over-year change (baseline year absolute)
    cause_breakdown.png         per-cause share, states reporting cause detail
    pooled_proportions.parquet
    split_proportions.parquet
    label_positions.parquet

Any pipeline error stops the run before outputs are written and is reported
as "✗  <stage> failed: <message>" with exit status 1.
"""

import argparse
import sys
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from .codebook import LABEL_OVERRIDES, REPORTING_MONTH
from .errors import FormatError, ReportError
from .figures import (
    diff_panel_scales,
    plot_cause_breakdown,
    plot_diff_maps,
    plot_proportion_maps,
)
from .geo import join_polygons, label_positions, load_label_overrides, load_state_polygons
from .load_vsrr import load_vsrr, normalize_causes
from .proportions import detail_states, pooled_proportions, split_proportions

# ============================================================================
# CONFIG
# ============================================================================

DATA_DIR     = Path("data")
DATA_CSV     = DATA_DIR / "VSRR_Provisional_Drug_Overdose_Death_Counts.csv"
POLYGONS     = DATA_DIR / "state_polygons.parquet"
OUT_DIR      = Path("output")

FIG_PROPORTION = "map_proportion.png"
FIG_DIFF       = "map_proportion_diff.png"
FIG_CAUSES     = "cause_breakdown.png"

# ============================================================================
# END CONFIG
# ============================================================================


def _require(path: Path, how: str) -> Path:
    if not path.exists():
        raise FormatError(f"{path} not found; run `{how}` first", stage="Load")
    return path


def write_table(df: pd.DataFrame, out_path: Path) -> Path:
    table = pa.Table.from_pandas(df, preserve_index=False)
    pq.write_table(table, str(out_path), compression="snappy")
    print(f"✓  Saved → {out_path.resolve()}")
    return out_path


def print_summary(records: pd.DataFrame, pooled: pd.DataFrame, split: pd.DataFrame) -> None:
    states = detail_states(records)
    print("── Coverage ────────────────────────────────────────────────────────")
    print(f"  States / areas            : {records['state'].nunique()}")
    print(f"  Reporting cause detail    : {len(states)}  {states}")
    print(f"  Split rows                : {len(split):,}")
    print()
    print("  Drug-related proportion by year:")
    table = pooled.pivot(index="state", columns="year", values="proportion")
    print(table.round(3).to_string())
    print("────────────────────────────────────────────────────────────────────")
    print(flush=True)


def run_report(data_path=DATA_CSV, polygon_path=POLYGONS, out_dir=OUT_DIR,
               month: str = REPORTING_MONTH, label_overrides=None) -> dict:
    """Run every stage and return the derived tables and written paths."""
    data_path, polygon_path, out_dir = Path(data_path), Path(polygon_path), Path(out_dir)
    overrides = dict(LABEL_OVERRIDES)
    if label_overrides:
        overrides.update(label_overrides)

    print(f"Loading {data_path} …")
    loaded = load_vsrr(_require(data_path, "pull-vsrr"), month=month)
    records = normalize_causes(loaded)
    print()

    pooled = pooled_proportions(records)
    split = split_proportions(records)
    print_summary(records, pooled, split)

    print(f"Loading {polygon_path} …")
    polygons = load_state_polygons(_require(polygon_path, "pull-state-polygons"))
    map_rows = join_polygons(pooled, polygons)
    labels = label_positions(polygons, overrides)
    print(f"  Map rows                  : {len(map_rows):,}")
    print(f"  States on map             : {map_rows['region'].nunique()}")
    print()

    # Colour domains fail on empty input; settle them before anything is written
    diff_panel_scales(map_rows)

    out_dir.mkdir(parents=True, exist_ok=True)
    written = [
        write_table(pooled, out_dir / "pooled_proportions.parquet"),
        write_table(split, out_dir / "split_proportions.parquet"),
        write_table(labels, out_dir / "label_positions.parquet"),
        plot_proportion_maps(map_rows, out_dir / FIG_PROPORTION, labels),
        plot_diff_maps(map_rows, out_dir / FIG_DIFF, labels),
    ]
    breakdown = plot_cause_breakdown(split, out_dir / FIG_CAUSES)
    if breakdown is not None:
        written.append(breakdown)

    return {
        "pooled":   pooled,
        "split":    split,
        "map_rows": map_rows,
        "labels":   labels,
        "written":  written,
    }


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Render the VSRR overdose proportion report.")
    parser.add_argument("--data", type=Path, default=DATA_CSV,
                        help=f"VSRR CSV (default: {DATA_CSV})")
    parser.add_argument("--polygons", type=Path, default=POLYGONS,
                        help=f"State polygon table, .parquet or .csv (default: {POLYGONS})")
    parser.add_argument("--out-dir", type=Path, default=OUT_DIR,
                        help=f"Output directory (default: {OUT_DIR})")
    parser.add_argument("--month", default=REPORTING_MONTH,
                        help=f"Reporting month to keep (default: {REPORTING_MONTH})")
    parser.add_argument("--label-overrides", type=Path, default=None,
                        help='JSON {"state name": [long, lat]} merged over the defaults')
    args = parser.parse_args(argv)

    try:
        overrides = load_label_overrides(args.label_overrides) if args.label_overrides else None
        run_report(args.data, args.polygons, args.out_dir,
                   month=args.month, label_overrides=overrides)
    except ReportError as e:
        print(f"✗  {e.stage} failed: {e}", file=sys.stderr)
        sys.exit(1)

    print("\nDone.")


if __name__ == "__main__":
    main()
