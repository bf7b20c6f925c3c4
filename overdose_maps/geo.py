"""
geo.py
======
Join state-level proportions to state boundary polygons and place labels.

Polygon table (one row per vertex, read-only):
    long, lat   : vertex coordinates (degrees)
    group       : ring id; a state with disjoint parts has several groups
    order       : vertex position within the ring
    region      : lowercase full state name, the join key

The join is an inner join on the lowercase state name.  Names on either side
without a partner are dropped; names not listed in
codebook.EXPECTED_UNMATCHED also raise a UserWarning, which is how a renamed
or missing polygon shows up.  A join with no rows at all is a FormatError.
"""

import json
import warnings
from pathlib import Path

import pandas as pd

from .codebook import EXPECTED_UNMATCHED, LABEL_OVERRIDES
from .errors import FormatError

POLYGON_COLUMNS = ["long", "lat", "group", "order", "region"]
STAGE = "Geo join"


# ── Polygon source ─────────────────────────────────────────────────────────────

def load_state_polygons(path) -> pd.DataFrame:
    """Read a vertex table from .parquet or .csv, sorted by (group, order)."""
    path = Path(path)
    try:
        if path.suffix == ".parquet":
            df = pd.read_parquet(path)
        else:
            df = pd.read_csv(path)
    except (OSError, ValueError) as e:
        # pyarrow and pandas parse errors are ValueError subclasses
        raise FormatError(f"Cannot read polygon table {path}: {e}", stage=STAGE) from e

    missing = [c for c in POLYGON_COLUMNS if c not in df.columns]
    if missing:
        raise FormatError(
            f"Polygon table {path} is missing column(s) {missing}. "
            f"Available={df.columns.tolist()}",
            stage=STAGE,
        )
    df = df[POLYGON_COLUMNS].copy()
    df["region"] = df["region"].astype(str).str.strip().str.lower()
    return df.sort_values(["group", "order"]).reset_index(drop=True)


def _region_key(names: pd.Series) -> pd.Series:
    return names.astype(str).str.strip().str.lower()


def unmatched_regions(data_regions, polygon_regions,
                      expected=EXPECTED_UNMATCHED) -> dict[str, list[str]]:
    """
    Compare the two name sets and warn about unexpected misses.

    Returns {"data_only": [...], "polygons_only": [...]} including the
    expected misses, for the console summary.
    """
    data_regions, polygon_regions = set(data_regions), set(polygon_regions)
    out = {
        "data_only":     sorted(data_regions - polygon_regions),
        "polygons_only": sorted(polygon_regions - data_regions),
    }
    surprises = {k: [r for r in v if r not in expected] for k, v in out.items()}
    if surprises["data_only"]:
        warnings.warn(
            f"States with data but no polygon (dropped from maps): {surprises['data_only']}",
            UserWarning,
        )
    if surprises["polygons_only"]:
        warnings.warn(
            f"Polygons with no matching data (not drawn): {surprises['polygons_only']}",
            UserWarning,
        )
    return out


# ── Join ───────────────────────────────────────────────────────────────────────

def join_polygons(pooled: pd.DataFrame, polygons: pd.DataFrame,
                  expected_unmatched=EXPECTED_UNMATCHED) -> pd.DataFrame:
    """
    Inner join of the pooled view onto polygon vertices: one row per
    (vertex, state, year), sorted by (year, group, order).
    """
    data = pooled.assign(region=_region_key(pooled["state_name"]))
    unmatched_regions(data["region"].unique(), polygons["region"].unique(),
                      expected=expected_unmatched)

    rows = polygons.merge(data, on="region", how="inner")
    if rows.empty:
        raise FormatError(
            "No state in the data matches a polygon region; nothing to map. "
            f"Polygon regions: {sorted(polygons['region'].unique())[:10]}",
            stage=STAGE,
        )
    return rows.sort_values(["year", "group", "order"]).reset_index(drop=True)


# ── Labels ─────────────────────────────────────────────────────────────────────

def load_label_overrides(path) -> dict[str, tuple[float, float]]:
    """Read {"state name": [long, lat], ...} from a JSON file."""
    try:
        raw = json.loads(Path(path).read_text())
    except OSError as e:
        raise FormatError(f"Cannot read label overrides {path}: {e}", stage=STAGE) from e
    except json.JSONDecodeError as e:
        raise FormatError(f"Label overrides {path} are not valid JSON: {e}", stage=STAGE) from e
    if not isinstance(raw, dict):
        raise FormatError(f"Label overrides {path} must be a JSON object", stage=STAGE)

    overrides = {}
    for region, point in raw.items():
        try:
            lon, lat = (float(v) for v in point)
        except (TypeError, ValueError) as e:
            raise FormatError(
                f"Label override for {region!r} must be [long, lat], got {point!r}",
                stage=STAGE,
            ) from e
        overrides[region.strip().lower()] = (lon, lat)
    return overrides


def label_positions(polygons: pd.DataFrame, overrides=LABEL_OVERRIDES) -> pd.DataFrame:
    """
    One label anchor per region: the midpoint of the bounding box of all the
    region's vertices, unless ``overrides`` supplies a point.

    Returns [region, long, lat, source] with source "bbox" or "override".
    """
    bbox = polygons.groupby("region", sort=True).agg(
        long_min=("long", "min"), long_max=("long", "max"),
        lat_min=("lat", "min"),   lat_max=("lat", "max"),
    )
    pos = pd.DataFrame({
        "long":   (bbox["long_min"] + bbox["long_max"]) / 2,
        "lat":    (bbox["lat_min"] + bbox["lat_max"]) / 2,
        "source": "bbox",
    })
    for region, (lon, lat) in overrides.items():
        if region in pos.index:
            pos.loc[region, ["long", "lat", "source"]] = [lon, lat, "override"]
    return pos.rename_axis("region").reset_index()
