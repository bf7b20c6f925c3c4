#!/usr/bin/env python3
"""
pull_state_polygons.py
======================
Download a US-states GeoJSON and flatten it into the vertex table read by
geo.load_state_polygons().

Usage:
    pull-state-polygons [--out data/state_polygons.parquet] [--keep-noncontiguous]

Output schema: long, lat, group, order, region

  Every exterior ring of every Polygon / MultiPolygon part becomes one
  ``group`` (integer, numbered in file order); ``order`` runs 1..n within the
  ring; ``region`` is the lowercase ``properties.name``.  Holes (interior
  rings) are dropped.  Alaska, Hawaii and Puerto Rico are dropped unless
  --keep-noncontiguous is given, matching the lower-48 + DC extent of the maps.
"""

import argparse
import sys
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq
import requests

from .errors import DownloadError, FormatError, ReportError

# ── Configuration ──────────────────────────────────────────────────────────────

STATES_GEOJSON_URL = (
    "https://raw.githubusercontent.com/PublicaMundi/MappingAPI/master/"
    "data/geojson/us-states.json"
)
OUT_PARQUET = Path("data") / "state_polygons.parquet"
TIMEOUT_GET = 60
NONCONTIGUOUS = {"alaska", "hawaii", "puerto rico"}

OUTPUT_SCHEMA = pa.schema([
    pa.field("long",   pa.float64()),
    pa.field("lat",    pa.float64()),
    pa.field("group",  pa.int64()),
    pa.field("order",  pa.int64()),
    pa.field("region", pa.string()),
])


def _exterior_rings(geometry: dict) -> list:
    gtype = geometry.get("type")
    if gtype == "Polygon":
        return [geometry["coordinates"][0]]
    if gtype == "MultiPolygon":
        return [poly[0] for poly in geometry["coordinates"]]
    raise FormatError(f"Unsupported geometry type {gtype!r}", stage="Pull")


def flatten_geojson(geojson: dict, exclude=NONCONTIGUOUS) -> pd.DataFrame:
    """FeatureCollection → vertex table (long, lat, group, order, region)."""
    rows = []
    group = 0
    for feature in geojson.get("features", []):
        name = str(feature.get("properties", {}).get("name", "")).strip().lower()
        if not name:
            raise FormatError("GeoJSON feature without properties.name", stage="Pull")
        if name in exclude:
            continue
        for ring in _exterior_rings(feature["geometry"]):
            group += 1
            for order, (lon, lat, *_) in enumerate(ring, start=1):
                rows.append((float(lon), float(lat), group, order, name))

    if not rows:
        raise FormatError("GeoJSON contained no usable polygons", stage="Pull")
    return pd.DataFrame(rows, columns=[f.name for f in OUTPUT_SCHEMA])


def pull_state_polygons(out_path=OUT_PARQUET, url: str = STATES_GEOJSON_URL,
                        exclude=NONCONTIGUOUS) -> Path:
    print(f"Downloading {url} …", flush=True)
    try:
        r = requests.get(url, timeout=TIMEOUT_GET)
        r.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"GET {url} failed: {e}") from e
    try:
        geojson = r.json()
    except ValueError as e:
        raise FormatError(f"Response is not valid JSON: {e}", stage="Pull") from e

    df = flatten_geojson(geojson, exclude=exclude)
    print(f"  Regions : {df['region'].nunique()}")
    print(f"  Rings   : {df['group'].nunique()}")
    print(f"  Vertices: {len(df):,}")

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    table = pa.Table.from_pandas(df, preserve_index=False).cast(OUTPUT_SCHEMA)
    pq.write_table(table, str(out_path), compression="snappy")
    print(f"✓  Saved → {out_path.resolve()}")
    return out_path


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Download US state polygons.")
    parser.add_argument("--out", type=Path, default=OUT_PARQUET,
                        help=f"Output Parquet path (default: {OUT_PARQUET})")
    parser.add_argument("--url", default=STATES_GEOJSON_URL, help="Override the GeoJSON URL")
    parser.add_argument("--keep-noncontiguous", action="store_true",
                        help="Keep Alaska, Hawaii and Puerto Rico")
    args = parser.parse_args(argv)

    try:
        pull_state_polygons(args.out, url=args.url,
                            exclude=set() if args.keep_noncontiguous else NONCONTIGUOUS)
    except ReportError as e:
        print(f"✗  {e.stage} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
