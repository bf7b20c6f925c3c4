#!/usr/bin/env python3
"""
pull_vsrr.py
============
Download the CDC VSRR Provisional Drug Overdose Death Counts table
(data.cdc.gov dataset xkb8-kh2a) as CSV.

Usage:
    pull-vsrr [--out data/VSRR_Provisional_Drug_Overdose_Death_Counts.csv]

The download is streamed to a temporary file and renamed on success; on any
failure the partial file is removed, so an interrupted pull leaves nothing
behind.  HTTP and connection errors surface as errors.DownloadError.  The
header is checked against codebook.COLUMNS before the rename.
"""

import argparse
import io
import sys
from pathlib import Path

import pandas as pd
import requests

from .codebook import COLUMNS
from .errors import DownloadError, FormatError, ReportError

# ── Configuration ──────────────────────────────────────────────────────────────

VSRR_URL    = "https://data.cdc.gov/api/views/xkb8-kh2a/rows.csv?accessType=DOWNLOAD"
OUT_CSV     = Path("data") / "VSRR_Provisional_Drug_Overdose_Death_Counts.csv"
TIMEOUT_GET = 300          # seconds
CHUNK_SIZE  = 1 << 16


def check_header(first_bytes: bytes) -> list[str]:
    """Return the CSV header; raise FormatError if a required column is absent."""
    try:
        header = pd.read_csv(io.BytesIO(first_bytes), nrows=0, encoding="utf-8-sig").columns
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise FormatError(f"Downloaded file is not a CSV: {e}", stage="Pull") from e
    header = [c.strip() for c in header]
    missing = [c for c in COLUMNS.values() if c not in header]
    if missing:
        raise FormatError(
            f"Downloaded CSV is missing column(s) {missing}. Got: {header}",
            stage="Pull",
        )
    return header


def pull_vsrr(out_path=OUT_CSV, url: str = VSRR_URL, session=None) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out_path.with_suffix(out_path.suffix + ".part")
    http = session or requests

    print(f"Downloading {url} …", flush=True)
    try:
        r = http.get(url, stream=True, timeout=TIMEOUT_GET)
        r.raise_for_status()
    except requests.RequestException as e:
        raise DownloadError(f"GET {url} failed: {e}") from e

    n_bytes = 0
    first = b""
    try:
        with open(tmp_path, "wb") as f:
            for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                if len(first) < CHUNK_SIZE:
                    first += chunk
                f.write(chunk)
                n_bytes += len(chunk)
        check_header(first.split(b"\n", 1)[0] + b"\n")
    except requests.RequestException as e:
        tmp_path.unlink(missing_ok=True)
        raise DownloadError(f"Download from {url} interrupted after {n_bytes:,} bytes: {e}") from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    tmp_path.replace(out_path)
    print(f"✓  Saved → {out_path.resolve()}  ({n_bytes / 1e6:.1f} MB)")
    return out_path


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Download the VSRR drug overdose CSV.")
    parser.add_argument("--out", type=Path, default=OUT_CSV,
                        help=f"Output CSV path (default: {OUT_CSV})")
    parser.add_argument("--url", default=VSRR_URL, help="Override the download URL")
    args = parser.parse_args(argv)

    try:
        pull_vsrr(args.out, url=args.url)
    except ReportError as e:
        print(f"✗  {e.stage} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
