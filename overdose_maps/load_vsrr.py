"""
load_vsrr.py
============
Read the VSRR provisional drug-overdose CSV, keep the reporting month, and
normalise the indicator column into canonical cause keys.

Output schema (``normalize_causes``):
    state, state_name, year, indicator, code, cause, value

  state       : two-letter state code ("US" and "YC" = New York City included)
  state_name  : full state name as published
  year        : ordered categorical, levels = codebook.YEAR_LEVELS
  indicator   : cleaned indicator label, e.g. "Heroin"
  code        : ICD-10 classification code, e.g. "T40.1" (None if absent)
  cause       : ordered categorical, levels = codebook.CAUSE_ORDER
  value       : float death count (or percent for "percent_specified")

Blank ``Data Value`` cells are suppressed or unreported counts; they are
dropped and counted, not treated as malformed.
"""

from pathlib import Path

import pandas as pd

from .codebook import (
    CAUSE_MAP,
    CAUSE_ORDER,
    COLUMNS,
    IGNORED_INDICATORS,
    REPORTING_MONTH,
    YEAR_LEVELS,
)
from .errors import FormatError, UnmappedCategoryError


# ── Loader ─────────────────────────────────────────────────────────────────────

def _read_csv(path) -> pd.DataFrame:
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise FormatError(f"CSV parse error in {path}: {e}") from e


def load_vsrr(path, month: str = REPORTING_MONTH, years=YEAR_LEVELS,
              verbose: bool = True) -> pd.DataFrame:
    """
    Load the raw CSV and return one row per retained record with columns
    [state, state_name, year, month, indicator, value].

    Rows outside ``month`` or outside ``years`` are dropped before any
    value validation, so malformed cells in other months never fail a run.
    """
    raw = _read_csv(Path(path))
    raw.columns = [c.strip() for c in raw.columns]

    missing = [col for col in COLUMNS.values() if col not in raw.columns]
    if missing:
        raise FormatError(
            f"Missing required column(s) {missing}. "
            f"Available={raw.columns.tolist()}"
        )

    df = (
        raw[list(COLUMNS.values())]
        .rename(columns={v: k for k, v in COLUMNS.items()})
        .copy()
    )
    for col in df.columns:
        df[col] = df[col].str.strip()
    # 1-based CSV line number (header is line 1) for error messages
    df["line"] = df.index + 2
    n_raw = len(df)

    df = df[df["month"] == month].copy()
    if df.empty:
        raise FormatError(f"No rows for reporting month {month!r} in {path}")
    n_month = len(df)

    # Year
    year_num = pd.to_numeric(df["year"], errors="coerce")
    bad_year = year_num.isna() | (year_num % 1 != 0)
    if bad_year.any():
        row = df[bad_year].iloc[0]
        raise FormatError(
            f"Non-integer Year {row['year']!r} on line {row['line']} "
            f"(state={row['state']}, indicator={row['indicator']!r})"
        )
    df["year"] = year_num.astype(int)
    out_of_window = ~df["year"].isin(years)
    n_out_of_window = int(out_of_window.sum())
    df = df[~out_of_window]

    # Value
    blank = df["value"] == ""
    n_blank = int(blank.sum())
    df = df[~blank].copy()
    value_num = pd.to_numeric(df["value"].str.replace(",", "", regex=False), errors="coerce")
    bad_value = value_num.isna()
    if bad_value.any():
        row = df[bad_value].iloc[0]
        raise FormatError(
            f"Non-numeric Data Value {row['value']!r} on line {row['line']} "
            f"(state={row['state']}, year={row['year']}, indicator={row['indicator']!r})"
        )
    df["value"] = value_num.astype(float)

    df["year"] = pd.Categorical(df["year"], categories=list(years), ordered=True)
    df = df.drop(columns=["line"]).reset_index(drop=True)

    if verbose:
        print(f"  Rows read                  : {n_raw:,}")
        print(f"  Rows in {month:<19}: {n_month:,}")
        print(f"  Rows outside {min(years)}-{max(years)}     : {n_out_of_window:,}")
        print(f"  Blank values dropped       : {n_blank:,}")
        print(f"  Rows kept                  : {len(df):,}", flush=True)
    return df


# ── Category normalizer ────────────────────────────────────────────────────────

def split_indicator(label: str) -> tuple[str, str | None]:
    """'Heroin (T40.1)' → ('Heroin', 'T40.1');  'Cocaine' → ('Cocaine', None)."""
    head, paren, tail = label.partition("(")
    if not paren:
        return label.strip(), None
    code = tail.strip().removesuffix(")").strip()
    return head.strip(), code or None


def normalize_causes(df: pd.DataFrame, cause_map: dict = CAUSE_MAP,
                     ignored=IGNORED_INDICATORS, verbose: bool = True) -> pd.DataFrame:
    """
    Attach (indicator, code, cause) to every row of a loaded table.

    Labels listed in ``ignored`` are dropped. Any other label missing from
    ``cause_map`` raises UnmappedCategoryError: the indicator set is fixed,
    so an unknown label means the upstream table changed.
    """
    unknown_keys = sorted(set(cause_map.values()) - set(CAUSE_ORDER))
    if unknown_keys:
        raise ValueError(f"cause_map values {unknown_keys} are not in CAUSE_ORDER")

    parts = [split_indicator(label) for label in df["indicator"]]
    out = df.copy()
    out["indicator"] = [label for label, _ in parts]
    out["code"] = [code for _, code in parts]

    skip = out["indicator"].isin(ignored)
    if skip.any() and verbose:
        print(f"  Ignored composite indicators: {int(skip.sum()):,} rows")
    out = out[~skip].copy()

    out["cause"] = out["indicator"].map(cause_map)
    unmapped = out[out["cause"].isna()]
    if not unmapped.empty:
        labels = sorted(unmapped["indicator"].unique())
        row = unmapped.iloc[0]
        raise UnmappedCategoryError(
            f"Indicator label(s) not in the cause codebook: {labels} "
            f"(first seen: state={row['state']}, year={row['year']}, "
            f"indicator={row['indicator']!r})"
        )

    out["cause"] = pd.Categorical(out["cause"], categories=list(CAUSE_ORDER), ordered=True)
    cols = ["state", "state_name", "year", "indicator", "code", "cause", "value"]
    return out[cols].reset_index(drop=True)
