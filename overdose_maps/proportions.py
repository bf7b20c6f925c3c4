"""
proportions.py
==============
Derived views over the normalised VSRR table.

Pooled view   (one row per state × year)
    drug_deaths / total_deaths, where drug_deaths sums every cause key except
    "total_deaths" and "percent_specified" (a pre-computed ratio, not a
    count).  ``delta`` is the change from the state's previous year in the
    series; the first year of each state's series has delta = 0.
    The catch-all "drug_overdose" is summed together with the detailed
    causes, so deaths listed under both are counted in each.

Split view    (one row per state × year × cause)
    cause_deaths / total_deaths for each of codebook.SPLIT_CAUSES, for states
    that report at least one detailed (non-aggregate) cause.  Causes not
    reported for a state-year count as 0.

Both views sum before dividing, so duplicate rows for a key are pooled
rather than averaged.  A state with no rows for a year gets no row for that
year.
"""

import pandas as pd

from .codebook import (
    AGGREGATE_CAUSES,
    PERCENT_SPECIFIED,
    SPLIT_CAUSES,
    TOTAL_DEATHS,
)
from .errors import DivisionError, MissingCauseError

GROUP_KEYS = ["state", "state_name", "year"]


# ── Helpers ────────────────────────────────────────────────────────────────────

def _year_levels(records: pd.DataFrame) -> list:
    if isinstance(records["year"].dtype, pd.CategoricalDtype):
        return list(records["year"].cat.categories)
    return sorted(records["year"].unique())


def _as_year(values, levels) -> pd.Categorical:
    return pd.Categorical(list(values), categories=levels, ordered=True)


def _sum_by(records: pd.DataFrame, keys: list) -> pd.Series:
    return records.groupby(keys, observed=True, sort=True)["value"].sum()


def _check_denominator(wide: pd.DataFrame, what: str) -> None:
    """Raise if any state-year has numerator rows but no usable total."""
    no_total = wide["total_deaths"].isna()
    if no_total.any():
        state, state_name, year = wide.index[no_total.to_numpy()][0]
        raise MissingCauseError(
            f"No 'Number of Deaths' row for state={state} ({state_name}), "
            f"year={year}; cannot compute {what}. "
            f"{int(no_total.sum())} state-year(s) affected."
        )
    zero = wide["total_deaths"] == 0
    if zero.any():
        state, state_name, year = wide.index[zero.to_numpy()][0]
        raise DivisionError(
            f"Total deaths is 0 for state={state} ({state_name}), year={year}; "
            f"{what} is undefined."
        )


# ── Pooled view ────────────────────────────────────────────────────────────────

def pooled_proportions(records: pd.DataFrame) -> pd.DataFrame:
    """
    Return [state, state_name, year, total_deaths, drug_deaths, proportion,
    delta], sorted by state then year.
    """
    counts = records[records["cause"] != PERCENT_SPECIFIED]
    is_total = counts["cause"] == TOTAL_DEATHS

    wide = pd.concat(
        [
            _sum_by(counts[is_total], GROUP_KEYS).rename("total_deaths"),
            _sum_by(counts[~is_total], GROUP_KEYS).rename("drug_deaths"),
        ],
        axis=1,
    )
    _check_denominator(wide, "the drug-related proportion")

    wide["drug_deaths"] = wide["drug_deaths"].fillna(0.0)
    wide["proportion"] = wide["drug_deaths"] / wide["total_deaths"]

    pooled = wide.reset_index()
    pooled["year"] = _as_year(pooled["year"], _year_levels(records))
    pooled = pooled.sort_values(["state", "year"]).reset_index(drop=True)

    pooled["delta"] = (
        pooled.groupby("state", sort=False)["proportion"]
        .diff()
        .fillna(0.0)
    )
    return pooled[GROUP_KEYS + ["total_deaths", "drug_deaths", "proportion", "delta"]]


# ── Split view ─────────────────────────────────────────────────────────────────

def detail_states(records: pd.DataFrame) -> list[str]:
    """States with at least one record outside the aggregate cause keys."""
    detailed = records[~records["cause"].isin(list(AGGREGATE_CAUSES))]
    return sorted(detailed["state"].unique())


def split_proportions(records: pd.DataFrame) -> pd.DataFrame:
    """
    Return [state, state_name, year, cause, deaths, proportion] for every
    detail-reporting state-year and every cause in SPLIT_CAUSES.
    """
    columns = GROUP_KEYS + ["cause", "deaths", "proportion"]
    states = detail_states(records)
    if not states:
        return pd.DataFrame(columns=columns)

    sub = records[records["state"].isin(states)]
    causes = sub[sub["cause"].isin(list(SPLIT_CAUSES))].copy()
    causes["cause"] = causes["cause"].astype(str)

    counts = (
        _sum_by(causes, GROUP_KEYS + ["cause"])
        .unstack("cause")
        .reindex(columns=list(SPLIT_CAUSES))
    )
    wide = pd.concat(
        [_sum_by(sub[sub["cause"] == TOTAL_DEATHS], GROUP_KEYS).rename("total_deaths"), counts],
        axis=1,
    )
    _check_denominator(wide, "cause-specific proportions")

    deaths = wide[list(SPLIT_CAUSES)].fillna(0.0)
    deaths.columns.name = "cause"
    props = deaths.div(wide["total_deaths"], axis=0)

    long = pd.concat(
        [deaths.stack().rename("deaths"), props.stack().rename("proportion")],
        axis=1,
    ).reset_index()
    long["year"] = _as_year(long["year"], _year_levels(records))
    long["cause"] = pd.Categorical(long["cause"], categories=list(SPLIT_CAUSES), ordered=True)
    long = long.sort_values(["state", "year", "cause"]).reset_index(drop=True)
    return long[columns]
