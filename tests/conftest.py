"""
Shared fixtures: a small synthetic VSRR table and matching state polygons.

Synthetic states (August rows):

  CT  total 1000 / 1,100 / 1200, drug overdose 200 / 275 / 240,
      percent specified 95.5; a blank Heroin cell (not detail).
  MA  total 2000 / 2000 / 2500 with Heroin, Cocaine, Synthetic opioids
      detail → the only state in the split view.
  US  national row, no polygon (expected miss).

Plus a July row with a malformed value and a 2018 row, both filtered out.
"""

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

HEADER = [
    "State", "Year", "Month", "Period", "Indicator", "Data Value",
    "Percent Complete", "Percent Pending Investigation", "State Name",
    "Footnote", "Footnote Symbol", "Predicted Value",
]

NAMES = {"CT": "Connecticut", "MA": "Massachusetts", "US": "United States"}


def vsrr_row(state, year, indicator, value, month="August"):
    return {
        "State": state, "Year": str(year), "Month": month,
        "Period": "12 month-ending", "Indicator": indicator,
        "Data Value": value, "Percent Complete": "100",
        "Percent Pending Investigation": "0.1", "State Name": NAMES.get(state, state),
        "Footnote": "", "Footnote Symbol": "", "Predicted Value": "",
    }


BASE_ROWS = [
    # Connecticut: aggregates only
    vsrr_row("CT", 2015, "Number of Deaths", "1000"),
    vsrr_row("CT", 2015, "Number of Drug Overdose Deaths", "200"),
    vsrr_row("CT", 2015, "Percent with drugs specified", "95.5"),
    vsrr_row("CT", 2016, "Number of Deaths", "1,100"),
    vsrr_row("CT", 2016, "Number of Drug Overdose Deaths", "275"),
    vsrr_row("CT", 2016, "Percent with drugs specified", "95.5"),
    vsrr_row("CT", 2016, "Heroin (T40.1)", ""),
    vsrr_row("CT", 2017, "Number of Deaths", "1200"),
    vsrr_row("CT", 2017, "Number of Drug Overdose Deaths", "240"),
    vsrr_row("CT", 2017, "Percent with drugs specified", "95.5"),
    vsrr_row("CT", 2017, "Number of Deaths", "not a number", month="July"),
    vsrr_row("CT", 2018, "Number of Deaths", "1300"),
    # Massachusetts: cause detail
    vsrr_row("MA", 2015, "Number of Deaths", "2000"),
    vsrr_row("MA", 2015, "Number of Drug Overdose Deaths", "100"),
    vsrr_row("MA", 2015, "Heroin (T40.1)", "40"),
    vsrr_row("MA", 2015, "Cocaine (T40.5)", "20"),
    vsrr_row("MA", 2016, "Number of Deaths", "2000"),
    vsrr_row("MA", 2016, "Number of Drug Overdose Deaths", "120"),
    vsrr_row("MA", 2016, "Heroin (T40.1)", "50"),
    vsrr_row("MA", 2016, "Synthetic opioids, excl. methadone (T40.4)", "30"),
    vsrr_row("MA", 2017, "Number of Deaths", "2500"),
    vsrr_row("MA", 2017, "Number of Drug Overdose Deaths", "150"),
    vsrr_row("MA", 2017, "Heroin (T40.1)", "50"),
    vsrr_row("MA", 2017, "Natural & semi-synthetic opioids, incl. methadone (T40.2, T40.3)", "9"),
    # National
    vsrr_row("US", 2015, "Number of Deaths", "10000"),
    vsrr_row("US", 2015, "Number of Drug Overdose Deaths", "1000"),
    vsrr_row("US", 2016, "Number of Deaths", "10000"),
    vsrr_row("US", 2016, "Number of Drug Overdose Deaths", "1000"),
    vsrr_row("US", 2017, "Number of Deaths", "10000"),
    vsrr_row("US", 2017, "Number of Drug Overdose Deaths", "1000"),
]


@pytest.fixture
def make_vsrr(tmp_path):
    """Return a writer: rows → path of a VSRR-shaped CSV in tmp_path."""
    def _write(rows, name="vsrr.csv", header=HEADER):
        path = tmp_path / name
        pd.DataFrame(rows).reindex(columns=header).to_csv(path, index=False)
        return path
    return _write


@pytest.fixture
def vsrr_csv(make_vsrr):
    return make_vsrr(BASE_ROWS)


@pytest.fixture
def records(vsrr_csv):
    from overdose_maps.load_vsrr import load_vsrr, normalize_causes
    return normalize_causes(load_vsrr(vsrr_csv, verbose=False), verbose=False)


@pytest.fixture
def polygons():
    """Connecticut as one square; Massachusetts as mainland + island."""
    rings = [
        (1, "connecticut",   [(-73.7, 41.0), (-71.8, 41.0), (-71.8, 42.05), (-73.7, 42.05)]),
        (2, "massachusetts", [(-73.5, 42.0), (-70.0, 42.0), (-70.0, 42.9), (-73.5, 42.9)]),
        (3, "massachusetts", [(-70.3, 41.2), (-69.9, 41.2), (-69.9, 41.4), (-70.3, 41.4)]),
    ]
    rows = [
        {"long": lon, "lat": lat, "group": group, "order": i, "region": region}
        for group, region, ring in rings
        for i, (lon, lat) in enumerate(ring, start=1)
    ]
    return pd.DataFrame(rows)


@pytest.fixture
def polygons_csv(tmp_path, polygons):
    path = tmp_path / "state_polygons.csv"
    polygons.to_csv(path, index=False)
    return path
