"""
Pooled and split proportion views.

Expected values (from conftest):
  CT  0.20 / 0.25 / 0.20          delta 0 / +0.05 / -0.05
  MA  160/2000, 200/2000, 200/2500 = 0.08 / 0.10 / 0.08
  US  0.10 every year
"""

import pandas as pd
import pytest

from overdose_maps.codebook import SPLIT_CAUSES
from overdose_maps.errors import DivisionError, MissingCauseError
from overdose_maps.load_vsrr import load_vsrr, normalize_causes
from overdose_maps.proportions import detail_states, pooled_proportions, split_proportions

from conftest import vsrr_row


def _records(make_vsrr, rows):
    return normalize_causes(load_vsrr(make_vsrr(rows), verbose=False), verbose=False)


def _at(df, state, year, column="proportion"):
    sel = df[(df["state"] == state) & (df["year"] == year)]
    assert len(sel) == 1, f"expected one row for {state} {year}, got {len(sel)}"
    return sel[column].iloc[0]


class TestPooled:
    def test_ct_example(self, records):
        pooled = pooled_proportions(records)
        assert _at(pooled, "CT", 2015) == pytest.approx(0.2)
        assert _at(pooled, "CT", 2015, "delta") == 0
        assert _at(pooled, "CT", 2016) == pytest.approx(0.25)
        assert _at(pooled, "CT", 2016, "delta") == pytest.approx(0.05)
        assert _at(pooled, "CT", 2017, "delta") == pytest.approx(-0.05)

    def test_detail_causes_summed(self, records):
        """MA drug-related = overdose catch-all + every detailed cause."""
        pooled = pooled_proportions(records)
        assert _at(pooled, "MA", 2015, "drug_deaths") == 160
        assert _at(pooled, "MA", 2015) == pytest.approx(0.08)
        assert _at(pooled, "MA", 2016) == pytest.approx(0.10)

    def test_percent_specified_excluded(self, records):
        pooled = pooled_proportions(records)
        assert _at(pooled, "CT", 2015, "drug_deaths") == 200

    def test_one_row_per_state_year(self, records):
        pooled = pooled_proportions(records)
        assert not pooled.duplicated(subset=["state", "year"]).any()
        assert len(pooled) == 9

    def test_proportion_in_unit_interval(self, records):
        pooled = pooled_proportions(records)
        assert pooled["proportion"].between(0, 1).all(), \
            pooled.loc[~pooled["proportion"].between(0, 1)]

    def test_first_year_delta_zero(self, records):
        pooled = pooled_proportions(records)
        first = pooled.groupby("state").head(1)
        assert (first["delta"] == 0).all()
        assert set(first["year"].astype(int)) == {2015}

    def test_delta_is_difference_of_consecutive_years(self, records):
        pooled = pooled_proportions(records)
        for state, g in pooled.groupby("state"):
            g = g.sort_values("year")
            expected = g["proportion"].diff().iloc[1:]
            assert g["delta"].iloc[1:].to_numpy() == pytest.approx(expected.to_numpy()), state

    def test_year_categorical_preserved(self, records):
        pooled = pooled_proportions(records)
        assert isinstance(pooled["year"].dtype, pd.CategoricalDtype)
        assert list(pooled["year"].cat.categories) == [2015, 2016, 2017]

    def test_deterministic(self, records):
        shuffled = records.sample(frac=1, random_state=7).reset_index(drop=True)
        pd.testing.assert_frame_equal(pooled_proportions(records),
                                      pooled_proportions(shuffled))

    def test_missing_first_year_gives_no_row(self, make_vsrr):
        """A state with no 2015 data starts its series (delta 0) in 2016."""
        recs = _records(make_vsrr, [
            vsrr_row("CT", 2016, "Number of Deaths", "1000"),
            vsrr_row("CT", 2016, "Number of Drug Overdose Deaths", "100"),
            vsrr_row("CT", 2017, "Number of Deaths", "1000"),
            vsrr_row("CT", 2017, "Number of Drug Overdose Deaths", "150"),
        ])
        pooled = pooled_proportions(recs)
        assert pooled["year"].astype(int).tolist() == [2016, 2017]
        assert pooled["delta"].tolist() == pytest.approx([0.0, 0.05])

    def test_missing_total_raises(self, make_vsrr):
        recs = _records(make_vsrr, [
            vsrr_row("CT", 2015, "Number of Deaths", "1000"),
            vsrr_row("CT", 2015, "Number of Drug Overdose Deaths", "100"),
            vsrr_row("CT", 2016, "Number of Drug Overdose Deaths", "150"),
        ])
        with pytest.raises(MissingCauseError) as exc:
            pooled_proportions(recs)
        assert "CT" in str(exc.value) and "2016" in str(exc.value)

    def test_zero_total_raises(self, make_vsrr):
        recs = _records(make_vsrr, [
            vsrr_row("CT", 2015, "Number of Deaths", "0"),
            vsrr_row("CT", 2015, "Number of Drug Overdose Deaths", "0"),
        ])
        with pytest.raises(DivisionError, match="CT"):
            pooled_proportions(recs)

    def test_total_without_drug_rows_is_zero(self, make_vsrr):
        recs = _records(make_vsrr, [vsrr_row("CT", 2015, "Number of Deaths", "500")])
        pooled = pooled_proportions(recs)
        assert _at(pooled, "CT", 2015) == 0


class TestSplit:
    def test_membership(self, records):
        """CT's only detailed row is blank, so only MA qualifies."""
        assert detail_states(records) == ["MA"]
        split = split_proportions(records)
        assert set(split["state"]) == {"MA"}

    def test_every_cause_every_year(self, records):
        split = split_proportions(records)
        assert len(split) == 3 * len(SPLIT_CAUSES)
        assert list(split["cause"].cat.categories) == list(SPLIT_CAUSES)

    def test_proportions(self, records):
        split = split_proportions(records)
        ma15 = split[split["year"] == 2015].set_index("cause")["proportion"]
        assert ma15["heroin"] == pytest.approx(0.02)
        assert ma15["cocaine"] == pytest.approx(0.01)
        assert ma15["drug_overdose"] == pytest.approx(0.05)

    def test_absent_cause_is_zero(self, records):
        split = split_proportions(records)
        ma15 = split[split["year"] == 2015].set_index("cause")
        assert ma15.loc["synthetic_opioids", "proportion"] == 0
        assert ma15.loc["methadone", "deaths"] == 0

    def test_no_detail_states_gives_empty_frame(self, make_vsrr):
        recs = _records(make_vsrr, [
            vsrr_row("CT", 2015, "Number of Deaths", "1000"),
            vsrr_row("CT", 2015, "Number of Drug Overdose Deaths", "100"),
        ])
        split = split_proportions(recs)
        assert split.empty
        assert "proportion" in split.columns

    def test_missing_total_raises(self, make_vsrr):
        recs = _records(make_vsrr, [
            vsrr_row("MA", 2015, "Heroin (T40.1)", "10"),
            vsrr_row("MA", 2015, "Number of Drug Overdose Deaths", "20"),
        ])
        with pytest.raises(MissingCauseError, match="MA"):
            split_proportions(recs)

    def test_deterministic(self, records):
        shuffled = records.sample(frac=1, random_state=3).reset_index(drop=True)
        pd.testing.assert_frame_equal(split_proportions(records),
                                      split_proportions(shuffled))

    def test_zero_total_raises(self, make_vsrr):
        recs = _records(make_vsrr, [
            vsrr_row("MA", 2015, "Number of Deaths", "0"),
            vsrr_row("MA", 2015, "Heroin (T40.1)", "5"),
        ])
        with pytest.raises(DivisionError, match="MA") as exc:
            split_proportions(recs)
        assert "2015" in str(exc.value)
