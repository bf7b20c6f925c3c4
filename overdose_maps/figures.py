"""
figures.py
==========
Choropleth maps and cause-breakdown line charts for the overdose report.

  proportion maps : one panel per year, sequential scale over the min–max
                    proportion of all years so panels are comparable.
  diff maps       : one panel per year; the baseline year (no prior year)
                    is drawn on the proportion scale, later years on a
                    diverging scale whose domain is [-m, +m], m = largest
                    |delta| among them, so zero change is always the
                    neutral midpoint.  A state whose series starts after
                    the baseline year has delta 0 there and is drawn at
                    that midpoint.
  cause breakdown : small multiples, one panel per detail-reporting state,
                    one line per cause in codebook.SPLIT_CAUSES order.

Output: PNG files written with savefig(dpi=..., bbox_inches="tight").
"""

import math
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.cm import ScalarMappable
from matplotlib.collections import PatchCollection
from matplotlib.colors import Normalize
from matplotlib.patches import Polygon

from .codebook import CAUSE_LABELS, SPLIT_CAUSES

SEQUENTIAL_CMAP = "YlOrRd"
DIVERGING_CMAP  = "RdBu_r"
DPI             = 200
SOURCE_NOTE     = ("Source: CDC NCHS, VSRR Provisional Drug Overdose Death Counts. "
                   "12 months ending in August of each year.")


# ── Colour scales ──────────────────────────────────────────────────────────────

def sequential_domain(values) -> tuple[float, float]:
    """(min, max) of the observed values, NaNs ignored."""
    vals = pd.Series(values, dtype=float).dropna()
    if vals.empty:
        raise ValueError("No values to scale")
    return float(vals.min()), float(vals.max())


def diverging_domain(deltas) -> tuple[float, float]:
    """(-m, +m) with m = max |delta|, so 0 sits at the midpoint."""
    vals = pd.Series(deltas, dtype=float).dropna()
    if vals.empty:
        raise ValueError("No deltas to scale")
    m = float(vals.abs().max())
    return -m, m


def _norm(lo: float, hi: float) -> Normalize:
    # A flat domain would map everything to the low end
    if lo == hi:
        lo, hi = lo - 1e-9, hi + 1e-9
    return Normalize(vmin=lo, vmax=hi)


def _years(df: pd.DataFrame) -> list:
    if isinstance(df["year"].dtype, pd.CategoricalDtype):
        present = set(df["year"].dropna())
        return [y for y in df["year"].cat.categories if y in present]
    return sorted(df["year"].unique())


def diff_panel_scales(map_rows: pd.DataFrame) -> list[tuple]:
    """
    Scale for every panel of the diff figure: (year, column, (lo, hi)).

    The first year uses "proportion" on the sequential domain of all years;
    later years use "delta" on the diverging domain of those years.
    """
    years = _years(map_rows)
    seq = sequential_domain(map_rows["proportion"])
    later = map_rows[map_rows["year"].isin(years[1:])]
    div = diverging_domain(later["delta"]) if not later.empty else (0.0, 0.0)
    return [(y, "proportion", seq) if i == 0 else (y, "delta", div)
            for i, y in enumerate(years)]


# ── Map drawing ────────────────────────────────────────────────────────────────

def _draw_map(ax, rows: pd.DataFrame, column: str, cmap, norm, labels=None) -> None:
    patches, values = [], []
    for _, ring in rows.groupby("group", sort=True):
        patches.append(Polygon(ring[["long", "lat"]].to_numpy(), closed=True))
        values.append(ring[column].iloc[0])

    coll = PatchCollection(patches, cmap=cmap, norm=norm,
                           edgecolor="white", linewidth=0.4)
    coll.set_array(np.asarray(values, dtype=float))
    ax.add_collection(coll)

    if labels is not None:
        drawn = labels[labels["region"].isin(rows["region"].unique())]
        for lab in drawn.itertuples():
            ax.text(lab.long, lab.lat, lab.state, fontsize=5.5,
                    ha="center", va="center", color="#222222")

    ax.autoscale_view()
    ax.set_aspect(1.25)
    ax.axis("off")


def _state_labels(map_rows: pd.DataFrame, labels: pd.DataFrame | None):
    if labels is None:
        return None
    codes = map_rows[["region", "state"]].drop_duplicates("region")
    return labels.merge(codes, on="region", how="inner")


def _save(fig, out_path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=DPI, bbox_inches="tight")
    plt.close(fig)
    print(f"✓  Saved → {out_path.resolve()}", flush=True)
    return out_path


def plot_proportion_maps(map_rows: pd.DataFrame, out_path, labels=None) -> Path:
    """Drug-related share of all deaths, one panel per year, shared scale."""
    years = _years(map_rows)
    cmap = plt.get_cmap(SEQUENTIAL_CMAP)
    norm = _norm(*sequential_domain(map_rows["proportion"]))
    state_labels = _state_labels(map_rows, labels)

    fig, axes = plt.subplots(1, len(years), figsize=(5.2 * len(years), 4.2), squeeze=False)
    for ax, year in zip(axes[0], years):
        _draw_map(ax, map_rows[map_rows["year"] == year], "proportion",
                  cmap, norm, state_labels)
        ax.set_title(str(year), fontsize=11)

    cbar = fig.colorbar(ScalarMappable(norm=norm, cmap=cmap), ax=list(axes[0]),
                        orientation="horizontal", fraction=0.05, pad=0.04)
    cbar.set_label("Drug-related deaths / all deaths", fontsize=9)
    fig.suptitle("Proportion of drug-related deaths by state", fontsize=12)
    fig.text(0.01, -0.02, SOURCE_NOTE, fontsize=7, color="grey")
    return _save(fig, out_path)


def plot_diff_maps(map_rows: pd.DataFrame, out_path, labels=None) -> Path:
    """Year-over-year change in the drug-related share; baseline year absolute."""
    scales = diff_panel_scales(map_rows)
    state_labels = _state_labels(map_rows, labels)

    fig, axes = plt.subplots(1, len(scales), figsize=(5.2 * len(scales), 4.2), squeeze=False)
    seq_cmap, div_cmap = plt.get_cmap(SEQUENTIAL_CMAP), plt.get_cmap(DIVERGING_CMAP)
    for ax, (year, column, domain) in zip(axes[0], scales):
        cmap = seq_cmap if column == "proportion" else div_cmap
        _draw_map(ax, map_rows[map_rows["year"] == year], column,
                  cmap, _norm(*domain), state_labels)
        title = f"{year}" if column == "proportion" else f"{year}: change from prior year"
        ax.set_title(title, fontsize=11)

    base_year, _, base_domain = scales[0]
    cbar = fig.colorbar(ScalarMappable(norm=_norm(*base_domain), cmap=seq_cmap),
                        ax=axes[0][0], orientation="horizontal", fraction=0.05, pad=0.04)
    cbar.set_label(f"Proportion ({base_year})", fontsize=9)
    if len(scales) > 1:
        div_domain = scales[1][2]
        cbar = fig.colorbar(ScalarMappable(norm=_norm(*div_domain), cmap=div_cmap),
                            ax=list(axes[0][1:]), orientation="horizontal",
                            fraction=0.05, pad=0.04)
        cbar.set_label("Change in proportion", fontsize=9)

    fig.suptitle("Change in proportion of drug-related deaths by state", fontsize=12)
    fig.text(0.01, -0.02, SOURCE_NOTE, fontsize=7, color="grey")
    return _save(fig, out_path)


# ── Cause breakdown ────────────────────────────────────────────────────────────

def plot_cause_breakdown(split: pd.DataFrame, out_path, ncols: int = 4) -> Path | None:
    """Per-state lines of cause-specific share of all deaths, by year."""
    if split.empty:
        print("  No states report cause detail, cause breakdown skipped.")
        return None

    states = split[["state", "state_name"]].drop_duplicates().sort_values("state_name")
    nrows = math.ceil(len(states) / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(3.4 * ncols, 2.8 * nrows),
                             sharex=True, sharey=True, squeeze=False)
    colors = plt.get_cmap("tab10").colors
    years = [int(y) for y in _years(split)]

    for ax, st in zip(axes.flat, states.itertuples()):
        sub = split[split["state"] == st.state]
        for i, cause in enumerate(SPLIT_CAUSES):
            g = sub[sub["cause"] == cause]
            ax.plot([int(y) for y in g["year"]], g["proportion"],
                    color=colors[i % len(colors)], linewidth=1.6,
                    marker="o", markersize=3, label=CAUSE_LABELS[cause])
        ax.set_title(st.state_name, fontsize=9, loc="left")
        ax.set_xticks(years)
        ax.tick_params(labelsize=7.5)
        ax.spines["top"].set_visible(False)
        ax.spines["right"].set_visible(False)

    for ax in list(axes.flat)[len(states):]:
        ax.set_visible(False)

    handles, names = axes[0][0].get_legend_handles_labels()
    fig.legend(handles, names, loc="lower center", ncol=4, fontsize=8, frameon=False,
               bbox_to_anchor=(0.5, -0.06))
    fig.supylabel("Cause-specific deaths / all deaths", fontsize=9)
    fig.suptitle("Drug-related deaths by cause, states reporting cause detail", fontsize=12)
    fig.tight_layout()
    return _save(fig, out_path)
