"""
CDC VSRR Provisional Drug Overdose Death Counts (data.cdc.gov xkb8-kh2a)
Codebook: maps the CSV header and indicator labels → pipeline names.

Sources: column list and indicator labels from the data.cdc.gov export
(12 month-ending provisional counts, by state of residence).
"""

# ---------------------------------------------------------------------------
# HEADER  (pipeline name → CSV column)
# ---------------------------------------------------------------------------
COLUMNS = {
    "state":      "State",
    "state_name": "State Name",
    "year":       "Year",
    "month":      "Month",
    "indicator":  "Indicator",
    "value":      "Data Value",
}

# ---------------------------------------------------------------------------
# REPORTING WINDOW
# ---------------------------------------------------------------------------
# August is the latest month published for 2017, so every year is a
# 12-month-ending window through August.
REPORTING_MONTH = "August"
YEAR_LEVELS = (2015, 2016, 2017)

# ---------------------------------------------------------------------------
# CAUSES  (cleaned indicator label → canonical key)
# ---------------------------------------------------------------------------
TOTAL_DEATHS      = "total_deaths"
DRUG_OVERDOSE     = "drug_overdose"
PERCENT_SPECIFIED = "percent_specified"

CAUSE_MAP = {
    "Number of Deaths":                      TOTAL_DEATHS,
    "Number of Drug Overdose Deaths":        DRUG_OVERDOSE,
    "Percent with drugs specified":          PERCENT_SPECIFIED,
    "Heroin":                                "heroin",
    "Cocaine":                               "cocaine",
    "Methadone":                             "methadone",
    "Natural & semi-synthetic opioids":      "natural_opioids",
    "Synthetic opioids, excl. methadone":    "synthetic_opioids",
    "Opioids":                               "opioids",
    "Psychostimulants with abuse potential": "psychostimulants",
}

# Composite opioid rows with no cause level of their own; dropped on load.
IGNORED_INDICATORS = {
    "Natural & semi-synthetic opioids, incl. methadone",
    "Natural, semi-synthetic, & synthetic opioids, incl. methadone",
}

# Fixed level order for the cause categorical (legends, axes, grouping)
CAUSE_ORDER = (
    TOTAL_DEATHS,
    DRUG_OVERDOSE,
    PERCENT_SPECIFIED,
    "heroin",
    "cocaine",
    "methadone",
    "natural_opioids",
    "synthetic_opioids",
    "opioids",
    "psychostimulants",
)

# Keys that never make a state count as "reporting cause detail"
AGGREGATE_CAUSES = {TOTAL_DEATHS, DRUG_OVERDOSE, PERCENT_SPECIFIED}

SPLIT_CAUSES = (
    "heroin",
    "cocaine",
    "methadone",
    "natural_opioids",
    "synthetic_opioids",
    "opioids",
    "psychostimulants",
    DRUG_OVERDOSE,
)

CAUSE_LABELS = {
    "heroin":            "Heroin",
    "cocaine":           "Cocaine",
    "methadone":         "Methadone",
    "natural_opioids":   "Natural & semi-synthetic opioids",
    "synthetic_opioids": "Synthetic opioids (excl. methadone)",
    "opioids":           "Opioids (unspecified)",
    "psychostimulants":  "Psychostimulants",
    DRUG_OVERDOSE:       "All drug overdoses",
}

# ---------------------------------------------------------------------------
# GEOGRAPHY
# ---------------------------------------------------------------------------
# Names present on one side of the polygon join but not the other by
# construction (national row, NYC reported separately, no lower-48 polygon).
EXPECTED_UNMATCHED = {
    "united states",
    "new york city",
    "alaska",
    "hawaii",
    "puerto rico",
}

# Label anchors (long, lat) for states whose bounding-box midpoint lands
# outside the visible shape or on a neighbour.
LABEL_OVERRIDES = {
    "florida":   (-81.6, 28.4),
    "louisiana": (-92.3, 31.0),
    "michigan":  (-84.7, 43.4),
    "idaho":     (-114.6, 43.7),
    "maryland":  (-76.8, 39.4),
    "virginia":  (-78.6, 37.6),
}
