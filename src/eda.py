"""
eda.py
Exploratory Data Analysis for the Fatal Force Police Shootings Data

Design principles:
- Every plot answers one stated question about who is shot and under what circumstances
- Visuals are publication-ready (labeled, titled, sourced)
- Missing race / age / armed status is surfaced, not silently dropped
- All outputs are reproducible and saved with descriptive names
"""

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import seaborn as sns
import geopandas as gpd
from pathlib import Path
import warnings

from data_cleaning import RACE_MAP, to_indicator

warnings.filterwarnings("ignore")

# ── Style ─────────────────────────────────────────────────────────────────────
PALETTE  = "YlOrRd"
ACCENT   = "#D62728"   # red: draws attention to key findings
NEUTRAL  = "#4C72B0"   # blue: standard bars
BG_GRAY  = "#F7F7F7"
FIG_DIR  = Path("data/processed/eda/plots")

RACE_ORDER = list(RACE_MAP.values())
RACE_COLORS = dict(zip(RACE_ORDER, sns.color_palette("tab10", len(RACE_ORDER))))

# Census cartographic boundary file (20m resolution is plenty for a state map)
STATES_URL = "https://www2.census.gov/geo/tiger/GENZ2018/shp/cb_2018_us_state_20m.zip"
TERRITORIES = ["PR", "VI", "MP", "GU", "AS"]
CONTINENTAL_XLIM = (-125, -66)
CONTINENTAL_YLIM = (24, 50)

plt.rcParams.update({
    "figure.facecolor": BG_GRAY,
    "axes.facecolor":   BG_GRAY,
    "axes.spines.top":  False,
    "axes.spines.right": False,
    "axes.labelsize":   11,
    "axes.titlesize":   13,
    "axes.titleweight": "bold",
    "xtick.labelsize":  9,
    "ytick.labelsize":  9,
    "font.family":      "sans-serif",
})


# ── Helpers ───────────────────────────────────────────────────────────────────

def save_figure(fig: plt.Figure, name: str) -> Path:
    FIG_DIR.mkdir(parents=True, exist_ok=True)
    path = FIG_DIR / f"{name}.png"
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  ✓ Saved → {path}")
    return path


def _source_note(ax, note="Source: The Washington Post, Fatal Force database"):
    ax.annotate(note, xy=(0, -0.12), xycoords="axes fraction",
                fontsize=7, color="gray")


def _banner(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def fmt_thousands(ax, axis="y"):
    fmt = mticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    if axis == "y":
        ax.yaxis.set_major_formatter(fmt)
    else:
        ax.xaxis.set_major_formatter(fmt)


def known_races(df: pd.DataFrame) -> list[str]:
    """Race labels present in the data, in display order (Unknown excluded)."""
    present = set(df["Race Label"].dropna())
    return [r for r in RACE_ORDER if r in present]


def load_cleaned_data(filepath: str) -> pd.DataFrame:
    print(f"Loading cleaned data from: {filepath}")
    df = pd.read_csv(filepath, parse_dates=["Date", "Year-Week"], low_memory=False)
    print(f"  Loaded {len(df):,} rows × {df.shape[1]} columns\n")
    return df


def load_state_boundaries(url: str = STATES_URL) -> gpd.GeoDataFrame:
    print(f"  Loading US state boundaries: {url}")
    states = gpd.read_file(url)
    return states[~states["STUSPS"].isin(TERRITORIES)]


# ── EDA 1: Data Quality Summary ───────────────────────────────────────────────

def eda_data_quality(df: pd.DataFrame) -> pd.Series:
    """
    Q: How complete are the fields the models depend on?
    """
    _banner("EDA 1 | DATA QUALITY OVERVIEW")

    cols_of_interest = ["Age", "race", "armed", "flee", "gender", "city", "state",
                        "latitude", "longitude", "Date"]
    existing = [c for c in cols_of_interest if c in df.columns]
    miss = df[existing].isna().mean().sort_values(ascending=False) * 100

    fig, ax = plt.subplots(figsize=(9, 5))
    colors = [ACCENT if v > 10 else NEUTRAL for v in miss.values]
    ax.barh(miss.index, miss.values, color=colors)
    ax.set_xlabel("% Missing")
    ax.set_title("Missing Data by Column")
    ax.axvline(10, color=ACCENT, linestyle="--", alpha=0.5, label="10% threshold")
    for i, v in enumerate(miss.values):
        ax.text(v + 0.2, i, f"{v:.1f}%", va="center", fontsize=8)
    ax.legend(fontsize=8)
    _source_note(ax)

    plt.tight_layout()
    save_figure(fig, "01_data_quality")

    print(f"  Race unknown: {(df['Race Label'] == 'Unknown').mean()*100:.1f}%")
    print(f"  Age missing: {df['Age'].isna().mean()*100:.1f}%")
    return miss


# ── EDA 2: Victim Demographics ────────────────────────────────────────────────

def eda_victim_demographics(df: pd.DataFrame):
    """
    Q: Who is shot? Race, age and gender of victims.
    """
    _banner("EDA 2 | VICTIM DEMOGRAPHICS")

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))
    fig.suptitle("Victim Demographics", fontsize=14, fontweight="bold")

    # Race counts, Unknown kept visible
    race_counts = df["Race Label"].value_counts()
    bar_colors = [ACCENT if r == "Unknown" else NEUTRAL for r in race_counts.index]
    axes[0, 0].bar(race_counts.index, race_counts.values, color=bar_colors, edgecolor="white")
    axes[0, 0].set_title("Victims by Race\n(Red = race unknown)")
    axes[0, 0].set_ylabel("Number of Victims")
    axes[0, 0].tick_params(axis="x", rotation=30)
    fmt_thousands(axes[0, 0])

    # Age histogram with median
    valid_ages = df["Age"].dropna()
    axes[0, 1].hist(valid_ages, bins=30, color=NEUTRAL, edgecolor="white", alpha=0.85)
    med_age = valid_ages.median()
    axes[0, 1].axvline(med_age, color=ACCENT, linewidth=2, label=f"Median: {med_age:.0f} yrs")
    axes[0, 1].set_title(f"Victim Age Distribution\n(Known ages only, n={len(valid_ages):,})")
    axes[0, 1].set_xlabel("Age")
    axes[0, 1].set_ylabel("Frequency")
    axes[0, 1].legend()

    # Age density per race: do the shapes differ, not just the counts?
    races = known_races(df)
    known = df[df["Race Label"].isin(races) & df["Age"].notna()]
    sns.kdeplot(data=known, x="Age", hue="Race Label", hue_order=races,
                common_norm=False, palette=RACE_COLORS, ax=axes[1, 0])
    axes[1, 0].set_title("Age Density by Race\n(Each curve normalised separately)")
    axes[1, 0].set_xlabel("Age")

    # Gender split
    if "Gender Label" in df.columns:
        gender = df["Gender Label"].value_counts()
        axes[1, 1].bar(gender.index, gender.values, color=NEUTRAL, edgecolor="white")
        for i, v in enumerate(gender.values):
            axes[1, 1].text(i, v, f"{v/len(df)*100:.1f}%", ha="center", va="bottom", fontsize=9)
        axes[1, 1].set_title("Victims by Gender")
        axes[1, 1].set_ylabel("Number of Victims")
        fmt_thousands(axes[1, 1])
    _source_note(axes[1, 1])

    plt.tight_layout()
    save_figure(fig, "02_victim_demographics")

    print(f"  Median victim age (known): {med_age:.1f}")
    print(f"  Most common race: {race_counts.idxmax()} ({race_counts.max():,})")


# ── EDA 3: Age by Race Boxplot ────────────────────────────────────────────────

def eda_age_by_race_boxplot(df: pd.DataFrame) -> pd.Series:
    """
    Q: Are victims of some races systematically younger?
    Sets up the ANOVA / Tukey comparisons in inference.py.
    """
    _banner("EDA 3 | AGE BY RACE")

    races = known_races(df)
    known = df[df["Race Label"].isin(races) & df["Age"].notna()]

    fig, ax = plt.subplots(figsize=(11, 6))
    sns.boxplot(data=known, x="Race Label", y="Age", order=races,
                hue="Race Label", hue_order=races, palette=RACE_COLORS,
                legend=False, ax=ax)
    overall = known["Age"].median()
    ax.axhline(overall, color=ACCENT, linestyle="--", alpha=0.7,
               label=f"Overall median: {overall:.0f}")
    ax.set_title("Victim Age by Race\n(Known race and age only)")
    ax.set_xlabel("")
    ax.set_ylabel("Age")
    ax.legend(fontsize=8)
    _source_note(ax)

    plt.tight_layout()
    save_figure(fig, "03_age_by_race_boxplot")

    medians = known.groupby("Race Label")["Age"].median().reindex(races)
    for race, m in medians.items():
        print(f"  {race:<17} median age {m:.0f}")
    return medians


# ── EDA 4: Circumstances of the Shooting ─────────────────────────────────────

def eda_circumstances(df: pd.DataFrame) -> pd.Series:
    """
    Q: Was the victim armed, fleeing, showing signs of mental illness,
    and was a body camera running? How does the unarmed rate vary by race?
    """
    _banner("EDA 4 | CIRCUMSTANCES")

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))
    fig.suptitle("Circumstances of Fatal Shootings", fontsize=14, fontweight="bold")

    armed = df["Armed Category"].value_counts()
    bar_colors = [ACCENT if a == "Unarmed" else NEUTRAL for a in armed.index]
    axes[0, 0].barh(armed.index[::-1], armed.values[::-1], color=bar_colors[::-1])
    axes[0, 0].set_title("Armed Status\n(Red = unarmed)")
    axes[0, 0].set_xlabel("Number of Victims")
    fmt_thousands(axes[0, 0], axis="x")
    for i, v in enumerate(armed.values[::-1]):
        axes[0, 0].text(v, i, f" {v:,}", va="center", fontsize=8)

    flee = df["Flee Status"].value_counts()
    axes[0, 1].bar(flee.index, flee.values, color=NEUTRAL, edgecolor="white")
    axes[0, 1].set_title("Flight Status")
    axes[0, 1].set_ylabel("Number of Victims")
    fmt_thousands(axes[0, 1])

    flags = pd.DataFrame({
        "Body Camera": df["Body Camera"].value_counts(),
        "Mental Illness": df["Mental Illness"].value_counts(),
    }).reindex(["Yes", "No", "Unknown"]).dropna(how="all").fillna(0)
    flags.T.plot(kind="bar", ax=axes[1, 0], color=[ACCENT, NEUTRAL, "#B0B0B0"][:len(flags)],
                 edgecolor="white", rot=0)
    axes[1, 0].set_title("Body Camera & Signs of Mental Illness")
    axes[1, 0].set_ylabel("Number of Victims")
    axes[1, 0].legend(title="")
    fmt_thousands(axes[1, 0])

    # Unarmed rate by race, as a share of victims with known armed status
    races = known_races(df)
    unarmed = to_indicator(df["Unarmed"])
    rate = (
        unarmed[df["Race Label"].isin(races)]
        .groupby(df["Race Label"])
        .mean()
        .reindex(races) * 100
    )
    overall = unarmed.mean() * 100
    bar_colors = [ACCENT if v > overall else NEUTRAL for v in rate.values]
    axes[1, 1].barh(rate.index[::-1], rate.values[::-1], color=bar_colors[::-1])
    axes[1, 1].axvline(overall, color="green", linestyle="--", label=f"All victims: {overall:.1f}%")
    axes[1, 1].set_title("% of Victims Unarmed by Race\n(Red = above overall rate)")
    axes[1, 1].set_xlabel("% Unarmed")
    for i, v in enumerate(rate.values[::-1]):
        axes[1, 1].text(v, i, f" {v:.1f}%", va="center", fontsize=8)
    axes[1, 1].legend(fontsize=8)
    _source_note(axes[1, 1])

    plt.tight_layout()
    save_figure(fig, "04_circumstances")

    print(f"  Unarmed victims: {int(unarmed.sum()):,} ({overall:.1f}% of known armed status)")
    print(f"  Body camera recorded: {(df['Body Camera'] == 'Yes').mean()*100:.1f}%")
    print(f"  Signs of mental illness: {(df['Mental Illness'] == 'Yes').mean()*100:.1f}%")
    return rate


# ── EDA 5: Geographic Distribution ───────────────────────────────────────────

def eda_state_choropleth(df: pd.DataFrame, states: gpd.GeoDataFrame = None):
    """
    Q: Where do fatal police shootings happen?
    Raw counts per state; Alaska and Hawaii are counted but outside the map extent.
    """
    _banner("EDA 5 | GEOGRAPHIC DISTRIBUTION")

    if "state" not in df.columns:
        print("  ⚠ No state column: skipping choropleth")
        return None

    if states is None:
        states = load_state_boundaries()

    counts = df["state"].value_counts().rename("Shootings")
    geo = states.merge(counts, left_on="STUSPS", right_index=True, how="left")
    geo["Shootings"] = geo["Shootings"].fillna(0)

    fig, ax = plt.subplots(figsize=(16, 9))
    geo.plot(column="Shootings", cmap=PALETTE, linewidth=0.6, edgecolor="black",
             legend=True, ax=ax,
             legend_kwds={"label": "Fatal police shootings", "orientation": "horizontal",
                          "shrink": 0.6, "pad": 0.02})
    for _, row in geo[geo["Shootings"] > 0].iterrows():
        centroid = row.geometry.representative_point()
        ax.annotate(text=row["STUSPS"], xy=(centroid.x, centroid.y),
                    ha="center", va="center", fontsize=7, color="black")
    ax.set_xlim(*CONTINENTAL_XLIM)
    ax.set_ylim(*CONTINENTAL_YLIM)
    ax.set_title("Fatal Police Shootings by State", fontsize=16)
    ax.axis("off")
    _source_note(ax, note="Source: The Washington Post, Fatal Force; US Census Bureau boundaries")

    save_figure(fig, "05_state_choropleth")

    print(f"  Highest-count state: {counts.idxmax()} ({counts.max():,} shootings)")
    print(f"  Top 5 states account for {counts.head(5).sum()/counts.sum()*100:.1f}% of shootings")
    return geo


# ── EDA 6: Shootings Over Time ────────────────────────────────────────────────

def eda_temporal_trends(df: pd.DataFrame) -> pd.Series:
    """
    Q: Is the rate of fatal shootings stable over time, and does the racial mix shift?
    """
    _banner("EDA 6 | TEMPORAL TRENDS")

    dated = df[df["Date"].notna()]

    fig, axes = plt.subplots(2, 2, figsize=(15, 10))
    fig.suptitle("Fatal Shootings Over Time", fontsize=14, fontweight="bold")

    # Weekly counts (ISO weeks) with an 8-week rolling mean
    weekly = dated.groupby("Year-Week").size()
    # Weeks with no shootings count as zero
    weekly = weekly.reindex(pd.date_range(weekly.index.min(), weekly.index.max(), freq="W-MON"),
                            fill_value=0)
    ax = axes[0, 0]
    ax.plot(weekly.index, weekly.values, color=NEUTRAL, alpha=0.5, linewidth=1, label="Weekly count")
    ax.plot(weekly.index, weekly.rolling(8, min_periods=1).mean().values,
            color=ACCENT, linewidth=2, label="8-week rolling mean")
    ax.set_title("Weekly Shootings")
    ax.set_ylabel("Shootings per Week")
    ax.legend(fontsize=8)

    monthly = dated.groupby(dated["Date"].dt.to_period("M")).size()
    ax = axes[0, 1]
    ax.plot(monthly.index.to_timestamp(), monthly.values, marker="o", markersize=3,
            color=NEUTRAL, linewidth=1.5)
    ax.axhline(monthly.mean(), color=ACCENT, linestyle="--", label=f"Mean: {monthly.mean():.0f}/month")
    ax.set_title("Monthly Shootings")
    ax.set_ylabel("Shootings per Month")
    ax.legend(fontsize=8)

    races = known_races(dated)
    by_race = pd.crosstab(dated["Year"].astype(int), dated["Race Label"]).reindex(columns=races)
    ax = axes[1, 0]
    for race in races:
        ax.plot(by_race.index, by_race[race].values, marker="o", linewidth=2,
                color=RACE_COLORS[race], label=race)
    ax.set_title("Yearly Shootings by Race")
    ax.set_ylabel("Shootings per Year")
    ax.xaxis.set_major_locator(mticker.MaxNLocator(integer=True))
    ax.legend(fontsize=8)

    day_order = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
    daily = dated["DayOfWeek"].value_counts().reindex(day_order, fill_value=0)
    ax = axes[1, 1]
    ax.bar(range(7), daily.values, color=NEUTRAL)
    ax.set_xticks(range(7))
    ax.set_xticklabels(["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"])
    ax.set_title("Shootings by Day of Week")
    ax.set_ylabel("Number of Shootings")
    fmt_thousands(ax)
    _source_note(ax)

    plt.tight_layout()
    save_figure(fig, "06_temporal_trends")

    print(f"  Mean shootings per week: {weekly.mean():.1f}")
    print(f"  Busiest month on record: {monthly.idxmax()} ({monthly.max():,})")
    return weekly


# ── EDA 7: Summary Statistics Table ──────────────────────────────────────────

def eda_summary_statistics(df: pd.DataFrame) -> pd.DataFrame:
    """
    Prints and returns a clean summary stats table.
    """
    _banner("EDA 7 | SUMMARY STATISTICS")

    numeric = [c for c in ["Age", "Year", "latitude", "longitude"] if c in df.columns]
    summary = df[numeric].describe().round(2)
    print(summary.to_string())

    print("\nTop 5 States:")
    print(df["state"].value_counts().head(5).to_string())

    if "city" in df.columns:
        print("\nTop 5 Cities:")
        print((df["city"] + ", " + df["state"]).value_counts().head(5).to_string())

    return summary


# ── Pipeline Orchestrator ─────────────────────────────────────────────────────

def run_eda(cleaned_data_path: str, states: gpd.GeoDataFrame = None) -> pd.DataFrame:
    """
    Run the full EDA pipeline in one call.
    All figures saved to FIG_DIR.
    """
    df = load_cleaned_data(cleaned_data_path)

    eda_data_quality(df)
    eda_victim_demographics(df)
    eda_age_by_race_boxplot(df)
    eda_circumstances(df)
    eda_state_choropleth(df, states=states)
    eda_temporal_trends(df)
    eda_summary_statistics(df)

    print("\n" + "=" * 60)
    print(f"✓ EDA COMPLETE: {len(list(FIG_DIR.glob('*.png')))} figures saved to {FIG_DIR}/")
    print("=" * 60)
    return df


# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    run_eda("data/processed/fatal_shootings_cleaned.csv")
