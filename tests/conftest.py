#!/usr/bin/env python3
"""Shared test fixtures for the test suite.

This module provides a seeded synthetic frame shaped like the Fatal Force
CSV, a cleaned version of it, a small US-states GeoDataFrame for the
choropleth, and a fixture that redirects figures into a temp directory.
"""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import box

import eda
from data_cleaning import AuditTrail, clean_data

RACE_CODES = ["W", "B", "H", "A", "N", "O"]
RACE_PROBS = [0.45, 0.25, 0.18, 0.06, 0.03, 0.03]
RACE_MEAN_AGE = {"W": 40, "B": 32, "H": 33, "A": 36, "N": 31, "O": 35}

# Rough lon/lat boxes; AK sits outside the continental map extent
STATE_BOXES = {
    "CA": (-124.0, 33.0, -114.5, 42.0),
    "TX": (-106.5, 26.0, -94.0, 36.5),
    "FL": (-87.5, 25.0, -80.0, 31.0),
    "AZ": (-114.5, 31.5, -109.0, 37.0),
    "GA": (-85.5, 30.5, -81.0, 35.0),
    "NY": (-79.5, 40.5, -72.0, 45.0),
    "AK": (-170.0, 52.0, -141.0, 71.0),
}


@pytest.fixture
def raw_df() -> pd.DataFrame:
    """Provide a raw frame with the v1 Fatal Force columns.

    Returns:
        600 seeded incidents with a few missing ages, races, armed and flee values.
    """
    rng = np.random.default_rng(7)
    n = 600

    race = rng.choice(RACE_CODES, size=n, p=RACE_PROBS).astype(object)
    age = np.array([rng.normal(RACE_MEAN_AGE[r], 12) for r in race]).clip(15, 85).round()
    armed = rng.choice(
        ["gun", "knife", "unarmed", "toy weapon", "vehicle", "undetermined", "baseball bat"],
        size=n, p=[0.55, 0.15, 0.12, 0.04, 0.06, 0.04, 0.04],
    ).astype(object)
    flee = rng.choice(["Not fleeing", "Car", "Foot", "Other"], size=n, p=[0.6, 0.15, 0.15, 0.1]).astype(object)

    age = age.astype(object)
    age[rng.choice(n, 20, replace=False)] = np.nan
    race[rng.choice(n, 30, replace=False)] = np.nan
    armed[rng.choice(n, 10, replace=False)] = np.nan
    flee[rng.choice(n, 15, replace=False)] = np.nan

    dates = pd.Timestamp("2015-01-01") + pd.to_timedelta(rng.integers(0, 5 * 365, n), unit="D")
    states = rng.choice(list(STATE_BOXES)[:5], size=n)

    return pd.DataFrame({
        "id": np.arange(1, n + 1),
        "name": [f"Victim {i}" for i in range(n)],
        "date": dates.strftime("%Y-%m-%d"),
        "manner_of_death": rng.choice(["shot", "shot and Tasered"], size=n, p=[0.95, 0.05]),
        "armed": armed,
        "age": age,
        "gender": rng.choice(["M", "F"], size=n, p=[0.95, 0.05]),
        "race": race,
        "city": rng.choice(["Springfield", "Riverside", "Fairview"], size=n),
        "state": states,
        "signs_of_mental_illness": rng.random(n) < 0.25,
        "threat_level": rng.choice(["attack", "other", "undetermined"], size=n),
        "flee": flee,
        "body_camera": rng.random(n) < 0.12,
        "longitude": rng.uniform(-120, -80, n),
        "latitude": rng.uniform(26, 44, n),
    })


@pytest.fixture
def raw_csv(tmp_path: Path, raw_df: pd.DataFrame) -> Path:
    """Write the raw frame to a CSV file.

    Returns:
        Path to the CSV inside the test's temp directory.
    """
    path = tmp_path / "fatal-police-shootings-data.csv"
    raw_df.to_csv(path, index=False)
    return path


@pytest.fixture
def cleaned_df(raw_df: pd.DataFrame) -> pd.DataFrame:
    """Provide the raw frame after every cleaning step."""
    return clean_data(raw_df.copy(), AuditTrail(total_rows=len(raw_df)))


@pytest.fixture
def fig_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Redirect saved figures into the test's temp directory.

    Returns:
        The directory figures will be written to.
    """
    path = tmp_path / "plots"
    monkeypatch.setattr(eda, "FIG_DIR", path)
    return path


@pytest.fixture
def states_gdf() -> gpd.GeoDataFrame:
    """Provide box-shaped state polygons keyed by STUSPS, in EPSG:4326."""
    return gpd.GeoDataFrame(
        {"STUSPS": list(STATE_BOXES)},
        geometry=[box(*bounds) for bounds in STATE_BOXES.values()],
        crs="EPSG:4326",
    )
