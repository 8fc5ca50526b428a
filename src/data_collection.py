"""
Data Collection Script
Fetches the Washington Post "Fatal Force" police shootings CSV.
"""

import logging
from pathlib import Path

import pandas as pd

log = logging.getLogger(__name__)

FATAL_FORCE_URL = (
    "https://raw.githubusercontent.com/washingtonpost/data-police-shootings/"
    "master/v1/fatal-police-shootings-data.csv"
)
RAW_PATH = Path("data/raw/fatal-police-shootings-data.csv")


def download_raw_data(url: str = FATAL_FORCE_URL, dest=RAW_PATH, overwrite: bool = False) -> Path:
    dest = Path(dest)
    if dest.exists() and not overwrite:
        log.info(f"Raw data already present → {dest} (pass overwrite=True to refresh)")
        return dest

    log.info(f"Downloading: {url}")
    df = pd.read_csv(url)
    dest.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(dest, index=False)

    log.info(f"Loaded {len(df):,} rows")
    log.info(f"Columns: {list(df.columns)}")
    return dest


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
    download_raw_data()
