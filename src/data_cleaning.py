"""
data_cleaning.py
Data Cleaning Pipeline for the Washington Post "Fatal Force" Police Shootings Data

Design principles:
- Every transformation is logged with before/after counts
- No silent data loss: every recode is recorded in the audit trail
- Functions are pure (input → output), no global state
- A single `run_pipeline()` call reproduces results end-to-end
"""

import pandas as pd
import numpy as np
import logging
import json
from pathlib import Path

# ── Logging Setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


# ── Constants ─────────────────────────────────────────────────────────────────

RAW_PATH     = "data/raw/fatal-police-shootings-data.csv"
CLEANED_PATH = "data/processed/fatal_shootings_cleaned.csv"
AUDIT_PATH   = "data/cleaning_audit.json"

# The v2 release renamed several columns; everything downstream uses v1 names
COLUMN_ALIASES = {
    "armed_with": "armed",
    "flee_status": "flee",
    "was_mental_illness_related": "signs_of_mental_illness",
    "threat_type": "threat_level",
}

REQUIRED_COLUMNS = {
    "date", "age", "race", "armed", "state", "flee",
    "body_camera", "signs_of_mental_illness",
}

# Victim age: anything outside this range is a data entry error
AGE_MIN, AGE_MAX = 1, 100

RACE_MAP = {
    "W": "White", "B": "Black", "H": "Hispanic", "A": "Asian",
    "N": "Native American", "O": "Other",
}

GENDER_MAP = {
    "M": "Male", "F": "Female",
    "MALE": "Male", "FEMALE": "Female", "NON-BINARY": "Non-binary",
}

FLEE_MAP = {
    "not fleeing": "Not fleeing", "not": "Not fleeing",
    "car": "Car", "foot": "Foot", "other": "Other",
}

TRUE_VALUES  = {"true", "t", "yes", "y", "1", "1.0"}
FALSE_VALUES = {"false", "f", "no", "n", "0", "0.0"}

# (source column, derived Yes/No column)
BOOLEAN_COLUMNS = [
    ("signs_of_mental_illness", "Mental Illness"),
    ("body_camera",             "Body Camera"),
]

# Ordered by specificity: "toy gun" must hit Toy Weapon before Gun
ARMED_CATEGORY_RULES = [
    ("Undetermined", ["UNDETERMINED", "UNKNOWN"]),
    ("Toy Weapon",   ["TOY", "REPLICA", "BB GUN", "AIRSOFT", "PELLET"]),
    ("Gun",          ["GUN", "PISTOL", "RIFLE", "FIREARM", "REVOLVER"]),
    ("Knife",        ["KNIFE", "BLADE", "MACHETE", "SWORD", "DAGGER", "SCISSORS", "BOX CUTTER"]),
    ("Vehicle",      ["VEHICLE", "MOTORCYCLE"]),
]

AGE_BINS   = [0,   18,  25,  35,  45,  55,  65,  101]
AGE_LABELS = ["Under 18", "18-24", "25-34", "35-44", "45-54", "55-64", "65+"]


# ── Audit Trail ───────────────────────────────────────────────────────────────

class _NumpyEncoder(json.JSONEncoder):
    """Convert numpy int/float types to native Python before serialising."""
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (pd.Timestamp, Path)):
            return str(obj)
        return super().default(obj)


class AuditTrail:
    """Tracks every cleaning decision with row counts and change stats."""

    def __init__(self, total_rows: int):
        self.total_rows = total_rows
        self.steps: list[dict] = []

    def record(self, step: str, description: str, changed: int, detail: str = ""):
        pct = changed / self.total_rows * 100 if self.total_rows else 0.0
        self.steps.append({
            "step": step,
            "description": description,
            "rows_affected": int(changed),
            "pct_affected": round(pct, 2),
            "detail": detail,
        })
        log.info(f"[{step}] {description} → {changed:,} rows affected ({pct:.1f}%) {detail}")

    def save(self, path: str):
        with open(path, "w") as f:
            json.dump({"total_rows": self.total_rows, "steps": self.steps}, f,
                      indent=2, cls=_NumpyEncoder)
        log.info(f"Audit trail saved → {path}")

    def summary(self):
        print("\n" + "=" * 65)
        print("CLEANING AUDIT SUMMARY")
        print("=" * 65)
        print(f"{'Step':<26} {'Affected':>8} {'%':>7}  Description")
        print("-" * 65)
        for s in self.steps:
            print(f"{s['step']:<26} {s['rows_affected']:>8,} {s['pct_affected']:>6.1f}%  {s['description']}")
        print("=" * 65)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _apply_keyword_rules(text, rules: list[tuple], default: str = "Other",
                         missing: str = "Unknown") -> str:
    """
    Match `text` against ordered keyword rules.
    First match wins, so put more-specific rules earlier in the list.
    """
    if pd.isna(text):
        return missing
    upper = str(text).upper()
    for category, keywords in rules:
        if any(kw in upper for kw in keywords):
            return category
    return default


def _to_yes_no(value) -> str:
    if pd.isna(value):
        return "Unknown"
    if isinstance(value, (bool, np.bool_)):
        return "Yes" if value else "No"
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return "Yes"
    if text in FALSE_VALUES:
        return "No"
    return "Unknown"


def to_indicator(series: pd.Series) -> pd.Series:
    """
    Boolean-like values (True, "True", "Yes", 1 ...) → 1.0 / 0.0, anything else → NaN.
    Works on fresh pipeline output and on columns re-read from the cleaned CSV.
    """
    return series.apply(_to_yes_no).map({"Yes": 1.0, "No": 0.0})


# ── Step 1: Load ──────────────────────────────────────────────────────────────

def load_data(filepath: str) -> pd.DataFrame:
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {filepath}")

    log.info(f"Loading: {filepath}")
    df = pd.read_csv(filepath, low_memory=False)
    log.info(f"Loaded {len(df):,} rows × {len(df.columns)} columns")

    renames = {old: new for old, new in COLUMN_ALIASES.items()
               if old in df.columns and new not in df.columns}
    if renames:
        log.info(f"Mapping v2 column names onto v1: {renames}")
        df = df.rename(columns=renames)

    missing_cols = REQUIRED_COLUMNS - set(df.columns)
    if missing_cols:
        raise ValueError(f"Dataset is missing expected columns: {sorted(missing_cols)}")

    return df


# ── Step 2: Deduplicate ───────────────────────────────────────────────────────

def drop_duplicates(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    before = len(df)
    # id is the Post's incident key; without it only identical rows are dupes
    df = df.drop_duplicates(subset=["id"] if "id" in df.columns else None)
    removed = before - len(df)
    audit.record("Deduplication", "Duplicate incidents removed", removed)
    return df.reset_index(drop=True)


# ── Step 3: Boolean-like Columns ─────────────────────────────────────────────

def normalize_boolean_columns(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    for source, target in BOOLEAN_COLUMNS:
        df[target] = df[source].apply(_to_yes_no)
        unknown = (df[target] == "Unknown").sum()
        audit.record(f"Yes/No: {source}", f"Encoded as '{target}' (Yes/No/Unknown)", unknown,
                     f"({(df[target] == 'Yes').sum():,} Yes)")
    return df


# ── Step 4: Parse Dates & Extract Temporal Features ──────────────────────────

def parse_dates(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    before_nulls = df["date"].isna().sum()
    df["Date"] = pd.to_datetime(df["date"], errors="coerce")
    new_nulls = df["Date"].isna().sum() - before_nulls
    audit.record("Date parse", "Unparseable values → NaT", new_nulls)

    iso = df["Date"].dt.isocalendar()
    df["Year"]      = df["Date"].dt.year
    df["Month"]     = df["Date"].dt.month
    df["ISO Year"]  = iso["year"]
    df["Week"]      = iso["week"]
    df["DayOfWeek"] = df["Date"].dt.day_name()
    # Monday that starts the incident's ISO week, for weekly time series
    df["Year-Week"] = df["Date"].dt.to_period("W-SUN").dt.start_time

    audit.record("Temporal features", "Extracted calendar features from date", len(df),
                 "(Year, Month, ISO Year, Week, DayOfWeek, Year-Week)")
    return df


# ── Step 5: Victim Age ────────────────────────────────────────────────────────

def clean_age(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    df["Age"] = pd.to_numeric(df["age"], errors="coerce")
    unparseable = (df["Age"].isna() & df["age"].notna()).sum()
    audit.record("Age: non-numeric → NaN", "Text ages coerced to missing", unparseable)

    out_of_range = ((df["Age"] < AGE_MIN) | (df["Age"] > AGE_MAX)).sum()
    df.loc[(df["Age"] < AGE_MIN) | (df["Age"] > AGE_MAX), "Age"] = np.nan
    audit.record("Age: out-of-range → NaN", f"Ages outside [{AGE_MIN}, {AGE_MAX}] nulled", out_of_range,
                 f"({df['Age'].isna().sum():,} ages missing in total)")

    df["Age Group"] = pd.cut(df["Age"], bins=AGE_BINS, labels=AGE_LABELS, right=False)
    return df


# ── Step 6: Victim Race ───────────────────────────────────────────────────────

def clean_race(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    codes = df["race"].astype("string").str.strip().str.upper()
    multi = codes.str.contains(";", na=False).astype(bool)
    df["Race Label"] = codes.map(RACE_MAP).fillna("Unknown")
    df.loc[multi, "Race Label"] = "Other"
    audit.record("Race: multi-valued → Other", "Codes such as 'W;B' grouped as Other", multi.sum())

    unknown_count = (df["Race Label"] == "Unknown").sum()
    audit.record("Race mapped", "Single-letter codes → full descriptions", unknown_count,
                 f"({unknown_count / max(len(df), 1) * 100:.1f}% unknown)")
    return df


# ── Step 7: Victim Gender ─────────────────────────────────────────────────────

def clean_gender(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    if "gender" not in df.columns:
        log.warning("'gender' column not found; skipping gender standardisation")
        return df

    codes = df["gender"].astype("string").str.strip().str.upper()
    df["Gender Label"] = codes.map(GENDER_MAP).fillna("Unknown")
    audit.record("Gender standardised", "Codes mapped to Male/Female/Unknown",
                 (df["Gender Label"] == "Unknown").sum())
    return df


# ── Step 8: Armed Status ──────────────────────────────────────────────────────

def categorise_armed(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    armed = df["armed"].astype("string").str.strip().str.lower()

    df["Armed Category"] = armed.apply(
        lambda x: _apply_keyword_rules(x, ARMED_CATEGORY_RULES, default="Other",
                                       missing="Undetermined")
    )
    # "unarmed" contains no keyword, so it is assigned after the rules
    is_unarmed = armed.eq("unarmed").fillna(False).astype(bool)
    df.loc[is_unarmed, "Armed Category"] = "Unarmed"

    # Missing armed status stays <NA>
    df["Unarmed"] = armed.eq("unarmed")

    unarmed = int(df["Unarmed"].sum())
    n_categories = len(ARMED_CATEGORY_RULES) + 2   # plus Unarmed and Other
    audit.record("Armed categories", f"Weapon descriptions grouped into {n_categories} types",
                 (df["Armed Category"] == "Other").sum(),
                 f"({unarmed:,} victims unarmed; {armed.isna().sum():,} armed status missing)")
    return df


# ── Step 9: Flight Status ─────────────────────────────────────────────────────

def clean_flee(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    status = df["flee"].astype("string").str.strip().str.lower()
    df["Flee Status"] = status.map(FLEE_MAP).fillna("Unknown")

    df["Fleeing"] = (df["Flee Status"] != "Not fleeing").astype("boolean")
    df.loc[df["Flee Status"] == "Unknown", "Fleeing"] = pd.NA

    unknown = (df["Flee Status"] == "Unknown").sum()
    audit.record("Flee status", "Standardised to Not fleeing/Car/Foot/Other", unknown,
                 f"({int(df['Fleeing'].sum()):,} fleeing)")
    return df


# ── Pipeline Orchestrator ─────────────────────────────────────────────────────

def clean_data(df: pd.DataFrame, audit: AuditTrail) -> pd.DataFrame:
    """Apply every cleaning step, in order, to an already-loaded frame."""
    df = drop_duplicates(df, audit)
    df = normalize_boolean_columns(df, audit)
    df = parse_dates(df, audit)
    df = clean_age(df, audit)
    df = clean_race(df, audit)
    df = clean_gender(df, audit)
    df = categorise_armed(df, audit)
    df = clean_flee(df, audit)
    return df


def run_pipeline(
    input_path: str = RAW_PATH,
    output_path: str = CLEANED_PATH,
    audit_path: str = AUDIT_PATH,
) -> pd.DataFrame:
    """
    End-to-end cleaning pipeline. Call this to fully reproduce cleaned data.

    Parameters
    ----------
    input_path  : path to the raw Fatal Force CSV
    output_path : path for cleaned CSV output
    audit_path  : path for JSON audit log (records every decision)

    Returns
    -------
    Cleaned DataFrame
    """
    log.info("=" * 60)
    log.info("FATAL FORCE DATA: CLEANING PIPELINE START")
    log.info("=" * 60)

    df = load_data(input_path)
    audit = AuditTrail(total_rows=len(df))
    df = clean_data(df, audit)

    # ── Save ──────────────────────────────────────────────────────────────────
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    log.info(f"Cleaned data saved → {output_path}")
    log.info(f"Final shape: {df.shape[0]:,} rows × {df.shape[1]} columns")

    Path(audit_path).parent.mkdir(parents=True, exist_ok=True)
    audit.save(audit_path)
    audit.summary()

    return df


# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    run_pipeline()
