#!/usr/bin/env python3
"""Unit tests for src/data_cleaning.py.

Test coverage includes:
- Loading, required-column checks and v2 column aliases
- Deduplication on the incident id
- Yes/No normalisation of the boolean-like columns
- Date parsing and ISO week features
- Age, race, gender, armed status and flee status recodes
- The end-to-end pipeline and its audit trail
"""

import json

import numpy as np
import pandas as pd
import pytest

from data_cleaning import (
    ARMED_CATEGORY_RULES,
    AuditTrail,
    categorise_armed,
    clean_age,
    clean_flee,
    clean_gender,
    clean_race,
    drop_duplicates,
    load_data,
    normalize_boolean_columns,
    parse_dates,
    run_pipeline,
    to_indicator,
)


def _audit(df: pd.DataFrame) -> AuditTrail:
    return AuditTrail(total_rows=len(df))


class TestAuditTrail:
    """Test cases for the AuditTrail recorder."""

    def test_record_computes_percentage(self) -> None:
        """Test that rows affected are stored with their share of the total."""
        audit = AuditTrail(total_rows=200)
        audit.record("Step", "Something changed", 50)
        assert audit.steps[0]["rows_affected"] == 50
        assert audit.steps[0]["pct_affected"] == 25.0

    def test_empty_frame_does_not_divide_by_zero(self) -> None:
        """Test that a zero-row audit records 0%."""
        audit = AuditTrail(total_rows=0)
        audit.record("Step", "Nothing to do", 0)
        assert audit.steps[0]["pct_affected"] == 0.0

    def test_save_handles_numpy_types(self, tmp_path) -> None:
        """Test that numpy counts serialise to plain JSON numbers."""
        audit = AuditTrail(total_rows=10)
        audit.record("Step", "numpy count", np.int64(3))
        path = tmp_path / "audit.json"
        audit.save(str(path))
        saved = json.loads(path.read_text())
        assert saved["total_rows"] == 10
        assert saved["steps"][0]["rows_affected"] == 3


class TestLoadData:
    """Test cases for load_data."""

    def test_missing_file(self, tmp_path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / "nope.csv"))

    def test_missing_columns(self, tmp_path) -> None:
        """Test that absent required columns are reported."""
        path = tmp_path / "bad.csv"
        pd.DataFrame({"date": ["2020-01-01"], "age": [30]}).to_csv(path, index=False)
        with pytest.raises(ValueError, match="armed"):
            load_data(str(path))

    def test_v1_file_loads(self, raw_csv, raw_df) -> None:
        """Test that the canonical file loads unchanged."""
        df = load_data(str(raw_csv))
        assert len(df) == len(raw_df)
        assert "armed" in df.columns

    def test_v2_columns_are_renamed(self, tmp_path, raw_df) -> None:
        """Test that v2 column names are mapped onto the v1 names."""
        v2 = raw_df.rename(columns={
            "armed": "armed_with",
            "flee": "flee_status",
            "signs_of_mental_illness": "was_mental_illness_related",
            "threat_level": "threat_type",
        })
        path = tmp_path / "v2.csv"
        v2.to_csv(path, index=False)

        df = load_data(str(path))
        for col in ("armed", "flee", "signs_of_mental_illness", "threat_level"):
            assert col in df.columns
        assert "armed_with" not in df.columns


class TestDropDuplicates:
    """Test cases for drop_duplicates."""

    def test_duplicate_ids_removed(self) -> None:
        """Test that repeated incident ids keep only the first row."""
        df = pd.DataFrame({"id": [1, 2, 2, 3], "armed": ["gun", "knife", "gun", "unarmed"]})
        audit = _audit(df)
        out = drop_duplicates(df, audit)
        assert out["id"].tolist() == [1, 2, 3]
        assert out.loc[1, "armed"] == "knife"
        assert audit.steps[-1]["rows_affected"] == 1

    def test_without_id_only_identical_rows_removed(self) -> None:
        """Test the fallback to full-row duplicates."""
        df = pd.DataFrame({"armed": ["gun", "gun", "knife"], "age": [30, 30, 30]})
        out = drop_duplicates(df, _audit(df))
        assert len(out) == 2


class TestNormalizeBooleanColumns:
    """Test cases for normalize_boolean_columns."""

    def test_mixed_representations(self) -> None:
        """Test that bools, strings and numbers map onto Yes/No/Unknown."""
        df = pd.DataFrame({
            "signs_of_mental_illness": [True, "False", "yes", 0, None, "maybe"],
            "body_camera":             [False, "TRUE", "no", 1, np.nan, "True"],
        })
        out = normalize_boolean_columns(df, _audit(df))
        assert out["Mental Illness"].tolist() == ["Yes", "No", "Yes", "No", "Unknown", "Unknown"]
        assert out["Body Camera"].tolist() == ["No", "Yes", "No", "Yes", "Unknown", "Yes"]


class TestToIndicator:
    """Test cases for to_indicator."""

    def test_values(self) -> None:
        """Test that boolean-like values become 1.0/0.0 and the rest NaN."""
        out = to_indicator(pd.Series([True, False, "True", "No", "Yes", None, pd.NA, "x"]))
        assert out.iloc[:5].tolist() == [1.0, 0.0, 1.0, 0.0, 1.0]
        assert out.iloc[5:].isna().all()

    def test_nullable_boolean(self) -> None:
        """Test that pandas' nullable boolean dtype is handled."""
        out = to_indicator(pd.Series([True, pd.NA, False], dtype="boolean"))
        assert out.iloc[0] == 1.0
        assert np.isnan(out.iloc[1])
        assert out.iloc[2] == 0.0


class TestParseDates:
    """Test cases for parse_dates."""

    def test_iso_week_features(self) -> None:
        """Test calendar and ISO week features, including a week-53 date."""
        df = pd.DataFrame({"date": ["2020-01-06", "2021-01-01", "not a date"]})
        audit = _audit(df)
        out = parse_dates(df, audit)

        assert out.loc[0, "Year"] == 2020
        assert out.loc[0, "Week"] == 2
        assert out.loc[0, "DayOfWeek"] == "Monday"
        assert out.loc[0, "Year-Week"] == pd.Timestamp("2020-01-06")

        # 1 Jan 2021 belongs to ISO week 53 of 2020
        assert out.loc[1, "Year"] == 2021
        assert out.loc[1, "ISO Year"] == 2020
        assert out.loc[1, "Week"] == 53
        assert out.loc[1, "Year-Week"] == pd.Timestamp("2020-12-28")

        assert pd.isna(out.loc[2, "Date"])
        assert audit.steps[0]["rows_affected"] == 1


class TestCleanAge:
    """Test cases for clean_age."""

    def test_invalid_ages_become_missing(self) -> None:
        """Test that zero, out-of-range and text ages are nulled."""
        df = pd.DataFrame({"age": [25, 0, 150, "unknown", None, 70]})
        out = clean_age(df, _audit(df))
        assert out.loc[0, "Age"] == 25
        assert out["Age"].iloc[1:5].isna().all()
        assert out.loc[5, "Age"] == 70

    def test_age_groups(self) -> None:
        """Test the age bins, left-closed."""
        df = pd.DataFrame({"age": [17, 18, 25, 65, 100]})
        out = clean_age(df, _audit(df))
        assert out["Age Group"].astype(str).tolist() == ["Under 18", "18-24", "25-34", "65+", "65+"]


class TestCleanRace:
    """Test cases for clean_race."""

    def test_codes_mapped(self) -> None:
        """Test code mapping, case folding, multi-valued and missing races."""
        df = pd.DataFrame({"race": ["W", "b", " H ", "W;B", None, "Z"]})
        out = clean_race(df, _audit(df))
        assert out["Race Label"].tolist() == ["White", "Black", "Hispanic", "Other", "Unknown", "Unknown"]


class TestCleanGender:
    """Test cases for clean_gender."""

    def test_v1_and_v2_codes(self) -> None:
        """Test single-letter and spelled-out gender codes."""
        df = pd.DataFrame({"gender": ["M", "F", "male", "female", None]})
        out = clean_gender(df, _audit(df))
        assert out["Gender Label"].tolist() == ["Male", "Female", "Male", "Female", "Unknown"]

    def test_missing_column_is_skipped(self) -> None:
        """Test that a frame without gender passes through untouched."""
        df = pd.DataFrame({"age": [30]})
        out = clean_gender(df, _audit(df))
        assert "Gender Label" not in out.columns


class TestCategoriseArmed:
    """Test cases for categorise_armed."""

    def test_categories_and_flag(self) -> None:
        """Test keyword rule order and the Unarmed flag."""
        df = pd.DataFrame({"armed": [
            "unarmed", "gun", "toy weapon", "gun and knife", "knife",
            "vehicle", "baseball bat", "undetermined", None, "Unarmed ",
        ]})
        out = categorise_armed(df, _audit(df))
        assert out["Armed Category"].tolist() == [
            "Unarmed", "Gun", "Toy Weapon", "Gun", "Knife",
            "Vehicle", "Other", "Undetermined", "Undetermined", "Unarmed",
        ]
        assert out.loc[0, "Unarmed"]
        assert not out.loc[1, "Unarmed"]
        assert pd.isna(out.loc[8, "Unarmed"])
        assert out.loc[9, "Unarmed"]

    def test_audit_counts_categories(self) -> None:
        """Test that the audit names as many types as the category labels produced."""
        df = pd.DataFrame({"armed": ["gun"]})
        audit = _audit(df)
        categorise_armed(df, audit)
        n_labels = len(ARMED_CATEGORY_RULES) + len({"Unarmed", "Other"})
        assert audit.steps[-1]["description"] == f"Weapon descriptions grouped into {n_labels} types"


class TestCleanFlee:
    """Test cases for clean_flee."""

    def test_labels_and_flag(self) -> None:
        """Test v1 and v2 flee values and the Fleeing flag."""
        df = pd.DataFrame({"flee": ["Not fleeing", "Car", "foot", "not", "other", None]})
        out = clean_flee(df, _audit(df))
        assert out["Flee Status"].tolist() == ["Not fleeing", "Car", "Foot", "Not fleeing", "Other", "Unknown"]
        assert out["Fleeing"].iloc[:5].tolist() == [False, True, True, False, True]
        assert pd.isna(out["Fleeing"].iloc[5])


class TestRunPipeline:
    """Test cases for the end-to-end pipeline."""

    def test_outputs_written(self, tmp_path, raw_csv, raw_df) -> None:
        """Test that the cleaned CSV and audit JSON are written."""
        output = tmp_path / "processed" / "clean.csv"
        audit_path = tmp_path / "audit" / "audit.json"

        df = run_pipeline(str(raw_csv), str(output), str(audit_path))

        assert output.exists()
        assert len(pd.read_csv(output)) == len(df) == len(raw_df)
        for col in ("Race Label", "Armed Category", "Unarmed", "Fleeing",
                    "Body Camera", "Mental Illness", "Week", "Year-Week", "Age Group"):
            assert col in df.columns

        audit = json.loads(audit_path.read_text())
        assert audit["total_rows"] == len(raw_df)
        assert audit["steps"][0]["step"] == "Deduplication"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
