"""
report.py
End-to-end Fatal Force report: clean → describe → test → model, in that order.

Outputs (under REPORT_DIR):
- fatal_shootings_cleaned.csv, cleaning_audit.json
- tables/*.csv: group statistics, Tukey HSD, model comparison, odds ratios, AMEs
- results.json: every headline statistic
- report.txt: plain-text summary of the findings
Figures go to eda.FIG_DIR.
"""

import json
import logging
from pathlib import Path

import pandas as pd

import eda
from data_cleaning import RAW_PATH, _NumpyEncoder, run_pipeline
from inference import run_inference
from modeling import AME_MODEL, run_modeling

log = logging.getLogger(__name__)

REPORT_DIR = Path("data/processed/report")


def _records(df: pd.DataFrame) -> dict:
    """DataFrame → JSON-ready dict with NaN as null."""
    return df.astype(object).where(df.notna(), None).to_dict(orient="index")


def _strip_frames(d: dict) -> dict:
    return {k: v for k, v in d.items() if not isinstance(v, (pd.DataFrame, pd.Series))}


def save_tables(inference: dict, modeling: dict, table_dir: Path) -> list[Path]:
    table_dir.mkdir(parents=True, exist_ok=True)
    tables = {
        "age_by_race_groups": inference["groups"],
        "tukey_hsd": inference["tukey"],
        "race_unarmed_crosstab": inference["race_unarmed_chi2"]["table"],
        "model_comparison": modeling["comparison"],
        "odds_ratios": pd.concat(modeling["odds_ratios"], names=["model", "term"]),
        "marginal_effects": modeling["marginal_effects"],
        "predicted_probabilities": modeling["predictions"],
    }
    paths = []
    for name, table in tables.items():
        path = table_dir / f"{name}.csv"
        table.to_csv(path, index=name not in ("tukey_hsd", "predicted_probabilities"))
        paths.append(path)
    log.info(f"Saved {len(paths)} tables → {table_dir}")
    return paths


def summarise(df: pd.DataFrame, inference: dict, modeling: dict) -> dict:
    comparison = modeling["comparison"]
    return {
        "n_incidents": len(df),
        "date_range": [str(df["Date"].min().date()), str(df["Date"].max().date())],
        "age_by_race": {
            "primary_test": inference["primary_test"],
            "p_value": inference["p_value"],
            "significant": inference["significant"],
            "alpha": inference["alpha"],
            "assumptions": inference["assumptions"],
            "anova": inference["anova"],
            "welch": inference["welch"],
            "kruskal": inference["kruskal"],
            "groups": _records(inference["groups"]),
            "significant_pairs": inference["tukey"].loc[
                inference["tukey"]["reject"], ["group1", "group2", "meandiff", "p_adj"]
            ].to_dict(orient="records"),
        },
        "race_unarmed_chi2": _strip_frames(inference["race_unarmed_chi2"]),
        "logit": {
            "n": int(len(modeling["frame"])),
            "unarmed_rate": float(modeling["frame"]["unarmed"].mean()),
            "comparison": _records(comparison.drop(columns="formula")),
            "formulas": comparison["formula"].to_dict(),
            "best_by_aic": comparison["aic"].idxmin(),
            "odds_ratios": _records(modeling["odds_ratios"][AME_MODEL]),
            "marginal_effects": _records(modeling["marginal_effects"]),
        },
    }


def write_text_report(summary: dict, path: Path) -> Path:
    age = summary["age_by_race"]
    logit = summary["logit"]
    chi2 = summary["race_unarmed_chi2"]

    lines = [
        "FATAL POLICE SHOOTINGS: ANALYSIS REPORT",
        "=" * 60,
        f"Incidents analysed: {summary['n_incidents']:,} "
        f"({summary['date_range'][0]} to {summary['date_range'][1]})",
        "",
        "1. VICTIM AGE BY RACE",
        "-" * 60,
    ]
    for race, g in age["groups"].items():
        lines.append(f"  {race:<17} n={g['n']:>6,}  mean={g['mean']:.1f}  median={g['median']:.0f}")
    lines += [
        f"  Levene p = {age['assumptions']['levene_p']:.4f} → primary test: {age['primary_test']}",
        f"  {age['primary_test']} p = {age['p_value']:.3g} "
        f"({'significant' if age['significant'] else 'not significant'} at α={age['alpha']})",
        f"  Tukey HSD significant pairs: {len(age['significant_pairs'])}",
    ]
    for pair in age["significant_pairs"]:
        lines.append(f"    {pair['group2']} − {pair['group1']}: {pair['meandiff']:+.1f} yrs "
                     f"(p_adj={pair['p_adj']:.3g})")

    lines += [
        "",
        "2. RACE × UNARMED STATUS",
        "-" * 60,
        f"  χ² = {chi2['statistic']:.2f}, dof = {chi2['dof']}, p = {chi2['p_value']:.3g}, "
        f"Cramér's V = {chi2['cramers_v']:.3f}",
        "",
        "3. LOGISTIC REGRESSION: P(UNARMED)",
        "-" * 60,
        f"  Complete cases: {logit['n']:,} (unarmed rate {logit['unarmed_rate']*100:.1f}%)",
    ]
    for name, row in logit["comparison"].items():
        lr = "" if row["lr_p_value"] is None else f"  LR vs previous p={row['lr_p_value']:.3g}"
        lines.append(f"  {name:<12} AIC={row['aic']:.1f}  pseudo R²={row['pseudo_r2']:.4f}{lr}")
    lines.append(f"  Lowest AIC: {logit['best_by_aic']}")
    lines.append(f"  Odds ratios ({AME_MODEL} model):")
    for term, row in logit["odds_ratios"].items():
        if term == "Intercept":
            continue
        lines.append(f"    {term:<28} OR={row['odds_ratio']:.2f} "
                     f"[{row['or_lower']:.2f}, {row['or_upper']:.2f}]  p={row['p_value']:.3g}")

    path.write_text("\n".join(lines) + "\n")
    log.info(f"Report written → {path}")
    return path


def run_report(input_path: str = RAW_PATH, output_dir=REPORT_DIR, states=None) -> dict:
    """
    Run the whole analysis once, top to bottom.

    Parameters
    ----------
    input_path : raw Fatal Force CSV
    output_dir : directory for cleaned data, tables, results.json and report.txt
    states     : optional US states GeoDataFrame for the choropleth
                 (downloaded from the Census Bureau when omitted)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    cleaned_path = output_dir / "fatal_shootings_cleaned.csv"

    run_pipeline(input_path, str(cleaned_path), str(output_dir / "cleaning_audit.json"))
    df = eda.run_eda(str(cleaned_path), states=states)
    inference = run_inference(df)
    modeling = run_modeling(df)

    save_tables(inference, modeling, output_dir / "tables")
    summary = summarise(df, inference, modeling)
    with open(output_dir / "results.json", "w") as f:
        json.dump(summary, f, indent=2, cls=_NumpyEncoder)
    write_text_report(summary, output_dir / "report.txt")

    print("\n" + "=" * 60)
    print(f"✓ REPORT COMPLETE: outputs in {output_dir}/, figures in {eda.FIG_DIR}/")
    print("=" * 60)
    return {"summary": summary, "inference": inference, "modeling": modeling}


if __name__ == "__main__":
    run_report()
