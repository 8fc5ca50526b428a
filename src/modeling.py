"""
modeling.py
Logistic Regression: Who Is Unarmed When Shot?

Fits a nested sequence of logit models for P(victim unarmed):
    race → + age → + situational covariates → + race × age interaction
All models share one model frame (complete cases on every variable),
so the likelihood-ratio tests between consecutive models are valid.
"""

import logging

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import statsmodels.formula.api as smf
from scipy import stats

from data_cleaning import RACE_MAP, to_indicator
from eda import save_figure, ACCENT, NEUTRAL, RACE_COLORS

log = logging.getLogger(__name__)

REFERENCE_RACE = "White"
MIN_RACE_ROWS = 30
COVARIATES = ["body_camera", "fleeing", "mental_illness"]

MODEL_SPECS = [
    ("race",        "unarmed ~ C(race)"),
    ("race_age",    "unarmed ~ C(race) + age"),
    ("situational", "unarmed ~ C(race) + age + body_camera + fleeing + mental_illness"),
    ("race_x_age",  "unarmed ~ C(race) * age + body_camera + fleeing + mental_illness"),
]

# Model the AMEs come from; AMEs of interaction columns are not interpretable
AME_MODEL = "situational"
CURVE_MODEL = "race_x_age"


# ── Model Frame ───────────────────────────────────────────────────────────────

def build_model_frame(df: pd.DataFrame, min_race_rows: int = MIN_RACE_ROWS) -> pd.DataFrame:
    """
    Recode the cleaned data to 0/1 indicators and keep complete cases only.

    `race` is a Categorical whose first level is the reference race, so
    `C(race)` in a formula contrasts every race against White.
    Races with too few rows, or with no variation in the outcome, are dropped.
    """
    frame = pd.DataFrame({
        "unarmed":        to_indicator(df["Unarmed"]),
        "race":           df["Race Label"].where(df["Race Label"].isin(RACE_MAP.values())),
        "age":            pd.to_numeric(df["Age"], errors="coerce"),
        "body_camera":    to_indicator(df["Body Camera"]),
        "fleeing":        to_indicator(df["Fleeing"]),
        "mental_illness": to_indicator(df["Mental Illness"]),
    }).dropna()
    log.info(f"Model frame: {len(frame):,} complete cases of {len(df):,} rows")

    outcome_by_race = frame.groupby("race")["unarmed"].agg(["size", "min", "max"])
    usable = outcome_by_race[
        (outcome_by_race["size"] >= min_race_rows) & (outcome_by_race["min"] != outcome_by_race["max"])
    ].index
    dropped = sorted(set(outcome_by_race.index) - set(usable))
    if dropped:
        log.warning(f"Dropping races from models (too few rows or no outcome variation): {dropped}")
    frame = frame[frame["race"].isin(usable)].copy()

    if frame.empty:
        raise ValueError("No complete cases left to model")
    if frame["unarmed"].nunique() < 2:
        raise ValueError("Outcome 'unarmed' has a single class in the model frame")

    levels = [r for r in RACE_MAP.values() if r in set(usable)]
    if REFERENCE_RACE in levels:
        levels.remove(REFERENCE_RACE)
        levels.insert(0, REFERENCE_RACE)
    frame["race"] = pd.Categorical(frame["race"], categories=levels)

    for col in ["unarmed"] + COVARIATES:
        frame[col] = frame[col].astype(int)
    return frame.reset_index(drop=True)


# ── Fitting ───────────────────────────────────────────────────────────────────

def fit_logit(frame: pd.DataFrame, formula: str):
    result = smf.logit(formula, data=frame).fit(disp=0, maxiter=100)
    if not result.mle_retvals.get("converged", True):
        log.warning(f"Logit did not converge: {formula}")
    log.info(f"Fitted {formula}  (n={int(result.nobs):,}, pseudo R²={result.prsquared:.4f})")
    return result


def fit_model_sequence(frame: pd.DataFrame, specs=MODEL_SPECS) -> dict:
    return {name: fit_logit(frame, formula) for name, formula in specs}


# ── Tables ────────────────────────────────────────────────────────────────────

def odds_ratio_table(result) -> pd.DataFrame:
    ci = result.conf_int()
    return pd.DataFrame({
        "coef": result.params,
        "std_err": result.bse,
        "odds_ratio": np.exp(result.params),
        "or_lower": np.exp(ci[0]),
        "or_upper": np.exp(ci[1]),
        "p_value": result.pvalues,
    })


def likelihood_ratio_test(reduced, full) -> dict:
    """LR test of a reduced model nested in `full`; both must be fit on the same rows."""
    if reduced.nobs != full.nobs:
        raise ValueError(f"Models were fit on different rows ({reduced.nobs} vs {full.nobs})")
    df_diff = full.df_model - reduced.df_model
    if df_diff <= 0:
        raise ValueError("Full model must have more parameters than the reduced model")

    lr = 2 * (full.llf - reduced.llf)
    return {
        "lr_stat": float(lr),
        "df": int(df_diff),
        "p_value": float(stats.chi2.sf(lr, df_diff)),
    }


def compare_models(results: dict) -> pd.DataFrame:
    rows = []
    previous = None
    for name, res in results.items():
        row = {
            "model": name,
            "formula": res.model.formula,
            "n": int(res.nobs),
            "log_likelihood": res.llf,
            "aic": res.aic,
            "bic": res.bic,
            "pseudo_r2": res.prsquared,
            "lr_stat": np.nan,
            "lr_df": np.nan,
            "lr_p_value": np.nan,
        }
        if previous is not None:
            lrt = likelihood_ratio_test(previous, res)
            row.update(lr_stat=lrt["lr_stat"], lr_df=lrt["df"], lr_p_value=lrt["p_value"])
        rows.append(row)
        previous = res
    return pd.DataFrame(rows).set_index("model")


def average_marginal_effects(result) -> pd.DataFrame:
    """AMEs; indicator regressors are evaluated as a discrete 0 → 1 change."""
    frame = result.get_margeff(at="overall", dummy=True).summary_frame()
    frame.columns = ["dy_dx", "std_err", "z", "p_value", "ci_lower", "ci_upper"]
    return frame


def predicted_probabilities(result, frame: pd.DataFrame, ages=None) -> pd.DataFrame:
    """
    Predicted P(unarmed) over an age grid, one curve per race.
    Situational covariates are held at their sample means.
    """
    if ages is None:
        ages = np.linspace(frame["age"].min(), frame["age"].max(), 50)
    means = frame[COVARIATES].mean()

    grids = []
    for race in frame["race"].cat.categories:
        grid = pd.DataFrame({"age": ages})
        grid["race"] = pd.Categorical([race] * len(grid), categories=frame["race"].cat.categories)
        for col in COVARIATES:
            grid[col] = means[col]
        grid["p_unarmed"] = np.asarray(result.predict(grid))
        grids.append(grid)
    return pd.concat(grids, ignore_index=True)[["race", "age", "p_unarmed"]]


# ── Plots ─────────────────────────────────────────────────────────────────────

def plot_marginal_effects(predictions: pd.DataFrame, ame: pd.DataFrame):
    fig, axes = plt.subplots(1, 2, figsize=(15, 6))
    fig.suptitle("Probability of Being Unarmed When Shot", fontsize=14, fontweight="bold")

    ax = axes[0]
    for race, grp in predictions.groupby("race", observed=True):
        ax.plot(grp["age"], grp["p_unarmed"] * 100, linewidth=2,
                color=RACE_COLORS.get(race, NEUTRAL), label=race)
    ax.set_title("Predicted P(unarmed) by Age and Race\n(Other covariates at sample means)")
    ax.set_xlabel("Age")
    ax.set_ylabel("Predicted % Unarmed")
    ax.legend(fontsize=8)

    ax = axes[1]
    ordered = ame.sort_values("dy_dx")
    colors = [ACCENT if p < 0.05 else NEUTRAL for p in ordered["p_value"]]
    y = range(len(ordered))
    ax.barh(y, ordered["dy_dx"] * 100, color=colors, alpha=0.8)
    ax.errorbar(ordered["dy_dx"] * 100, y,
                xerr=[(ordered["dy_dx"] - ordered["ci_lower"]) * 100,
                      (ordered["ci_upper"] - ordered["dy_dx"]) * 100],
                fmt="none", ecolor="black", capsize=3)
    ax.axvline(0, color="gray", linestyle="--", alpha=0.7)
    ax.set_yticks(list(y))
    ax.set_yticklabels(ordered.index)
    ax.set_title("Average Marginal Effects (percentage points)\n(Red = p < 0.05)")
    ax.set_xlabel("Change in P(unarmed), pp")

    plt.tight_layout()
    return save_figure(fig, "08_marginal_effects")


# ── Orchestrator ──────────────────────────────────────────────────────────────

def run_modeling(df: pd.DataFrame) -> dict:
    print("\n" + "=" * 60)
    print("MODELING | LOGISTIC REGRESSION: P(UNARMED)")
    print("=" * 60)

    frame = build_model_frame(df)
    results = fit_model_sequence(frame)

    comparison = compare_models(results)
    odds_ratios = {name: odds_ratio_table(res) for name, res in results.items()}
    ame = average_marginal_effects(results[AME_MODEL])
    predictions = predicted_probabilities(results[CURVE_MODEL], frame)
    plot_marginal_effects(predictions, ame)

    print(f"  Complete cases: {len(frame):,}  (unarmed: {frame['unarmed'].mean()*100:.1f}%)")
    print("\n  Model comparison:")
    print(comparison.drop(columns="formula").round(4).to_string())
    print(f"\n  Odds ratios ({AME_MODEL}):")
    print(odds_ratios[AME_MODEL].round(3).to_string())
    print(f"\n  Average marginal effects ({AME_MODEL}):")
    print(ame.round(4).to_string())

    return {
        "frame": frame,
        "models": results,
        "comparison": comparison,
        "odds_ratios": odds_ratios,
        "marginal_effects": ame,
        "predictions": predictions,
    }
