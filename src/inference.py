"""
inference.py
Hypothesis Tests: Does Victim Age Differ by Race?

Test selection follows the usual assumption checks:
- Levene (median-centred) for equal variances across races
- Shapiro-Wilk per race for normality (large groups are subsampled)
- Classical one-way ANOVA when variances look equal, Welch's ANOVA when they do not
- Kruskal-Wallis reported alongside as a distribution-free check
- Tukey HSD for the pairwise post-hoc comparisons
"""

import logging
from itertools import combinations

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from scipy import stats
from statsmodels.stats.oneway import anova_oneway
from statsmodels.stats.multicomp import pairwise_tukeyhsd

from data_cleaning import RACE_MAP, to_indicator
from eda import save_figure, ACCENT, NEUTRAL

log = logging.getLogger(__name__)

ALPHA = 0.05
MIN_GROUP_SIZE = 20
SHAPIRO_MAX_N = 5000   # scipy's p-value is unreliable above this
SEED = 42


# ── Group Preparation ─────────────────────────────────────────────────────────

def age_by_race_groups(df: pd.DataFrame, races: list[str] = None,
                       min_group_size: int = MIN_GROUP_SIZE) -> dict[str, np.ndarray]:
    """
    Known ages keyed by race label, in RACE_MAP order.
    Unknown race is never a group; groups below `min_group_size` are dropped.
    """
    races = races or list(RACE_MAP.values())
    known = df[df["Race Label"].isin(races) & df["Age"].notna()]

    groups = {}
    for race in races:
        ages = known.loc[known["Race Label"] == race, "Age"].to_numpy(dtype=float)
        if len(ages) < min_group_size:
            if len(ages):
                log.warning(f"Dropping '{race}' from age comparison: n={len(ages)} < {min_group_size}")
            continue
        groups[race] = ages

    if len(groups) < 2:
        raise ValueError(
            f"Need at least two race groups with >= {min_group_size} known ages, got {list(groups)}"
        )
    return groups


def describe_groups(groups: dict[str, np.ndarray]) -> pd.DataFrame:
    return pd.DataFrame({
        race: {
            "n": len(ages),
            "mean": ages.mean(),
            "std": ages.std(ddof=1),
            "median": np.median(ages),
        }
        for race, ages in groups.items()
    }).T.astype({"n": int})


# ── Assumption Checks ─────────────────────────────────────────────────────────

def check_assumptions(groups: dict[str, np.ndarray], alpha: float = ALPHA) -> dict:
    levene_stat, levene_p = stats.levene(*groups.values())

    rng = np.random.default_rng(SEED)
    normality = {}
    for race, ages in groups.items():
        if len(ages) < 3:
            continue
        sample = ages if len(ages) <= SHAPIRO_MAX_N else rng.choice(ages, SHAPIRO_MAX_N, replace=False)
        w, p = stats.shapiro(sample)
        normality[race] = {"stat": float(w), "p_value": float(p), "normal": bool(p > alpha)}

    return {
        "levene_stat": float(levene_stat),
        "levene_p": float(levene_p),
        "equal_variances": bool(levene_p >= alpha),
        "normality": normality,
        "all_normal": all(t["normal"] for t in normality.values()),
    }


# ── Omnibus Tests ─────────────────────────────────────────────────────────────

def one_way_anova(groups: dict[str, np.ndarray]) -> dict:
    values = list(groups.values())
    f_stat, p_value = stats.f_oneway(*values)

    pooled = np.concatenate(values)
    grand_mean = pooled.mean()
    ss_between = sum(len(g) * (g.mean() - grand_mean) ** 2 for g in values)
    ss_total = ((pooled - grand_mean) ** 2).sum()

    return {
        "test_name": "One-way ANOVA",
        "statistic": float(f_stat),
        "p_value": float(p_value),
        "df_between": len(values) - 1,
        "df_within": len(pooled) - len(values),
        "eta_squared": float(ss_between / ss_total) if ss_total else 0.0,
    }


def welch_anova(groups: dict[str, np.ndarray]) -> dict:
    res = anova_oneway(list(groups.values()), use_var="unequal", welch_correction=True)
    df_num, df_denom = res.df
    return {
        "test_name": "Welch's ANOVA",
        "statistic": float(res.statistic),
        "p_value": float(res.pvalue),
        "df_between": float(df_num),
        "df_within": float(df_denom),
    }


def kruskal_wallis(groups: dict[str, np.ndarray]) -> dict:
    h_stat, p_value = stats.kruskal(*groups.values())
    return {
        "test_name": "Kruskal-Wallis",
        "statistic": float(h_stat),
        "p_value": float(p_value),
    }


# ── Post-hoc Comparisons ─────────────────────────────────────────────────────

def tukey_hsd(groups: dict[str, np.ndarray], alpha: float = ALPHA) -> pd.DataFrame:
    """
    Tukey HSD over every pair of races.
    `meandiff` is mean(group2) - mean(group1), with group labels sorted alphabetically.
    """
    endog = np.concatenate(list(groups.values()))
    labels = np.concatenate([[race] * len(ages) for race, ages in groups.items()])
    res = pairwise_tukeyhsd(endog=endog, groups=labels, alpha=alpha)

    pairs = list(combinations(res.groupsunique, 2))
    meandiff = np.array([groups[b].mean() - groups[a].mean() for a, b in pairs])
    half_width = (res.confint[:, 1] - res.confint[:, 0]) / 2
    return pd.DataFrame({
        "group1": [a for a, _ in pairs],
        "group2": [b for _, b in pairs],
        "meandiff": meandiff,
        "p_adj": res.pvalues,
        "lower": meandiff - half_width,
        "upper": meandiff + half_width,
        "reject": res.reject.astype(bool),
    })


def plot_tukey(tukey: pd.DataFrame, alpha: float = ALPHA):
    """Forest plot of the pairwise mean age differences with family-wise CIs."""
    ordered = tukey.sort_values("meandiff").reset_index(drop=True)
    labels = ordered["group2"] + " − " + ordered["group1"]
    colors = [ACCENT if r else NEUTRAL for r in ordered["reject"]]

    fig, ax = plt.subplots(figsize=(10, max(4, 0.45 * len(ordered))))
    ax.hlines(range(len(ordered)), ordered["lower"], ordered["upper"], colors=colors, linewidth=2)
    ax.scatter(ordered["meandiff"], range(len(ordered)), color=colors, zorder=3)
    ax.axvline(0, color="gray", linestyle="--", alpha=0.7)
    ax.set_yticks(range(len(ordered)))
    ax.set_yticklabels(labels)
    ax.set_xlabel("Difference in Mean Age (years)")
    ax.set_title(f"Tukey HSD: Pairwise Age Differences by Race\n"
                 f"(Red = significant at family-wise α={alpha})")

    plt.tight_layout()
    return save_figure(fig, "07_tukey_age_by_race")


# ── Race × Armed Status ───────────────────────────────────────────────────────

def race_by_unarmed_chi2(df: pd.DataFrame) -> dict:
    """Chi-square test of independence between race and unarmed status."""
    races = list(RACE_MAP.values())
    unarmed = to_indicator(df["Unarmed"])
    mask = df["Race Label"].isin(races) & unarmed.notna()

    table = pd.crosstab(df.loc[mask, "Race Label"], unarmed[mask].map({1.0: "Unarmed", 0.0: "Armed"}))
    if table.shape[0] < 2 or table.shape[1] < 2:
        raise ValueError(f"Contingency table is degenerate: shape {table.shape}")

    chi2, p_value, dof, _expected = stats.chi2_contingency(table)
    n = table.to_numpy().sum()
    cramers_v = np.sqrt(chi2 / (n * (min(table.shape) - 1)))

    return {
        "test_name": "Chi-square test of independence",
        "statistic": float(chi2),
        "p_value": float(p_value),
        "dof": int(dof),
        "cramers_v": float(cramers_v),
        "table": table,
    }


# ── Orchestrator ──────────────────────────────────────────────────────────────

def compare_age_by_race(df: pd.DataFrame, alpha: float = ALPHA) -> dict:
    """
    Omnibus and post-hoc tests of victim age across races.
    The primary test is Welch's ANOVA when Levene rejects equal variances,
    otherwise the classical F test.
    """
    groups = age_by_race_groups(df)
    assumptions = check_assumptions(groups, alpha)

    anova = one_way_anova(groups)
    welch = welch_anova(groups)
    kruskal = kruskal_wallis(groups)
    primary = anova if assumptions["equal_variances"] else welch

    log.info(f"Age by race: {primary['test_name']} selected "
             f"(Levene p={assumptions['levene_p']:.4f}); p={primary['p_value']:.3g}")

    return {
        "groups": describe_groups(groups),
        "assumptions": assumptions,
        "anova": anova,
        "welch": welch,
        "kruskal": kruskal,
        "primary_test": primary["test_name"],
        "p_value": primary["p_value"],
        "significant": bool(primary["p_value"] < alpha),
        "alpha": alpha,
        "tukey": tukey_hsd(groups, alpha),
    }


def run_inference(df: pd.DataFrame, alpha: float = ALPHA) -> dict:
    print("\n" + "=" * 60)
    print("INFERENCE | AGE BY RACE")
    print("=" * 60)

    results = compare_age_by_race(df, alpha)
    print(results["groups"].round(2).to_string())

    a = results["assumptions"]
    print(f"\n  Levene: W={a['levene_stat']:.3f}, p={a['levene_p']:.4f} "
          f"({'equal' if a['equal_variances'] else 'unequal'} variances)")
    for key in ("anova", "welch", "kruskal"):
        t = results[key]
        print(f"  {t['test_name']:<16} stat={t['statistic']:.3f}  p={t['p_value']:.3g}")
    verdict = "SIGNIFICANT" if results["significant"] else "NOT SIGNIFICANT"
    print(f"\n  {results['primary_test']}: {verdict} at α={alpha}")

    print("\n  Tukey HSD:")
    print(results["tukey"].round(3).to_string(index=False))
    plot_tukey(results["tukey"], alpha)

    chi2 = race_by_unarmed_chi2(df)
    print(f"\n  Race × unarmed: χ²={chi2['statistic']:.2f}, dof={chi2['dof']}, "
          f"p={chi2['p_value']:.3g}, Cramér's V={chi2['cramers_v']:.3f}")
    results["race_unarmed_chi2"] = chi2
    return results
