"""Significance test and per-criterion breakdown for A/B quality scores."""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import stats

from ..evaluation.quality_scores import QualityScore
from .types import WINNER_NONE, CriterionBreakdown, Variant


@dataclass(frozen=True)
class Significance:
    """Outcome of comparing two score samples."""

    mean_a: float
    mean_b: float
    p_value: float
    significant: bool
    winner: str  # "A" | "B" | "none"


def welch_p_value(scores_a: Sequence[float], scores_b: Sequence[float]) -> float:
    """Two-sided Welch's t-test p-value (unequal variances).

    Zero-variance samples make the t statistic undefined: identical means give
    p = 1.0, different means p = 0.0. Fewer than two samples in an arm gives 1.0.
    """
    a = np.asarray(scores_a, dtype=float)
    b = np.asarray(scores_b, dtype=float)
    if a.size < 2 or b.size < 2:
        return 1.0
    if np.var(a) == 0 and np.var(b) == 0:
        return 1.0 if math.isclose(float(a.mean()), float(b.mean())) else 0.0
    result = stats.ttest_ind(a, b, equal_var=False)
    p = float(result.pvalue)
    if math.isnan(p):
        return 1.0
    return p


def compare_scores(
    scores_a: Sequence[float],
    scores_b: Sequence[float],
    significance_threshold: float,
    min_improvement: float,
) -> Significance:
    """Decide a winner: significant, and the mean lead is at least min_improvement points."""
    mean_a = float(np.mean(scores_a)) if len(scores_a) else 0.0
    mean_b = float(np.mean(scores_b)) if len(scores_b) else 0.0
    p_value = welch_p_value(scores_a, scores_b)
    significant = p_value < significance_threshold

    winner = WINNER_NONE
    diff = mean_b - mean_a
    if significant and not math.isclose(mean_a, mean_b) and abs(diff) >= min_improvement:
        winner = Variant.B.value if diff > 0 else Variant.A.value
    return Significance(mean_a=mean_a, mean_b=mean_b, p_value=p_value, significant=significant, winner=winner)


def pass_rate(scores: Sequence[QualityScore]) -> float:
    """Percent of scores whose overall verdict passed (0 when empty)."""
    if not scores:
        return 0.0
    return round(100.0 * sum(1 for s in scores if s.passed) / len(scores), 1)


def per_criterion_breakdown(
    scores_a: Sequence[QualityScore],
    scores_b: Sequence[QualityScore],
) -> dict[str, CriterionBreakdown]:
    """Pass rate (percent) per criterion for each variant.

    Only criteria that appear in at least one score are reported. A score that
    lacks a criterion counts as not passing it.
    """
    criteria = sorted({c.criterion_id for s in (*scores_a, *scores_b) for c in s.criteria})

    def rate(scores: Sequence[QualityScore], criterion_id: str) -> float:
        if not scores:
            return 0.0
        passed = sum(
            1 for s in scores if any(c.criterion_id == criterion_id and c.passed for c in s.criteria)
        )
        return round(100.0 * passed / len(scores), 1)

    return {
        cid: CriterionBreakdown(variant_a_pass_rate=rate(scores_a, cid), variant_b_pass_rate=rate(scores_b, cid))
        for cid in criteria
    }
