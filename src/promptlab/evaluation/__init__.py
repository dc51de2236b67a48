"""Evaluation inputs: quality scores produced by the external scoring engine."""

from .quality_scores import (
    CriterionScore,
    InMemoryQualityScoreProvider,
    JsonlQualityScoreProvider,
    QualityScore,
    QualityScoreProvider,
)

__all__ = [
    "CriterionScore",
    "QualityScore",
    "QualityScoreProvider",
    "InMemoryQualityScoreProvider",
    "JsonlQualityScoreProvider",
]
