"""A/B experiments over prompt versions: store, assignment, statistics, decisions."""

from .assignment import PromptResolver, ResolvedPrompt, VariantAssigner, VariantAssignment
from .decision import CompletionReport, DecisionEngine, EvaluationOutcome
from .store import ExperimentStore
from .types import (
    ABResult,
    ABTest,
    ABTestConfig,
    ABTestResults,
    ABTestStatus,
    CriterionBreakdown,
    PromptVariant,
    Variant,
    VariantCounts,
)

__all__ = [
    "ExperimentStore",
    "DecisionEngine",
    "EvaluationOutcome",
    "CompletionReport",
    "VariantAssigner",
    "VariantAssignment",
    "PromptResolver",
    "ResolvedPrompt",
    "ABTest",
    "ABTestConfig",
    "ABTestResults",
    "ABTestStatus",
    "ABResult",
    "CriterionBreakdown",
    "PromptVariant",
    "Variant",
    "VariantCounts",
]
