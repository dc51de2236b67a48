"""Decision engine: aggregate results, test significance, pick and promote a winner."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.models import utcnow
from ..evaluation.quality_scores import QualityScore, QualityScoreProvider
from ..exceptions import InvalidStateError, PromptLabError
from ..observability.audit import AB_TEST_COMPLETED, AuditEvent, AuditSink, notify
from ..prompts.store import PromptVersion, PromptVersionStore
from .statistics import compare_scores, pass_rate, per_criterion_breakdown
from .store import ExperimentStore
from .types import ABTest, ABTestResults, ABTestStatus, Variant, VariantCounts

logger = logging.getLogger(__name__)

STATUS_EVALUATED = "evaluated"
STATUS_INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of evaluate(): either a results snapshot or insufficient_data."""

    status: str  # "evaluated" | "insufficient_data"
    counts: VariantCounts
    results: Optional[ABTestResults] = None
    persisted: bool = False
    message: str = ""

    @property
    def is_decidable(self) -> bool:
        return self.status == STATUS_EVALUATED


@dataclass(frozen=True)
class CompletionReport:
    """What complete_and_maybe_adopt did."""

    test: ABTest
    outcome: EvaluationOutcome
    completed: bool
    adopted: bool = False
    adopted_version: Optional[PromptVersion] = None
    promotion_error: Optional[str] = None
    message: str = ""


class DecisionEngine:
    """Turns a test's recorded results into a promote / no-promote decision."""

    def __init__(
        self,
        experiments: ExperimentStore,
        versions: PromptVersionStore,
        quality_scores: QualityScoreProvider,
        audit: Optional[AuditSink] = None,
    ):
        self._experiments = experiments
        self._versions = versions
        self._scores = quality_scores
        self._audit = audit

    def evaluate(self, test_id: str) -> EvaluationOutcome:
        """Compute the results snapshot for a test.

        Returns insufficient_data without touching the test while either arm
        is below min_samples_per_variant. Otherwise the snapshot is saved unless
        the test is already terminal (its frozen results are kept).
        """
        test = self._experiments.get_test(test_id)
        counts = self._experiments.count_by_variant(test_id)
        needed = test.config.min_samples_per_variant
        if counts.minimum < needed:
            return self._insufficient(counts, needed, "recorded")

        scores_a = self._resolve_scores(test_id, Variant.A)
        scores_b = self._resolve_scores(test_id, Variant.B)
        scored = VariantCounts(a=len(scores_a), b=len(scores_b))
        if scored.minimum < needed:
            return self._insufficient(scored, needed, "scored")

        sig = compare_scores(
            [s.overall_score for s in scores_a],
            [s.overall_score for s in scores_b],
            significance_threshold=test.config.significance_threshold,
            min_improvement=test.config.min_improvement,
        )
        results = ABTestResults(
            variant_a_samples=scored.a,
            variant_b_samples=scored.b,
            variant_a_avg_score=round(sig.mean_a, 1),
            variant_b_avg_score=round(sig.mean_b, 1),
            p_value=sig.p_value,
            significant=sig.significant,
            winner=sig.winner,
            per_criterion=per_criterion_breakdown(scores_a, scores_b),
            variant_a_pass_rate=pass_rate(scores_a),
            variant_b_pass_rate=pass_rate(scores_b),
            evaluated_at=utcnow(),
        )

        persisted = False
        if not test.status.is_terminal:
            self._experiments.save_results(test_id, results)
            persisted = True
        logger.info(
            "Evaluated A/B test %s: A=%.1f (n=%s) B=%.1f (n=%s) p=%.4f winner=%s",
            test_id,
            sig.mean_a,
            scored.a,
            sig.mean_b,
            scored.b,
            sig.p_value,
            sig.winner,
        )
        return EvaluationOutcome(
            status=STATUS_EVALUATED,
            counts=scored,
            results=results,
            persisted=persisted,
            message=self._describe(results),
        )

    def complete_and_maybe_adopt(self, test_id: str) -> CompletionReport:
        """Evaluate, complete the test with frozen results, then promote the winner if auto_adopt.

        With insufficient data the test stays running: the caller extends or
        cancels it. A promotion failure is reported, never rolled back into the
        test's status.
        """
        outcome = self.evaluate(test_id)
        if not outcome.is_decidable:
            test = self._experiments.get_test(test_id)
            logger.info("A/B test %s not completed: %s", test_id, outcome.message)
            return CompletionReport(test=test, outcome=outcome, completed=False, message=outcome.message)

        test = self._experiments.complete(test_id, outcome.results)
        notify(
            self._audit,
            AuditEvent(
                event_type=AB_TEST_COMPLETED,
                entity_id=test.id,
                prompt_name=test.prompt_name,
                payload={"winner": outcome.results.winner, "p_value": outcome.results.p_value},
            ),
        )

        if not test.config.auto_adopt:
            return CompletionReport(
                test=test, outcome=outcome, completed=True, message="Auto-adopt is disabled"
            )
        if outcome.results.winning_variant is None:
            return CompletionReport(test=test, outcome=outcome, completed=True, message="No winner to adopt")

        adopted, error = self._promote(test, outcome.results.winning_variant)
        if error is not None:
            return CompletionReport(
                test=test,
                outcome=outcome,
                completed=True,
                promotion_error=error,
                message=f"Completed, but promotion failed: {error}",
            )
        return CompletionReport(
            test=test,
            outcome=outcome,
            completed=True,
            adopted=True,
            adopted_version=adopted,
            message=f"Adopted variant {outcome.results.winner} (version {adopted.version})",
        )

    def adopt_winner(self, test_id: str) -> PromptVersion:
        """Promote the recorded winner of a completed test on operator request."""
        test = self._experiments.get_test(test_id)
        if test.status != ABTestStatus.COMPLETED:
            raise InvalidStateError(test_id, test.status.value, "adopt_winner")
        if test.results is None or test.results.winning_variant is None:
            raise InvalidStateError(test_id, test.status.value, "adopt_winner", f"A/B test '{test_id}' has no winner to adopt")
        winning = test.variant(test.results.winning_variant)
        version = self._versions.get_by_id(winning.prompt_version_id)
        return self._versions.set_active(test.prompt_name, version.version)

    def stopping_condition_met(self, test_id: str) -> bool:
        """True once the test has collected max_samples_total results."""
        test = self._experiments.get_test(test_id)
        if test.config.max_samples_total is None:
            return False
        return self._experiments.count_by_variant(test_id).total >= test.config.max_samples_total

    def check_and_complete(self, test_id: str) -> Optional[CompletionReport]:
        """Periodic hook: complete the test only once its stopping condition is met."""
        if not self.stopping_condition_met(test_id):
            return None
        return self.complete_and_maybe_adopt(test_id)

    # --- helpers ---

    def _resolve_scores(self, test_id: str, variant: Variant) -> list[QualityScore]:
        results = self._experiments.list_results(test_id, variant)
        found = self._scores.get_scores(r.quality_score_id for r in results)
        missing = len(results) - len(found)
        if missing:
            logger.warning("A/B test %s variant %s: %s quality scores not found", test_id, variant.value, missing)
        return [found[r.quality_score_id] for r in results if r.quality_score_id in found]

    def _promote(self, test: ABTest, variant: Variant) -> tuple[Optional[PromptVersion], Optional[str]]:
        prompt_version_id = test.variant(variant).prompt_version_id
        try:
            version = self._versions.get_by_id(prompt_version_id)
            activated = self._versions.set_active(test.prompt_name, version.version)
        except (PromptLabError, SQLAlchemyError) as e:
            logger.error("Promotion of variant %s for A/B test %s failed: %s", variant.value, test.id, e)
            return None, str(e)
        logger.info("Auto-adopted variant %s for %s: version %s", variant.value, test.prompt_name, activated.version)
        return activated, None

    @staticmethod
    def _insufficient(counts: VariantCounts, needed: int, kind: str) -> EvaluationOutcome:
        return EvaluationOutcome(
            status=STATUS_INSUFFICIENT_DATA,
            counts=counts,
            message=f"Need more samples: A has {counts.a}/{needed}, B has {counts.b}/{needed} {kind}",
        )

    @staticmethod
    def _describe(results: ABTestResults) -> str:
        if not results.significant:
            return f"No significant difference (p={results.p_value:.4f})"
        if results.winning_variant is None:
            return f"Significant (p={results.p_value:.4f}) but below the minimum improvement"
        return f"Variant {results.winner} wins (p={results.p_value:.4f})"
