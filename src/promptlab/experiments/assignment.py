"""Variant assignment and prompt resolution for generation jobs."""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from ..prompts.store import PromptVersion, PromptVersionStore
from .store import ExperimentStore
from .types import ABTest, Variant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantAssignment:
    """Variant a job runs under while a test is running."""

    test: ABTest
    variant_id: Variant
    prompt_version_id: str


@dataclass(frozen=True)
class ResolvedPrompt:
    """Prompt version to hand to the generation agent, plus the experiment context if any."""

    version: PromptVersion
    ab_test_id: Optional[str] = None
    variant_id: Optional[Variant] = None

    @property
    def content(self) -> str:
        return self.version.content

    @property
    def in_experiment(self) -> bool:
        return self.ab_test_id is not None


class VariantAssigner:
    """Deterministic job -> variant mapping.

    The same job always lands on the same variant of a given test, so retries
    and re-evaluations never contribute a second, correlated sample to the
    other arm.
    """

    def __init__(self, experiments: ExperimentStore):
        self._experiments = experiments

    @staticmethod
    def variant_for(test_id: str, job_id: str) -> Variant:
        digest = hashlib.sha256(f"{test_id}:{job_id}".encode("utf-8")).digest()
        return Variant.A if int.from_bytes(digest[:8], "big") % 2 == 0 else Variant.B

    def assign(self, prompt_name: str, job_id: str) -> Optional[VariantAssignment]:
        """Variant for job_id under the running test for prompt_name; None when no test is running."""
        test = self._experiments.get_running_test(prompt_name)
        if test is None:
            return None
        variant = self.variant_for(test.id, job_id)
        logger.debug("Assigned variant %s for %s job %s (test: %s)", variant.value, prompt_name, job_id, test.id)
        return VariantAssignment(
            test=test,
            variant_id=variant,
            prompt_version_id=test.variant(variant).prompt_version_id,
        )


class PromptResolver:
    """What the orchestrator calls before dispatching a generation job."""

    def __init__(self, versions: PromptVersionStore, assigner: VariantAssigner):
        self._versions = versions
        self._assigner = assigner

    def resolve(self, prompt_name: str, job_id: str) -> ResolvedPrompt:
        assignment = self._assigner.assign(prompt_name, job_id)
        if assignment is None:
            return ResolvedPrompt(version=self._versions.get_active(prompt_name))
        return ResolvedPrompt(
            version=self._versions.get_by_id(assignment.prompt_version_id),
            ab_test_id=assignment.test.id,
            variant_id=assignment.variant_id,
        )
