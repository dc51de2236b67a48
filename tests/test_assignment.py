"""Tests for deterministic variant assignment and prompt resolution."""

from collections import Counter

from src.promptlab.experiments.assignment import PromptResolver, VariantAssigner
from src.promptlab.experiments.types import Variant


def test_variant_for_is_deterministic():
    """The same (test, job) pair always maps to the same variant."""
    first = [VariantAssigner.variant_for("test-1", f"job-{i}") for i in range(50)]
    second = [VariantAssigner.variant_for("test-1", f"job-{i}") for i in range(50)]
    assert first == second


def test_variant_for_spreads_jobs_over_both_arms():
    """Many jobs land on both variants in roughly equal shares."""
    counts = Counter(VariantAssigner.variant_for("test-1", f"job-{i}") for i in range(1000))
    assert set(counts) == {Variant.A, Variant.B}
    assert 400 < counts[Variant.A] < 600


def test_assign_without_running_test_returns_none(experiments, make_test):
    """Draft tests do not route traffic."""
    make_test()
    assert VariantAssigner(experiments).assign("toolBuilder", "job-1") is None


def test_assign_under_running_test(experiments, make_test, two_versions):
    """A running test routes the job to the version of its assigned arm."""
    v1, v2 = two_versions
    test = make_test()
    experiments.start(test.id)
    assigner = VariantAssigner(experiments)
    for i in range(20):
        assignment = assigner.assign("toolBuilder", f"job-{i}")
        assert assignment.test.id == test.id
        assert assignment.variant_id == VariantAssigner.variant_for(test.id, f"job-{i}")
        expected = v1.id if assignment.variant_id == Variant.A else v2.id
        assert assignment.prompt_version_id == expected


def test_resolver_uses_active_version_outside_experiments(versions, experiments, two_versions):
    """Without a running test the resolver returns the active version."""
    v1, _ = two_versions
    resolver = PromptResolver(versions, VariantAssigner(experiments))
    resolved = resolver.resolve("toolBuilder", "job-1")
    assert resolved.version.id == v1.id
    assert resolved.content == v1.content
    assert resolved.in_experiment is False
    assert resolved.variant_id is None


def test_resolver_tags_experiment_jobs(versions, experiments, make_test):
    """During a test the resolver returns the arm's version with test and variant ids."""
    test = make_test()
    experiments.start(test.id)
    resolver = PromptResolver(versions, VariantAssigner(experiments))
    resolved = resolver.resolve("toolBuilder", "job-7")
    assert resolved.in_experiment is True
    assert resolved.ab_test_id == test.id
    assert resolved.version.id == test.variant(resolved.variant_id).prompt_version_id
    assert resolver.resolve("toolBuilder", "job-7").variant_id == resolved.variant_id


def test_resolver_returns_to_active_after_completion(versions, experiments, make_test, two_versions):
    """Once the test stops running, jobs get the active version again."""
    v1, _ = two_versions
    test = make_test()
    experiments.start(test.id)
    experiments.cancel(test.id)
    resolved = PromptResolver(versions, VariantAssigner(experiments)).resolve("toolBuilder", "job-7")
    assert resolved.version.id == v1.id
    assert resolved.in_experiment is False
