"""Pytest fixtures and configuration."""

import pytest
from pathlib import Path

from src.promptlab.config import PromptLabSettings
from src.promptlab.db.session import Database
from src.promptlab.evaluation.quality_scores import InMemoryQualityScoreProvider
from src.promptlab.experiments.decision import DecisionEngine
from src.promptlab.experiments.store import ExperimentStore
from src.promptlab.experiments.types import ABTestConfig, PromptVariant, Variant
from src.promptlab.observability.audit import CallbackAuditSink
from src.promptlab.prompts.store import PromptVersionStore

# Project root (parent of tests/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture
def settings(tmp_path) -> PromptLabSettings:
    """Settings isolated from any local .env, pointing at a per-test database."""
    return PromptLabSettings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'promptlab.db'}",
        QUALITY_SCORES_PATH=str(tmp_path / "scores.jsonl"),
        WRITE_RETRY_INITIAL_DELAY=0.001,
    )


@pytest.fixture
def db(settings):
    database = Database(settings.DATABASE_URL)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def audit_events() -> list:
    return []


@pytest.fixture
def audit(audit_events):
    return CallbackAuditSink(audit_events.append)


@pytest.fixture
def versions(db, audit) -> PromptVersionStore:
    return PromptVersionStore(db, audit=audit, retry_delay=0.001)


@pytest.fixture
def experiments(db, audit, settings) -> ExperimentStore:
    return ExperimentStore(db, audit=audit, settings=settings)


@pytest.fixture
def scores() -> InMemoryQualityScoreProvider:
    return InMemoryQualityScoreProvider()


@pytest.fixture
def engine(experiments, versions, scores, audit) -> DecisionEngine:
    return DecisionEngine(experiments, versions, scores, audit=audit)


@pytest.fixture
def two_versions(versions):
    """Prompt 'toolBuilder' with v1 (active, control) and v2 (challenger)."""
    v1 = versions.create_version("toolBuilder", "Build a tool. v1", author="alice")
    v2 = versions.create_version("toolBuilder", "Build a better tool. v2", author="bob")
    return v1, v2


@pytest.fixture
def make_test(experiments, two_versions):
    """Factory: draft A/B test between v1 (A) and v2 (B) with the given config overrides."""
    v1, v2 = two_versions

    def _make(**config_overrides):
        values = {"min_samples_per_variant": 5, "significance_threshold": 0.05, "min_improvement": 5.0}
        values.update(config_overrides)
        return experiments.create_test(
            "toolBuilder",
            PromptVariant(Variant.A, v1.id, "Current production version"),
            PromptVariant(Variant.B, v2.id, "Shorter instructions"),
            config=ABTestConfig(**values),
            created_by="tester",
        )

    return _make
