"""Tests for the FastAPI dependency providers."""

import pytest

from src.promptlab.api import deps
from src.promptlab.config import PromptLabSettings
from src.promptlab.db.session import Database
from src.promptlab.evaluation.quality_scores import JsonlQualityScoreProvider
from src.promptlab.exceptions import ConfigurationError
from src.promptlab.experiments.assignment import PromptResolver
from src.promptlab.experiments.decision import DecisionEngine
from src.promptlab.observability.audit import LoggingAuditSink, NullAuditSink


@pytest.fixture(autouse=True)
def _clear_database_cache():
    deps._get_database_cached.cache_clear()
    yield
    deps._get_database_cached.cache_clear()


def test_get_database_is_shared_per_url(settings):
    """The same settings yield the same Database with its schema created."""
    first = deps.get_database(settings)
    assert isinstance(first, Database)
    assert deps.get_database(settings) is first


def test_database_requires_url():
    """An empty DATABASE_URL is a configuration error."""
    with pytest.raises(ConfigurationError):
        Database("")


def test_audit_sink_follows_settings(settings):
    """ENABLE_AUDIT_LOG selects the logging sink or the no-op sink."""
    assert isinstance(deps.get_audit_sink(settings), LoggingAuditSink)
    disabled = settings.model_copy(update={"ENABLE_AUDIT_LOG": False})
    assert isinstance(deps.get_audit_sink(disabled), NullAuditSink)


def test_provider_chain_builds_working_components(settings):
    """Providers wired by hand give a resolver and engine over one database."""
    db = deps.get_database(settings)
    audit = deps.get_audit_sink(settings)
    versions = deps.get_prompt_versions(settings, db, audit)
    experiments = deps.get_experiments(settings, db, audit)
    quality = deps.get_quality_scores(settings)
    assert isinstance(quality, JsonlQualityScoreProvider)

    resolver = deps.get_prompt_resolver(versions, experiments)
    engine = deps.get_decision_engine(experiments, versions, quality, audit)
    assert isinstance(resolver, PromptResolver)
    assert isinstance(engine, DecisionEngine)

    versions.create_version("secretary", "You are the secretary.")
    assert resolver.resolve("secretary", "job-1").content == "You are the secretary."


def test_settings_isolated_from_env_file(settings):
    """The test settings fixture points at a temporary database."""
    assert isinstance(settings, PromptLabSettings)
    assert settings.DATABASE_URL.startswith("sqlite:///")
    assert settings.DATABASE_URL.endswith("promptlab.db")
