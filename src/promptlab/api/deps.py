"""FastAPI dependencies for promptlab components.

A host application (the orchestrator's API) injects these; each provider is
built from settings and cached per configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from ..config import PromptLabSettings, get_settings_dep
from ..db.session import Database
from ..evaluation.quality_scores import JsonlQualityScoreProvider, QualityScoreProvider
from ..experiments.assignment import PromptResolver, VariantAssigner
from ..experiments.decision import DecisionEngine
from ..experiments.store import ExperimentStore
from ..observability.audit import AuditSink, LoggingAuditSink, NullAuditSink
from ..observability.log_config import level_from_name
from ..prompts.store import PromptVersionStore


@lru_cache
def _get_database_cached(url: str, echo: bool, busy_timeout: float) -> Database:
    db = Database(url, echo=echo, busy_timeout=busy_timeout)
    db.create_all()
    return db


def get_database(
    settings: Annotated[PromptLabSettings, Depends(get_settings_dep)],
) -> Database:
    """Dependency that returns the shared Database (schema created on first use)."""
    return _get_database_cached(settings.DATABASE_URL, settings.DB_ECHO, settings.DB_BUSY_TIMEOUT)


def get_audit_sink(
    settings: Annotated[PromptLabSettings, Depends(get_settings_dep)],
) -> AuditSink:
    """Dependency that returns the audit sink (logging when ENABLE_AUDIT_LOG, else a no-op)."""
    if not settings.ENABLE_AUDIT_LOG:
        return NullAuditSink()
    return LoggingAuditSink(log_level=level_from_name(settings.AUDIT_LOG_LEVEL))


def get_quality_scores(
    settings: Annotated[PromptLabSettings, Depends(get_settings_dep)],
) -> QualityScoreProvider:
    """Dependency that returns the file-based quality score provider."""
    return JsonlQualityScoreProvider(path=settings.QUALITY_SCORES_PATH)


def get_prompt_versions(
    settings: Annotated[PromptLabSettings, Depends(get_settings_dep)],
    db: Annotated[Database, Depends(get_database)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> PromptVersionStore:
    return PromptVersionStore(
        db,
        audit=audit,
        max_attempts=settings.WRITE_RETRY_ATTEMPTS,
        retry_delay=settings.WRITE_RETRY_INITIAL_DELAY,
    )


def get_experiments(
    settings: Annotated[PromptLabSettings, Depends(get_settings_dep)],
    db: Annotated[Database, Depends(get_database)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> ExperimentStore:
    return ExperimentStore(db, audit=audit, settings=settings)


def get_prompt_resolver(
    versions: Annotated[PromptVersionStore, Depends(get_prompt_versions)],
    experiments: Annotated[ExperimentStore, Depends(get_experiments)],
) -> PromptResolver:
    """Dependency the orchestrator uses before dispatching a generation job."""
    return PromptResolver(versions, VariantAssigner(experiments))


def get_decision_engine(
    experiments: Annotated[ExperimentStore, Depends(get_experiments)],
    versions: Annotated[PromptVersionStore, Depends(get_prompt_versions)],
    quality_scores: Annotated[QualityScoreProvider, Depends(get_quality_scores)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
) -> DecisionEngine:
    return DecisionEngine(experiments, versions, quality_scores, audit=audit)
