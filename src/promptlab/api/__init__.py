"""Dependency providers for hosting promptlab inside a FastAPI application."""

from .deps import (
    get_audit_sink,
    get_database,
    get_decision_engine,
    get_experiments,
    get_prompt_resolver,
    get_prompt_versions,
    get_quality_scores,
)

__all__ = [
    "get_database",
    "get_audit_sink",
    "get_quality_scores",
    "get_prompt_versions",
    "get_experiments",
    "get_prompt_resolver",
    "get_decision_engine",
]
