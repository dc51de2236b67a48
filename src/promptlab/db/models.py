"""SQLAlchemy tables: prompt versions, A/B tests, A/B results.

Cross-row invariants are backed by the schema: partial unique indexes allow at
most one active version per prompt and at most one running test per prompt.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends that drop tzinfo (SQLite)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class PromptVersionRow(Base):
    """Row from the prompt_versions table. Only is_active changes after insert."""

    __tablename__ = "prompt_versions"
    __table_args__ = (
        UniqueConstraint("prompt_name", "version", name="uq_prompt_versions_name_version"),
        UniqueConstraint("prompt_name", "content_hash", name="uq_prompt_versions_name_hash"),
        Index("ix_prompt_versions_name_active", "prompt_name", "is_active"),
        Index(
            "uq_prompt_versions_one_active",
            "prompt_name",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    prompt_name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    change_summary: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<PromptVersionRow {self.prompt_name} v{self.version} active={self.is_active}>"


class ABTestRow(Base):
    """Row from the ab_tests table. Variants, config and results are JSON documents."""

    __tablename__ = "ab_tests"
    __table_args__ = (
        Index("ix_ab_tests_status", "status"),
        Index("ix_ab_tests_prompt_name", "prompt_name"),
        Index("ix_ab_tests_created_at", "created_at"),
        Index("ix_ab_tests_prompt_status", "prompt_name", "status"),
        Index(
            "uq_ab_tests_one_running",
            "prompt_name",
            unique=True,
            sqlite_where=text("status = 'running'"),
            postgresql_where=text("status = 'running'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt_name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant_a: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    variant_b: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    results: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<ABTestRow {self.name} ({self.status})>"


class ABResultRow(Base):
    """Row from the ab_results table. Append-only; kept when the test is cancelled."""

    __tablename__ = "ab_results"
    __table_args__ = (
        UniqueConstraint("ab_test_id", "job_id", name="uq_ab_results_test_job"),
        Index("ix_ab_results_test_variant", "ab_test_id", "variant_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    ab_test_id: Mapped[str] = mapped_column(String(32), ForeignKey("ab_tests.id"), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(1), nullable=False)
    job_id: Mapped[str] = mapped_column(String(255), nullable=False)
    quality_score_id: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
