"""Experiment store: A/B test lifecycle and the append-only per-variant result log."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import PromptLabSettings, get_settings
from ..db.models import ABResultRow, ABTestRow, PromptVersionRow, as_utc, utcnow
from ..db.session import Database
from ..exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..observability.audit import AB_TEST_CREATED, AuditEvent, AuditSink, notify
from .types import (
    TRANSITIONS,
    ABResult,
    ABTest,
    ABTestConfig,
    ABTestResults,
    ABTestStatus,
    PromptVariant,
    Variant,
    VariantCounts,
)

logger = logging.getLogger(__name__)


def _to_test(row: ABTestRow) -> ABTest:
    return ABTest(
        id=row.id,
        name=row.name,
        prompt_name=row.prompt_name,
        variant_a=PromptVariant.from_dict(row.variant_a),
        variant_b=PromptVariant.from_dict(row.variant_b),
        status=ABTestStatus(row.status),
        config=ABTestConfig.from_dict(row.config),
        created_by=row.created_by,
        created_at=as_utc(row.created_at),
        results=ABTestResults.from_dict(row.results) if row.results else None,
        started_at=as_utc(row.started_at),
        completed_at=as_utc(row.completed_at),
    )


def _to_result(row: ABResultRow) -> ABResult:
    return ABResult(
        id=row.id,
        ab_test_id=row.ab_test_id,
        variant_id=Variant(row.variant_id),
        job_id=row.job_id,
        quality_score_id=row.quality_score_id,
        created_at=as_utc(row.created_at),
    )


class ExperimentStore:
    """CRUD and lifecycle transitions for A/B tests, plus result recording.

    Status changes go through one transaction each. The "one running test per
    prompt" rule is checked inside the start transaction and backed by a
    partial unique index, so two concurrent starts cannot both succeed.
    """

    def __init__(
        self,
        db: Database,
        audit: Optional[AuditSink] = None,
        settings: Optional[PromptLabSettings] = None,
    ):
        self._db = db
        self._audit = audit
        self._settings = settings or get_settings()

    # --- tests ---

    def create_test(
        self,
        prompt_name: str,
        variant_a: PromptVariant,
        variant_b: PromptVariant,
        config: Optional[ABTestConfig] = None,
        created_by: str = "operator",
        name: Optional[str] = None,
    ) -> ABTest:
        """Create a draft test. Both variants must be distinct versions of prompt_name."""
        config = config or ABTestConfig.from_settings(self._settings)
        if variant_a.variant_id != Variant.A or variant_b.variant_id != Variant.B:
            raise ValidationError("variant_id", "variant_a must be 'A' and variant_b must be 'B'")
        if variant_a.prompt_version_id == variant_b.prompt_version_id:
            raise ValidationError("prompt_version_id", "variants must reference different prompt versions")

        with self._db.transaction() as session:
            for variant in (variant_a, variant_b):
                version = session.get(PromptVersionRow, variant.prompt_version_id)
                if version is None:
                    raise NotFoundError("prompt_version", variant.prompt_version_id)
                if version.prompt_name != prompt_name:
                    raise ValidationError(
                        "prompt_version_id",
                        f"version {variant.prompt_version_id} belongs to '{version.prompt_name}', not '{prompt_name}'",
                    )
            row = ABTestRow(
                name=name or f"{prompt_name} experiment",
                prompt_name=prompt_name,
                variant_a=variant_a.to_dict(),
                variant_b=variant_b.to_dict(),
                status=ABTestStatus.DRAFT.value,
                config=config.to_dict(),
                created_by=created_by,
            )
            session.add(row)
            session.flush()
            test = _to_test(row)

        logger.info("Created A/B test %s (%s) for %s", test.id, test.name, prompt_name)
        notify(
            self._audit,
            AuditEvent(
                event_type=AB_TEST_CREATED,
                entity_id=test.id,
                prompt_name=prompt_name,
                payload={
                    "name": test.name,
                    "variant_a": variant_a.prompt_version_id,
                    "variant_b": variant_b.prompt_version_id,
                    "created_by": created_by,
                },
            ),
        )
        return test

    def get_test(self, test_id: str) -> ABTest:
        with self._db.transaction() as session:
            return _to_test(self._load(session, test_id))

    def list_tests(
        self,
        status: Optional[ABTestStatus] = None,
        prompt_name: Optional[str] = None,
        limit: int = 50,
    ) -> list[ABTest]:
        """Tests newest first, optionally filtered by status and prompt."""
        stmt = select(ABTestRow)
        if status is not None:
            stmt = stmt.where(ABTestRow.status == ABTestStatus(status).value)
        if prompt_name is not None:
            stmt = stmt.where(ABTestRow.prompt_name == prompt_name)
        stmt = stmt.order_by(ABTestRow.created_at.desc()).limit(limit)
        with self._db.transaction() as session:
            return [_to_test(r) for r in session.scalars(stmt).all()]

    def get_running_test(self, prompt_name: str) -> Optional[ABTest]:
        with self._db.transaction() as session:
            row = self._running_row(session, prompt_name)
            return _to_test(row) if row is not None else None

    def has_running_test(self, prompt_name: str) -> bool:
        return self.get_running_test(prompt_name) is not None

    # --- lifecycle ---

    def start(self, test_id: str) -> ABTest:
        """Move a draft or paused test to running. Starting a running test is a no-op."""
        try:
            with self._db.transaction() as session:
                row = self._load(session, test_id, for_update=True)
                if row.status == ABTestStatus.RUNNING.value:
                    return _to_test(row)
                self._check_transition(row, "start")
                other = self._running_row(session, row.prompt_name)
                if other is not None and other.id != row.id:
                    raise ConflictError(
                        f"A/B test '{other.id}' is already running for prompt '{row.prompt_name}'"
                    )
                row.status = ABTestStatus.RUNNING.value
                if row.started_at is None:
                    row.started_at = utcnow()
                session.flush()
                test = _to_test(row)
        except IntegrityError as e:
            raise ConflictError(
                f"Another A/B test started concurrently for the prompt of test '{test_id}'"
            ) from e
        logger.info("Started A/B test %s for %s", test_id, test.prompt_name)
        return test

    def pause(self, test_id: str) -> ABTest:
        return self._transition(test_id, "pause")

    def cancel(self, test_id: str) -> ABTest:
        """Cancel immediately. Results already recorded are kept."""
        return self._transition(test_id, "cancel", stamp_completed=True)

    def complete(self, test_id: str, results: ABTestResults) -> ABTest:
        """Finish a running test and freeze its results snapshot."""
        return self._transition(test_id, "complete", stamp_completed=True, results=results)

    def save_results(self, test_id: str, results: ABTestResults) -> ABTest:
        """Overwrite the interim results snapshot of a non-terminal test."""
        with self._db.transaction() as session:
            row = self._load(session, test_id, for_update=True)
            if ABTestStatus(row.status).is_terminal:
                raise InvalidStateError(test_id, row.status, "save_results")
            row.results = results.to_dict()
            session.flush()
            return _to_test(row)

    # --- results ---

    def record_result(
        self,
        test_id: str,
        variant_id: Variant | str,
        job_id: str,
        quality_score_id: str,
    ) -> ABResult:
        """Append one job's outcome. Idempotent on (test_id, job_id): a repeat returns the stored result."""
        try:
            variant = Variant(variant_id)
        except ValueError as e:
            raise ValidationError("variant_id", f"unknown variant '{variant_id}'") from e
        try:
            with self._db.transaction() as session:
                test = self._load(session, test_id, for_update=True)
                if test.status != ABTestStatus.RUNNING.value:
                    raise InvalidStateError(test_id, test.status, "record_result")
                existing = self._find_result(session, test_id, job_id)
                if existing is not None:
                    logger.debug("Result for job %s already recorded in test %s", job_id, test_id)
                    return _to_result(existing)
                row = ABResultRow(
                    ab_test_id=test_id,
                    variant_id=variant.value,
                    job_id=job_id,
                    quality_score_id=quality_score_id,
                )
                session.add(row)
                session.flush()
                return _to_result(row)
        except IntegrityError:
            # concurrent duplicate for the same job: the stored row wins
            with self._db.transaction() as session:
                existing = self._find_result(session, test_id, job_id)
                if existing is None:
                    raise
                logger.debug("Concurrent duplicate result for job %s in test %s", job_id, test_id)
                return _to_result(existing)

    def count_by_variant(self, test_id: str) -> VariantCounts:
        with self._db.transaction() as session:
            self._load(session, test_id)
            rows = session.execute(
                select(ABResultRow.variant_id, func.count())
                .where(ABResultRow.ab_test_id == test_id)
                .group_by(ABResultRow.variant_id)
            ).all()
        counts = {variant: n for variant, n in rows}
        return VariantCounts(a=counts.get(Variant.A.value, 0), b=counts.get(Variant.B.value, 0))

    def list_results(self, test_id: str, variant_id: Optional[Variant | str] = None) -> list[ABResult]:
        """Results of a test, newest first, optionally for one variant."""
        stmt = select(ABResultRow).where(ABResultRow.ab_test_id == test_id)
        if variant_id is not None:
            stmt = stmt.where(ABResultRow.variant_id == Variant(variant_id).value)
        stmt = stmt.order_by(ABResultRow.created_at.desc(), ABResultRow.id)
        with self._db.transaction() as session:
            self._load(session, test_id)
            return [_to_result(r) for r in session.scalars(stmt).all()]

    # --- helpers ---

    def _transition(
        self,
        test_id: str,
        action: str,
        stamp_completed: bool = False,
        results: Optional[ABTestResults] = None,
    ) -> ABTest:
        with self._db.transaction() as session:
            row = self._load(session, test_id, for_update=True)
            target = self._check_transition(row, action)
            row.status = target.value
            if stamp_completed:
                row.completed_at = utcnow()
            if results is not None:
                row.results = results.to_dict()
            session.flush()
            test = _to_test(row)
        logger.info("A/B test %s: %s -> %s", test_id, action, test.status.value)
        return test

    @staticmethod
    def _check_transition(row: ABTestRow, action: str) -> ABTestStatus:
        allowed, target = TRANSITIONS[action]
        if ABTestStatus(row.status) not in allowed:
            raise InvalidStateError(row.id, row.status, action)
        return target

    @staticmethod
    def _load(session: Session, test_id: str, for_update: bool = False) -> ABTestRow:
        stmt = select(ABTestRow).where(ABTestRow.id == test_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = session.scalars(stmt).first()
        if row is None:
            raise NotFoundError("ab_test", test_id)
        return row

    @staticmethod
    def _running_row(session: Session, prompt_name: str) -> Optional[ABTestRow]:
        return session.scalars(
            select(ABTestRow).where(
                ABTestRow.prompt_name == prompt_name,
                ABTestRow.status == ABTestStatus.RUNNING.value,
            )
        ).first()

    @staticmethod
    def _find_result(session: Session, test_id: str, job_id: str) -> Optional[ABResultRow]:
        return session.scalars(
            select(ABResultRow).where(ABResultRow.ab_test_id == test_id, ABResultRow.job_id == job_id)
        ).first()
