"""Versioned prompts: append-only, content-addressed history with one active version per prompt."""

import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..db.models import PromptVersionRow, as_utc
from ..db.session import Database
from ..exceptions import ConflictError, NotFoundError
from ..observability.audit import VERSION_ACTIVATED, AuditEvent, AuditSink, notify
from ..utils.retry_utils import compute_backoff_delay, is_lock_conflict, retry_on_conflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptVersion:
    """Immutable snapshot of a prompt: name, sequential version number, content."""

    id: str
    prompt_name: str
    version: int
    content: str
    content_hash: str
    author: str
    change_summary: Optional[str]
    is_active: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: PromptVersionRow) -> "PromptVersion":
        return cls(
            id=row.id,
            prompt_name=row.prompt_name,
            version=row.version,
            content=row.content,
            content_hash=row.content_hash,
            author=row.author,
            change_summary=row.change_summary,
            is_active=row.is_active,
            created_at=as_utc(row.created_at),
        )


def content_hash(content: str) -> str:
    """SHA-256 hex digest used to deduplicate identical submissions."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class PromptVersionStore:
    """Database-backed prompt version store.

    Versions are numbered 1..N per prompt with no gaps. Identical content is
    never stored twice for the same prompt. Exactly one version per initialized
    prompt is active; set_active swaps it inside a single transaction.
    """

    def __init__(
        self,
        db: Database,
        audit: Optional[AuditSink] = None,
        max_attempts: int = 5,
        retry_delay: float = 0.05,
    ):
        self._db = db
        self._audit = audit
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    # --- writes ---

    def create_version(
        self,
        prompt_name: str,
        content: str,
        author: str = "system",
        change_summary: Optional[str] = None,
    ) -> PromptVersion:
        """Store content as the next version of prompt_name, or return the version that already has it.

        The first version of a prompt is activated immediately so the pipeline
        always has something to run. Later versions start inactive.
        """
        digest = content_hash(content)
        for attempt in range(self._max_attempts):
            try:
                with self._db.transaction() as session:
                    existing = self._find_by_hash(session, prompt_name, digest)
                    if existing is not None:
                        logger.info(
                            "Duplicate content for %s, returning existing version %s",
                            prompt_name,
                            existing.version,
                        )
                        return PromptVersion.from_row(existing)
                    latest = session.scalar(
                        select(func.max(PromptVersionRow.version)).where(PromptVersionRow.prompt_name == prompt_name)
                    )
                    next_version = (latest or 0) + 1
                    row = PromptVersionRow(
                        prompt_name=prompt_name,
                        version=next_version,
                        content=content,
                        content_hash=digest,
                        author=author or "system",
                        change_summary=change_summary,
                        is_active=next_version == 1,
                    )
                    session.add(row)
                    session.flush()
                    created = PromptVersion.from_row(row)
            except IntegrityError as e:
                # A concurrent writer inserted first: same content (converge on it)
                # or the same version number (take the next one).
                with self._db.transaction() as session:
                    existing = self._find_by_hash(session, prompt_name, digest)
                    if existing is not None:
                        logger.info("Concurrent duplicate for %s resolved to version %s", prompt_name, existing.version)
                        return PromptVersion.from_row(existing)
                logger.debug("Version number race on %s (attempt %s): %s", prompt_name, attempt + 1, e)
                self._sleep(attempt)
                continue
            except OperationalError as e:
                if not is_lock_conflict(e):
                    raise
                logger.debug("Lock conflict creating version for %s (attempt %s): %s", prompt_name, attempt + 1, e)
                self._sleep(attempt)
                continue
            logger.info("Created version %s for %s", created.version, prompt_name)
            if created.is_active:
                self._notify_activated(created, previous=None)
            return created
        raise ConflictError(f"Could not allocate a version number for '{prompt_name}' after {self._max_attempts} attempts")

    def set_active(self, prompt_name: str, version_number: int) -> PromptVersion:
        """Make version_number the only active version of prompt_name.

        Deactivation of the others and activation of the target commit together
        or not at all. Raises NotFoundError if the version does not exist.
        """

        def _swap() -> tuple[PromptVersion, Optional[int]]:
            with self._db.transaction() as session:
                target = session.scalars(
                    select(PromptVersionRow)
                    .where(
                        PromptVersionRow.prompt_name == prompt_name,
                        PromptVersionRow.version == version_number,
                    )
                    .with_for_update()
                ).first()
                if target is None:
                    raise NotFoundError("prompt_version", f"{prompt_name}@{version_number}")
                previous = session.scalar(
                    select(PromptVersionRow.version).where(
                        PromptVersionRow.prompt_name == prompt_name,
                        PromptVersionRow.is_active.is_(True),
                    )
                )
                self._deactivate_others(session, prompt_name, version_number)
                self._activate(session, prompt_name, version_number)
                session.refresh(target)
                return PromptVersion.from_row(target), previous

        activated, previous = retry_on_conflict(
            _swap,
            retry_on=(IntegrityError, OperationalError),
            max_attempts=self._max_attempts,
            initial_delay=self._retry_delay,
            operation=f"set_active({prompt_name}, {version_number})",
        )
        if previous != version_number:
            logger.info("Activated version %s for %s (was %s)", version_number, prompt_name, previous)
            self._notify_activated(activated, previous=previous)
        return activated

    def _deactivate_others(self, session: Session, prompt_name: str, version_number: int) -> None:
        session.execute(
            update(PromptVersionRow)
            .where(
                PromptVersionRow.prompt_name == prompt_name,
                PromptVersionRow.version != version_number,
                PromptVersionRow.is_active.is_(True),
            )
            .values(is_active=False)
        )

    def _activate(self, session: Session, prompt_name: str, version_number: int) -> None:
        session.execute(
            update(PromptVersionRow)
            .where(
                PromptVersionRow.prompt_name == prompt_name,
                PromptVersionRow.version == version_number,
            )
            .values(is_active=True)
        )

    # --- reads ---

    def get_active(self, prompt_name: str) -> PromptVersion:
        """Active version of prompt_name. Raises NotFoundError if the prompt was never initialized."""
        with self._db.transaction() as session:
            row = session.scalars(
                select(PromptVersionRow).where(
                    PromptVersionRow.prompt_name == prompt_name,
                    PromptVersionRow.is_active.is_(True),
                )
            ).first()
            if row is None:
                raise NotFoundError("prompt", prompt_name, f"No active version for prompt '{prompt_name}'")
            return PromptVersion.from_row(row)

    def get_active_content(self, prompt_name: str) -> str:
        return self.get_active(prompt_name).content

    def get_by_number(self, prompt_name: str, version_number: int) -> PromptVersion:
        with self._db.transaction() as session:
            row = session.scalars(
                select(PromptVersionRow).where(
                    PromptVersionRow.prompt_name == prompt_name,
                    PromptVersionRow.version == version_number,
                )
            ).first()
            if row is None:
                raise NotFoundError("prompt_version", f"{prompt_name}@{version_number}")
            return PromptVersion.from_row(row)

    def get_by_id(self, version_id: str) -> PromptVersion:
        with self._db.transaction() as session:
            row = session.get(PromptVersionRow, version_id)
            if row is None:
                raise NotFoundError("prompt_version", version_id)
            return PromptVersion.from_row(row)

    def get_history(self, prompt_name: str) -> list[PromptVersion]:
        """All versions of prompt_name, newest first. Empty if the prompt is unknown."""
        with self._db.transaction() as session:
            rows = session.scalars(
                select(PromptVersionRow)
                .where(PromptVersionRow.prompt_name == prompt_name)
                .order_by(PromptVersionRow.version.desc())
            ).all()
            return [PromptVersion.from_row(r) for r in rows]

    def list_prompt_names(self) -> list[str]:
        with self._db.transaction() as session:
            names = session.scalars(select(PromptVersionRow.prompt_name).distinct()).all()
            return sorted(names)

    # --- helpers ---

    @staticmethod
    def _find_by_hash(session: Session, prompt_name: str, digest: str) -> Optional[PromptVersionRow]:
        return session.scalars(
            select(PromptVersionRow).where(
                PromptVersionRow.prompt_name == prompt_name,
                PromptVersionRow.content_hash == digest,
            )
        ).first()

    def _sleep(self, attempt: int) -> None:
        time.sleep(compute_backoff_delay(attempt, initial_delay=self._retry_delay))

    def _notify_activated(self, version: PromptVersion, previous: Optional[int]) -> None:
        notify(
            self._audit,
            AuditEvent(
                event_type=VERSION_ACTIVATED,
                entity_id=version.id,
                prompt_name=version.prompt_name,
                payload={"version": version.version, "previous_version": previous},
            ),
        )
