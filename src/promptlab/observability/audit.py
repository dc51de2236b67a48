"""Audit notifications: version activation, A/B test creation and completion.

Delivery is fire-and-forget. A failing sink is logged and never breaks the
store operation that produced the event.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

VERSION_ACTIVATED = "prompt_version.activated"
AB_TEST_CREATED = "ab_test.created"
AB_TEST_COMPLETED = "ab_test.completed"


@dataclass
class AuditEvent:
    """Single audit record."""

    event_type: str  # prompt_version.activated | ab_test.created | ab_test.completed
    entity_id: str
    prompt_name: str
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(ABC):
    """Receives audit events."""

    @abstractmethod
    def emit(self, event: AuditEvent) -> None:
        ...


class NullAuditSink(AuditSink):
    """Discards events (audit disabled)."""

    def emit(self, event: AuditEvent) -> None:
        return None


class LoggingAuditSink(AuditSink):
    """Writes each event to a dedicated audit logger."""

    def __init__(self, log_level: int = logging.INFO):
        self._log_level = log_level
        self._logger = logging.getLogger(f"{__name__}.events")

    def emit(self, event: AuditEvent) -> None:
        self._logger.log(
            self._log_level,
            "audit | event=%s prompt=%s entity=%s payload=%s",
            event.event_type,
            event.prompt_name,
            event.entity_id,
            event.payload,
        )


class CallbackAuditSink(AuditSink):
    """Forwards events to a callable (e.g. the external audit service client)."""

    def __init__(self, callback: Callable[[AuditEvent], None]):
        self._callback = callback

    def emit(self, event: AuditEvent) -> None:
        self._callback(event)


def notify(sink: Optional[AuditSink], event: AuditEvent) -> None:
    """Deliver event to sink without letting a sink failure propagate."""
    if sink is None:
        return
    try:
        sink.emit(event)
    except Exception as e:
        logger.warning("Audit sink failed for %s (%s): %s", event.event_type, event.entity_id, e)
