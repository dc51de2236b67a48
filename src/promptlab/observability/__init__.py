"""Observability: audit notifications and logging setup."""

from .audit import (
    AB_TEST_COMPLETED,
    AB_TEST_CREATED,
    VERSION_ACTIVATED,
    AuditEvent,
    AuditSink,
    CallbackAuditSink,
    LoggingAuditSink,
    NullAuditSink,
    notify,
)
from .log_config import configure_logging, level_from_name

__all__ = [
    "AuditEvent",
    "AuditSink",
    "CallbackAuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "notify",
    "VERSION_ACTIVATED",
    "AB_TEST_CREATED",
    "AB_TEST_COMPLETED",
    "configure_logging",
    "level_from_name",
]
