"""Tests for audit sinks and fire-and-forget delivery."""

import logging

from src.promptlab.observability.audit import (
    AB_TEST_CREATED,
    VERSION_ACTIVATED,
    AuditEvent,
    CallbackAuditSink,
    LoggingAuditSink,
    NullAuditSink,
    notify,
)
from src.promptlab.prompts.store import PromptVersionStore


def _event() -> AuditEvent:
    return AuditEvent(event_type=AB_TEST_CREATED, entity_id="t1", prompt_name="toolBuilder", payload={"name": "x"})


def test_notify_without_sink_is_noop():
    """notify with no sink does nothing."""
    notify(None, _event())


def test_null_sink_discards():
    """NullAuditSink accepts events silently."""
    assert NullAuditSink().emit(_event()) is None


def test_callback_sink_forwards_events():
    """CallbackAuditSink passes each event to the callback."""
    received = []
    notify(CallbackAuditSink(received.append), _event())
    assert [e.entity_id for e in received] == ["t1"]
    assert received[0].created_at is not None


def test_logging_sink_writes_audit_record(caplog):
    """LoggingAuditSink logs one line per event at the configured level."""
    with caplog.at_level(logging.INFO, logger="src.promptlab.observability.audit.events"):
        notify(LoggingAuditSink(), _event())
    assert any("event=ab_test.created" in r.getMessage() for r in caplog.records)


def test_failing_sink_does_not_propagate(caplog):
    """A sink that raises is logged as a warning and swallowed."""

    def boom(event):
        raise ConnectionError("audit service down")

    with caplog.at_level(logging.WARNING):
        notify(CallbackAuditSink(boom), _event())
    assert any("audit service down" in r.getMessage() for r in caplog.records)


def test_failing_sink_does_not_break_store_write(db):
    """Version activation succeeds even when the audit sink fails."""

    def boom(event):
        raise RuntimeError("unreachable")

    store = PromptVersionStore(db, audit=CallbackAuditSink(boom), retry_delay=0.001)
    v1 = store.create_version("p", "one")
    store.create_version("p", "two")
    assert store.set_active("p", 2).is_active is True
    assert v1.is_active is True
    assert store.get_active("p").version == 2


def test_activation_event_payload(versions, audit_events):
    """Activation events carry the new and previous version numbers."""
    versions.create_version("p", "one")
    versions.create_version("p", "two")
    versions.set_active("p", 2)
    activated = [e for e in audit_events if e.event_type == VERSION_ACTIVATED]
    assert [e.payload for e in activated] == [
        {"version": 1, "previous_version": None},
        {"version": 2, "previous_version": 1},
    ]
    assert all(e.prompt_name == "p" for e in activated)
