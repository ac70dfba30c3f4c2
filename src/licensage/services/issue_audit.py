"""Audit trail for operational issues recorded anywhere in the core.

Every backend failure, skipped finding and failed rule is logged, kept in an
in-memory trail for inspection and forwarded to the persistent audit log.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping, MutableSequence, Protocol

from ..domain.models import Issue, Severity
from .audit_log import append_audit_event

_LOG = logging.getLogger(__name__)
EVENT_NAME = "LICENSAGE_ISSUE_RECORDED"


class IssueAuditSink(Protocol):
    """Protocol describing an issue audit sink."""

    def emit(self, entry: dict[str, object]) -> None:  # pragma: no cover - trivial
        ...


@dataclass
class InMemoryIssueAuditSink:
    """Thread-safe trail of recorded entries."""

    events: MutableSequence[dict[str, object]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def emit(self, entry: dict[str, object]) -> None:
        with self._lock:
            self.events.append(dict(entry))

    def snapshot(self) -> list[dict[str, object]]:
        with self._lock:
            return list(self.events)

    def clear(self) -> None:
        with self._lock:
            self.events.clear()


class AuditLogIssueSink:
    """Sink that writes entries to the persistent audit log."""

    __slots__ = ()

    def emit(self, entry: dict[str, object]) -> None:
        append_audit_event(entry)


_TRAIL = InMemoryIssueAuditSink()
_DEFAULT_PRODUCTION_SINK: IssueAuditSink = AuditLogIssueSink()
_PRODUCTION_SINK: IssueAuditSink | None = _DEFAULT_PRODUCTION_SINK


def set_production_issue_audit_sink(sink: IssueAuditSink | None) -> None:
    """Override the persistent sink; ``None`` keeps events in memory only."""

    global _PRODUCTION_SINK
    _PRODUCTION_SINK = sink


def reset_production_issue_audit_sink() -> None:
    set_production_issue_audit_sink(_DEFAULT_PRODUCTION_SINK)


def record_issue_event(
    reason: str,
    issue: Issue,
    context: Mapping[str, object] | None = None,
) -> None:
    """Record an operational issue under a reason code and log it."""

    entry = {
        "event": EVENT_NAME,
        "reason": reason,
        "source": issue.source,
        "severity": issue.severity.value,
        "message": issue.message,
        "context": dict(context or {}),
    }
    level = logging.WARNING if issue.severity is Severity.ERROR else logging.INFO
    _LOG.log(level, "%s issue from %s: %s", reason, issue.source, issue.message)
    _TRAIL.emit(entry)
    if _PRODUCTION_SINK is not None:
        _PRODUCTION_SINK.emit(entry)


def get_issue_events(reason: str | None = None) -> list[dict[str, object]]:
    """Return a snapshot of recorded events, optionally for one reason code."""

    events = _TRAIL.snapshot()
    if reason is None:
        return events
    return [event for event in events if event["reason"] == reason]


def count_issue_events() -> dict[str, int]:
    """Number of recorded events per reason code."""

    return dict(Counter(str(event["reason"]) for event in _TRAIL.snapshot()))


def clear_issue_events() -> None:
    """Clear the recorded issue events (testing aid)."""

    _TRAIL.clear()
