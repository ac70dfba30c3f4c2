"""Reason codes classifying operational failures for audit events."""

from __future__ import annotations

BACKEND_FAILURE = "backend_failure"
"""A scanner backend failed, timed out or produced an unparseable result."""

MALFORMED_FINDING = "malformed_finding"
"""A single finding in an otherwise valid raw result was skipped."""

RULE_SYNTAX_ERROR = "rule_syntax_error"
"""A ruleset could not be parsed or resolved against the known capabilities."""

RULE_EXECUTION_FAILURE = "rule_execution_failure"
"""A rule raised while being evaluated; its violations were discarded."""

INVALID_DOCUMENT = "invalid_document"
"""A structured configuration document failed schema validation."""
