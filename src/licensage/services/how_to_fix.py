"""Remediation text for issues and rule violations.

Texts are configured as an ordered YAML list; the first entry whose
patterns match an issue wins::

    how_to_fix:
      - message: "Timeout after \\d+ seconds while scanning file"
        source: ScanCode
        text: "Manually verify that the file does not contain any license information."
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Iterable, Pattern

from ..domain.models import Issue, RuleViolation, Severity
from .documents import DocumentError, load_yaml

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class HowToFixPattern:
    message: Pattern[str]
    text: str
    source: Pattern[str] | None = None
    severity: Severity | None = None

    def matches(self, issue: Issue) -> bool:
        if self.severity is not None and issue.severity is not self.severity:
            return False
        if self.source is not None and not self.source.search(issue.source):
            return False
        return self.message.search(issue.message) is not None


class HowToFixTextProvider:
    """Resolves the first configured remediation text matching an issue."""

    EMPTY: "HowToFixTextProvider"

    def __init__(self, patterns: Iterable[HowToFixPattern] = ()) -> None:
        self.patterns = tuple(patterns)

    @classmethod
    def from_yaml(cls, text: str | None) -> "HowToFixTextProvider":
        document = load_yaml(text, "how_to_fix_v1", {"how_to_fix": []})
        return cls(_pattern(entry) for entry in document.get("how_to_fix") or [])

    def get_how_to_fix_text(self, issue: Issue) -> str:
        """Return the text of the first matching pattern, or an empty string."""

        for pattern in self.patterns:
            if pattern.matches(issue):
                return pattern.text
        return ""


HowToFixTextProvider.EMPTY = HowToFixTextProvider()


def _compile(expression: str) -> Pattern[str]:
    try:
        return re.compile(expression)
    except re.error as exc:
        raise DocumentError(f"Invalid pattern '{expression}': {exc}") from exc


def _pattern(entry: dict[str, Any]) -> HowToFixPattern:
    return HowToFixPattern(
        message=_compile(entry["message"]),
        text=entry["text"],
        source=_compile(entry["source"]) if entry.get("source") else None,
        severity=Severity(entry["severity"]) if entry.get("severity") else None,
    )


def annotate(
    violations: Iterable[RuleViolation], provider: HowToFixTextProvider
) -> tuple[RuleViolation, ...]:
    """Fill in remediation text for violations whose rule did not provide one."""

    annotated: list[RuleViolation] = []
    for violation in violations:
        if not violation.how_to_fix:
            text = provider.get_how_to_fix_text(violation)
            if text:
                _LOG.debug("Resolved how-to-fix text for rule %s.", violation.rule)
                violation = replace(violation, how_to_fix=text)
        annotated.append(violation)
    return tuple(annotated)
