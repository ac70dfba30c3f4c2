"""Core finding, issue and scan result entities without I/O."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import total_ordering
from typing import Any, Iterable, Mapping

from .identifier import Identifier

LicenseFindingsMap = dict[str, frozenset[str]]
"""License expression mapped to the copyright statements seen under it."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, order=True)
class Location:
    """A line range inside a file, relative to the scanned root."""

    path: str
    start_line: int
    end_line: int

    def to_mapping(self) -> dict[str, object]:
        return {
            "path": self.path,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }


def location_set_key(locations: Iterable[Location]) -> tuple[Location, ...]:
    """Comparison key for a set of locations."""

    return tuple(sorted(locations))


@total_ordering
@dataclass(frozen=True)
class CopyrightFinding:
    """A copyright statement and every location it was found at."""

    statement: str
    locations: frozenset[Location] = frozenset()

    def sort_key(self) -> tuple[str, tuple[Location, ...]]:
        return (self.statement, location_set_key(self.locations))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, CopyrightFinding):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def to_mapping(self) -> dict[str, object]:
        return {
            "statement": self.statement,
            "locations": [loc.to_mapping() for loc in sorted(self.locations)],
        }


def copyright_set_key(
    copyrights: Iterable[CopyrightFinding],
) -> tuple[tuple[str, tuple[Location, ...]], ...]:
    """Comparison key for a set of copyright findings."""

    return tuple(sorted(finding.sort_key() for finding in copyrights))


@total_ordering
@dataclass(frozen=True)
class LicenseFinding:
    """A single license expression with its locations and copyrights.

    ``license`` never holds a compound expression; compound expressions are
    split with :func:`licensage.domain.spdx.decompose` before a finding is
    built.
    """

    license: str
    locations: frozenset[Location] = frozenset()
    copyrights: frozenset[CopyrightFinding] = frozenset()

    def sort_key(self) -> tuple[object, ...]:
        return license_finding_key(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LicenseFinding):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def to_mapping(self) -> dict[str, object]:
        return {
            "license": self.license,
            "locations": [loc.to_mapping() for loc in sorted(self.locations)],
            "copyrights": [c.to_mapping() for c in sorted(self.copyrights)],
        }


def license_finding_key(finding: LicenseFinding) -> tuple[object, ...]:
    """Order by license text, then locations, then copyrights."""

    return (
        finding.license,
        location_set_key(finding.locations),
        copyright_set_key(finding.copyrights),
    )


def to_findings_map(findings: Iterable[LicenseFinding]) -> LicenseFindingsMap:
    """Denormalize license findings into a sorted license -> statements map."""

    collected: dict[str, set[str]] = {}
    for finding in findings:
        statements = collected.setdefault(finding.license, set())
        statements.update(c.statement for c in finding.copyrights)
    return {license: frozenset(collected[license]) for license in sorted(collected)}


@dataclass(frozen=True)
class CopyrightGarbage:
    """Exact copyright statements known to be false positives."""

    items: frozenset[str] = frozenset()

    def __contains__(self, statement: object) -> bool:
        return statement in self.items


class Severity(Enum):
    """Severity of an operational issue or a rule violation."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    HINT = "HINT"


@dataclass(frozen=True)
class Issue:
    """A problem reported by a scanner or by the rule engine."""

    message: str
    source: str
    severity: Severity = Severity.ERROR
    timestamp: datetime = field(default_factory=utc_now, compare=False)

    def to_mapping(self) -> dict[str, object]:
        return {
            "message": self.message,
            "source": self.source,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RuleViolation(Issue):
    """An issue produced by a policy rule for a specific package."""

    rule: str = ""
    package: Identifier | None = None
    license: str | None = None
    license_source: str | None = None
    how_to_fix: str = ""

    def to_mapping(self) -> dict[str, object]:
        mapping = super().to_mapping()
        mapping.update(
            {
                "rule": self.rule,
                "package": self.package.coordinates if self.package else None,
                "license": self.license,
                "license_source": self.license_source,
                "how_to_fix": self.how_to_fix,
            }
        )
        return mapping


@dataclass(frozen=True)
class ScanSummary:
    """Normalized outcome of one scan invocation."""

    start_time: datetime
    end_time: datetime
    file_count: int
    package_verification_code: str
    license_findings: frozenset[LicenseFinding] = frozenset()
    copyright_findings: frozenset[CopyrightFinding] = frozenset()
    issues: tuple[Issue, ...] = ()

    @property
    def licenses(self) -> frozenset[str]:
        return frozenset(finding.license for finding in self.license_findings)

    def license_findings_map(self) -> LicenseFindingsMap:
        """Project the license findings onto a license -> statements map."""

        return to_findings_map(self.license_findings)

    def to_mapping(self) -> dict[str, object]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "file_count": self.file_count,
            "package_verification_code": self.package_verification_code,
            "license_findings": [f.to_mapping() for f in sorted(self.license_findings)],
            "copyright_findings": [
                f.to_mapping() for f in sorted(self.copyright_findings)
            ],
            "issues": [issue.to_mapping() for issue in self.issues],
        }


@dataclass(frozen=True)
class ScannerDetails:
    """Identity of the backend that produced a result."""

    name: str
    version: str
    configuration: str

    def to_mapping(self) -> dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "configuration": self.configuration,
        }


@dataclass(frozen=True)
class Provenance:
    """Where the scanned source code came from, if known."""

    download_time: datetime | None = None
    source_artifact_url: str | None = None
    vcs_url: str | None = None
    vcs_revision: str | None = None


@dataclass(frozen=True)
class ScanResult:
    """A summary together with the backend identity and its raw output."""

    provenance: Provenance
    scanner: ScannerDetails
    summary: ScanSummary
    raw_result: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def to_mapping(self) -> dict[str, object]:
        return {
            "scanner": self.scanner.to_mapping(),
            "summary": self.summary.to_mapping(),
            "raw_result": dict(self.raw_result),
        }
