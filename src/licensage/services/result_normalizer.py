"""Normalization of ScanCode-style raw results into canonical findings.

The raw layout is a mapping with a ``files`` list; each file entry carries a
``path``, a ``type`` and optional ``licenses``, ``copyrights`` and
``scan_errors`` lists. An optional top-level ``skipped`` list names files a
backend did not inspect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..contracts import reason_codes
from ..domain.models import (
    CopyrightFinding,
    Issue,
    LicenseFinding,
    Location,
    ScanSummary,
    Severity,
)
from ..domain.spdx import decompose, is_single_expression
from .issue_audit import record_issue_event
from .sanitizer import leaks_directory, relativize
from .verification_code import calculate_package_verification_code, count_files


@dataclass(frozen=True)
class NormalizedFindings:
    license_findings: frozenset[LicenseFinding]
    copyright_findings: frozenset[CopyrightFinding]
    issues: tuple[Issue, ...]


class _MalformedEntry(ValueError):
    pass


_TIMEOUT_ERROR_PATTERN = re.compile(
    r"Processing interrupted: timeout after (\d+) seconds", re.IGNORECASE
)

_LICENSE_KEYS = (
    "spdx_license_key",
    "spdx_license_expression",
    "license_expression_spdx",
    "license_expression",
)


def scan_root_for(scan_path: Path) -> Path:
    """Directory that reported paths are relative to."""

    return scan_path if scan_path.is_dir() else scan_path.parent


def summarize(
    *,
    start_time: datetime,
    end_time: datetime,
    scan_path: Path,
    raw_result: Mapping[str, Any],
    output_dir: Path,
    source: str,
    file_count: int | None = None,
) -> ScanSummary:
    """Build the complete summary of one scan invocation.

    ``file_count`` overrides the counted number of regular files when the
    backend already reports it.
    """

    normalized = normalize_findings(raw_result, scan_path, output_dir, source)
    return ScanSummary(
        start_time=start_time,
        end_time=end_time,
        file_count=count_files(scan_path) if file_count is None else file_count,
        package_verification_code=calculate_package_verification_code(scan_path),
        license_findings=normalized.license_findings,
        copyright_findings=normalized.copyright_findings,
        issues=normalized.issues,
    )


def normalize_findings(
    raw_result: Mapping[str, Any],
    scan_path: Path,
    output_dir: Path,
    source: str,
) -> NormalizedFindings:
    """
    Convert raw file entries into grouped license and copyright findings.

    Compound license keys are split into single expressions. Copyrights are
    attached to every license finding of the same file. Entries that cannot
    be used are skipped and reported as HINT issues; per-file scanner errors
    become ERROR issues.
    """

    scan_root = scan_root_for(scan_path)
    output_root = output_dir.absolute()
    issues: list[Issue] = []
    license_locations: dict[str, set[Location]] = {}
    license_copyrights: dict[str, dict[str, set[Location]]] = {}
    copyright_locations: dict[str, set[Location]] = {}

    def hint(message: str) -> None:
        issue = Issue(message=message, source=source, severity=Severity.HINT)
        issues.append(issue)
        record_issue_event(reason_codes.MALFORMED_FINDING, issue, {"scanner": source})

    def listed(container: Mapping[str, Any], key: str, where: str) -> list[Any]:
        value = container.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            hint(f"Skipped '{key}' of {where}: not a list.")
            return []
        return value

    if not isinstance(raw_result, Mapping):
        hint("Raw scan result is not a mapping.")
        raw_result = {}
    files = raw_result.get("files", [])
    if not isinstance(files, list):
        hint("Raw scan result has no usable 'files' list.")
        files = []

    for entry in files:
        if not isinstance(entry, Mapping):
            hint("Skipped a file entry that is not a mapping.")
            continue
        if entry.get("type", "file") != "file":
            continue
        raw_path = entry.get("path")
        relative = None
        if isinstance(raw_path, str):
            relative = relativize(raw_path, scan_root)
        if relative is None or _in_output(relative, scan_root, output_root):
            hint("Skipped findings for a path outside of the scanned root.")
            continue

        where = f"'{relative}'"
        for error in listed(entry, "scan_errors", where):
            issue = Issue(
                message=_map_scan_error(str(error), relative),
                source=source,
                severity=Severity.ERROR,
            )
            issues.append(issue)
            record_issue_event(
                reason_codes.BACKEND_FAILURE,
                issue,
                {"scanner": source, "path": relative},
            )

        file_copyrights: list[tuple[str, Location]] = []
        for item in listed(entry, "copyrights", where):
            try:
                statement, location = _parse_copyright(item, relative)
            except _MalformedEntry as exc:
                hint(f"Skipped malformed copyright finding in '{relative}': {exc}")
                continue
            file_copyrights.append((statement, location))
            copyright_locations.setdefault(statement, set()).add(location)

        items = listed(entry, "licenses", where)
        if not items:
            items = _detection_matches(listed(entry, "license_detections", where))
        for item in items:
            try:
                licenses, location = _parse_license(item, relative)
            except _MalformedEntry as exc:
                hint(f"Skipped malformed license finding in '{relative}': {exc}")
                continue
            for license in licenses:
                license_locations.setdefault(license, set()).add(location)
                attached = license_copyrights.setdefault(license, {})
                for statement, copyright_location in file_copyrights:
                    attached.setdefault(statement, set()).add(copyright_location)

    for skipped in listed(raw_result, "skipped", "the raw scan result"):
        if isinstance(skipped, Mapping):
            relative = relativize(str(skipped.get("path", "")), scan_root) or "?"
            hint(f"Skipped '{relative}': {skipped.get('reason', 'not inspected')}.")

    return NormalizedFindings(
        license_findings=frozenset(
            LicenseFinding(
                license=license,
                locations=frozenset(locations),
                copyrights=_copyright_findings(license_copyrights.get(license, {})),
            )
            for license, locations in license_locations.items()
        ),
        copyright_findings=_copyright_findings(copyright_locations),
        issues=tuple(issues),
    )


def _in_output(relative: str, scan_root: Path, output_root: Path) -> bool:
    """True when a reported path names the output directory or lies inside it."""

    if leaks_directory(relative, (output_root,)):
        return True
    return (scan_root.absolute() / relative).is_relative_to(output_root)


def _copyright_findings(
    by_statement: Mapping[str, Iterable[Location]],
) -> frozenset[CopyrightFinding]:
    return frozenset(
        CopyrightFinding(statement=statement, locations=frozenset(locations))
        for statement, locations in by_statement.items()
    )


def _map_scan_error(error: str, path: str) -> str:
    """Rewrite a ScanCode per-file timeout into a stable, path-bearing message."""

    match = _TIMEOUT_ERROR_PATTERN.search(error)
    if match is None:
        return error
    return (
        f"ERROR: Timeout after {match.group(1)} seconds while scanning file "
        f"'{path}'."
    )


def _detection_matches(detections: list[Any]) -> list[Any]:
    """Flatten the ``license_detections`` layout of newer ScanCode releases.

    A detection whose ``matches`` is not a list is passed through as is, so
    license parsing reports it as malformed.
    """

    matches: list[Any] = []
    for detection in detections:
        inner = detection.get("matches") if isinstance(detection, Mapping) else None
        if isinstance(inner, list):
            matches.extend(inner)
        elif inner is not None or not isinstance(detection, Mapping):
            matches.append(detection)
    return matches


def _line_range(item: Mapping[str, Any]) -> tuple[int, int]:
    start = item.get("start_line")
    end = item.get("end_line", start)
    if not all(
        isinstance(value, int) and not isinstance(value, bool) for value in (start, end)
    ):
        raise _MalformedEntry("line numbers are missing or not integers")
    if start < 1 or end < start:
        raise _MalformedEntry("line range is invalid")
    return start, end


def _parse_license(item: Any, path: str) -> tuple[frozenset[str], Location]:
    if not isinstance(item, Mapping):
        raise _MalformedEntry("entry is not a mapping")
    expression = next((item[key] for key in _LICENSE_KEYS if item.get(key)), None)
    if not expression and item.get("key"):
        expression = f"LicenseRef-scancode-{item['key']}"
    if not isinstance(expression, str) or not expression.strip():
        raise _MalformedEntry("license key is missing")
    licenses = decompose(expression)
    if not licenses or not all(is_single_expression(lic) for lic in licenses):
        raise _MalformedEntry(f"license expression '{expression}' is invalid")
    start, end = _line_range(item)
    return licenses, Location(path, start, end)


def _parse_copyright(item: Any, path: str) -> tuple[str, Location]:
    if not isinstance(item, Mapping):
        raise _MalformedEntry("entry is not a mapping")
    statement = item.get("value") or item.get("copyright") or item.get("statement")
    if not isinstance(statement, str) or not statement.strip():
        raise _MalformedEntry("statement is missing")
    start, end = _line_range(item)
    return " ".join(statement.split()), Location(path, start, end)
