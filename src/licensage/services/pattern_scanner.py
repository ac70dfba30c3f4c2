"""In-process backend that recognizes well-known license texts and copyrights.

The backend writes a ScanCode-style raw result with absolute paths; the
shared normalizer rewrites them relative to the scanned root.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Pattern

from ..domain.models import Provenance, ScanResult, utc_now
from .result_normalizer import summarize
from .scan_config import DEFAULT_SCANNER_CONFIGURATION, ScannerConfiguration
from .scanner import read_json_result, scanner_details, write_json_result
from .verification_code import iter_regular_files

_LOG = logging.getLogger(__name__)

_BINARY_PROBE_BYTES = 8192


def _phrase(text: str, flags: int = 0) -> Pattern[str]:
    """Compile a phrase that tolerates any whitespace, including line breaks."""

    words = (re.escape(word) for word in text.split())
    return re.compile(r"\s+".join(words), flags)


LICENSE_SIGNATURES: tuple[tuple[str, Pattern[str]], ...] = (
    (
        "MIT",
        _phrase(
            "Permission is hereby granted, free of charge, to any person "
            "obtaining a copy",
            re.IGNORECASE,
        ),
    ),
    (
        "Apache-2.0",
        re.compile(r"Apache\s+License,?\s+Version\s+2\.0", re.IGNORECASE),
    ),
    (
        "BSD-3-Clause",
        _phrase(
            "Neither the name of the copyright holder nor the names of its "
            "contributors may be used",
            re.IGNORECASE,
        ),
    ),
    (
        "BSD-2-Clause",
        _phrase(
            "Redistributions of source code must retain the above copyright notice",
            re.IGNORECASE,
        ),
    ),
    (
        "ISC",
        re.compile(
            r"Permission\s+to\s+use,\s+copy,\s+modify,\s+and(?:/or)?\s+distribute"
            r"\s+this\s+software\s+for\s+any\s+purpose\s+with\s+or\s+without\s+fee",
            re.IGNORECASE,
        ),
    ),
    ("GPL-3.0-only", _phrase("GNU GENERAL PUBLIC LICENSE Version 3")),
    ("GPL-2.0-only", _phrase("GNU GENERAL PUBLIC LICENSE Version 2")),
    ("LGPL-2.1-only", _phrase("GNU LESSER GENERAL PUBLIC LICENSE Version 2.1")),
    (
        "MPL-2.0",
        re.compile(
            r"Mozilla\s+Public\s+License,?\s+(?:v\.\s*|Version\s+)2\.0",
            re.IGNORECASE,
        ),
    ),
)
"""License id and the passage that identifies its text."""

SUPERSEDED_LICENSES = {"BSD-2-Clause": "BSD-3-Clause"}
"""A license whose passage is contained in the text of a stricter one."""

SPDX_TAG_PATTERN = re.compile(
    r"SPDX-License-Identifier:\s*(?P<expression>.+?)\s*(?:\*/|-->)?\s*$",
    re.MULTILINE,
)

_COMMENT_LEADER_PATTERN = re.compile(r"^\s*(?:#+|//+|/\*+|\*+|;+|--|<!--|%+|REM\b)?\s*")
_COMMENT_TRAILER_PATTERN = re.compile(r"\s*(?:\*/|-->)\s*$")
_COPYRIGHT_START_PATTERN = re.compile(
    r"^(?:copyright\b|\(c\)\s*\d|©|copr\.)", re.IGNORECASE
)
_NOT_A_STATEMENT_PATTERN = re.compile(
    r"copyright\s+(?:notice|holders?|owners?|law|and|licen[cs]e|statement)s?\b"
    r"|\[yyyy\]|<year>|\{year\}",
    re.IGNORECASE,
)


class PatternScanner:
    """Fast license and copyright detection without external tools."""

    name = "PatternMatcher"
    result_file_ext = "json"
    VERSION = "1.0"

    def __init__(
        self, config: ScannerConfiguration = DEFAULT_SCANNER_CONFIGURATION
    ) -> None:
        self.config = config

    def command(self, working_dir: Path | None = None) -> str:
        return ""

    def get_version(self) -> str:
        return self.VERSION

    def get_configuration(self) -> str:
        return f"--max-file-bytes {self.config.max_file_bytes}"

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult:
        start_time = utc_now()
        files: list[dict[str, Any]] = []
        skipped: list[dict[str, str]] = []
        for _, absolute in iter_regular_files(path):
            entry = self._scan_file(absolute, skipped)
            if entry is not None:
                files.append(entry)
        write_json_result(
            results_file,
            {
                "headers": [{"tool_name": self.name, "tool_version": self.VERSION}],
                "files": files,
                "skipped": skipped,
            },
        )
        end_time = utc_now()

        raw_result = self.get_raw_result(results_file)
        summary = summarize(
            start_time=start_time,
            end_time=end_time,
            scan_path=path,
            raw_result=raw_result,
            output_dir=results_file.parent,
            source=self.name,
        )
        return ScanResult(Provenance(), scanner_details(self), summary, raw_result)

    def get_raw_result(self, results_file: Path) -> dict[str, Any]:
        return read_json_result(results_file)

    def _scan_file(
        self, path: Path, skipped: list[dict[str, str]]
    ) -> dict[str, Any] | None:
        entry: dict[str, Any] = {
            "path": str(path),
            "type": "file",
            "licenses": [],
            "copyrights": [],
            "scan_errors": [],
        }
        try:
            size = path.stat().st_size
            if size > self.config.max_file_bytes:
                skipped.append(
                    {
                        "path": str(path),
                        "reason": f"file exceeds {self.config.max_file_bytes} bytes",
                    }
                )
                return None
            data = path.read_bytes()
        except OSError as exc:
            _LOG.warning("Unable to read '%s': %s", path, exc)
            entry["scan_errors"].append(f"Unable to read file: {exc.strerror or exc}")
            return entry

        if b"\0" in data[:_BINARY_PROBE_BYTES]:
            skipped.append({"path": str(path), "reason": "binary file"})
            return None

        text = data.decode("utf-8", errors="replace")
        entry["licenses"] = detect_licenses(text)
        entry["copyrights"] = detect_copyrights(text)
        return entry


def _line_of(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def detect_licenses(text: str) -> list[dict[str, Any]]:
    """Return one ScanCode-style license entry per recognized license text or tag."""

    found: dict[str, dict[str, Any]] = {}
    for license, pattern in LICENSE_SIGNATURES:
        match = pattern.search(text)
        if match is None:
            continue
        found[license] = {
            "license_expression": license,
            "start_line": _line_of(text, match.start()),
            "end_line": _line_of(text, match.end()),
            "matched_rule": "license-text",
        }
    for license, stricter in SUPERSEDED_LICENSES.items():
        if license in found and stricter in found:
            del found[license]

    entries = [found[license] for license in sorted(found)]
    for match in SPDX_TAG_PATTERN.finditer(text):
        line = _line_of(text, match.start())
        entries.append(
            {
                "license_expression": match.group("expression"),
                "start_line": line,
                "end_line": line,
                "matched_rule": "spdx-license-identifier",
            }
        )
    return entries


def detect_copyrights(text: str) -> list[dict[str, Any]]:
    """Return a ScanCode-style entry for every line holding a copyright statement."""

    entries: list[dict[str, Any]] = []
    for number, line in enumerate(text.splitlines(), start=1):
        candidate = _COMMENT_LEADER_PATTERN.sub("", line)
        candidate = _COMMENT_TRAILER_PATTERN.sub("", candidate)
        if not _COPYRIGHT_START_PATTERN.match(candidate):
            continue
        if _NOT_A_STATEMENT_PATTERN.search(candidate):
            continue
        statement = " ".join(candidate.split())
        if len(statement.split()) < 2:
            continue
        entries.append({"value": statement, "start_line": number, "end_line": number})
    return entries
