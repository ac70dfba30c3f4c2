"""Cleaning and merging of license -> copyright statement maps.

Every function returns a new, key-sorted map; inputs are never mutated.
"""

from __future__ import annotations

from typing import Iterable

from ..domain.models import CopyrightGarbage, LicenseFindingsMap, to_findings_map
from . import copyright_statements

__all__ = [
    "clean",
    "merge",
    "process_statements",
    "remove_garbage",
    "to_findings_map",
]


def remove_garbage(
    findings_map: LicenseFindingsMap, garbage: CopyrightGarbage
) -> LicenseFindingsMap:
    """Drop every statement that exactly matches a garbage entry."""

    return {
        license: frozenset(s for s in findings_map[license] if s not in garbage)
        for license in sorted(findings_map)
    }


def process_statements(findings_map: LicenseFindingsMap) -> LicenseFindingsMap:
    """Replace each license's statements by their canonical statements."""

    return {
        license: copyright_statements.process(findings_map[license]).all_statements()
        for license in sorted(findings_map)
    }


def clean(
    findings_map: LicenseFindingsMap, garbage: CopyrightGarbage
) -> LicenseFindingsMap:
    """
    Remove garbage, canonicalize, then remove garbage again.

    The second pass catches canonical statements that only became garbage
    through merging.
    """

    return remove_garbage(
        process_statements(remove_garbage(findings_map, garbage)), garbage
    )


def merge(maps: Iterable[LicenseFindingsMap]) -> LicenseFindingsMap:
    """Union the statements of every map per license; no maps yield ``{}``."""

    merged: dict[str, set[str]] = {}
    for findings_map in maps:
        for license, statements in findings_map.items():
            merged.setdefault(license, set()).update(statements)
    return {license: frozenset(merged[license]) for license in sorted(merged)}
