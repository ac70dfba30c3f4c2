"""Deduplication of noisy copyright statements into canonical statements.

Statements are parsed into a prefix (``Copyright``, ``(c)``, ``©`` ...), a
year expression and a holder. Statements sharing a prefix and holder are
merged into one statement whose years are the minimal set of contiguous
ranges covering every year observed. Anything that does not parse is kept
verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

_PREFIX_TOKEN = r"(?:copyright|copr\.|\(c\)|©)"
_YEAR_ITEM = r"\d{4}(?:\s*[-–]\s*\d{2,4})?"

_STATEMENT_PATTERN = re.compile(
    rf"^(?P<prefix>{_PREFIX_TOKEN}(?:\s+{_PREFIX_TOKEN})*)"
    rf"(?:\s+(?P<years>{_YEAR_ITEM}(?:\s*,\s*{_YEAR_ITEM})*))?"
    r"\s*,?\s+(?P<holder>\S.*?)\s*$",
    re.IGNORECASE,
)
"""Regex splitting a statement into prefix, optional years and holder."""

_YEAR_RANGE_PATTERN = re.compile(r"(\d{4})(?:\s*[-–]\s*(\d{2,4}))?")
_HOLDER_PUNCTUATION = re.compile(r"[^\w\s]", re.UNICODE)


@dataclass(frozen=True)
class _ParsedStatement:
    prefix: str
    years: frozenset[int]
    holder: str

    @property
    def group_key(self) -> tuple[str, str]:
        return (_normalize_prefix(self.prefix), _normalize_holder(self.holder))


@dataclass(frozen=True)
class ProcessedStatements:
    """Result of :func:`process`.

    ``processed`` maps each canonical statement to the raw statements merged
    into it; ``unprocessed`` holds statements that were passed through.
    """

    processed: dict[str, frozenset[str]] = field(default_factory=dict)
    unprocessed: frozenset[str] = frozenset()

    def all_statements(self) -> frozenset[str]:
        return frozenset(self.processed) | self.unprocessed


def process(statements: Iterable[str]) -> ProcessedStatements:
    """Merge statements with the same prefix and holder, combining their years."""

    groups: dict[tuple[str, str], list[tuple[str, _ParsedStatement]]] = {}
    unprocessed: set[str] = set()

    for raw in set(statements):
        parsed = parse_statement(raw)
        if parsed is None:
            unprocessed.add(raw)
            continue
        groups.setdefault(parsed.group_key, []).append((raw, parsed))

    processed: dict[str, set[str]] = {}
    for members in groups.values():
        canonical = _render_group([parsed for _, parsed in members])
        processed.setdefault(canonical, set()).update(raw for raw, _ in members)

    return ProcessedStatements(
        processed={key: frozenset(value) for key, value in processed.items()},
        unprocessed=frozenset(unprocessed),
    )


def parse_statement(statement: str) -> _ParsedStatement | None:
    """Split ``statement`` or return None when it is not a recognizable notice."""

    text = " ".join(statement.split())
    match = _STATEMENT_PATTERN.match(text)
    if match is None:
        return None
    holder = match.group("holder")
    if not _normalize_holder(holder):
        return None
    years_text = match.group("years")
    years: frozenset[int] = frozenset()
    if years_text:
        parsed_years = _parse_years(years_text)
        if parsed_years is None:
            return None
        years = parsed_years
    return _ParsedStatement(
        prefix=match.group("prefix"), years=years, holder=holder
    )


def _parse_years(text: str) -> frozenset[int] | None:
    years: set[int] = set()
    for start_text, end_text in _YEAR_RANGE_PATTERN.findall(text):
        start = int(start_text)
        if not end_text:
            years.add(start)
            continue
        if len(end_text) == 2:
            end = (start // 100) * 100 + int(end_text)
            if end < start:
                end += 100
        elif len(end_text) == 4:
            end = int(end_text)
        else:
            return None
        if end < start:
            return None
        years.update(range(start, end + 1))
    return frozenset(years)


def _normalize_prefix(prefix: str) -> str:
    tokens = prefix.casefold().replace("©", "(c)").split()
    return " ".join(tokens)


def _normalize_holder(holder: str) -> str:
    without_punctuation = _HOLDER_PUNCTUATION.sub(" ", holder.casefold())
    return " ".join(without_punctuation.split())


def year_ranges(years: Iterable[int]) -> list[tuple[int, int]]:
    """Collapse years into sorted, minimal, contiguous ``(start, end)`` ranges."""

    ranges: list[tuple[int, int]] = []
    for year in sorted(set(years)):
        if ranges and year == ranges[-1][1] + 1:
            ranges[-1] = (ranges[-1][0], year)
        else:
            ranges.append((year, year))
    return ranges


def format_years(years: Iterable[int]) -> str:
    """Render years as ``2010-2012, 2015``."""

    parts = [
        str(start) if start == end else f"{start}-{end}"
        for start, end in year_ranges(years)
    ]
    return ", ".join(parts)


def _render_group(members: list[_ParsedStatement]) -> str:
    prefix = min(member.prefix for member in members)
    holder = min(member.holder for member in members)
    years: set[int] = set()
    for member in members:
        years.update(member.years)
    if not years:
        return f"{prefix} {holder}"
    return f"{prefix} {format_years(years)} {holder}"
