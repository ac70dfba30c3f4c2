"""Minimal SPDX expression handling needed to keep findings single-licensed."""

from __future__ import annotations

import re

_OPERATOR_PATTERN = re.compile(r"\s+(?:AND|OR)\s+", re.IGNORECASE)
_WITH_PATTERN = re.compile(r"\s+WITH\s+", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9.+\-]*$")


def decompose(expression: str) -> frozenset[str]:
    """
    Split a compound expression into its single license expressions.

    ``WITH`` exceptions stay attached to their license, so
    ``"(MIT OR GPL-2.0-only WITH Classpath-exception-2.0)"`` yields
    ``{"MIT", "GPL-2.0-only WITH Classpath-exception-2.0"}``.
    """

    stripped = expression.replace("(", " ").replace(")", " ").strip()
    if not stripped:
        return frozenset()
    parts = (_normalize_single(part) for part in _OPERATOR_PATTERN.split(stripped))
    return frozenset(part for part in parts if part)


def _normalize_single(part: str) -> str:
    pieces = [" ".join(piece.split()) for piece in _WITH_PATTERN.split(part.strip())]
    return " WITH ".join(piece for piece in pieces if piece)


def is_single_expression(expression: str) -> bool:
    """True for a single license id, optionally ``WITH`` an exception."""

    pieces = _WITH_PATTERN.split(expression.strip())
    if len(pieces) > 2:
        return False
    return all(_TOKEN_PATTERN.match(piece) for piece in pieces)
