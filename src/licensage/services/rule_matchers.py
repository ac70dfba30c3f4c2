"""Conditions that policy rules are built from.

Each matcher names the rule kinds it may appear in and validates its
argument when a ruleset is compiled, so that a ruleset which passes the
syntax check cannot fail on an unknown capability at evaluation time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..domain.identifier import Identifier
from ..domain.result import Package, PackageCuration, PackageReference

PACKAGE_RULE = "package"
LICENSE_RULE = "license"
DEPENDENCY_RULE = "dependency"
RULE_KINDS = frozenset({PACKAGE_RULE, LICENSE_RULE, DEPENDENCY_RULE})

LICENSE_SOURCES = ("concluded", "declared", "detected")
LINKAGES = frozenset({"DYNAMIC", "STATIC", "PROJECT_DYNAMIC", "PROJECT_STATIC"})


@dataclass(frozen=True)
class RuleContext:
    """Everything a condition may inspect for one evaluated subject."""

    package: Package
    is_project: bool
    excluded: bool
    curations: tuple[PackageCuration, ...] = ()
    license: str | None = None
    license_source: str | None = None
    license_categories: frozenset[str] = frozenset()
    dependency: PackageReference | None = None
    scope: str | None = None
    level: int | None = None

    @property
    def id(self) -> Identifier:
        return self.package.id


@dataclass(frozen=True)
class Matcher:
    """A named condition, the rule kinds it supports and its argument check."""

    name: str
    kinds: frozenset[str]
    check_argument: Callable[[Any], None]
    func: Callable[[RuleContext, Any], bool]


def _boolean(value: Any) -> None:
    if not isinstance(value, bool):
        raise ValueError("expects true or false")


def _string(value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError("expects a non-empty string")


def _strings(value: Any) -> None:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        raise ValueError("expects a string or a non-empty list of strings")
    for item in value:
        _string(item)


def _regex(value: Any) -> None:
    _string(value)
    try:
        re.compile(value)
    except re.error as exc:
        raise ValueError(f"expects a valid regular expression ({exc})") from exc


def _one_of(choices: frozenset[str] | tuple[str, ...]) -> Callable[[Any], None]:
    def check(value: Any) -> None:
        _strings(value)
        values = [value] if isinstance(value, str) else value
        unknown = sorted(set(values) - set(choices))
        if unknown:
            raise ValueError(
                f"got unknown value(s) {', '.join(unknown)}; "
                f"expected any of {', '.join(sorted(choices))}"
            )

    return check


def _as_set(value: str | list[str]) -> frozenset[str]:
    return frozenset([value] if isinstance(value, str) else value)


def _require_license(ctx: RuleContext) -> str:
    if ctx.license is None:
        raise RuntimeError("condition needs a license but the subject has none")
    return ctx.license


def _require_dependency(ctx: RuleContext) -> PackageReference:
    if ctx.dependency is None:
        raise RuntimeError("condition needs a dependency but the subject has none")
    return ctx.dependency


_ALL_KINDS = RULE_KINDS
_LICENSE_ONLY = frozenset({LICENSE_RULE})
_DEPENDENCY_ONLY = frozenset({DEPENDENCY_RULE})

MATCHERS: Mapping[str, Matcher] = {
    matcher.name: matcher
    for matcher in (
        Matcher(
            "is_project", _ALL_KINDS, _boolean, lambda ctx, arg: ctx.is_project is arg
        ),
        Matcher(
            "is_excluded", _ALL_KINDS, _boolean, lambda ctx, arg: ctx.excluded is arg
        ),
        Matcher(
            "package_type_in",
            _ALL_KINDS,
            _strings,
            lambda ctx, arg: ctx.id.type in _as_set(arg),
        ),
        Matcher(
            "package_name_matches",
            _ALL_KINDS,
            _regex,
            lambda ctx, arg: re.search(arg, ctx.id.coordinates) is not None,
        ),
        Matcher(
            "has_concluded_license",
            _ALL_KINDS,
            _boolean,
            lambda ctx, arg: bool(ctx.package.concluded_license) is arg,
        ),
        Matcher(
            "has_declared_license",
            _ALL_KINDS,
            _boolean,
            lambda ctx, arg: bool(ctx.package.declared_licenses) is arg,
        ),
        Matcher(
            "has_curation",
            _ALL_KINDS,
            _boolean,
            lambda ctx, arg: bool(ctx.curations) is arg,
        ),
        Matcher(
            "license_in",
            _LICENSE_ONLY,
            _strings,
            lambda ctx, arg: _require_license(ctx) in _as_set(arg),
        ),
        Matcher(
            "license_in_category",
            _LICENSE_ONLY,
            _strings,
            lambda ctx, arg: _require_license(ctx) is not None
            and bool(ctx.license_categories & _as_set(arg)),
        ),
        Matcher(
            "license_is_categorized",
            _LICENSE_ONLY,
            _boolean,
            lambda ctx, arg: _require_license(ctx) is not None
            and bool(ctx.license_categories) is arg,
        ),
        Matcher(
            "license_source_is",
            _LICENSE_ONLY,
            _one_of(LICENSE_SOURCES),
            lambda ctx, arg: ctx.license_source in _as_set(arg),
        ),
        Matcher(
            "is_direct_dependency",
            _DEPENDENCY_ONLY,
            _boolean,
            lambda ctx, arg: (ctx.level == 0) is arg,
        ),
        Matcher(
            "linkage_in",
            _DEPENDENCY_ONLY,
            _one_of(LINKAGES),
            lambda ctx, arg: _require_dependency(ctx).linkage in _as_set(arg),
        ),
        Matcher(
            "scope_in",
            _DEPENDENCY_ONLY,
            _strings,
            lambda ctx, arg: ctx.scope in _as_set(arg),
        ),
    )
}
"""Registry of the conditions available to rules, by name."""
