"""Policy rule evaluation over an analysis result.

Rulesets are YAML documents::

    rules:
      - name: COPYLEFT_IN_DEPENDENCY
        kind: license
        license_source: [concluded, detected]
        severity: ERROR
        message: "Package {id} uses copyleft license {license}."
        how_to_fix: "Replace the package."
        when:
          - is_project: false
          - license_in_category: copyleft

Conditions listed under ``when`` must all hold; ``all_of``, ``any_of`` and
``not`` combine them further.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator, Mapping

import yaml

from ..contracts import reason_codes
from ..contracts.schema_registry import SchemaValidationError, describe, validate
from ..domain.models import Issue, RuleViolation, Severity
from ..domain.result import (
    AnalysisResult,
    LicenseConfiguration,
    Package,
    PackageConfigurationProvider,
    Resolutions,
    SimplePackageConfigurationProvider,
)
from ..domain.spdx import decompose
from .issue_audit import record_issue_event
from .rule_matchers import (
    DEPENDENCY_RULE,
    LICENSE_RULE,
    LICENSE_SOURCES,
    MATCHERS,
    PACKAGE_RULE,
    Matcher,
    RuleContext,
)

_LOG = logging.getLogger(__name__)

EVALUATOR_SOURCE = "Evaluator"

_PACKAGE_FIELDS = frozenset({"id", "type", "namespace", "name", "version", "rule"})
MESSAGE_FIELDS: Mapping[str, frozenset[str]] = {
    PACKAGE_RULE: _PACKAGE_FIELDS,
    LICENSE_RULE: _PACKAGE_FIELDS | {"license", "license_source", "categories"},
    DEPENDENCY_RULE: _PACKAGE_FIELDS | {"scope", "level", "linkage"},
}
"""Placeholders a rule message may use, per rule kind."""

Condition = Callable[[RuleContext], bool]


class RuleSyntaxError(ValueError):
    """Raised when a ruleset cannot be parsed or refers to unknown capabilities."""


@dataclass(frozen=True)
class CompiledRule:
    name: str
    kind: str
    severity: Severity
    message: str
    how_to_fix: str
    license_sources: tuple[str, ...]
    condition: Condition


@dataclass(frozen=True)
class EvaluatorRun:
    """Violations found by a ruleset and the operational issues of the run."""

    violations: tuple[RuleViolation, ...] = ()
    issues: tuple[Issue, ...] = ()


def _load_document(rule_text: str | Mapping[str, Any] | None) -> Any:
    if rule_text is None or isinstance(rule_text, Mapping):
        document = rule_text
    else:
        try:
            document = yaml.safe_load(rule_text)
        except yaml.YAMLError as exc:
            raise RuleSyntaxError(f"Ruleset is not valid YAML: {exc}") from exc
    return {"rules": []} if document is None else document


def _check_message(rule_name: str, kind: str, message: str) -> None:
    allowed = MESSAGE_FIELDS[kind]
    try:
        fields = [item[1] for item in string.Formatter().parse(message)]
    except ValueError as exc:
        raise RuleSyntaxError(f"Rule '{rule_name}': invalid message ({exc}).") from exc
    for field_name in fields:
        if field_name is None:
            continue
        if field_name not in allowed:
            raise RuleSyntaxError(
                f"Rule '{rule_name}': message placeholder '{{{field_name}}}' is not "
                f"available for {kind} rules."
            )


def _compile_condition(
    node: Any, rule_name: str, kind: str, matchers: Mapping[str, Matcher]
) -> Condition:
    if not isinstance(node, Mapping) or len(node) != 1:
        raise RuleSyntaxError(
            f"Rule '{rule_name}': every condition must be a mapping with one key."
        )
    ((key, argument),) = node.items()

    if key in ("all_of", "any_of"):
        if not isinstance(argument, list) or not argument:
            raise RuleSyntaxError(
                f"Rule '{rule_name}': '{key}' expects a non-empty list of conditions."
            )
        parts = [_compile_condition(n, rule_name, kind, matchers) for n in argument]
        if key == "all_of":
            return lambda ctx: all(part(ctx) for part in parts)
        return lambda ctx: any(part(ctx) for part in parts)

    if key == "not":
        inner = _compile_condition(argument, rule_name, kind, matchers)
        return lambda ctx: not inner(ctx)

    matcher = matchers.get(key)
    if matcher is None:
        raise RuleSyntaxError(f"Rule '{rule_name}': unknown condition '{key}'.")
    if kind not in matcher.kinds:
        raise RuleSyntaxError(
            f"Rule '{rule_name}': condition '{key}' cannot be used in {kind} rules."
        )
    try:
        matcher.check_argument(argument)
    except ValueError as exc:
        raise RuleSyntaxError(f"Rule '{rule_name}': condition '{key}' {exc}.") from exc
    return lambda ctx: matcher.func(ctx, argument)


def _compile_rule(
    raw: Mapping[str, Any], matchers: Mapping[str, Matcher]
) -> CompiledRule:
    name = raw["name"]
    kind = raw["kind"]
    sources = raw.get("license_source")
    if sources is not None and kind != LICENSE_RULE:
        raise RuleSyntaxError(
            f"Rule '{name}': 'license_source' is only valid for license rules."
        )
    if sources is None:
        sources = list(LICENSE_SOURCES) if kind == LICENSE_RULE else []
    elif isinstance(sources, str):
        sources = [sources]

    message = raw["message"]
    _check_message(name, kind, message)
    conditions = [
        _compile_condition(node, name, kind, matchers) for node in raw.get("when") or []
    ]
    return CompiledRule(
        name=name,
        kind=kind,
        severity=Severity(raw.get("severity", Severity.ERROR.value)),
        message=message,
        how_to_fix=raw.get("how_to_fix", ""),
        license_sources=tuple(s for s in LICENSE_SOURCES if s in sources),
        condition=lambda ctx: all(condition(ctx) for condition in conditions),
    )


def compile_ruleset(
    rule_text: str | Mapping[str, Any] | None,
    matchers: Mapping[str, Matcher] | None = None,
) -> tuple[CompiledRule, ...]:
    """Parse, validate and resolve a ruleset without evaluating it."""

    matchers = MATCHERS if matchers is None else matchers
    document = _load_document(rule_text)
    try:
        validate("ruleset_v1", document)
    except SchemaValidationError as exc:
        raise RuleSyntaxError(f"Ruleset is invalid at {describe(exc)}") from exc

    rules: list[CompiledRule] = []
    seen: set[str] = set()
    for raw in document.get("rules") or []:
        if raw["name"] in seen:
            raise RuleSyntaxError(f"Rule '{raw['name']}' is defined more than once.")
        seen.add(raw["name"])
        rules.append(_compile_rule(raw, matchers))
    return tuple(rules)


def check_syntax(
    rule_text: str | Mapping[str, Any] | None,
    matchers: Mapping[str, Matcher] | None = None,
) -> bool:
    """Return True when the ruleset compiles; rules are never executed."""

    try:
        compile_ruleset(rule_text, matchers)
    except RuleSyntaxError as exc:
        _LOG.debug("Ruleset syntax check failed: %s", exc)
        return False
    return True


def _package_subjects(result: AnalysisResult) -> list[RuleContext]:
    subjects: list[RuleContext] = []
    for package_id in result.all_ids():
        package = result.curated_package(package_id)
        if package is None:
            continue
        is_project = result.is_project(package_id)
        subjects.append(
            RuleContext(
                package=package,
                is_project=is_project,
                excluded=result.is_excluded(package_id),
                curations=() if is_project else result.applicable_curations(package_id),
            )
        )
    return subjects


def _licenses_by_source(
    subject: RuleContext,
    source: str,
    result: AnalysisResult,
    provider: PackageConfigurationProvider,
) -> frozenset[str]:
    package = subject.package
    if source == "concluded":
        return decompose(package.concluded_license or "")
    if source == "declared":
        licenses: set[str] = set()
        for declared in package.declared_licenses:
            licenses.update(decompose(declared))
        return frozenset(licenses)
    return result.detected_licenses(
        package.id, provider.get_package_configuration(package.id)
    )


def _license_contexts(
    subjects: Iterable[RuleContext],
    rule: CompiledRule,
    result: AnalysisResult,
    provider: PackageConfigurationProvider,
    license_configuration: LicenseConfiguration,
) -> Iterator[RuleContext]:
    for subject in subjects:
        for source in rule.license_sources:
            licenses = _licenses_by_source(subject, source, result, provider)
            for license in sorted(licenses):
                yield replace(
                    subject,
                    license=license,
                    license_source=source,
                    license_categories=license_configuration.categories_for(license),
                )


def _dependency_contexts(result: AnalysisResult) -> Iterator[RuleContext]:
    for node in result.dependency_tree():
        package_id = node.reference.id
        package = result.curated_package(package_id) or Package(id=package_id)
        yield RuleContext(
            package=package,
            is_project=result.is_project(package_id),
            excluded=node.excluded,
            curations=result.applicable_curations(package_id),
            dependency=node.reference,
            scope=node.scope,
            level=node.level,
        )


def _message_values(rule: CompiledRule, ctx: RuleContext) -> dict[str, object]:
    values: dict[str, object] = {
        "id": ctx.id.coordinates,
        "type": ctx.id.type,
        "namespace": ctx.id.namespace,
        "name": ctx.id.name,
        "version": ctx.id.version,
        "rule": rule.name,
    }
    if rule.kind == LICENSE_RULE:
        values.update(
            license=ctx.license,
            license_source=ctx.license_source,
            categories=", ".join(sorted(ctx.license_categories)),
        )
    elif rule.kind == DEPENDENCY_RULE:
        values.update(
            scope=ctx.scope,
            level=ctx.level,
            linkage=ctx.dependency.linkage if ctx.dependency else "",
        )
    return values


def _run_rule(
    rule: CompiledRule,
    contexts: Iterable[RuleContext],
) -> list[RuleViolation]:
    violations: list[RuleViolation] = []
    seen: set[RuleViolation] = set()
    for ctx in contexts:
        if not rule.condition(ctx):
            continue
        violation = RuleViolation(
            message=rule.message.format(**_message_values(rule, ctx)),
            source=EVALUATOR_SOURCE,
            severity=rule.severity,
            rule=rule.name,
            package=ctx.id,
            license=ctx.license,
            license_source=ctx.license_source,
            how_to_fix=rule.how_to_fix,
        )
        if violation not in seen:
            seen.add(violation)
            violations.append(violation)
    return violations


def evaluate(
    rule_text: str | Mapping[str, Any] | None,
    result: AnalysisResult = AnalysisResult.EMPTY,
    package_configuration_provider: PackageConfigurationProvider = (
        SimplePackageConfigurationProvider.EMPTY
    ),
    license_configuration: LicenseConfiguration = LicenseConfiguration(),
    *,
    matchers: Mapping[str, Matcher] | None = None,
) -> EvaluatorRun:
    """
    Evaluate every rule against ``result`` and collect the violations.

    A syntactically invalid ruleset raises :class:`RuleSyntaxError`. A rule
    that fails while running contributes no violations; the failure is
    reported as an ERROR issue naming the rule and the remaining rules still
    run.
    """

    try:
        rules = compile_ruleset(rule_text, matchers)
    except RuleSyntaxError as exc:
        record_issue_event(
            reason_codes.RULE_SYNTAX_ERROR,
            Issue(message=str(exc), source=EVALUATOR_SOURCE),
        )
        raise

    subjects = _package_subjects(result)
    violations: list[RuleViolation] = []
    reported: set[RuleViolation] = set()
    issues: list[Issue] = []
    for rule in rules:
        try:
            if rule.kind == PACKAGE_RULE:
                contexts: Iterable[RuleContext] = subjects
            elif rule.kind == LICENSE_RULE:
                contexts = _license_contexts(
                    subjects,
                    rule,
                    result,
                    package_configuration_provider,
                    license_configuration,
                )
            else:
                contexts = _dependency_contexts(result)
            found = _run_rule(rule, contexts)
        except Exception as exc:
            issue = Issue(
                message=f"Rule '{rule.name}' failed: {exc}",
                source=EVALUATOR_SOURCE,
                severity=Severity.ERROR,
            )
            issues.append(issue)
            record_issue_event(
                reason_codes.RULE_EXECUTION_FAILURE, issue, {"rule": rule.name}
            )
            continue
        for violation in found:
            if violation not in reported:
                reported.add(violation)
                violations.append(violation)

    _LOG.info(
        "Evaluated %d rule(s): %d violation(s), %d issue(s).",
        len(rules),
        len(violations),
        len(issues),
    )
    return EvaluatorRun(violations=tuple(violations), issues=tuple(issues))


def partition_resolved(
    violations: Iterable[RuleViolation], resolutions: Resolutions
) -> tuple[tuple[RuleViolation, ...], tuple[RuleViolation, ...]]:
    """Split violations into ``(unresolved, resolved)``, keeping their order."""

    unresolved: list[RuleViolation] = []
    resolved: list[RuleViolation] = []
    for violation in violations:
        if resolutions.is_resolved(violation):
            resolved.append(violation)
        else:
            unresolved.append(violation)
    return tuple(unresolved), tuple(resolved)
