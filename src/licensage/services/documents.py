"""YAML documents that configure the core, parsed into domain objects.

Every document is validated against its JSON schema before it is converted,
and every ``dump_*`` function produces text that parses back to an equal
object.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

import yaml

from ..contracts import reason_codes
from ..contracts.schema_registry import SchemaValidationError, describe, validate
from ..domain.identifier import Identifier
from ..domain.models import CopyrightGarbage, Issue, LicenseFindingsMap
from ..domain.result import (
    Excludes,
    IssueResolution,
    LicenseCategory,
    LicenseConfiguration,
    PackageConfiguration,
    PackageCuration,
    PackageCurationData,
    PathExclude,
    RepositoryConfiguration,
    Resolutions,
    RuleViolationResolution,
    ScopeExclude,
    SimplePackageConfigurationProvider,
)
from .issue_audit import record_issue_event


class DocumentError(ValueError):
    """Raised when a configuration document is malformed."""


def _invalid(schema: str, message: str) -> DocumentError:
    record_issue_event(
        reason_codes.INVALID_DOCUMENT,
        Issue(message=message, source="documents"),
        {"schema": schema},
    )
    return DocumentError(message)


def load_yaml(text: str | None, schema: str, empty: Any) -> Any:
    """Parse YAML text and validate it; an empty document becomes ``empty``."""

    try:
        document = yaml.safe_load(text) if text else None
    except yaml.YAMLError as exc:
        raise _invalid(schema, f"Document is not valid YAML: {exc}") from exc
    if document is None:
        document = empty
    try:
        validate(schema, document)
    except SchemaValidationError as exc:
        message = f"Document does not match {schema} at {describe(exc)}"
        raise _invalid(schema, message) from exc
    return document


def _dump(data: Any) -> str:
    return yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    )


def _identifier(coordinates: str) -> Identifier:
    try:
        return Identifier.from_coordinates(coordinates)
    except ValueError as exc:
        raise DocumentError(str(exc)) from exc


def _pattern(schema: str, pattern: str) -> str:
    """Return ``pattern`` after checking that it is a valid regular expression."""

    try:
        re.compile(pattern)
    except re.error as exc:
        raise _invalid(
            schema, f"Invalid regular expression '{pattern}' in {schema}: {exc}"
        ) from exc
    return pattern


def _with_comment(data: dict[str, Any], comment: str) -> dict[str, Any]:
    if comment:
        data["comment"] = comment
    return data


# Copyright garbage


def parse_copyright_garbage(text: str | None) -> CopyrightGarbage:
    document = load_yaml(text, "copyright_garbage_v1", {"items": []})
    return CopyrightGarbage(frozenset(document["items"]))


def dump_copyright_garbage(garbage: CopyrightGarbage) -> str:
    return _dump({"items": sorted(garbage.items)})


# Curations


def parse_curations(text: str | None) -> tuple[PackageCuration, ...]:
    document = load_yaml(text, "curations_v1", [])
    curations = []
    for entry in document:
        data = entry["curations"]
        declared = data.get("declared_licenses")
        curations.append(
            PackageCuration(
                id=_identifier(entry["id"]),
                data=PackageCurationData(
                    comment=data.get("comment", ""),
                    concluded_license=data.get("concluded_license"),
                    declared_licenses=(
                        frozenset(declared) if declared is not None else None
                    ),
                    description=data.get("description"),
                    homepage_url=data.get("homepage_url"),
                ),
            )
        )
    return tuple(curations)


def dump_curations(curations: Iterable[PackageCuration]) -> str:
    entries = []
    for curation in curations:
        data = _with_comment({}, curation.data.comment)
        if curation.data.concluded_license is not None:
            data["concluded_license"] = curation.data.concluded_license
        if curation.data.declared_licenses is not None:
            data["declared_licenses"] = sorted(curation.data.declared_licenses)
        if curation.data.description is not None:
            data["description"] = curation.data.description
        if curation.data.homepage_url is not None:
            data["homepage_url"] = curation.data.homepage_url
        entries.append({"id": curation.id.coordinates, "curations": data})
    return _dump(entries)


# License configuration


def parse_license_configuration(text: str | None) -> LicenseConfiguration:
    document = load_yaml(text, "license_configuration_v1", {})
    categories = tuple(
        LicenseCategory(entry["name"], entry.get("description", ""))
        for entry in document.get("categories", [])
    )
    known = {category.name for category in categories}
    if len(known) != len(categories):
        raise DocumentError("License categories must have unique names.")

    license_categories: dict[str, frozenset[str]] = {}
    for entry in document.get("categorizations", []):
        license = entry["id"]
        assigned = frozenset(entry.get("categories", []))
        unknown = sorted(assigned - known)
        if unknown:
            raise DocumentError(
                f"License '{license}' refers to unknown categories: "
                f"{', '.join(unknown)}."
            )
        if license in license_categories:
            raise DocumentError(f"License '{license}' is categorized more than once.")
        license_categories[license] = assigned
    return LicenseConfiguration(categories, license_categories)


def _category_data(category: LicenseCategory) -> dict[str, str]:
    data = {"name": category.name}
    if category.description:
        data["description"] = category.description
    return data


def dump_license_configuration(configuration: LicenseConfiguration) -> str:
    return _dump(
        {
            "categories": [
                _category_data(category) for category in configuration.categories
            ],
            "categorizations": [
                {
                    "id": license,
                    "categories": sorted(configuration.license_categories[license]),
                }
                for license in sorted(configuration.license_categories)
            ],
        }
    )


# Resolutions


def _resolutions_from(
    document: dict[str, Any], schema: str = "resolutions_v1"
) -> Resolutions:
    validate_resolutions(document)
    return Resolutions(
        issues=tuple(
            IssueResolution(
                _pattern(schema, e["message"]), e["reason"], e.get("comment", "")
            )
            for e in document.get("issues", [])
        ),
        rule_violations=tuple(
            RuleViolationResolution(
                _pattern(schema, e["message"]), e["reason"], e.get("comment", "")
            )
            for e in document.get("rule_violations", [])
        ),
    )


def validate_resolutions(document: Any) -> None:
    try:
        validate("resolutions_v1", document)
    except SchemaValidationError as exc:
        raise _invalid(
            "resolutions_v1", f"Resolutions are invalid at {describe(exc)}"
        ) from exc


def _resolutions_data(resolutions: Resolutions) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if resolutions.issues:
        data["issues"] = [
            _with_comment({"message": r.message, "reason": r.reason}, r.comment)
            for r in resolutions.issues
        ]
    if resolutions.rule_violations:
        data["rule_violations"] = [
            _with_comment({"message": r.message, "reason": r.reason}, r.comment)
            for r in resolutions.rule_violations
        ]
    return data


def parse_resolutions(text: str | None) -> Resolutions:
    return _resolutions_from(load_yaml(text, "resolutions_v1", {}))


def dump_resolutions(resolutions: Resolutions) -> str:
    return _dump(_resolutions_data(resolutions))


# Repository configuration


def parse_repository_configuration(text: str | None) -> RepositoryConfiguration:
    schema = "repository_configuration_v1"
    document = load_yaml(text, schema, {})
    excludes = document.get("excludes", {})
    return RepositoryConfiguration(
        excludes=Excludes(
            paths=tuple(
                PathExclude(e["pattern"], e["reason"], e.get("comment", ""))
                for e in excludes.get("paths", [])
            ),
            scopes=tuple(
                ScopeExclude(
                    _pattern(schema, e["pattern"]), e["reason"], e.get("comment", "")
                )
                for e in excludes.get("scopes", [])
            ),
        ),
        resolutions=_resolutions_from(document.get("resolutions", {}), schema),
    )


def dump_repository_configuration(configuration: RepositoryConfiguration) -> str:
    data: dict[str, Any] = {}
    excludes: dict[str, Any] = {}
    if configuration.excludes.paths:
        excludes["paths"] = [
            _with_comment({"pattern": e.pattern, "reason": e.reason}, e.comment)
            for e in configuration.excludes.paths
        ]
    if configuration.excludes.scopes:
        excludes["scopes"] = [
            _with_comment({"pattern": e.pattern, "reason": e.reason}, e.comment)
            for e in configuration.excludes.scopes
        ]
    if excludes:
        data["excludes"] = excludes
    resolutions = _resolutions_data(configuration.resolutions)
    if resolutions:
        data["resolutions"] = resolutions
    return _dump(data)


# Package configurations


def parse_package_configurations(text: str | None) -> tuple[PackageConfiguration, ...]:
    document = load_yaml(text, "package_configurations_v1", [])
    return tuple(
        PackageConfiguration(
            id=_identifier(entry["id"]),
            path_excludes=tuple(
                PathExclude(e["pattern"], e["reason"], e.get("comment", ""))
                for e in entry.get("path_excludes", [])
            ),
        )
        for entry in document
    )


def dump_package_configurations(configurations: Iterable[PackageConfiguration]) -> str:
    return _dump(
        [
            {
                "id": configuration.id.coordinates,
                "path_excludes": [
                    _with_comment({"pattern": e.pattern, "reason": e.reason}, e.comment)
                    for e in configuration.path_excludes
                ],
            }
            for configuration in configurations
        ]
    )


def load_package_configuration_provider(
    text: str | None,
) -> SimplePackageConfigurationProvider:
    configurations = parse_package_configurations(text)
    try:
        return SimplePackageConfigurationProvider(configurations)
    except ValueError as exc:
        raise DocumentError(str(exc)) from exc


# License findings maps


def parse_license_findings_map(text: str | None) -> LicenseFindingsMap:
    document = load_yaml(text, "license_findings_map_v1", {})
    return {license: frozenset(document[license]) for license in sorted(document)}


def dump_license_findings_map(findings_map: LicenseFindingsMap) -> str:
    return _dump(
        {license: sorted(findings_map[license]) for license in sorted(findings_map)}
    )
