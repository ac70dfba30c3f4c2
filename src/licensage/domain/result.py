"""Aggregated analysis result graph and the configuration applied to it.

These structures are produced by external collaborators (the analyzer,
configuration loaders) and consumed read-only by the rule engine.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Iterator, Mapping, Protocol

from .identifier import Identifier
from .models import Issue, LicenseFinding, RuleViolation, ScanResult
from .spdx import decompose


@dataclass(frozen=True)
class Package:
    """Metadata of a third-party package."""

    id: Identifier
    declared_licenses: frozenset[str] = frozenset()
    concluded_license: str | None = None
    description: str = ""
    homepage_url: str = ""


@dataclass(frozen=True)
class PackageReference:
    """A node of a dependency tree."""

    id: Identifier
    linkage: str = "DYNAMIC"
    dependencies: tuple["PackageReference", ...] = ()


@dataclass(frozen=True)
class Scope:
    name: str
    dependencies: tuple[PackageReference, ...] = ()


@dataclass(frozen=True)
class Project:
    """A project found in the analyzed repository."""

    id: Identifier
    definition_file_path: str = ""
    declared_licenses: frozenset[str] = frozenset()
    scopes: tuple[Scope, ...] = ()

    def as_package(self) -> Package:
        return Package(id=self.id, declared_licenses=self.declared_licenses)


@dataclass(frozen=True)
class PackageCurationData:
    """Corrections applied on top of detected package metadata."""

    comment: str = ""
    concluded_license: str | None = None
    declared_licenses: frozenset[str] | None = None
    description: str | None = None
    homepage_url: str | None = None


@dataclass(frozen=True)
class PackageCuration:
    """A curation for one package, or for all versions when ``version`` is empty."""

    id: Identifier
    data: PackageCurationData

    def is_applicable(self, package_id: Identifier) -> bool:
        if (self.id.type, self.id.namespace, self.id.name) != (
            package_id.type,
            package_id.namespace,
            package_id.name,
        ):
            return False
        return not self.id.version or self.id.version == package_id.version

    def apply(self, package: Package) -> Package:
        """Return a copy of ``package`` with the curated fields overridden."""

        if not self.is_applicable(package.id):
            raise ValueError("Curation does not apply to the given package.")
        changes: dict[str, object] = {}
        if self.data.concluded_license is not None:
            changes["concluded_license"] = self.data.concluded_license
        if self.data.declared_licenses is not None:
            changes["declared_licenses"] = self.data.declared_licenses
        if self.data.description is not None:
            changes["description"] = self.data.description
        if self.data.homepage_url is not None:
            changes["homepage_url"] = self.data.homepage_url
        return replace(package, **changes)


@dataclass(frozen=True)
class PathExclude:
    """Glob over root-relative paths that are not distributed."""

    pattern: str
    reason: str
    comment: str = ""

    def matches(self, path: str) -> bool:
        return fnmatch.fnmatchcase(path, self.pattern)


@dataclass(frozen=True)
class ScopeExclude:
    """Regular expression over scope names that are not distributed."""

    pattern: str
    reason: str
    comment: str = ""

    def matches(self, scope_name: str) -> bool:
        return re.fullmatch(self.pattern, scope_name) is not None


@dataclass(frozen=True)
class Excludes:
    paths: tuple[PathExclude, ...] = ()
    scopes: tuple[ScopeExclude, ...] = ()

    def is_path_excluded(self, path: str) -> bool:
        return any(exclude.matches(path) for exclude in self.paths)

    def is_scope_excluded(self, scope_name: str) -> bool:
        return any(exclude.matches(scope_name) for exclude in self.scopes)


@dataclass(frozen=True)
class IssueResolution:
    message: str
    reason: str
    comment: str = ""

    def matches(self, issue: Issue) -> bool:
        return re.search(self.message, issue.message) is not None


@dataclass(frozen=True)
class RuleViolationResolution(IssueResolution):
    pass


@dataclass(frozen=True)
class Resolutions:
    """Accepted issues and rule violations, matched by message pattern."""

    issues: tuple[IssueResolution, ...] = ()
    rule_violations: tuple[RuleViolationResolution, ...] = ()

    def is_resolved(self, issue: Issue) -> bool:
        candidates = (
            self.rule_violations if isinstance(issue, RuleViolation) else self.issues
        )
        return any(resolution.matches(issue) for resolution in candidates)


@dataclass(frozen=True)
class RepositoryConfiguration:
    excludes: Excludes = field(default_factory=Excludes)
    resolutions: Resolutions = field(default_factory=Resolutions)


@dataclass(frozen=True)
class LicenseCategory:
    name: str
    description: str = ""


@dataclass(frozen=True)
class LicenseConfiguration:
    """Classification of licenses into named categories."""

    categories: tuple[LicenseCategory, ...] = ()
    license_categories: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def categories_for(self, license: str) -> frozenset[str]:
        return self.license_categories.get(license, frozenset())

    @property
    def category_names(self) -> frozenset[str]:
        return frozenset(category.name for category in self.categories)


@dataclass(frozen=True)
class PackageConfiguration:
    """Package-specific settings, such as paths to ignore in scan results."""

    id: Identifier
    path_excludes: tuple[PathExclude, ...] = ()


class PackageConfigurationProvider(Protocol):
    """Lookup of package configurations by package id."""

    def get_package_configuration(
        self, package_id: Identifier
    ) -> PackageConfiguration | None: ...


class SimplePackageConfigurationProvider:
    """Provider backed by a fixed collection of configurations."""

    EMPTY: "SimplePackageConfigurationProvider"

    def __init__(self, configurations: tuple[PackageConfiguration, ...] = ()) -> None:
        by_id: dict[Identifier, PackageConfiguration] = {}
        for configuration in configurations:
            if configuration.id in by_id:
                raise ValueError(
                    f"Duplicate package configuration for {configuration.id}."
                )
            by_id[configuration.id] = configuration
        self._by_id = by_id

    def get_package_configuration(
        self, package_id: Identifier
    ) -> PackageConfiguration | None:
        return self._by_id.get(package_id)


SimplePackageConfigurationProvider.EMPTY = SimplePackageConfigurationProvider()


@dataclass(frozen=True)
class DependencyNode:
    """A visited dependency together with where it was found."""

    project: Identifier
    scope: str
    reference: PackageReference
    level: int
    excluded: bool


@dataclass(frozen=True)
class AnalysisResult:
    """The combined analyzer, scanner and configuration input of an evaluation."""

    projects: tuple[Project, ...] = ()
    packages: tuple[Package, ...] = ()
    scan_results: Mapping[Identifier, tuple[ScanResult, ...]] = field(
        default_factory=dict
    )
    repository_configuration: RepositoryConfiguration = field(
        default_factory=RepositoryConfiguration
    )
    curations: tuple[PackageCuration, ...] = ()

    @cached_property
    def _projects_by_id(self) -> dict[Identifier, Project]:
        index: dict[Identifier, Project] = {}
        for project in self.projects:
            index.setdefault(project.id, project)
        return index

    @cached_property
    def _packages_by_id(self) -> dict[Identifier, Package]:
        index: dict[Identifier, Package] = {}
        for package in self.packages:
            index.setdefault(package.id, package)
        return index

    @cached_property
    def _curations_by_name(
        self,
    ) -> dict[tuple[str, str, str], tuple[PackageCuration, ...]]:
        index: dict[tuple[str, str, str], list[PackageCuration]] = {}
        for curation in self.curations:
            key = (curation.id.type, curation.id.namespace, curation.id.name)
            index.setdefault(key, []).append(curation)
        return {key: tuple(curations) for key, curations in index.items()}

    @cached_property
    def _excluded_packages(self) -> dict[Identifier, bool]:
        """Per package id: whether every dependency tree occurrence is excluded."""

        excluded: dict[Identifier, bool] = {}
        for node in self.dependency_tree():
            package_id = node.reference.id
            excluded[package_id] = excluded.get(package_id, True) and node.excluded
        return excluded

    def project_ids(self) -> frozenset[Identifier]:
        return frozenset(self._projects_by_id)

    def all_ids(self) -> list[Identifier]:
        """Every project and package id, sorted."""

        return sorted(self._projects_by_id.keys() | self._packages_by_id.keys())

    def is_project(self, package_id: Identifier) -> bool:
        return package_id in self._projects_by_id

    def get_project(self, package_id: Identifier) -> Project | None:
        return self._projects_by_id.get(package_id)

    def applicable_curations(
        self, package_id: Identifier
    ) -> tuple[PackageCuration, ...]:
        key = (package_id.type, package_id.namespace, package_id.name)
        candidates = self._curations_by_name.get(key, ())
        return tuple(c for c in candidates if c.is_applicable(package_id))

    def curated_package(self, package_id: Identifier) -> Package | None:
        """Return the package (or project) with all applicable curations applied."""

        project = self.get_project(package_id)
        if project is not None:
            return project.as_package()
        package = self._packages_by_id.get(package_id)
        if package is None:
            return None
        for curation in self.applicable_curations(package_id):
            package = curation.apply(package)
        return package

    def dependency_tree(self) -> Iterator[DependencyNode]:
        """Walk every project scope depth-first in declaration order."""

        excludes = self.repository_configuration.excludes
        for project in self.projects:
            project_excluded = excludes.is_path_excluded(project.definition_file_path)
            for scope in project.scopes:
                excluded = project_excluded or excludes.is_scope_excluded(scope.name)
                yield from _walk(
                    project.id, scope.name, scope.dependencies, 0, excluded
                )

    def is_excluded(self, package_id: Identifier) -> bool:
        """
        A project is excluded when its definition file is path-excluded; a
        package when every occurrence in the dependency trees is excluded.
        """

        project = self.get_project(package_id)
        if project is not None:
            return self.repository_configuration.excludes.is_path_excluded(
                project.definition_file_path
            )
        return self._excluded_packages.get(package_id, False)

    def detected_licenses(
        self,
        package_id: Identifier,
        package_configuration: PackageConfiguration | None = None,
    ) -> frozenset[str]:
        """Licenses found by scanners, ignoring findings only in excluded paths."""

        if self.is_project(package_id):
            path_excludes = self.repository_configuration.excludes.paths
        elif package_configuration is not None:
            path_excludes = package_configuration.path_excludes
        else:
            path_excludes = ()

        licenses: set[str] = set()
        for scan_result in self.scan_results.get(package_id, ()):
            for finding in scan_result.summary.license_findings:
                if _all_excluded(finding, path_excludes):
                    continue
                licenses.update(decompose(finding.license))
        return frozenset(licenses)


def _all_excluded(
    finding: LicenseFinding, path_excludes: tuple[PathExclude, ...]
) -> bool:
    if not path_excludes or not finding.locations:
        return False
    return all(
        any(exclude.matches(location.path) for exclude in path_excludes)
        for location in finding.locations
    )


def _walk(
    project: Identifier,
    scope: str,
    references: tuple[PackageReference, ...],
    level: int,
    excluded: bool,
) -> Iterator[DependencyNode]:
    for reference in references:
        yield DependencyNode(project, scope, reference, level, excluded)
        yield from _walk(project, scope, reference.dependencies, level + 1, excluded)


AnalysisResult.EMPTY = AnalysisResult()  # type: ignore[misc]
