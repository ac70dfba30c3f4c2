"""Remediation text lookup for issues and violations."""

from __future__ import annotations

from pathlib import Path

import pytest

from licensage.domain.models import Issue, RuleViolation, Severity
from licensage.services.documents import DocumentError
from licensage.services.how_to_fix import HowToFixTextProvider, annotate

TIMEOUT_MESSAGE = (
    "ERROR: Timeout after 360 seconds while scanning file 'src/res/data.json'."
)


@pytest.fixture
def provider(examples_dir: Path) -> HowToFixTextProvider:
    return HowToFixTextProvider.from_yaml(
        (examples_dir / "how-to-fix.yml").read_text(encoding="utf-8")
    )


def test_scanner_timeout_resolves_to_manual_verification(
    provider: HowToFixTextProvider,
) -> None:
    text = provider.get_how_to_fix_text(Issue(TIMEOUT_MESSAGE, "ScanCode"))

    assert text.startswith(
        "Manually verify that the file does not contain any license information."
    )


def test_timeout_without_prefix_resolves(provider: HowToFixTextProvider) -> None:
    issue = Issue("Timeout after 360 seconds while scanning file 'x.json'", "ScanCode")

    assert "Manually verify" in provider.get_how_to_fix_text(issue)


def test_source_and_severity_restrict_a_pattern(provider: HowToFixTextProvider) -> None:
    assert provider.get_how_to_fix_text(Issue(TIMEOUT_MESSAGE, "PatternMatcher")) == ""
    assert (
        provider.get_how_to_fix_text(
            Issue(TIMEOUT_MESSAGE, "ScanCode", severity=Severity.WARNING)
        )
        == ""
    )


def test_first_matching_pattern_wins(provider: HowToFixTextProvider) -> None:
    issue = Issue("PatternMatcher failed to scan 'pkg': boom", "PatternMatcher")

    assert provider.get_how_to_fix_text(issue) == (
        "Check that the scanner is installed and can read the input."
    )


def test_unmatched_issue_has_no_text(provider: HowToFixTextProvider) -> None:
    assert provider.get_how_to_fix_text(Issue("Something else.", "ScanCode")) == ""


def test_empty_provider_never_matches() -> None:
    assert HowToFixTextProvider.EMPTY.get_how_to_fix_text(
        Issue(TIMEOUT_MESSAGE, "ScanCode")
    ) == ""
    assert HowToFixTextProvider.from_yaml(None).patterns == ()


@pytest.mark.parametrize(
    "text",
    [
        "how_to_fix:\n  - message: '['\n    text: t\n",
        "how_to_fix:\n  - message: m\n",
        "how_to_fix:\n  - message: m\n    text: t\n    severity: FATAL\n",
    ],
)
def test_invalid_documents_are_rejected(text: str) -> None:
    with pytest.raises(DocumentError):
        HowToFixTextProvider.from_yaml(text)


def test_annotate_fills_only_missing_texts(provider: HowToFixTextProvider) -> None:
    missing = RuleViolation(
        "Package NPM::left-pad:1.0 uses copyleft license GPL-3.0-only.",
        "Evaluator",
        rule="COPYLEFT",
    )
    preset = RuleViolation(
        "Package NPM::ramda:1.0 uses copyleft license GPL-3.0-only.",
        "Evaluator",
        rule="COPYLEFT",
        how_to_fix="Ask legal.",
    )
    unknown = RuleViolation("Nothing to see.", "Evaluator", rule="OTHER")

    annotated = annotate([missing, preset, unknown], provider)

    assert annotated[0].how_to_fix.startswith("Replace the package")
    assert annotated[0].message == missing.message
    assert annotated[1] is preset
    assert annotated[2].how_to_fix == ""
