"""Shared fixtures keeping the audit trail isolated per test."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from licensage.services.audit_log import AuditConfig, configure_audit_log
from licensage.services.issue_audit import clear_issue_events

FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures"
EXAMPLES_DIR = Path(__file__).resolve().parents[1] / "examples"


@pytest.fixture(autouse=True)
def isolated_audit_trail(tmp_path_factory: pytest.TempPathFactory) -> Iterator[Path]:
    """Point the persistent audit log at a temporary file and clear recorded events."""

    audit_file = tmp_path_factory.mktemp("audit") / "issues.jsonl"
    configure_audit_log(AuditConfig(audit_file=audit_file, max_bytes=None))
    clear_issue_events()
    yield audit_file
    clear_issue_events()
    configure_audit_log(None)


@pytest.fixture
def mit_license_text() -> str:
    return (FIXTURE_DIR / "MIT.txt").read_text(encoding="utf-8")


@pytest.fixture
def examples_dir() -> Path:
    return EXAMPLES_DIR
