"""The external ScanCode backend with the subprocess replaced."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

import pytest

from licensage.domain.models import Location, Severity
from licensage.services import scancode_scanner
from licensage.services.scancode_scanner import ScanCodeScanner
from licensage.services.scanner import LocalScanner

VERSION_OUTPUT = "ScanCode version: 32.0.8\nScanCode Output Format version: 3.0.0\n"

RAW_LICENSE = {"key": "mit", "spdx_license_key": "MIT", "start_line": 1, "end_line": 20}
RAW_COPYRIGHT = {"copyright": "Copyright (c) 2020 Jane", "start_line": 3}


def _raw_result() -> dict[str, Any]:
    return {
        "headers": [{"tool_name": "scancode-toolkit"}],
        "files": [
            {
                "path": "LICENSE",
                "type": "file",
                "licenses": [RAW_LICENSE],
                "copyrights": [RAW_COPYRIGHT],
                "scan_errors": [],
            }
        ],
    }


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "input"
    directory.mkdir()
    (directory / "LICENSE").write_text("MIT\n")
    return directory


def _fake_run(
    monkeypatch: pytest.MonkeyPatch,
    *,
    returncode: int = 0,
    write_result: bool = True,
    error: Exception | None = None,
) -> list[list[str]]:
    calls: list[list[str]] = []

    def run(args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        calls.append(list(args))
        if "--version" in args:
            return subprocess.CompletedProcess(args, 0, VERSION_OUTPUT, "")
        if error is not None:
            raise error
        if write_result:
            Path(args[-2]).write_text(json.dumps(_raw_result()))
        return subprocess.CompletedProcess(args, returncode, "", "boom")

    monkeypatch.setattr(scancode_scanner.subprocess, "run", run)
    return calls


def test_scan_parses_the_json_artifact(
    monkeypatch: pytest.MonkeyPatch, input_dir: Path, tmp_path: Path
) -> None:
    calls = _fake_run(monkeypatch)

    result = LocalScanner(ScanCodeScanner()).scan_path(input_dir, tmp_path / "out")

    (finding,) = result.summary.license_findings
    assert finding.license == "MIT"
    assert finding.locations == {Location("LICENSE", 1, 20)}
    assert {c.statement for c in finding.copyrights} == {"Copyright (c) 2020 Jane"}
    assert result.scanner.version == "32.0.8"
    assert result.scanner.configuration == (
        "--copyright --license --info --strip-root --json-pp"
    )
    scan_call = calls[-1]
    assert scan_call[0] == "scancode"
    assert scan_call[-1] == str(input_dir)
    assert Path(scan_call[-2]).parent == tmp_path / "out"


def test_nonzero_exit_without_artifact_is_a_failure(
    monkeypatch: pytest.MonkeyPatch, input_dir: Path, tmp_path: Path
) -> None:
    _fake_run(monkeypatch, returncode=2, write_result=False)

    result = LocalScanner(ScanCodeScanner()).scan_path(input_dir, tmp_path / "out")

    (issue,) = result.summary.issues
    assert issue.severity is Severity.ERROR
    assert issue.message == "ScanCode failed to scan 'input': exit code 2: boom"


def test_nonzero_exit_with_artifact_keeps_findings(
    monkeypatch: pytest.MonkeyPatch, input_dir: Path, tmp_path: Path
) -> None:
    _fake_run(monkeypatch, returncode=1)

    result = LocalScanner(ScanCodeScanner()).scan_path(input_dir, tmp_path / "out")

    assert result.summary.licenses == {"MIT"}


def test_timeout_is_reported(
    monkeypatch: pytest.MonkeyPatch, input_dir: Path, tmp_path: Path
) -> None:
    _fake_run(monkeypatch, error=subprocess.TimeoutExpired("scancode", 360))

    result = LocalScanner(ScanCodeScanner()).scan_path(input_dir, tmp_path / "out")

    (issue,) = result.summary.issues
    assert issue.message == "Timeout after 360 seconds while scanning 'input'."


def test_missing_binary_is_reported(
    monkeypatch: pytest.MonkeyPatch, input_dir: Path, tmp_path: Path
) -> None:
    def run(args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", "scancode")

    monkeypatch.setattr(scancode_scanner.subprocess, "run", run)

    result = LocalScanner(ScanCodeScanner()).scan_path(input_dir, tmp_path / "out")

    (issue,) = result.summary.issues
    assert issue.severity is Severity.ERROR
    assert result.scanner.version == ""


def test_command_in_working_directory() -> None:
    scanner = ScanCodeScanner()

    assert scanner.command() == "scancode"
    assert scanner.command(Path("/opt/scancode")) == "/opt/scancode/scancode"
