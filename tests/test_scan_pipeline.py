"""Concurrent scanning with bounded workers, timeouts and fresh output directories."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from licensage.contracts import reason_codes
from licensage.domain.models import CopyrightGarbage, ScanResult, Severity
from licensage.services.file_counter import FileCounter
from licensage.services.issue_audit import get_issue_events
from licensage.services.pattern_scanner import PatternScanner
from licensage.services.scan_pipeline import collect_license_findings, scan_paths
from licensage.services.scanner import LocalScanner


class _RecordingCounter(FileCounter):
    """File counter that remembers its output directories and concurrency."""

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__()
        self.delay = delay
        self.output_dirs: list[Path] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult:
        with self._lock:
            self.output_dirs.append(results_file.parent)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delay)
            return super().scan_path_internal(path, results_file)
        finally:
            with self._lock:
                self.active -= 1


class _BlockingCounter(FileCounter):
    def __init__(self, release: threading.Event) -> None:
        super().__init__()
        self.release = release

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult:
        self.release.wait(timeout=5)
        return super().scan_path_internal(path, results_file)


def _inputs(tmp_path: Path, count: int) -> dict[str, Path]:
    inputs = {}
    for index in range(count):
        directory = tmp_path / f"pkg{index}"
        directory.mkdir()
        (directory / "README").write_text(f"package {index}\n")
        inputs[f"pkg{index}"] = directory
    return inputs


def test_results_are_keyed_by_label_in_input_order(tmp_path: Path) -> None:
    inputs = _inputs(tmp_path, 4)

    results = scan_paths(LocalScanner(FileCounter()), inputs, max_workers=2)

    assert list(results) == list(inputs)
    assert all(result.summary.file_count == 1 for result in results.values())


def test_plain_paths_are_labelled_by_themselves(tmp_path: Path) -> None:
    inputs = _inputs(tmp_path, 2)

    results = scan_paths(LocalScanner(FileCounter()), list(inputs.values()))

    assert list(results) == [str(path) for path in inputs.values()]


def test_workers_are_bounded(tmp_path: Path) -> None:
    backend = _RecordingCounter(delay=0.05)

    scan_paths(LocalScanner(backend), _inputs(tmp_path, 6), max_workers=2)

    assert 1 <= backend.max_active <= 2


def test_every_invocation_gets_a_fresh_output_directory(tmp_path: Path) -> None:
    backend = _RecordingCounter()

    scan_paths(LocalScanner(backend), _inputs(tmp_path, 3), max_workers=3)

    assert len(set(backend.output_dirs)) == 3
    assert not any(directory.exists() for directory in backend.output_dirs)


def test_slow_invocation_times_out(tmp_path: Path) -> None:
    release = threading.Event()
    inputs = _inputs(tmp_path, 1)

    try:
        scanner = LocalScanner(_BlockingCounter(release))
        results = scan_paths(scanner, inputs, timeout=0.2)
    finally:
        release.set()

    (issue,) = results["pkg0"].summary.issues
    assert issue.severity is Severity.ERROR
    assert issue.message == "Timeout after 0.2 seconds while scanning 'pkg0'."
    assert results["pkg0"].summary.license_findings == frozenset()
    assert get_issue_events(reason_codes.BACKEND_FAILURE)


def test_failing_invocation_does_not_affect_others(tmp_path: Path) -> None:
    inputs = _inputs(tmp_path, 2)
    inputs["missing"] = tmp_path / "missing"

    results = scan_paths(LocalScanner(FileCounter()), inputs)

    (issue,) = results["missing"].summary.issues
    assert "failed to scan 'missing'" in issue.message
    assert results["pkg0"].summary.issues == ()
    assert results["pkg1"].summary.file_count == 1


def test_no_inputs_yield_no_results() -> None:
    assert scan_paths(LocalScanner(FileCounter()), []) == {}


def test_collect_license_findings_merges_and_cleans(
    tmp_path: Path, mit_license_text: str
) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    for directory in (first, second):
        directory.mkdir()
    (first / "LICENSE").write_text(mit_license_text)
    (second / "LICENSE").write_text(
        mit_license_text.replace("2019-2020", "2021").replace("2018", "2017")
    )
    garbage = CopyrightGarbage(frozenset({"Copyright (c) 2017 Jane Doe"}))

    results = scan_paths(LocalScanner(PatternScanner()), [first, second])
    findings = collect_license_findings(results.values(), garbage)

    assert findings == {"MIT": frozenset({"Copyright (c) 2018-2021 Jane Doe"})}


@pytest.mark.parametrize("workers", [1, 3])
def test_worker_count_does_not_change_results(tmp_path: Path, workers: int) -> None:
    inputs = _inputs(tmp_path, 3)

    results = scan_paths(LocalScanner(FileCounter()), inputs, max_workers=workers)

    assert [r.summary.package_verification_code for r in results.values()] == [
        LocalScanner(FileCounter())
        .scan_path(path, tmp_path / "out" / label)
        .summary.package_verification_code
        for label, path in inputs.items()
    ]
