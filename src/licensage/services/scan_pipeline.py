"""Concurrent scanning of many inputs with bounded workers and timeouts."""

from __future__ import annotations

import logging
import tempfile
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Iterable, Mapping, Union

from ..contracts import reason_codes
from ..domain.models import CopyrightGarbage, LicenseFindingsMap, ScanResult
from .issue_audit import record_issue_event
from .license_findings import clean, merge
from .scanner import LocalScanner, failure_result

_LOG = logging.getLogger(__name__)

_POLL_SECONDS = 0.05

ScanInputs = Union[Mapping[str, Union[str, Path]], Iterable[Union[str, Path]]]


def _labelled(inputs: ScanInputs) -> list[tuple[str, Path]]:
    if isinstance(inputs, Mapping):
        return [(str(label), Path(path)) for label, path in inputs.items()]
    return [(str(path), Path(path)) for path in inputs]


def _failed(scanner: LocalScanner, label: str, message: str) -> ScanResult:
    result = failure_result(scanner.details, message)
    record_issue_event(
        reason_codes.BACKEND_FAILURE,
        result.summary.issues[0],
        {"scanner": scanner.name, "input": label},
    )
    return result


def scan_paths(
    scanner: LocalScanner,
    inputs: ScanInputs,
    *,
    max_workers: int | None = None,
    timeout: float | None = None,
) -> dict[str, ScanResult]:
    """
    Scan every input concurrently and return the results keyed by label.

    ``inputs`` maps labels to paths, or is a plain sequence of paths labelled
    by themselves. Each invocation writes into its own temporary output
    directory, removed when the invocation ends. An invocation that runs
    longer than ``timeout`` seconds, or that raises, yields a failure result
    with one ERROR issue. Results keep the order of ``inputs``.
    """

    labelled = _labelled(inputs)
    if not labelled:
        return {}
    workers = max_workers or scanner.config.max_workers
    limit = timeout if timeout is not None else scanner.config.timeout_seconds
    started: dict[str, float] = {}
    started_lock = threading.Lock()

    def run(label: str, path: Path) -> ScanResult:
        with started_lock:
            started[label] = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="licensage-scan-") as output_dir:
            return scanner.scan_path(path, Path(output_dir))

    results: dict[str, ScanResult] = {}
    executor = ThreadPoolExecutor(
        max_workers=workers, thread_name_prefix="licensage-scan"
    )
    try:
        pending: dict[Future[ScanResult], tuple[str, Path]] = {
            executor.submit(run, label, path): (label, path)
            for label, path in labelled
        }
        while pending:
            done, _ = wait(pending, timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED)
            for future in done:
                label, path = pending.pop(future)
                try:
                    results[label] = future.result()
                except Exception as exc:
                    _LOG.warning("Scanning '%s' failed: %s", label, exc, exc_info=True)
                    message = f"{scanner.name} failed to scan '{path.name}': {exc}"
                    results[label] = _failed(scanner, label, message)

            now = time.monotonic()
            with started_lock:
                overdue = [
                    future
                    for future, (label, _) in pending.items()
                    if label in started and now - started[label] > limit
                ]
            for future in overdue:
                label, path = pending.pop(future)
                future.cancel()
                results[label] = _failed(
                    scanner,
                    label,
                    f"Timeout after {limit:g} seconds while scanning '{path.name}'.",
                )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return {label: results[label] for label, _ in labelled}


def collect_license_findings(
    results: Iterable[ScanResult],
    garbage: CopyrightGarbage = CopyrightGarbage(),
) -> LicenseFindingsMap:
    """Merge the findings maps of all results and clean the merged map."""

    return clean(
        merge(result.summary.license_findings_map() for result in results), garbage
    )
