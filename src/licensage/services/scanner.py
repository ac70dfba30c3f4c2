"""Scanner backend contract and the driver that runs a backend safely.

Backends must satisfy the following invariants:
1. The raw result artifact is written to the ``results_file`` they are handed
   and nowhere else.
2. Every reported location is relative to the scanned path; no absolute,
   output-directory or temporary-directory prefix survives normalization.
3. Summaries are always complete: absent findings are empty sets.
4. ``get_raw_result`` tolerates a missing or empty artifact.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Protocol

from ..contracts import reason_codes
from ..domain.models import (
    Issue,
    Provenance,
    ScannerDetails,
    ScanResult,
    ScanSummary,
    Severity,
    utc_now,
)
from .issue_audit import record_issue_event
from .scan_config import DEFAULT_SCANNER_CONFIGURATION, ScannerConfiguration

_LOG = logging.getLogger(__name__)


class ScanError(RuntimeError):
    """Raised by a backend when the underlying tool did not produce a result."""


class ScannerBackend(Protocol):
    """Capabilities every scanner integration provides."""

    name: str
    result_file_ext: str

    def get_version(self) -> str: ...

    def get_configuration(self) -> str: ...

    def command(self, working_dir: Path | None = None) -> str: ...

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult: ...

    def get_raw_result(self, results_file: Path) -> dict[str, Any]: ...


def read_json_result(results_file: Path) -> dict[str, Any]:
    """Load a JSON artifact, or return ``{}`` when it is missing or empty."""

    if not results_file.is_file() or results_file.stat().st_size == 0:
        return {}
    try:
        payload = json.loads(results_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ScanError("Raw scan result is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise ScanError("Raw scan result is not a JSON object.")
    return payload


def write_json_result(results_file: Path, payload: dict[str, Any]) -> None:
    results_file.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
    )


def scanner_details(backend: ScannerBackend) -> ScannerDetails:
    return ScannerDetails(
        name=backend.name,
        version=backend.get_version(),
        configuration=backend.get_configuration(),
    )


def failure_result(details: ScannerDetails, message: str) -> ScanResult:
    """Build the complete-but-empty result reported for a failed invocation."""

    now = utc_now()
    issue = Issue(message=message, source=details.name, severity=Severity.ERROR)
    summary = ScanSummary(
        start_time=now,
        end_time=now,
        file_count=0,
        package_verification_code="",
        issues=(issue,),
    )
    return ScanResult(Provenance(), details, summary, {})


class LocalScanner:
    """Runs one backend over local paths and contains its failures."""

    def __init__(
        self,
        backend: ScannerBackend,
        config: ScannerConfiguration = DEFAULT_SCANNER_CONFIGURATION,
    ) -> None:
        self.backend = backend
        self.config = config
        self._details: ScannerDetails | None = None

    @property
    def name(self) -> str:
        return self.backend.name

    @property
    def details(self) -> ScannerDetails:
        """Identity of the backend, used to tag and cache results."""

        if self._details is None:
            try:
                self._details = scanner_details(self.backend)
            except (ScanError, OSError, subprocess.SubprocessError) as exc:
                _LOG.warning("Unable to determine %s version: %s", self.name, exc)
                return ScannerDetails(
                    name=self.name,
                    version="",
                    configuration=self.backend.get_configuration(),
                )
        return self._details

    def results_file_for(self, input_path: Path, output_dir: Path) -> Path:
        stem = input_path.name or "root"
        return output_dir / f"{stem}_{self.name}.{self.backend.result_file_ext}"

    def scan_path(self, input_path: Path, output_dir: Path) -> ScanResult:
        """
        Scan a file or directory tree, writing the raw artifact into ``output_dir``.

        Failures of the backend never propagate: they are returned as a
        result carrying one ERROR issue and empty findings.
        """

        path = Path(input_path).absolute()
        if not path.exists():
            raise FileNotFoundError(f"Scan path does not exist: {path}")
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        results_file = self.results_file_for(path, output_dir)

        _LOG.info("Scanning '%s' with %s.", path, self.name)
        try:
            return self.backend.scan_path_internal(path, results_file)
        except subprocess.TimeoutExpired:
            message = (
                f"Timeout after {self.config.timeout_seconds} seconds while "
                f"scanning '{path.name}'."
            )
        except (ScanError, OSError, ValueError, subprocess.SubprocessError) as exc:
            message = f"{self.name} failed to scan '{path.name}': {exc}"

        result = failure_result(self.details, message)
        record_issue_event(
            reason_codes.BACKEND_FAILURE,
            result.summary.issues[0],
            {"scanner": self.name, "path": path.name},
        )
        return result
