"""Trivial backend that only counts files, for exercising the pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..domain.models import Provenance, ScanResult, utc_now
from .result_normalizer import summarize
from .scan_config import DEFAULT_SCANNER_CONFIGURATION, ScannerConfiguration
from .scanner import read_json_result, scanner_details, write_json_result
from .verification_code import count_files


class FileCounter:
    """Counts the regular files of a path; much faster than real scanners."""

    name = "FileCounter"
    result_file_ext = "json"
    VERSION = "1.0"

    def __init__(
        self, config: ScannerConfiguration = DEFAULT_SCANNER_CONFIGURATION
    ) -> None:
        self.config = config

    def command(self, working_dir: Path | None = None) -> str:
        return ""

    def get_version(self) -> str:
        return self.VERSION

    def get_configuration(self) -> str:
        return ""

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult:
        start_time = utc_now()
        write_json_result(results_file, {"file_count": count_files(path)})
        end_time = utc_now()

        raw_result = self.get_raw_result(results_file)
        summary = summarize(
            start_time=start_time,
            end_time=end_time,
            scan_path=path,
            raw_result={},
            output_dir=results_file.parent,
            source=self.name,
            file_count=int(raw_result.get("file_count", 0)),
        )
        return ScanResult(Provenance(), scanner_details(self), summary, raw_result)

    def get_raw_result(self, results_file: Path) -> dict[str, Any]:
        return read_json_result(results_file)
