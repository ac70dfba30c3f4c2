"""Backend that runs the external ScanCode toolkit."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import Any

from ..domain.models import Provenance, ScanResult, utc_now
from .result_normalizer import summarize
from .scan_config import DEFAULT_SCANNER_CONFIGURATION, ScannerConfiguration
from .scanner import ScanError, read_json_result, scanner_details

_LOG = logging.getLogger(__name__)

OUTPUT_FORMAT_OPTION = "--json-pp"
_VERSION_PATTERN = re.compile(r"ScanCode version:?\s*(?P<version>\S+)", re.IGNORECASE)
_STDERR_TAIL_CHARS = 500


class ScanCodeScanner:
    """Runs ``scancode`` with the configured options and a hard timeout."""

    name = "ScanCode"
    result_file_ext = "json"

    def __init__(
        self, config: ScannerConfiguration = DEFAULT_SCANNER_CONFIGURATION
    ) -> None:
        self.config = config
        self._version: str | None = None

    def command(self, working_dir: Path | None = None) -> str:
        if working_dir is None:
            return "scancode"
        return str(Path(working_dir) / "scancode")

    @property
    def options(self) -> list[str]:
        return shlex.split(self.config.scancode_options)

    def get_version(self) -> str:
        if self._version is None:
            completed = subprocess.run(
                [self.command(), "--version"],
                capture_output=True,
                text=True,
                timeout=self.config.timeout_seconds,
                check=False,
            )
            match = _VERSION_PATTERN.search(completed.stdout)
            if completed.returncode != 0 or match is None:
                raise ScanError(
                    f"Unable to determine the {self.name} version "
                    f"(exit code {completed.returncode})."
                )
            self._version = match.group("version")
        return self._version

    def get_configuration(self) -> str:
        return " ".join([*self.options, OUTPUT_FORMAT_OPTION])

    def scan_path_internal(self, path: Path, results_file: Path) -> ScanResult:
        self.get_version()
        args = [
            self.command(),
            *self.options,
            OUTPUT_FORMAT_OPTION,
            str(results_file),
            str(path),
        ]
        _LOG.debug("Running %s", " ".join(args))

        start_time = utc_now()
        completed = subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=self.config.timeout_seconds,
            check=False,
        )
        end_time = utc_now()

        raw_result = self.get_raw_result(results_file)
        if completed.returncode != 0 and not raw_result:
            stderr = (completed.stderr or "").strip()[-_STDERR_TAIL_CHARS:]
            raise ScanError(f"exit code {completed.returncode}: {stderr}")

        summary = summarize(
            start_time=start_time,
            end_time=end_time,
            scan_path=path,
            raw_result=raw_result,
            output_dir=results_file.parent,
            source=self.name,
        )
        return ScanResult(Provenance(), scanner_details(self), summary, raw_result)

    def get_raw_result(self, results_file: Path) -> dict[str, Any]:
        return read_json_result(results_file)

