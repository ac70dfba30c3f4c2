"""Configurable scanner settings shared by every backend."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SCANNER_NAME = "PatternMatcher"
"""Backend used when no scanner is configured."""

DEFAULT_SCAN_TIMEOUT_SECONDS = 360
"""Upper bound for one scan invocation before it is treated as failed."""

DEFAULT_MAX_WORKERS = 4
"""Default number of scan invocations that may run concurrently."""

DEFAULT_MAX_FILE_BYTES = 1_048_576
"""Files larger than this are counted but not inspected by in-process scanners."""

DEFAULT_SCANCODE_OPTIONS = "--copyright --license --info --strip-root"
"""Options passed to the external ScanCode binary."""


def _env_int(
    name: str,
    default: int,
    *,
    min_value: int = 0,
    max_value: int | None = None,
) -> int:
    """Return a bounded integer setting sourced from the environment."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if parsed < min_value:
        return default
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class ScannerConfiguration:
    """Container describing every configurable scan setting."""

    scanner: str
    timeout_seconds: int
    max_workers: int
    max_file_bytes: int
    scancode_options: str

    @classmethod
    def from_env(cls) -> "ScannerConfiguration":
        """Return a configuration using the configured environment variables."""

        return cls(
            scanner=_env_str("LICENSAGE_SCANNER", DEFAULT_SCANNER_NAME),
            timeout_seconds=_env_int(
                "LICENSAGE_SCAN_TIMEOUT_SECONDS",
                DEFAULT_SCAN_TIMEOUT_SECONDS,
                min_value=1,
            ),
            max_workers=_env_int(
                "LICENSAGE_MAX_WORKERS",
                DEFAULT_MAX_WORKERS,
                min_value=1,
                max_value=64,
            ),
            max_file_bytes=_env_int(
                "LICENSAGE_MAX_FILE_BYTES",
                DEFAULT_MAX_FILE_BYTES,
                min_value=1,
            ),
            scancode_options=_env_str(
                "LICENSAGE_SCANCODE_OPTIONS", DEFAULT_SCANCODE_OPTIONS
            ),
        )


DEFAULT_SCANNER_CONFIGURATION = ScannerConfiguration(
    DEFAULT_SCANNER_NAME,
    DEFAULT_SCAN_TIMEOUT_SECONDS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_SCANCODE_OPTIONS,
)
