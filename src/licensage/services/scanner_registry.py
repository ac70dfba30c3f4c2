"""Named constructors of the available scanner backends."""

from __future__ import annotations

from typing import Callable

from .file_counter import FileCounter
from .pattern_scanner import PatternScanner
from .scan_config import ScannerConfiguration
from .scancode_scanner import ScanCodeScanner
from .scanner import LocalScanner, ScannerBackend

SCANNER_REGISTRY: dict[str, Callable[[ScannerConfiguration], ScannerBackend]] = {
    "filecounter": FileCounter,
    "patternmatcher": PatternScanner,
    "scancode": ScanCodeScanner,
}
"""Registry enumerating supported scanner backends by lower-cased name."""


def create_scanner(name: str, config: ScannerConfiguration) -> LocalScanner:
    """Return a driver for the backend registered under ``name``."""

    factory = SCANNER_REGISTRY.get(name.strip().lower())
    if factory is None:
        raise ValueError("Requested scanner is not supported.")
    return LocalScanner(factory(config), config)


def get_configured_scanner(config: ScannerConfiguration | None = None) -> LocalScanner:
    """Return the scanner named by ``config``, or by the environment when omitted."""

    config = config or ScannerConfiguration.from_env()
    return create_scanner(config.scanner, config)
