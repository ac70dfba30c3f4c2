"""LOCAL-only CLI to dry-run a scan of one or more paths and print a summary."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT.parent / "src"))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    from licensage.services.scanner_registry import SCANNER_REGISTRY

    parser = argparse.ArgumentParser(
        description="Scan local paths and print the normalized findings as JSON.",
    )
    parser.add_argument(
        "paths",
        type=Path,
        nargs="+",
        help="Files or directories to scan.",
    )
    parser.add_argument(
        "--scanner",
        choices=sorted(SCANNER_REGISTRY),
        default=None,
        help="Scanner backend to use; defaults to LICENSAGE_SCANNER.",
    )
    parser.add_argument(
        "--garbage",
        type=Path,
        default=None,
        help="Copyright garbage document applied to the merged findings.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    from dataclasses import replace

    from licensage.domain.models import CopyrightGarbage
    from licensage.services.documents import parse_copyright_garbage
    from licensage.services.scan_config import ScannerConfiguration
    from licensage.services.scan_pipeline import collect_license_findings, scan_paths
    from licensage.services.scanner_registry import get_configured_scanner

    config = ScannerConfiguration.from_env()
    if args.scanner:
        config = replace(config, scanner=args.scanner)
    scanner = get_configured_scanner(config)

    garbage = CopyrightGarbage()
    if args.garbage is not None:
        garbage = parse_copyright_garbage(args.garbage.read_text(encoding="utf-8"))

    results = scan_paths(scanner, {str(path): path for path in args.paths})
    findings = collect_license_findings(results.values(), garbage)

    summary: dict[str, object] = {
        "scanner": scanner.details.to_mapping(),
        "results": {label: r.summary.to_mapping() for label, r in results.items()},
        "license_findings": {k: sorted(v) for k, v in findings.items()},
    }
    sys.stdout.write(json.dumps(summary, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
