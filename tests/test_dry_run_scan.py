"""Smoke test for the local dry-run scan CLI."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_dry_run_scan_prints_merged_findings(
    tmp_path: Path, mit_license_text: str
) -> None:
    package = tmp_path / "package"
    package.mkdir()
    (package / "LICENSE").write_text(mit_license_text, encoding="utf-8")
    env = {**os.environ, "LICENSAGE_AUDIT_DIR": str(tmp_path / "audit")}

    result = subprocess.run(
        [
            sys.executable,
            "scripts/dry_run_scan.py",
            str(package),
            "--scanner",
            "patternmatcher",
            "--garbage",
            "examples/copyright-garbage.yml",
        ],
        cwd=ROOT,
        env=env,
        capture_output=True,
        text=True,
        check=True,
    )

    data = json.loads(result.stdout)
    assert data["scanner"]["name"] == "PatternMatcher"
    summary = data["results"][str(package)]
    assert summary["file_count"] == 1
    assert summary["issues"] == []
    assert str(tmp_path) not in json.dumps(summary["license_findings"])
    assert data["license_findings"] == {"MIT": ["Copyright (c) 2018-2020 Jane Doe"]}
