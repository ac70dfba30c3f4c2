"""JSONL file that persists recorded operational issues.

Writing the audit trail must never break a scan or an evaluation, so every
filesystem failure is logged (rate limited per failure kind) and dropped.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from ..domain.models import utc_now

_LOG = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = Path(".licensage") / "audit"
DEFAULT_MAX_AUDIT_BYTES = 1_000_000
DEFAULT_AUDIT_BACKUPS = 3
AUDIT_DIR_ENV = "LICENSAGE_AUDIT_DIR"
AUDIT_MAX_BYTES_ENV = "LICENSAGE_AUDIT_MAX_BYTES"
AUDIT_BACKUPS_ENV = "LICENSAGE_AUDIT_BACKUPS"
AUDIT_FILE_NAME = "issues.jsonl"


def _env_limit(name: str, default: int) -> int | None:
    """Positive integer from the environment; zero or less disables the limit."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class AuditConfig:
    """Where the audit trail lives and how large it may grow."""

    audit_file: Path
    max_bytes: int | None = DEFAULT_MAX_AUDIT_BYTES
    backups: int = DEFAULT_AUDIT_BACKUPS

    @classmethod
    def from_env(cls) -> "AuditConfig":
        base_dir = Path(os.getenv(AUDIT_DIR_ENV) or DEFAULT_AUDIT_DIR)
        return cls(
            audit_file=base_dir / AUDIT_FILE_NAME,
            max_bytes=_env_limit(AUDIT_MAX_BYTES_ENV, DEFAULT_MAX_AUDIT_BYTES),
            backups=_env_limit(AUDIT_BACKUPS_ENV, DEFAULT_AUDIT_BACKUPS) or 0,
        )


class AuditLog:
    """Append-only JSONL log with size-based rotation into numbered backups."""

    def __init__(
        self, config: AuditConfig | None = None, warning_interval: float = 60.0
    ) -> None:
        self._config = config
        self.warning_interval = warning_interval
        self._last_warning: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> AuditConfig:
        if self._config is None:
            self._config = AuditConfig.from_env()
        return self._config

    def append(self, event: dict[str, object]) -> None:
        """Serialize ``event`` with a timestamp and append it as one line."""

        line = json.dumps(
            {"recorded_at": utc_now().isoformat(), **event},
            ensure_ascii=False,
            sort_keys=True,
            default=str,
        )
        path = self.config.audit_file
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._warn(
                    "mkdir", "Unable to create audit directory %s: %s", path.parent, exc
                )
                return
            self._rotate_if_needed()
            try:
                with path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                self._warn("write", "Unable to write audit event to %s: %s", path, exc)

    def backup_path(self, index: int) -> Path:
        path = self.config.audit_file
        return path.with_name(f"{path.name}.{index}")

    def _rotate_if_needed(self) -> None:
        config = self.config
        path = config.audit_file
        if config.max_bytes is None or not path.exists():
            return
        try:
            if path.stat().st_size < config.max_bytes:
                return
            if config.backups <= 0:
                path.unlink()
                return
            oldest = self.backup_path(config.backups)
            if oldest.exists():
                oldest.unlink()
            for index in range(config.backups - 1, 0, -1):
                backup = self.backup_path(index)
                if backup.exists():
                    backup.rename(self.backup_path(index + 1))
            path.rename(self.backup_path(1))
        except OSError as exc:
            self._warn("rotate", "Unable to rotate audit log %s: %s", path, exc)

    def _warn(self, kind: str, message: str, *args: object) -> None:
        now = time.monotonic()
        last = self._last_warning.get(kind)
        if self.warning_interval > 0 and last is not None:
            if now - last < self.warning_interval:
                return
        self._last_warning[kind] = now
        _LOG.warning(message, *args)


_AUDIT_LOG = AuditLog()


def get_audit_log() -> AuditLog:
    return _AUDIT_LOG


def configure_audit_log(
    config: AuditConfig | None = None, warning_interval: float = 60.0
) -> AuditLog:
    """Replace the process-wide audit log; ``None`` re-reads the environment."""

    global _AUDIT_LOG
    _AUDIT_LOG = AuditLog(config, warning_interval)
    return _AUDIT_LOG


def append_audit_event(event: dict[str, object]) -> None:
    """Append ``event`` to the process-wide audit log."""

    _AUDIT_LOG.append(event)
