"""Diagnostics routines for the core subsystem."""

from __future__ import annotations

import os
from pathlib import Path

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(lock_file: Path | None = None) -> DiagnosticResult:
    """Check logger readiness and that the lock directory is writable.

    Args:
        lock_file: Lock file the controller would take; skipped when None.

    Returns:
        Diagnostic result indicating core readiness.
    """

    name = "core"
    from core import logging as core_logging
    from core.instance_guard import read_lock_owner

    if not core_logging.logger.handlers:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details="Controller logger has no handlers",
        )
    parts = [
        "Rich logging enabled"
        if core_logging.RichHandler is not None
        else "Rich logging not available (fallback)"
    ]
    log_file = core_logging.current_log_file()
    if log_file is not None:
        parts.append(f"log file {log_file}")

    if lock_file is not None:
        lock_dir = lock_file.expanduser().parent
        if not os.access(lock_dir, os.W_OK):
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details=f"Lock directory not writable: {lock_dir}",
            )
        parts.append(f"lock directory {lock_dir} writable")
        owner = read_lock_owner(lock_file.expanduser())
        if owner is not None:
            parts.append(f"lock recorded for PID {owner}")

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details="; ".join(parts),
    )
