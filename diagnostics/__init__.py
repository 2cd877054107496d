"""Readiness probes run by ``main.py --diagnostics``."""

from diagnostics.models import DiagnosticResult, DiagnosticStatus, worst_status
from diagnostics.runner import format_results, run_diagnostics

__all__ = [
    "DiagnosticResult",
    "DiagnosticStatus",
    "format_results",
    "run_diagnostics",
    "worst_status",
]
