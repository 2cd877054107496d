"""Run readiness probes and render their report."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from core.logging import logger as LOGGER
from diagnostics.models import DiagnosticResult, DiagnosticStatus, worst_status


def format_results(results: Iterable[DiagnosticResult]) -> str:
    """Return the operator-facing diagnostics report."""

    results = list(results)
    lines = ["LOA controller diagnostics", "-" * 60]
    lines.extend(result.render() for result in results)
    lines.append("-" * 60)
    counts = ", ".join(
        f"{status.value}={sum(1 for result in results if result.status is status)}"
        for status in DiagnosticStatus
    )
    overall = worst_status(result.status for result in results)
    lines.append(f"Overall: {overall.value} ({counts})")
    return "\n".join(lines)


def run_diagnostics(probes: Iterable[Callable[[], DiagnosticResult]]) -> list[DiagnosticResult]:
    """Run each probe; a probe that raises is recorded as FAIL."""

    results: list[DiagnosticResult] = []
    for probe in probes:
        try:
            result = probe()
        except Exception as exc:  # noqa: BLE001 - one broken probe must not hide the rest
            LOGGER.exception("[Diagnostics] Probe %s raised", probe)
            result = DiagnosticResult(
                name=getattr(probe, "__name__", "unknown_probe"),
                status=DiagnosticStatus.FAIL,
                details=f"Probe raised exception: {exc}",
            )
        results.append(result)
    return results
