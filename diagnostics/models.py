"""Result types shared by the controller's readiness probes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class DiagnosticStatus(str, Enum):
    """Outcome of one readiness check, ordered by severity."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    DiagnosticStatus.PASS: 0,
    DiagnosticStatus.WARN: 1,
    DiagnosticStatus.FAIL: 2,
}


def worst_status(statuses: Iterable[DiagnosticStatus]) -> DiagnosticStatus:
    """Return the most severe status, PASS for an empty input."""

    return max(statuses, key=lambda status: status.severity, default=DiagnosticStatus.PASS)


@dataclass(frozen=True)
class DiagnosticResult:
    """Named probe outcome with a one-line explanation."""

    name: str
    status: DiagnosticStatus
    details: str

    def render(self) -> str:
        return f"[{self.status.value}] {self.name}: {self.details}"
