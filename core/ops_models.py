"""Models for connectivity tracking and service orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Mode(str, Enum):
    """Operating mode derived from connectivity verdicts."""

    ONLINE = "online"
    PENDING_OFFLINE = "pending_offline"
    OFFLINE = "offline"


@dataclass(frozen=True)
class ModeTransition:
    """A single mode change emitted by the state machine."""

    previous: Mode
    current: Mode
    timestamp: float
    reason: str


@dataclass(frozen=True)
class ProbeResult:
    """Result of probing one connectivity target."""

    target: str
    reachable: bool
    latency_ms: int | None = None
    error: str = ""


@dataclass
class OrchestrationReport:
    """Outcome of one activate/deactivate pass over the cohort."""

    action: str
    started: list[str] = field(default_factory=list)
    stopped: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return (
            f"{self.action}: started={len(self.started)} stopped={len(self.stopped)} "
            f"skipped={len(self.skipped)} failed={len(self.failed)} "
            f"retained={len(self.retained)}"
        )
