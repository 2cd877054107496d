"""Application runtime: the connectivity polling loop and its lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
import signal
import threading
import time
from types import FrameType
from typing import Any, Callable, Mapping, Protocol

from core.errors import AlreadyRunning
from core.instance_guard import InstanceGuard
from core.logging import log_banner, logger as LOGGER
from core.mode_machine import ModeStateMachine
from core.ops_models import Mode, ModeTransition, OrchestrationReport


class Prober(Protocol):
    def probe(self) -> bool:
        ...


class Orchestrator(Protocol):
    def activate(self) -> OrchestrationReport:
        ...

    def deactivate(self) -> OrchestrationReport:
        ...


@dataclass(frozen=True)
class AppConfig:
    """Timing configuration for the controller loop.

    Attributes:
        poll_interval_s: Seconds between connectivity probes.
        grace_period_s: Sustained outage required before activation.
    """

    poll_interval_s: float = 30.0
    grace_period_s: float = 120.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AppConfig":
        mode_cfg = config.get("mode") or {}
        return cls(
            poll_interval_s=float(mode_cfg.get("poll_interval_s", 30.0)),
            grace_period_s=float(mode_cfg.get("grace_period_s", 120.0)),
        )


class OfflineModeController:
    """Single-threaded control loop: probe, update mode, orchestrate on change."""

    def __init__(
        self,
        config: AppConfig,
        prober: Prober,
        orchestrator: Orchestrator,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._prober = prober
        self._orchestrator = orchestrator
        self._clock = clock
        self._machine = ModeStateMachine(grace_period_s=config.grace_period_s)
        self._stop_event = threading.Event()
        self._cycles = 0
        self._errors = 0

    @property
    def mode(self) -> Mode:
        return self._machine.mode

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def errors(self) -> int:
        return self._errors

    def request_stop(self) -> None:
        self._stop_event.set()

    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def run_forever(self) -> None:
        """Poll until a stop is requested; never orchestrates on the way out."""

        poll_interval_s = max(self._config.poll_interval_s, 0.1)
        log_banner("🚀 LOA Offline Mode Controller started")
        LOGGER.info("📡 Monitoring internet connectivity every %.0fs", poll_interval_s)
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as exc:
                LOGGER.exception("[Controller] Error in poll cycle (retrying): %s", exc)
                self._errors += 1
            self._stop_event.wait(timeout=poll_interval_s)
        LOGGER.info("🛑 LOA Controller shutting down...")

    def tick(self) -> ModeTransition | None:
        """Run one probe cycle and act on the resulting transition."""

        reachable = self._prober.probe()
        self._cycles += 1
        transition = self._machine.update(reachable, self._clock())
        if transition is None:
            return None
        if transition.current is Mode.OFFLINE:
            self._orchestrator.activate()
        elif transition.previous is Mode.OFFLINE and transition.current is Mode.ONLINE:
            self._orchestrator.deactivate()
        return transition


def install_signal_handlers(controller: OfflineModeController) -> None:
    """Route termination signals to a graceful loop stop."""

    def _handle(signum: int, frame: FrameType | None) -> None:
        LOGGER.info("[Controller] Received %s", signal.Signals(signum).name)
        controller.request_stop()

    for signum in (signal.SIGTERM, signal.SIGINT, signal.SIGHUP):
        signal.signal(signum, _handle)


def run(
    guard: InstanceGuard,
    controller: OfflineModeController,
    *,
    install_signals: bool = True,
) -> int:
    """Run the controller under the instance lock.

    Returns:
        Process exit code: 0 after a clean stop, 1 if another instance holds the lock.
    """

    try:
        guard.acquire()
    except AlreadyRunning as exc:
        LOGGER.error("%s", exc)
        return 1

    try:
        if install_signals:
            install_signal_handlers(controller)
        controller.run_forever()
    finally:
        guard.release()
    return 0
