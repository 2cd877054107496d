"""Service orchestrator that brings the offline cohort up and down."""

from __future__ import annotations

from typing import Any, Mapping

from core.errors import MissingResource, ServiceStartFailure, ServiceStopFailure
from core.logging import log_banner, logger as LOGGER
from core.ops_models import Mode, OrchestrationReport
from services.process_launcher import ProcessLauncher
from services.registry import (
    CommandActivation,
    Criticality,
    ServiceDescriptor,
    ServiceKind,
    ServiceRegistry,
    UnitActivation,
)
from services.service_manager import ServiceManager


class ServiceOrchestrator:
    """Stateless reconciliation from a target mode to the desired service set.

    Every call walks the whole registry, so activating twice, or
    deactivating after a controller restart, converges on the same result.
    Per-descriptor failures are logged and never abort the pass.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        service_manager: ServiceManager,
        launcher: ProcessLauncher,
        *,
        terminate_timeout_s: float = 5.0,
        optional_retry_attempts: int = 0,
        access_hint: str = "",
    ) -> None:
        self._registry = registry
        self._service_manager = service_manager
        self._launcher = launcher
        self._terminate_timeout_s = max(float(terminate_timeout_s), 0.0)
        self._optional_retry_attempts = max(int(optional_retry_attempts), 0)
        self._access_hint = access_hint

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        registry: ServiceRegistry,
        service_manager: ServiceManager,
        launcher: ProcessLauncher,
    ) -> "ServiceOrchestrator":
        orchestration_cfg = config.get("orchestration") or {}
        return cls(
            registry,
            service_manager,
            launcher,
            terminate_timeout_s=float(orchestration_cfg.get("terminate_timeout_s", 5.0)),
            optional_retry_attempts=int(orchestration_cfg.get("optional_retry_attempts", 0)),
            access_hint=str(orchestration_cfg.get("access_hint") or ""),
        )

    @property
    def registry(self) -> ServiceRegistry:
        return self._registry

    def reconcile(self, mode: Mode) -> OrchestrationReport | None:
        """Bring services in line with ``mode``; pending mode changes nothing."""

        if mode is Mode.OFFLINE:
            return self.activate()
        if mode is Mode.ONLINE:
            return self.deactivate()
        return None

    def activate(self) -> OrchestrationReport:
        """Start the full offline cohort."""

        report = OrchestrationReport(action="activate")
        log_banner("🔴 EMERGENCY OFFLINE MODE ACTIVATED - Internet connectivity lost", "alert")
        LOGGER.info("[Orchestrator] Initializing offline systems...")

        for descriptor in self._registry.of_kind(ServiceKind.CORE):
            self._start(descriptor, report)

        for descriptor in self._registry.of_kind(ServiceKind.ARCHIVE):
            self._start(descriptor, report)

        for descriptor in self._registry.of_kind(ServiceKind.OPTIONAL):
            attempts = 1 + self._optional_retry_attempts
            for attempt in range(1, attempts + 1):
                if self._start(descriptor, report, final=attempt == attempts):
                    break

        LOGGER.info("[Orchestrator] %s", report.summary())
        log_banner("✅ Offline mode activated", "ok")
        if self._access_hint:
            log_banner(f"📋 {self._access_hint}")
        return report

    def deactivate(self) -> OrchestrationReport:
        """Stop the cohort, keeping always-on core services running."""

        report = OrchestrationReport(action="deactivate")
        log_banner("🟢 ONLINE MODE RESTORED - Internet connectivity detected", "ok")
        LOGGER.info("[Orchestrator] Deactivating offline services to conserve resources...")

        for descriptor in self._registry.of_kind(ServiceKind.ARCHIVE):
            self._stop(descriptor, report)
        self._stop_unregistered_servers()

        for descriptor in self._registry.of_kind(ServiceKind.OPTIONAL):
            self._stop(descriptor, report)

        for descriptor in self._registry.of_kind(ServiceKind.CORE):
            if descriptor.always_on:
                report.retained.append(descriptor.name)
                LOGGER.info("[Orchestrator] Keeping %s running", descriptor.name)
                continue
            self._stop(descriptor, report)

        LOGGER.info("[Orchestrator] %s", report.summary())
        log_banner("✅ Offline services stopped - system resources conserved", "ok")
        return report

    def _start(
        self,
        descriptor: ServiceDescriptor,
        report: OrchestrationReport,
        *,
        final: bool = True,
    ) -> bool:
        activation = descriptor.activation
        try:
            if isinstance(activation, UnitActivation):
                LOGGER.info("[Orchestrator] 🔧 Starting %s...", descriptor.name)
                self._service_manager.start(activation.unit)
            else:
                if not self._launch(descriptor, activation):
                    report.skipped.append(descriptor.name)
                    return True
        except MissingResource as exc:
            LOGGER.warning("[Orchestrator] ⚠️  %s; skipping", exc)
            report.skipped.append(descriptor.name)
            return True
        except (ServiceStartFailure, OSError, KeyError, ValueError) as exc:
            if not final:
                LOGGER.info("[Orchestrator] Retrying %s after failure: %s", descriptor.name, exc)
                return False
            message = str(exc) if isinstance(exc, ServiceStartFailure) else (
                f"Failed to start {descriptor.name}: {exc}"
            )
            self._report_failure(descriptor, message)
            report.failed.append(descriptor.name)
            return False
        report.started.append(descriptor.name)
        return True

    def _launch(self, descriptor: ServiceDescriptor, activation: CommandActivation) -> bool:
        """Launch a port-bound server; return False if one is already serving.

        Raises:
            MissingResource: If the backing resource file is absent.
            OSError: If the server binary cannot be executed.
        """

        if not activation.resource_path.is_file():
            raise MissingResource(descriptor.name, str(activation.resource_path))
        signature = activation.signature()
        if self._launcher.is_running(descriptor.name, signature):
            LOGGER.info(
                "[Orchestrator] %s already serving on port %s",
                descriptor.name,
                activation.port,
            )
            return False
        LOGGER.info(
            "[Orchestrator] 📚 Starting %s on port %s...",
            descriptor.name,
            activation.port,
        )
        self._launcher.launch(descriptor.name, activation.argv())
        return True

    def _stop(self, descriptor: ServiceDescriptor, report: OrchestrationReport) -> None:
        activation = descriptor.activation
        try:
            if isinstance(activation, UnitActivation):
                self._service_manager.stop(activation.unit)
                report.stopped.append(descriptor.name)
                return
            if self._launcher.terminate(
                descriptor.name,
                activation.signature(),
                timeout_s=self._terminate_timeout_s,
            ):
                LOGGER.info("[Orchestrator] 📚 Stopped %s", descriptor.name)
                report.stopped.append(descriptor.name)
            else:
                report.skipped.append(descriptor.name)
        except ServiceStopFailure as exc:
            self._report_failure(descriptor, str(exc))
            report.failed.append(descriptor.name)
        except (OSError, KeyError, ValueError) as exc:
            self._report_failure(descriptor, f"Failed to stop {descriptor.name}: {exc}")
            report.failed.append(descriptor.name)

    def _report_failure(self, descriptor: ServiceDescriptor, message: str) -> None:
        if descriptor.criticality is Criticality.REQUIRED:
            LOGGER.warning("[Orchestrator] ⚠️  Warning: %s", message)
        else:
            LOGGER.info("[Orchestrator] ℹ️  Info: %s", message)

    def _stop_unregistered_servers(self) -> None:
        """Stop archive servers left behind by descriptors no longer configured."""

        programs: dict[str, str] = {}
        for descriptor in self._registry.of_kind(ServiceKind.ARCHIVE):
            activation = descriptor.activation
            if not isinstance(activation, CommandActivation):
                continue
            try:
                programs.setdefault(activation.program(), activation.program_signature())
            except (IndexError, KeyError, ValueError):
                continue
        for program, signature in programs.items():
            try:
                stopped = self._launcher.terminate(
                    program, signature, timeout_s=self._terminate_timeout_s
                )
            except OSError as exc:
                LOGGER.warning("[Orchestrator] Could not sweep %s servers: %s", program, exc)
                continue
            if stopped:
                LOGGER.info("[Orchestrator] 📚 Stopped leftover %s servers", program)
