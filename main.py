"""Command-line entry point for the LOA offline-mode controller."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

import yaml

from config import ConfigController
from core.app import AppConfig, OfflineModeController, run
from core.instance_guard import InstanceGuard
from core.logging import enable_file_logging, logger, set_level
from services.connectivity import ConnectivityProber
from services.orchestrator import ServiceOrchestrator
from services.process_launcher import ProcessLauncher
from services.registry import ServiceRegistry
from services.service_manager import SystemdServiceManager


def configure_logging(level_name: str) -> None:
    """Configure application logging."""

    level = set_level(level_name)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Activate offline services when internet connectivity is lost."
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        help="Directory holding default.yaml and override.yaml.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override logging_level from the config file.",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Check connectivity once, print ONLINE or OFFLINE and exit.",
    )
    return parser.parse_args(argv)


def run_diagnostics_report(config: dict, registry: ServiceRegistry, config_dir: Path) -> int:
    from config.diagnostics import probe as config_probe
    from core.diagnostics import probe as core_probe
    from diagnostics.models import DiagnosticStatus, worst_status
    from diagnostics.runner import format_results, run_diagnostics
    from services.diagnostics import probe as services_probe

    method = config["connectivity"]["method"]
    results = run_diagnostics(
        [
            lambda: config_probe(config_dir),
            lambda: core_probe(Path(config["lock_file"])),
            lambda: services_probe(registry, probe_method=method),
        ]
    )
    print(format_results(results))
    overall = worst_status(result.status for result in results)
    return 1 if overall is DiagnosticStatus.FAIL else 0


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]
    args = parse_args(argv)

    try:
        config_controller = ConfigController.get_instance(args.config_dir)
        config = config_controller.get_config()
        registry = ServiceRegistry.from_config(config)
        prober = ConnectivityProber.from_config(config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    configure_logging(args.log_level or config.get("logging_level", "INFO"))

    if args.diagnostics:
        return run_diagnostics_report(config, registry, config_controller.paths.config_dir)

    if args.probe:
        reachable = prober.probe()
        for result in prober.last_results:
            status = "reachable" if result.reachable else f"unreachable ({result.error})"
            logger.info("[Probe] %s %s", result.target, status)
        print("ONLINE" if reachable else "OFFLINE")
        return 0 if reachable else 1

    if config.get("file_logging_enabled", True):
        log_file_path = Path(config["log_file"])
        try:
            enable_file_logging(log_file_path)
            logger.info("Writing logs to %s", log_file_path)
        except Exception as exc:  # noqa: BLE001 - the console sink keeps working
            logger.warning("File logging unavailable (%s); console only", exc)

    orchestration_cfg = config["orchestration"]
    orchestrator = ServiceOrchestrator.from_config(
        config,
        registry,
        SystemdServiceManager(timeout_s=orchestration_cfg["command_timeout_s"]),
        ProcessLauncher(),
    )
    controller = OfflineModeController(AppConfig.from_config(config), prober, orchestrator)
    guard = InstanceGuard(config["lock_file"])
    return run(guard, controller)


if __name__ == "__main__":
    raise SystemExit(main())
