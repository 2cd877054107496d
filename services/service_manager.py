"""OS service-manager adapter (systemd)."""

from __future__ import annotations

import subprocess
from typing import Protocol

from core.errors import ServiceStartFailure, ServiceStopFailure
from core.logging import logger as LOGGER


class ServiceManager(Protocol):
    """Opaque start/stop capability keyed by unit name."""

    def start(self, name: str) -> None:
        ...

    def stop(self, name: str) -> None:
        ...


class SystemdServiceManager:
    """Start and stop units with ``systemctl``."""

    def __init__(self, timeout_s: float = 30.0, systemctl: str = "systemctl") -> None:
        self._timeout_s = max(float(timeout_s), 1.0)
        self._systemctl = systemctl

    def start(self, name: str) -> None:
        """Start a unit.

        Raises:
            ServiceStartFailure: If systemctl is missing, times out, or exits non-zero.
        """

        detail = self._run("start", name)
        if detail is not None:
            raise ServiceStartFailure(name, detail)

    def stop(self, name: str) -> None:
        """Stop a unit.

        Raises:
            ServiceStopFailure: If systemctl is missing, times out, or exits non-zero.
        """

        detail = self._run("stop", name)
        if detail is not None:
            raise ServiceStopFailure(name, detail)

    def _run(self, verb: str, name: str) -> str | None:
        """Run a systemctl verb; return an error detail or None on success."""

        LOGGER.debug("[Systemd] %s %s", verb, name)
        try:
            result = subprocess.run(
                [self._systemctl, verb, name],
                capture_output=True,
                text=True,
                timeout=self._timeout_s,
                check=False,
            )
        except FileNotFoundError:
            return f"{self._systemctl} not found"
        except subprocess.TimeoutExpired:
            return f"timed out after {self._timeout_s:.0f}s"
        except OSError as exc:
            return str(exc)
        if result.returncode != 0:
            stderr = result.stderr.strip().splitlines()
            reason = stderr[0] if stderr else "no output"
            return f"exit status {result.returncode} ({reason})"
        return None
