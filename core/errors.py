"""Error types raised by the offline-mode controller."""

from __future__ import annotations


class ControllerError(Exception):
    """Base class for controller errors."""


class ProbeTimeout(ControllerError):
    """A connectivity target did not answer within the probe timeout."""


class ServiceStartFailure(ControllerError):
    """The service manager could not start a unit."""

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"Failed to start {name}: {detail}")
        self.name = name
        self.detail = detail


class ServiceStopFailure(ControllerError):
    """The service manager could not stop a unit."""

    def __init__(self, name: str, detail: str) -> None:
        super().__init__(f"Failed to stop {name}: {detail}")
        self.name = name
        self.detail = detail


class MissingResource(ControllerError):
    """An archive server's backing file is absent."""

    def __init__(self, name: str, path: str) -> None:
        super().__init__(f"Resource for {name} not found: {path}")
        self.name = name
        self.path = path


class AlreadyRunning(ControllerError):
    """Another live controller instance holds the lock."""

    def __init__(self, pid: int, lock_path: str) -> None:
        super().__init__(f"Another instance is running (PID: {pid}, lock: {lock_path})")
        self.pid = pid
        self.lock_path = lock_path


class RegistryError(ControllerError, ValueError):
    """The service registry configuration is invalid."""
