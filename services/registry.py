"""Declarative registry of the services the controller can activate."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import re
import shlex
from typing import Any, Iterator, Mapping, Sequence, Union

from config.controller import DEFAULT_ARCHIVE_COMMAND
from core.errors import RegistryError


class ServiceKind(str, Enum):
    """Role a descriptor plays in the offline cohort."""

    CORE = "core"
    ARCHIVE = "archive"
    OPTIONAL = "optional"


class Criticality(str, Enum):
    """How loudly a failure for this descriptor is reported."""

    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


@dataclass(frozen=True)
class UnitActivation:
    """Started and stopped through the OS service manager."""

    unit: str


@dataclass(frozen=True)
class CommandActivation:
    """Started as a detached long-running process bound to a port."""

    command: str
    port: int
    resource_path: Path

    def argv(self) -> list[str]:
        """Return the rendered command line as an argument vector."""

        return shlex.split(
            self.command.format(port=self.port, resource=shlex.quote(str(self.resource_path)))
        )

    def signature(self) -> str:
        """Return a pgrep/pkill pattern matching this launch and no other.

        The pattern covers the program and the port flag, so a server bound
        to the same port from an earlier controller run is still matched
        after the resource path changed.
        """

        argv = self.argv()
        port_args = [arg for arg in argv[1:] if str(self.port) in arg]
        parts = [Path(argv[0]).name] + port_args[:1]
        return ".*".join(_ere_escape(part) for part in parts) + "( |$)"

    def program(self) -> str:
        return Path(self.argv()[0]).name

    def program_signature(self) -> str:
        """Return a pattern matching every server run from this program."""

        return "(^|/)" + _ere_escape(self.program()) + "( |$)"


Activation = Union[UnitActivation, CommandActivation]


_ERE_SPECIAL = re.compile(r"([.^$*+?()\[\]{}|\\])")


def _ere_escape(text: str) -> str:
    return _ERE_SPECIAL.sub(r"\\\1", text)


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static metadata describing how to start and stop one service."""

    name: str
    kind: ServiceKind
    activation: Activation
    criticality: Criticality
    always_on: bool = False

    @property
    def port(self) -> int | None:
        if isinstance(self.activation, CommandActivation):
            return self.activation.port
        return None

    @property
    def resource_path(self) -> Path | None:
        if isinstance(self.activation, CommandActivation):
            return self.activation.resource_path
        return None


_DEFAULT_CRITICALITY = {
    ServiceKind.CORE: Criticality.REQUIRED,
    ServiceKind.ARCHIVE: Criticality.REQUIRED,
    ServiceKind.OPTIONAL: Criticality.BEST_EFFORT,
}


class ServiceRegistry:
    """Read-only, ordered collection of service descriptors."""

    def __init__(self, descriptors: Sequence[ServiceDescriptor]) -> None:
        names: set[str] = set()
        ports: dict[int, str] = {}
        for descriptor in descriptors:
            if descriptor.name in names:
                raise RegistryError(f"Duplicate service name: {descriptor.name}")
            names.add(descriptor.name)
            port = descriptor.port
            if descriptor.kind is ServiceKind.ARCHIVE and port is not None:
                if port in ports:
                    raise RegistryError(
                        f"Port {port} assigned to both {ports[port]} and {descriptor.name}"
                    )
                ports[port] = descriptor.name
        self._descriptors = tuple(descriptors)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ServiceRegistry":
        """Build the registry from the normalized controller config."""

        orchestration_cfg = config.get("orchestration") or {}
        default_command = str(orchestration_cfg.get("archive_command", DEFAULT_ARCHIVE_COMMAND))
        entries = config.get("services") or []
        if not isinstance(entries, list):
            raise RegistryError("services must be a list of descriptors")
        return cls([_parse_descriptor(entry, default_command) for entry in entries])

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def get(self, name: str) -> ServiceDescriptor | None:
        for descriptor in self._descriptors:
            if descriptor.name == name:
                return descriptor
        return None

    def of_kind(self, kind: ServiceKind) -> list[ServiceDescriptor]:
        return [descriptor for descriptor in self._descriptors if descriptor.kind is kind]


def _parse_descriptor(entry: Any, default_command: str) -> ServiceDescriptor:
    if not isinstance(entry, Mapping):
        raise RegistryError(f"Service entry must be a mapping, got {entry!r}")
    name = str(entry.get("name") or "").strip()
    if not name:
        raise RegistryError(f"Service entry without a name: {dict(entry)!r}")

    try:
        kind = ServiceKind(str(entry.get("kind", "")).lower())
    except ValueError:
        raise RegistryError(f"Unknown kind for {name}: {entry.get('kind')!r}") from None

    criticality_value = entry.get("criticality")
    if criticality_value is None:
        criticality = _DEFAULT_CRITICALITY[kind]
    else:
        try:
            criticality = Criticality(str(criticality_value).lower())
        except ValueError:
            raise RegistryError(
                f"Unknown criticality for {name}: {criticality_value!r}"
            ) from None

    always_on = bool(entry.get("always_on", False))
    if always_on and kind is not ServiceKind.CORE:
        raise RegistryError(f"always_on is only supported for core services ({name})")

    activation: Activation
    if kind is ServiceKind.ARCHIVE or "command" in entry:
        activation = _parse_command_activation(name, entry, default_command)
    else:
        activation = UnitActivation(unit=str(entry.get("unit") or name))

    return ServiceDescriptor(
        name=name,
        kind=kind,
        activation=activation,
        criticality=criticality,
        always_on=always_on,
    )


def _parse_command_activation(
    name: str,
    entry: Mapping[str, Any],
    default_command: str,
) -> CommandActivation:
    port_value = entry.get("port")
    resource_value = entry.get("resource")
    if port_value is None or not resource_value:
        raise RegistryError(f"Command service {name} needs both port and resource")
    try:
        port = int(port_value)
    except (TypeError, ValueError):
        raise RegistryError(f"Invalid port for {name}: {port_value!r}") from None
    if not 1 <= port <= 65535:
        raise RegistryError(f"Port out of range for {name}: {port}")
    command = str(entry.get("command") or default_command)
    if "{port}" not in command:
        raise RegistryError(f"Command template for {name} must reference {{port}}")
    activation = CommandActivation(
        command=command,
        port=port,
        resource_path=Path(str(resource_value)).expanduser(),
    )
    try:
        argv = activation.argv()
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        raise RegistryError(f"Cannot render command template for {name}: {exc!r}") from None
    if not argv:
        raise RegistryError(f"Command template for {name} is empty")
    return activation
