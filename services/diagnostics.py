"""Diagnostics routines for the services subsystem."""

from __future__ import annotations

import shutil
from typing import Callable

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from services.registry import CommandActivation, ServiceRegistry


def probe(
    registry: ServiceRegistry,
    *,
    probe_method: str = "icmp",
    which: Callable[[str], str | None] = shutil.which,
) -> DiagnosticResult:
    """Check host tools used for orchestration and archive resources.

    Missing tools fail the probe; absent archive files only warn, since
    resources may be added before the next activation.
    """

    name = "services"
    tools = ["systemctl", "pgrep", "pkill"]
    if probe_method == "icmp":
        tools.append("ping")
    missing_resources: list[str] = []
    for descriptor in registry:
        activation = descriptor.activation
        if not isinstance(activation, CommandActivation):
            continue
        program = activation.argv()[0]
        if program not in tools:
            tools.append(program)
        if not activation.resource_path.is_file():
            missing_resources.append(descriptor.name)

    missing_tools = [tool for tool in tools if which(tool) is None]
    if missing_tools:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing tools: {', '.join(missing_tools)}",
        )
    if missing_resources:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.WARN,
            details=f"Archive resources absent: {', '.join(missing_resources)}",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"{len(registry)} services registered; tools available: {', '.join(tools)}",
    )
