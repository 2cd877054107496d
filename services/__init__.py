"""Connectivity probing and offline service orchestration."""

from services.connectivity import ConnectivityProber, ProbeTarget
from services.orchestrator import ServiceOrchestrator
from services.registry import ServiceDescriptor, ServiceKind, ServiceRegistry

__all__ = [
    "ConnectivityProber",
    "ProbeTarget",
    "ServiceDescriptor",
    "ServiceKind",
    "ServiceOrchestrator",
    "ServiceRegistry",
]
