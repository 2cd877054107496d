"""Internet reachability probes against independent external targets."""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
import ipaddress
import math
import socket
import subprocess
import time
from typing import Any, Mapping, Sequence

from core.errors import ProbeTimeout
from core.logging import logger as LOGGER
from core.ops_models import ProbeResult


@dataclass(frozen=True)
class ProbeTarget:
    """Address used for reachability testing."""

    host: str
    port: int | None = None

    @classmethod
    def parse(cls, value: str) -> "ProbeTarget":
        """Parse ``host`` or ``host:port`` (IPv6 literals as ``[addr]:port``)."""

        value = value.strip()
        if value.startswith("["):
            host, _, rest = value[1:].partition("]")
            port = int(rest[1:]) if rest.startswith(":") else None
            return cls(host=host, port=port)
        if value.count(":") == 1:
            host, port_text = value.split(":")
            return cls(host=host, port=int(port_text))
        return cls(host=value)

    def __str__(self) -> str:
        if self.port is None:
            return self.host
        return f"{self.host}:{self.port}"


class ConnectivityProber:
    """Reduce probes of several targets to a single online/offline verdict."""

    def __init__(
        self,
        targets: Sequence[ProbeTarget],
        *,
        method: str = "icmp",
        timeout_s: float = 3.0,
        tcp_port: int = 53,
        concurrent: bool = True,
    ) -> None:
        if not targets:
            raise ValueError("At least one probe target is required")
        if method not in {"icmp", "tcp"}:
            raise ValueError(f"Unsupported probe method: {method}")
        self._targets = tuple(targets)
        self._method = method
        self._timeout_s = max(float(timeout_s), 0.5)
        self._tcp_port = int(tcp_port)
        self._concurrent = concurrent
        self._last_results: list[ProbeResult] = []

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ConnectivityProber":
        connectivity_cfg = config.get("connectivity") or {}
        targets = [ProbeTarget.parse(str(item)) for item in connectivity_cfg.get("targets", [])]
        return cls(
            targets,
            method=str(connectivity_cfg.get("method", "icmp")),
            timeout_s=float(connectivity_cfg.get("timeout_s", 3.0)),
            tcp_port=int(connectivity_cfg.get("tcp_port", 53)),
            concurrent=bool(connectivity_cfg.get("concurrent", True)),
        )

    @property
    def targets(self) -> tuple[ProbeTarget, ...]:
        return self._targets

    @property
    def last_results(self) -> list[ProbeResult]:
        return list(self._last_results)

    def probe(self) -> bool:
        """Return True if any target is reachable."""

        if self._concurrent and len(self._targets) > 1:
            results = self._probe_concurrently()
        else:
            results = []
            for target in self._targets:
                result = self.probe_target(target)
                results.append(result)
                if result.reachable:
                    break
        self._last_results = results
        reachable = any(result.reachable for result in results)
        if not reachable:
            LOGGER.debug(
                "[Probe] All targets unreachable: %s",
                ", ".join(f"{result.target} ({result.error})" for result in results),
            )
        return reachable

    def probe_target(self, target: ProbeTarget) -> ProbeResult:
        """Probe one target; failures are reported in the result, never raised."""

        start = time.monotonic()
        try:
            if self._method == "icmp":
                self._ping(target)
            else:
                self._connect(target)
        except ProbeTimeout as exc:
            return ProbeResult(target=str(target), reachable=False, error=str(exc))
        except OSError as exc:
            return ProbeResult(target=str(target), reachable=False, error=str(exc))
        latency_ms = int((time.monotonic() - start) * 1000)
        return ProbeResult(target=str(target), reachable=True, latency_ms=latency_ms)

    def _probe_concurrently(self) -> list[ProbeResult]:
        results: list[ProbeResult] = []
        executor = ThreadPoolExecutor(
            max_workers=len(self._targets),
            thread_name_prefix="probe",
        )
        try:
            pending: set[Future[ProbeResult]] = {
                executor.submit(self.probe_target, target) for target in self._targets
            }
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    result = future.result()
                    results.append(result)
                    if result.reachable:
                        return results
            return results
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _ping(self, target: ProbeTarget) -> None:
        wait_s = max(1, math.ceil(self._timeout_s))
        try:
            result = subprocess.run(
                ["ping", "-c", "1", "-W", str(wait_s), target.host],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self._timeout_s + 1.0,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(f"ping {target.host} timed out") from None
        if result.returncode != 0:
            raise OSError(f"ping exit status {result.returncode}")

    def _connect(self, target: ProbeTarget) -> None:
        port = target.port if target.port is not None else self._tcp_port
        deadline = time.monotonic() + self._timeout_s
        address = self._resolve(target.host, port)
        remaining = max(deadline - time.monotonic(), 0.05)
        try:
            with socket.create_connection((address, port), timeout=remaining):
                return
        except socket.timeout:
            raise ProbeTimeout(f"connect {target.host}:{port} timed out") from None

    def _resolve(self, host: str, port: int) -> str:
        """Resolve a hostname within the probe timeout; IP literals pass through."""

        try:
            ipaddress.ip_address(host)
            return host
        except ValueError:
            pass
        # getaddrinfo takes no timeout.
        resolver = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe-dns")
        future = resolver.submit(socket.getaddrinfo, host, port, 0, socket.SOCK_STREAM)
        resolver.shutdown(wait=False)
        try:
            infos = future.result(timeout=self._timeout_s)
        except FutureTimeout:
            raise ProbeTimeout(f"resolve {host} timed out") from None
        if not infos:
            raise OSError(f"no addresses for {host}")
        return infos[0][4][0]
