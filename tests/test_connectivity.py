"""Tests for the connectivity prober."""

from __future__ import annotations

import socket
import subprocess
import threading
import time

import pytest

from core.ops_models import ProbeResult
from services.connectivity import ConnectivityProber, ProbeTarget


def _targets(*hosts: str) -> list[ProbeTarget]:
    return [ProbeTarget.parse(host) for host in hosts]


def test_parse_targets() -> None:
    assert ProbeTarget.parse("8.8.8.8") == ProbeTarget("8.8.8.8")
    assert ProbeTarget.parse("1.1.1.1:443") == ProbeTarget("1.1.1.1", 443)
    assert ProbeTarget.parse("[2606:4700::1111]:53") == ProbeTarget("2606:4700::1111", 53)
    assert ProbeTarget.parse("2606:4700::1111") == ProbeTarget("2606:4700::1111")
    assert str(ProbeTarget("9.9.9.9", 53)) == "9.9.9.9:53"


def test_requires_targets() -> None:
    with pytest.raises(ValueError):
        ConnectivityProber([])


def test_any_reachable_target_means_online(monkeypatch) -> None:
    prober = ConnectivityProber(_targets("a", "b", "c"), concurrent=False)
    calls: list[str] = []

    def fake_probe_target(target: ProbeTarget) -> ProbeResult:
        calls.append(target.host)
        return ProbeResult(target=target.host, reachable=target.host == "b")

    monkeypatch.setattr(prober, "probe_target", fake_probe_target)

    assert prober.probe() is True
    assert calls == ["a", "b"]


def test_all_unreachable_means_offline(monkeypatch) -> None:
    prober = ConnectivityProber(_targets("a", "b"), concurrent=False)
    monkeypatch.setattr(
        prober,
        "probe_target",
        lambda target: ProbeResult(target=target.host, reachable=False, error="down"),
    )

    assert prober.probe() is False
    assert [result.target for result in prober.last_results] == ["a", "b"]


def test_concurrent_probe_returns_on_first_success(monkeypatch) -> None:
    prober = ConnectivityProber(_targets("slow", "fast"), concurrent=True, timeout_s=1.0)
    release = threading.Event()

    def fake_probe_target(target: ProbeTarget) -> ProbeResult:
        if target.host == "slow":
            release.wait(timeout=5.0)
            return ProbeResult(target="slow", reachable=False, error="timeout")
        return ProbeResult(target="fast", reachable=True, latency_ms=3)

    monkeypatch.setattr(prober, "probe_target", fake_probe_target)

    try:
        assert prober.probe() is True
        assert [result.target for result in prober.last_results] == ["fast"]
    finally:
        release.set()


def test_icmp_probe_uses_ping(monkeypatch) -> None:
    commands: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        commands.append(cmd)
        return subprocess.CompletedProcess(cmd, 0 if cmd[-1] == "1.1.1.1" else 1)

    monkeypatch.setattr("services.connectivity.subprocess.run", fake_run)
    prober = ConnectivityProber(_targets("8.8.8.8", "1.1.1.1"), timeout_s=3.0, concurrent=False)

    assert prober.probe() is True
    assert commands[0] == ["ping", "-c", "1", "-W", "3", "8.8.8.8"]
    assert prober.last_results[0].reachable is False
    assert prober.last_results[1].reachable is True


def test_icmp_timeout_is_contained(monkeypatch) -> None:
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout", 0))

    monkeypatch.setattr("services.connectivity.subprocess.run", fake_run)
    prober = ConnectivityProber(_targets("8.8.8.8"))

    result = prober.probe_target(ProbeTarget("8.8.8.8"))

    assert result.reachable is False
    assert "timed out" in result.error


def test_tcp_probe_uses_default_and_explicit_ports(monkeypatch) -> None:
    addresses: list[tuple[str, int]] = []

    class _Conn:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def fake_connect(address, timeout):
        addresses.append(address)
        if address[0] == "192.0.2.1":
            raise socket.timeout("timed out")
        return _Conn()

    monkeypatch.setattr("services.connectivity.socket.create_connection", fake_connect)
    prober = ConnectivityProber(
        _targets("192.0.2.1", "198.51.100.7:443"), method="tcp", tcp_port=53, concurrent=False
    )

    assert prober.probe() is True
    assert addresses == [("192.0.2.1", 53), ("198.51.100.7", 443)]
    assert prober.last_results[0].error.startswith("connect 192.0.2.1:53 timed out")


def test_tcp_hostname_resolved_before_connect(monkeypatch) -> None:
    addresses: list[tuple[str, int]] = []

    class _Conn:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def fake_getaddrinfo(host, port, family, kind):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("203.0.113.5", port))]

    def fake_connect(address, timeout):
        addresses.append(address)
        return _Conn()

    monkeypatch.setattr("services.connectivity.socket.getaddrinfo", fake_getaddrinfo)
    monkeypatch.setattr("services.connectivity.socket.create_connection", fake_connect)
    prober = ConnectivityProber(_targets("dns.example"), method="tcp", concurrent=False)

    assert prober.probe() is True
    assert addresses == [("203.0.113.5", 53)]


def test_tcp_slow_resolution_counts_as_timeout(monkeypatch) -> None:
    release = threading.Event()

    def slow_getaddrinfo(host, port, family, kind):
        release.wait(timeout=5)
        return []

    monkeypatch.setattr("services.connectivity.socket.getaddrinfo", slow_getaddrinfo)
    prober = ConnectivityProber(
        _targets("dns.example"), method="tcp", timeout_s=0.1, concurrent=False
    )

    started = time.monotonic()
    try:
        result = prober.probe_target(ProbeTarget("dns.example"))
    finally:
        release.set()

    assert result.reachable is False
    assert result.error == "resolve dns.example timed out"
    assert time.monotonic() - started < 2.0


def test_from_config() -> None:
    prober = ConnectivityProber.from_config(
        {"connectivity": {"targets": ["9.9.9.9", "1.1.1.1:53"], "method": "tcp"}}
    )

    assert prober.targets == (ProbeTarget("9.9.9.9"), ProbeTarget("1.1.1.1", 53))
