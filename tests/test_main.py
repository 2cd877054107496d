"""Tests for the command-line entry point."""

from __future__ import annotations

from pathlib import Path

import main
from core import logging as core_logging
from core.app import OfflineModeController
from services.connectivity import ConnectivityProber


def _write_config(config_dir: Path, lines: list[str]) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("\n".join(lines), encoding="utf-8")


def test_probe_flag_reports_online(tmp_path: Path, monkeypatch, capsys) -> None:
    _write_config(tmp_path, ["connectivity:", "  targets: [1.1.1.1]"])
    monkeypatch.setattr(ConnectivityProber, "probe", lambda self: True)

    exit_code = main.main(["--config-dir", str(tmp_path), "--probe"])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == "ONLINE"


def test_probe_flag_reports_offline(tmp_path: Path, monkeypatch, capsys) -> None:
    _write_config(tmp_path, ["connectivity:", "  targets: [1.1.1.1]"])
    monkeypatch.setattr(ConnectivityProber, "probe", lambda self: False)

    exit_code = main.main(["--config-dir", str(tmp_path), "--probe"])

    assert exit_code == 1
    assert capsys.readouterr().out.strip() == "OFFLINE"


def test_invalid_registry_exits_with_config_error(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        [
            "services:",
            "  - name: a",
            "    kind: core",
            "  - name: a",
            "    kind: optional",
        ],
    )

    assert main.main(["--config-dir", str(tmp_path)]) == 2


def test_missing_config_dir_exits_with_config_error(tmp_path: Path) -> None:
    assert main.main(["--config-dir", str(tmp_path / "nowhere")]) == 2


def test_live_lock_exits_non_zero(tmp_path: Path, monkeypatch) -> None:
    lock_path = tmp_path / "loa.lock"
    lock_path.write_text('{"pid": 31337}', encoding="utf-8")
    _write_config(
        tmp_path / "etc",
        [
            "file_logging_enabled: false",
            f"lock_file: {lock_path}",
            "services: []",
        ],
    )
    probes: list[str] = []
    monkeypatch.setattr("core.instance_guard.is_process_alive", lambda pid: pid == 31337)
    monkeypatch.setattr(ConnectivityProber, "probe", lambda self: probes.append("probe") or True)

    assert main.main(["--config-dir", str(tmp_path / "etc")]) == 1
    assert probes == []
    assert lock_path.read_text(encoding="utf-8") == '{"pid": 31337}'


def test_malformed_yaml_exits_with_config_error(tmp_path: Path) -> None:
    _write_config(tmp_path, ["mode: [unclosed"])

    assert main.main(["--config-dir", str(tmp_path)]) == 2


def test_default_run_writes_log_file(tmp_path: Path, monkeypatch) -> None:
    log_path = tmp_path / "logs" / "loa-controller.log"
    _write_config(
        tmp_path / "etc",
        [
            f"log_file: {log_path}",
            f"lock_file: {tmp_path / 'loa.lock'}",
            "services: []",
        ],
    )
    monkeypatch.setattr("core.app.install_signal_handlers", lambda controller: None)
    monkeypatch.setattr(OfflineModeController, "run_forever", lambda self: None)

    try:
        exit_code = main.main(["--config-dir", str(tmp_path / "etc")])
    finally:
        core_logging.disable_file_logging()

    assert exit_code == 0
    assert "Writing logs to" in log_path.read_text(encoding="utf-8")


def test_file_sink_failure_falls_back_to_console(tmp_path: Path, monkeypatch) -> None:
    _write_config(
        tmp_path / "etc",
        [
            f"log_file: {tmp_path / 'loa-controller.log'}",
            f"lock_file: {tmp_path / 'loa.lock'}",
            "services: []",
        ],
    )

    def broken_sink(path):
        raise RuntimeError("listener thread refused")

    monkeypatch.setattr(main, "enable_file_logging", broken_sink)
    monkeypatch.setattr("core.app.install_signal_handlers", lambda controller: None)
    monkeypatch.setattr(OfflineModeController, "run_forever", lambda self: None)

    assert main.main(["--config-dir", str(tmp_path / "etc")]) == 0
    assert not (tmp_path / "loa.lock").exists()
