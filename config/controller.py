"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR_ENV = "LOA_CONFIG_DIR"

DEFAULT_TARGETS = ["8.8.8.8", "1.1.1.1", "208.67.222.222", "9.9.9.9"]
DEFAULT_ARCHIVE_COMMAND = "kiwix-serve --port={port} {resource}"


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading configuration once at startup."""

    _instance: "ConfigController | None" = None

    def __init__(
        self,
        config_file: str = "default.yaml",
        config_dir: Path | str | None = None,
    ) -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        resolved_dir = self._resolve_config_dir(config_dir)
        self.paths = ConfigPaths(
            config_dir=resolved_dir,
            config_file=resolved_dir / config_file,
            override_file=resolved_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()
        ConfigController._instance = self

    @classmethod
    def get_instance(cls, config_dir: Path | str | None = None) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls(config_dir=config_dir)
        return cls._instance

    @staticmethod
    def _resolve_config_dir(config_dir: Path | str | None) -> Path:
        if config_dir is not None:
            return Path(config_dir).expanduser()
        env_dir = os.getenv(CONFIG_DIR_ENV)
        if env_dir:
            return Path(env_dir).expanduser()
        return Path("config")

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        with self.paths.config_file.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_config(config)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill defaults and map the flat keys used by the old shell controller."""

        normalized = dict(config)
        normalized["logging_level"] = str(normalized.get("logging_level", "INFO"))
        normalized["file_logging_enabled"] = bool(normalized.get("file_logging_enabled", True))
        normalized["log_file"] = str(normalized.get("log_file", "/var/log/loa-controller.log"))
        normalized["lock_file"] = str(normalized.get("lock_file", "/tmp/loa-controller.lock"))

        connectivity_cfg = dict(normalized.get("connectivity") or {})
        targets = connectivity_cfg.get(
            "targets", normalized.get("internet_check_hosts", DEFAULT_TARGETS)
        )
        if isinstance(targets, str):
            targets = [targets]
        connectivity_cfg["targets"] = [str(target) for target in targets or []]
        if not connectivity_cfg["targets"]:
            raise ValueError("connectivity.targets must list at least one probe target")
        method = str(connectivity_cfg.get("method", "icmp")).lower()
        if method not in {"icmp", "tcp"}:
            raise ValueError(f"Unsupported connectivity.method: {method}")
        connectivity_cfg["method"] = method
        connectivity_cfg["timeout_s"] = float(connectivity_cfg.get("timeout_s", 3.0))
        connectivity_cfg["tcp_port"] = int(connectivity_cfg.get("tcp_port", 53))
        connectivity_cfg["concurrent"] = bool(connectivity_cfg.get("concurrent", True))

        mode_cfg = dict(normalized.get("mode") or {})
        mode_cfg["poll_interval_s"] = float(
            mode_cfg.get("poll_interval_s", normalized.get("check_interval", 30.0))
        )
        mode_cfg["grace_period_s"] = float(
            mode_cfg.get("grace_period_s", normalized.get("offline_grace_period", 120.0))
        )

        orchestration_cfg = dict(normalized.get("orchestration") or {})
        orchestration_cfg["command_timeout_s"] = float(
            orchestration_cfg.get("command_timeout_s", 30.0)
        )
        orchestration_cfg["terminate_timeout_s"] = float(
            orchestration_cfg.get("terminate_timeout_s", 5.0)
        )
        orchestration_cfg["archive_command"] = str(
            orchestration_cfg.get("archive_command", DEFAULT_ARCHIVE_COMMAND)
        )
        orchestration_cfg["optional_retry_attempts"] = max(
            int(orchestration_cfg.get("optional_retry_attempts", 0)), 0
        )
        orchestration_cfg["access_hint"] = str(orchestration_cfg.get("access_hint") or "")

        normalized["connectivity"] = connectivity_cfg
        normalized["mode"] = mode_cfg
        normalized["orchestration"] = orchestration_cfg
        normalized["services"] = list(normalized.get("services") or [])
        return normalized
